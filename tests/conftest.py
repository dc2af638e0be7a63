import os
import tempfile
from contextlib import contextmanager
from pathlib import Path

import pytest

# Ensure required secrets are present before any app/settings import during test collection.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_SECRET", "dev_jwt_secret_32_chars_minimum__123456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

ROOT = Path(__file__).resolve().parents[1]

# well-formed bcrypt string matching no PIN; seeded users authenticate by token
DUMMY_PIN_HASH = "$2b$04$abcdefghijklmnopqrstuuEcUtvLJnNpQ/hr5nXyLmqRTBfVKXSgK"


def _run_alembic_upgrade_head() -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config()
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    command.upgrade(cfg, "head")


def pytest_configure():
    fd, path = tempfile.mkstemp(prefix="firedispatch_test_", suffix=".db")
    os.close(fd)
    db_url = f"sqlite+pysqlite:///{path}"

    os.environ["DISPATCH_DB_URL"] = db_url
    os.environ["SQLALCHEMY_DATABASE_URL"] = db_url

    _run_alembic_upgrade_head()


@pytest.fixture(autouse=True)
def _clean_db():
    # Runs before each test, after every session from the previous test is closed.
    from apps.dispatch_backend import models  # noqa: F401
    from apps.dispatch_backend.security_rate_limit import login_throttle
    from common_core.db import Base, dispatch_engine

    with dispatch_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    login_throttle.clear()
    yield


@pytest.fixture
def db():
    from common_core.db import DispatchSessionLocal

    s = DispatchSessionLocal()
    try:
        yield s
    finally:
        s.rollback()
        s.close()


class Seeder:
    """
    Test data helpers.

    Pass ``db`` to work inside a test's session (flush only); without it a
    short-lived session is opened and committed, for API tests.
    """

    @contextmanager
    def _session(self, db):
        if db is not None:
            yield db
            db.flush()
            return
        from common_core.db import DispatchSessionLocal

        s = DispatchSessionLocal()
        try:
            yield s
            s.commit()
        finally:
            s.close()

    def user(self, username, roles="substation_admin", station_id=None, full_name=None, db=None):
        from apps.dispatch_backend.models import User

        with self._session(db) as s:
            s.add(
                User(
                    id=username,
                    full_name=full_name,
                    pin_hash=DUMMY_PIN_HASH,
                    roles=roles,
                    assigned_station_id=station_id,
                )
            )
        return username

    def station(self, name, lat, lon, station_type="Substation", readiness=None, db=None):
        """Creates a station; ``readiness`` submits one report as the station's own admin."""
        from apps.dispatch_backend.models import Station
        from apps.dispatch_backend.services.audit import now_utc
        from apps.dispatch_backend.services.readiness import submit_readiness

        with self._session(db) as s:
            st = Station(
                station_name=name,
                station_type=station_type,
                latitude=lat,
                longitude=lon,
                is_ready=False,
                created_at_utc=now_utc(),
            )
            s.add(st)
            s.flush()
            sid = st.station_id
            if readiness:
                uid = self.user(f"admin-{sid}", station_id=sid, full_name=f"{name} Admin", db=s)
                submit_readiness(s, sid, uid, readiness, 100 if readiness == "READY" else 50, {})
        return sid

    def token(self, username, roles=("substation_admin",), station_id=None):
        from common_core.security import issue_jwt

        return issue_jwt(sub=username, roles=list(roles), station_id=station_id)

    def auth(self, username="admin", roles=("admin",), station_id=None):
        return {"Authorization": f"Bearer {self.token(username, roles, station_id)}"}


@pytest.fixture
def seed():
    return Seeder()
