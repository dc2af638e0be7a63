"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""

import sqlalchemy as sa

from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "fire_stations",
        sa.Column("station_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("station_name", sa.String(length=128), nullable=False),
        sa.Column("station_type", sa.String(length=16), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("province", sa.String(length=128), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("contact_number", sa.String(length=32), nullable=True),
        sa.Column("is_ready", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_status_update", sa.DateTime(), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_fire_stations_station_type", "fire_stations", ["station_type"])
    op.create_index("ix_fire_stations_is_ready", "fire_stations", ["is_ready"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("full_name", sa.String(length=128), nullable=True),
        sa.Column("pin_hash", sa.String(length=128), nullable=False),
        sa.Column("roles", sa.String(length=256), nullable=False),
        sa.Column(
            "assigned_station_id",
            sa.Integer(),
            sa.ForeignKey("fire_stations.station_id"),
            nullable=True,
        ),
    )

    op.create_table(
        "station_readiness",
        sa.Column("readiness_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "station_id", sa.Integer(), sa.ForeignKey("fire_stations.station_id"), nullable=False
        ),
        sa.Column("submitted_by_user_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
        sa.Column("readiness_percentage", sa.Integer(), nullable=False),
        sa.Column("equipment_checklist", sa.JSON(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_station_readiness_station_submitted", "station_readiness", ["station_id", "submitted_at"]
    )

    op.create_table(
        "alarms",
        sa.Column("alarm_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("end_user_id", sa.String(length=64), nullable=True),
        sa.Column("caller_phone", sa.String(length=32), nullable=True),
        sa.Column("incident_type", sa.String(length=128), nullable=True),
        sa.Column("location_text", sa.String(length=512), nullable=True),
        sa.Column("narrative", sa.Text(), nullable=True),
        sa.Column("user_latitude", sa.Float(), nullable=False),
        sa.Column("user_longitude", sa.Float(), nullable=False),
        sa.Column("initial_alarm_level", sa.String(length=32), nullable=False),
        sa.Column("current_alarm_level", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Pending Dispatch"),
        sa.Column("call_time", sa.DateTime(), nullable=False),
        sa.Column("dispatch_time", sa.DateTime(), nullable=True),
        sa.Column("resolve_time", sa.DateTime(), nullable=True),
        sa.Column(
            "dispatched_station_id",
            sa.Integer(),
            sa.ForeignKey("fire_stations.station_id"),
            nullable=False,
        ),
        sa.Column("dispatched_truck_id", sa.Integer(), nullable=True),
        sa.Column("dispatch_distance_km", sa.Float(), nullable=True),
    )
    op.create_index("ix_alarms_end_user_id", "alarms", ["end_user_id"])
    op.create_index("ix_alarms_status", "alarms", ["status"])
    op.create_index("ix_alarms_call_time", "alarms", ["call_time"])
    op.create_index("ix_alarms_dispatched_station_id", "alarms", ["dispatched_station_id"])

    op.create_table(
        "alarm_response_log",
        sa.Column("log_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("alarm_id", sa.Integer(), sa.ForeignKey("alarms.alarm_id"), nullable=False),
        sa.Column("action_type", sa.String(length=64), nullable=False),
        sa.Column("details", sa.String(length=1024), nullable=True),
        sa.Column("performed_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("action_timestamp", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_alarm_response_log_alarm_id", "alarm_response_log", ["alarm_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_user_id", sa.String(length=64), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("details_json", sa.JSON(), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(), nullable=False),
    )
    for col in ("actor_user_id", "action", "entity_type", "entity_id", "request_id", "created_at_utc"):
        op.create_index(f"ix_audit_log_{col}", "audit_log", [col])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("alarm_response_log")
    op.drop_table("alarms")
    op.drop_table("station_readiness")
    op.drop_table("users")
    op.drop_table("fire_stations")
