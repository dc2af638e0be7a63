from __future__ import annotations

# callers report incidents without a session, so end_user holds no permission
ROLE_PERMS: dict[str, set[str]] = {
    "end_user": set(),
    "substation_admin": {
        "incident.view",
        "incident.create",
        "incident.update",
        "readiness.view",
        "readiness.submit",
    },
    "admin": {"*"},
}


def has_perm(roles: list[str], perm: str) -> bool:
    for r in roles:
        perms = ROLE_PERMS.get(r, set())
        if "*" in perms or perm in perms:
            return True
    return False


def parse_roles(raw: str | None) -> list[str]:
    return [r.strip() for r in (raw or "").split(",") if r.strip()]
