from __future__ import annotations

from common_core.config import settings


class ConfigError(RuntimeError):
    pass


def _must_set(name: str, value: str, min_len: int = 32) -> None:
    if not value:
        raise ConfigError(f"{name} is required")
    if value.strip().upper() == "CHANGE_ME":
        raise ConfigError(f"{name} must not be CHANGE_ME")
    if len(value) < min_len:
        raise ConfigError(f"{name} must be at least {min_len} chars")


def _must_be_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigError(f"{name} must be > 0")


def validate_runtime_settings() -> None:
    _must_set("JWT_SECRET", settings.jwt_secret, 32)
    _must_be_positive("DISPATCH_MAX_RADIUS_KM", settings.dispatch_max_radius_km)
    _must_be_positive("NOTIFY_BUFFER_SIZE", settings.notify_buffer_size)
    _must_be_positive("SSE_HEARTBEAT_SECONDS", settings.sse_heartbeat_seconds)
    _must_be_positive("SSE_CLIENT_QUEUE_SIZE", settings.sse_client_queue_size)
