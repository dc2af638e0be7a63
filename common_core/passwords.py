from __future__ import annotations

import bcrypt

_WEAK_PINS = {"0000", "1111", "1234", "12345", "123456", "000000", "111111", "654321", "112233"}
_BCRYPT_ROUNDS = 12


class WeakPinError(ValueError):
    pass


def check_pin_policy(pin: str) -> None:
    if not pin or not pin.strip():
        raise WeakPinError("PIN is required")
    if len(pin) < 6:
        raise WeakPinError("PIN must be at least 6 chars")
    if pin.strip() in _WEAK_PINS or len(set(pin)) == 1:
        raise WeakPinError("PIN is too weak")


def hash_pin(pin: str) -> str:
    check_pin_policy(pin)
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)).decode("utf-8")


def verify_pin(pin: str, pin_hash: str) -> bool:
    # malformed stored hashes make bcrypt raise ValueError; treat as a mismatch
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), pin_hash.encode("utf-8"))
    except ValueError:
        return False
