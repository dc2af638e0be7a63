from __future__ import annotations

import time
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class Attempts:
    failures: list[float] = field(default_factory=list)
    blocked_until: float = 0.0


class LoginThrottle:
    """
    Failed-login throttle keyed by (ip, username).

    ``max_failures`` failures inside ``window_seconds`` block the pair for
    ``block_seconds``. A successful login clears the pair.
    """

    def __init__(self, max_failures: int, window_seconds: int, block_seconds: int) -> None:
        self.max_failures = int(max_failures)
        self.window_seconds = float(window_seconds)
        self.block_seconds = float(block_seconds)
        self._lock = Lock()
        self._attempts: dict[tuple[str, str], Attempts] = {}

    @staticmethod
    def _key(ip: str, username: str) -> tuple[str, str]:
        return (ip or "unknown", (username or "unknown").strip().lower())

    def allow(self, ip: str, username: str) -> bool:
        now = time.time()
        with self._lock:
            a = self._attempts.get(self._key(ip, username))
            return a is None or now >= a.blocked_until

    def record_failure(self, ip: str, username: str) -> None:
        now = time.time()
        with self._lock:
            a = self._attempts.setdefault(self._key(ip, username), Attempts())
            a.failures = [t for t in a.failures if now - t < self.window_seconds]
            a.failures.append(now)
            if len(a.failures) >= self.max_failures:
                a.blocked_until = now + self.block_seconds
                a.failures.clear()

    def reset(self, ip: str, username: str) -> None:
        with self._lock:
            self._attempts.pop(self._key(ip, username), None)

    def clear(self) -> None:
        with self._lock:
            self._attempts.clear()


login_throttle = LoginThrottle(max_failures=5, window_seconds=300, block_seconds=60)
