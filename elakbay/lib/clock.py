"""Time and identifier sources.

Small seams so tests can inject deterministic fakes.
"""

import random
import time
import uuid
from typing import Protocol


class Clock(Protocol):
    """Wall clock in milliseconds since the epoch."""

    def now_ms(self) -> int:
        ...


class IdGenerator(Protocol):
    """Source of opaque session identifiers."""

    def new_id(self) -> str:
        ...


class SystemClock:
    def now_ms(self) -> int:
        return int(time.time() * 1000)


class UuidGenerator:
    """UUID4 identifiers, with a timestamp+random composite when the OS has no
    secure randomness source."""

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()

    def new_id(self) -> str:
        try:
            return str(uuid.uuid4())
        except NotImplementedError:
            return f'{self.clock.now_ms()}-{random.random()}'
