# mediavault/clock.py
"""
Logical clock supplied by the host.

Heights are plain integers that only move forward. The registry stamps
new records with the current height; it never advances the clock itself.
"""


class BlockClock:
    """Monotonic block-height counter."""

    def __init__(self, height: int = 0):
        if height < 0:
            raise ValueError(f"Height cannot be negative: {height}")
        self._height = height

    def now(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError(f"Clock cannot move backwards ({blocks} blocks)")
        self._height += blocks
        return self._height

    def set(self, height: int) -> None:
        if height < self._height:
            raise ValueError(f"Clock cannot move backwards: {height} < {self._height}")
        self._height = height

    def __repr__(self) -> str:
        return f"BlockClock(height={self._height})"
