"""Token budget accounting for one research session."""

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class BudgetSummary:
    """Snapshot of budget usage."""

    total: int
    cap: int | None
    remaining: int | None
    exceeded: bool


class BudgetAccountant:
    """
    Tracks consumed tokens against an optional soft cap.

    Charges are additive, so their order does not matter. Concurrent tasks
    may charge at once; add-and-compare happens under a lock.
    """

    def __init__(self, cap: int | None = None):
        if cap is not None and cap <= 0:
            raise ValueError("budget cap must be positive")

        self.cap = cap
        self._total = 0
        self._exceeded = False
        self._lock = threading.Lock()

    @property
    def total(self) -> int:
        return self._total

    @property
    def exceeded(self) -> bool:
        return self._exceeded

    def charge(self, units: int) -> tuple[int, bool]:
        """
        Add consumed units.

        Returns:
            (new_total, exceeded); exceeded latches once total reaches the cap
        """
        if units < 0:
            raise ValueError("cannot charge a negative amount")

        with self._lock:
            self._total += units
            if self.cap is not None and self._total >= self.cap:
                self._exceeded = True
            return self._total, self._exceeded

    def remaining(self) -> int | None:
        """Units left before the cap, or None when unbounded."""
        if self.cap is None:
            return None
        return max(0, self.cap - self._total)

    def summary(self) -> BudgetSummary:
        with self._lock:
            return BudgetSummary(
                total=self._total,
                cap=self.cap,
                remaining=None if self.cap is None else max(0, self.cap - self._total),
                exceeded=self._exceeded,
            )
