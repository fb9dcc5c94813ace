"""Logical step budget for policy evaluation.

Each candidate visited and each context query consumes one tick from the
meter installed in the current scope. Without an installed meter evaluation
is unmetered.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Iterable, Iterator, TypeVar

from flowpolicy.exceptions import BudgetExhausted
from flowpolicy.invariants import never

DEFAULT_MAX_STEPS = 1_000_000

_T = TypeVar("_T")


@dataclass
class GasMeter:
    """Deterministic logical clock driven by consumed ticks."""

    limit: int
    current: int = 0

    def __post_init__(self) -> None:
        if int(self.limit) <= 0:
            never("invalid gas meter limit", limit=self.limit)
        self.limit = int(self.limit)
        self.current = int(self.current)
        if self.current < 0:
            never("invalid gas meter current", current=self.current)

    def consume(self, ticks: int = 1) -> None:
        ticks_value = int(ticks)
        if ticks_value <= 0:
            never("invalid gas meter ticks", ticks=ticks)
        self.current += ticks_value
        if self.current > self.limit:
            raise BudgetExhausted(self.current, self.limit)

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current)


_meter_var: ContextVar[GasMeter | None] = ContextVar("flowpolicy_gas_meter", default=None)


def set_meter(meter: GasMeter) -> Token[GasMeter | None]:
    if meter is None:
        never("gas meter missing")
    return _meter_var.set(meter)


def reset_meter(token: Token[GasMeter | None]) -> None:
    _meter_var.reset(token)


def current_meter() -> GasMeter | None:
    return _meter_var.get()


@contextmanager
def budget_scope(max_steps: int = DEFAULT_MAX_STEPS):
    meter = GasMeter(limit=max_steps)
    token = set_meter(meter)
    try:
        yield meter
    finally:
        reset_meter(token)


def consume_step(ticks: int = 1) -> None:
    meter = _meter_var.get()
    if meter is not None:
        meter.consume(ticks)


def metered(values: Iterable[_T]) -> Iterator[_T]:
    for value in values:
        consume_step()
        yield value
