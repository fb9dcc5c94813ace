from __future__ import annotations

import pytest

from flowpolicy.evaluation.budget import (
    GasMeter,
    budget_scope,
    consume_step,
    current_meter,
    metered,
)
from flowpolicy.exceptions import BudgetExhausted, NeverThrown


def test_gas_meter_raises_past_limit() -> None:
    meter = GasMeter(limit=2)
    meter.consume()
    meter.consume()
    assert meter.remaining == 0
    with pytest.raises(BudgetExhausted) as exc_info:
        meter.consume()
    assert (exc_info.value.used, exc_info.value.limit) == (3, 2)


@pytest.mark.parametrize("limit", [0, -1])
def test_gas_meter_rejects_non_positive_limit(limit: int) -> None:
    with pytest.raises(NeverThrown):
        GasMeter(limit=limit)


def test_gas_meter_rejects_non_positive_ticks() -> None:
    with pytest.raises(NeverThrown):
        GasMeter(limit=5).consume(0)


def test_budget_scope_installs_and_restores_meter() -> None:
    outer = current_meter()
    with budget_scope(10) as meter:
        assert current_meter() is meter
        consume_step(3)
        assert meter.current == 3
    assert current_meter() is outer


def test_metered_consumes_one_step_per_item() -> None:
    with budget_scope(2):
        iterator = metered(["a", "b", "c"])
        assert next(iterator) == "a"
        assert next(iterator) == "b"
        with pytest.raises(BudgetExhausted):
            next(iterator)
