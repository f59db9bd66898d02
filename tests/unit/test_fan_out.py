"""Unit tests for the bounded fan-out helper."""

import asyncio

import pytest

from tbmirror.application.services import fan_out
from tbmirror.domain.entities import ItemOutcome, OutcomeStatus
from tbmirror.domain.exceptions import AuthenticationError


@pytest.mark.asyncio
async def test_failures_are_isolated_per_item():
    async def worker(item: str) -> ItemOutcome:
        if item == "bad":
            raise ValueError("broken json")
        return ItemOutcome("devices", item)

    outcomes = await fan_out(["a", "bad", "c"], worker, category="devices")

    assert [o.status for o in outcomes] == [
        OutcomeStatus.SUCCEEDED,
        OutcomeStatus.FAILED,
        OutcomeStatus.SUCCEEDED,
    ]
    assert "broken json" in outcomes[1].detail


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    running = 0
    peak = 0

    async def worker(item: int) -> ItemOutcome:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        return ItemOutcome("dashboards", str(item))

    outcomes = await fan_out(list(range(10)), worker, category="dashboards", limit=3)

    assert len(outcomes) == 10
    assert peak <= 3


@pytest.mark.asyncio
async def test_timeout_becomes_failed_outcome():
    async def worker(item: str) -> ItemOutcome:
        await asyncio.sleep(1)
        return ItemOutcome("widgets", item)

    outcomes = await fan_out(["slow"], worker, category="widgets", timeout=0.01)

    assert outcomes[0].status == OutcomeStatus.FAILED
    assert "timed out" in outcomes[0].detail


@pytest.mark.asyncio
async def test_authentication_error_is_fatal():
    async def worker(item: str) -> ItemOutcome:
        raise AuthenticationError()

    with pytest.raises(AuthenticationError):
        await fan_out(["a"], worker, category="devices")
