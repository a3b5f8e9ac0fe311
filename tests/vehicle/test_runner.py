import asyncio
from unittest.mock import Mock

import pytest

from vehicle.runner import SimulationRunner

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_runner_ticks_until_stopped():
    service = Mock()
    service.tick.return_value = []
    runner = SimulationRunner(service, interval=0.01)

    await runner.start()
    assert runner.running
    await asyncio.sleep(0.1)
    await runner.stop()

    assert not runner.running
    assert runner.cycles >= 2
    assert service.tick.call_count >= runner.cycles


@pytest.mark.asyncio
async def test_runner_survives_failing_cycle():
    service = Mock()
    failures = [RuntimeError("database is locked")]

    def tick():
        if failures:
            raise failures.pop()
        return []

    service.tick.side_effect = tick
    runner = SimulationRunner(service, interval=0.01)

    await runner.start()
    for _ in range(100):
        if service.tick.call_count >= 3:
            break
        await asyncio.sleep(0.01)
    await runner.stop()

    assert service.tick.call_count >= 3
    assert runner.cycles >= 1


@pytest.mark.asyncio
async def test_stop_without_start_is_noop():
    runner = SimulationRunner(Mock())
    await runner.stop()
    assert not runner.running
