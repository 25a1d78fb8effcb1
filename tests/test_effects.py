"""
Tests for best-effort side effect dispatch
"""
import asyncio

import pytest

from staffhub.services.effects import EffectLog, run_effect


async def _returns(value):
    return value


async def _raises():
    raise RuntimeError("notification backend down")


async def _sleeps():
    await asyncio.sleep(1)


class TestRunEffect:
    @pytest.mark.asyncio
    async def test_success_carries_value(self):
        result = await run_effect("history", _returns(42))
        assert result.ok
        assert result.value == 42
        assert result.error is None

    @pytest.mark.asyncio
    async def test_failure_is_captured(self):
        result = await run_effect("notify", _raises(), "(application x)")
        assert not result.ok
        assert result.error == "notification backend down"

    @pytest.mark.asyncio
    async def test_timeout_is_captured(self):
        result = await run_effect("workflow", _sleeps(), timeout=0.01)
        assert not result.ok
        assert result.error == "timeout"


class TestEffectLog:
    @pytest.mark.asyncio
    async def test_failures_and_lookup(self):
        log = EffectLog()
        log.add(await run_effect("history", _returns("ok")))
        log.add(await run_effect("notify", _raises()))

        assert [r.name for r in log.failures] == ["notify"]
        assert log.get("history").ok
        assert log.get("workflow") is None
