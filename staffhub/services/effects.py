"""
Best-effort side effects.

History writes, notifications and workflow updates run after the primary
write has committed. Each one is bounded by a timeout and its failure is
captured in an EffectResult instead of propagating, so the caller's
operation always returns its primary result.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, List, Optional

from loguru import logger

from staffhub import config


@dataclass
class EffectResult:
    name: str
    ok: bool
    value: Any = None
    error: Optional[str] = None


@dataclass
class EffectLog:
    """Results of every side effect attempted during one operation."""

    results: List[EffectResult] = field(default_factory=list)

    def add(self, result: EffectResult) -> EffectResult:
        self.results.append(result)
        return result

    @property
    def failures(self) -> List[EffectResult]:
        return [r for r in self.results if not r.ok]

    def get(self, name: str) -> Optional[EffectResult]:
        for result in self.results:
            if result.name == name:
                return result
        return None


async def run_effect(name: str, awaitable: Awaitable, context: str = "", timeout: Optional[float] = None) -> EffectResult:
    if timeout is None:
        timeout = config.SIDE_EFFECT_TIMEOUT_SECONDS
    try:
        value = await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Side effect '{name}' timed out after {timeout}s {context}".rstrip())
        return EffectResult(name=name, ok=False, error="timeout")
    except Exception as exc:
        logger.opt(exception=exc).warning(f"Side effect '{name}' failed {context}: {exc}")
        return EffectResult(name=name, ok=False, error=str(exc))
    return EffectResult(name=name, ok=True, value=value)
