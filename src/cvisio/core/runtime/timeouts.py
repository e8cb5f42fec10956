from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any, Protocol, TypeVar

import anyio

from cvisio.core.runtime.errors import ProviderTimeout, RequestCancelled

T = TypeVar("T")


class Disconnectable(Protocol):
    async def is_disconnected(self) -> bool: ...


async def run_with_timeout(awaitable: Awaitable[T], timeout_seconds: float) -> T:
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise ProviderTimeout(f"provider call timed out after {timeout_seconds}s") from exc


async def run_bound_to_request(
    awaitable: Awaitable[T],
    request: Disconnectable,
    *,
    timeout_seconds: float,
    poll_seconds: float = 0.5,
) -> T:
    """Await ``awaitable`` for as long as the client is still connected.

    The call and a disconnect watcher share one task group. Whichever side
    finishes first cancels the group, so the call is cancelled when the client
    disconnects (``RequestCancelled``) or when ``timeout_seconds`` elapse
    (``ProviderTimeout``). Exceptions raised by the call propagate unchanged.
    """
    outcome: dict[str, Any] = {}

    async def _call(scope: anyio.CancelScope) -> None:
        try:
            outcome["result"] = await awaitable
        except Exception as exc:
            outcome["error"] = exc
        scope.cancel()

    async def _watch(scope: anyio.CancelScope) -> None:
        # Starlette polls receive() inside its own cancelled scope; anyio keeps
        # re-delivering our cancellation until this task actually exits.
        while not await request.is_disconnected():
            await anyio.sleep(poll_seconds)
        outcome["disconnected"] = True
        scope.cancel()

    try:
        with anyio.fail_after(timeout_seconds):
            async with anyio.create_task_group() as tg:
                tg.start_soon(_call, tg.cancel_scope)
                tg.start_soon(_watch, tg.cancel_scope)
    except TimeoutError as exc:
        raise ProviderTimeout(f"provider call timed out after {timeout_seconds}s") from exc

    if "error" in outcome:
        raise outcome["error"]
    if "result" in outcome:
        return outcome["result"]
    raise RequestCancelled("client disconnected before the provider replied")
