"""Composition of producer and consumer interceptors."""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

Invoker = Callable[[Any, Any, Any], Any]
Interceptor = Callable[[Any, Any, Any, Invoker], Any]


def chain_interceptors(*args: Interceptor) -> Optional[Interceptor]:
    """Combine interceptors into one that runs them in order, then the final invoker."""
    interceptors = tuple(args)
    if not interceptors:
        return None
    if len(interceptors) == 1:
        return interceptors[0]

    def chained(ctx: Any, req: Any, reply: Any, invoker: Invoker) -> Any:
        return interceptors[0](ctx, req, reply, _chained_invoker(interceptors, 0, invoker))

    return chained


def _chained_invoker(interceptors: Sequence[Interceptor], cur: int, final: Invoker) -> Invoker:
    if cur == len(interceptors) - 1:
        return final

    def invoke(ctx: Any, req: Any, reply: Any) -> Any:
        return interceptors[cur + 1](
            ctx, req, reply, _chained_invoker(interceptors, cur + 1, final)
        )

    return invoke