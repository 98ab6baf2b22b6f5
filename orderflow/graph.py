"""
Graph: dependency-resolved pipelines over nodnod.

    from orderflow import graph as G

    @G.node
    class PricedLines:
        @classmethod
        async def __compose__(cls, lines: SnapshotLines, ctx: OrderContext) -> "PricedLines":
            ...

    priced = await G.compose(PricedLines, command, ctx)

Inputs are injected under their runtime type, so every node parameter
that is not another node must be annotated with the exact injected class.
"""

from __future__ import annotations

from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node
from nodnod import scalar_node as node


# ═══════════════════════════════════════════════════════════════════════════════
# TypedScope
# ═══════════════════════════════════════════════════════════════════════════════

class TypedScope:
    """Type-safe wrapper around nodnod.Scope."""

    __slots__ = ("_scope",)

    def __init__(self, detail: str = "scope") -> None:
        self._scope = Scope(detail=detail)

    @property
    def inner(self) -> Scope:
        return self._scope

    def inject[T](self, typ: type[T], value: T) -> TypedScope:
        self._scope.push(Value(typ, value))
        return self

    def get[T](self, typ: type[T]) -> T:
        result = self._scope.get(typ)
        if result is None:
            raise KeyError(f"{typ.__name__} not found in scope")
        return cast(T, result.value)

    async def __aenter__(self) -> TypedScope:
        await self._scope.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._scope.__aexit__(*args)


# ═══════════════════════════════════════════════════════════════════════════════
# compose: build agent for target, inject inputs, run
# ═══════════════════════════════════════════════════════════════════════════════

async def compose[T](target: type[T], *inputs: object) -> T:
    """
    Resolve target and everything it depends on.

    Exceptions raised by a node's __compose__ propagate to the caller.
    """
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})

    async with TypedScope(detail=f"compose:{target.__name__}") as scope:
        for value in inputs:
            scope.inject(cast(type[Any], type(value)), value)

        run_method = cast(
            Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
            getattr(agent, "run"),
        )
        await run_method(scope.inner, {})

        return scope.get(target)


__all__ = ("node", "TypedScope", "compose")
