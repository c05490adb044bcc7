"""Tracing hooks: observe every node of a running pipeline."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

# Optional OpenTelemetry imports - only needed if using OpenTelemetryHook
try:
    from opentelemetry.trace import (
        Status as _Status,
    )
    from opentelemetry.trace import (
        StatusCode as _StatusCode,
    )
    from opentelemetry.trace import (
        set_span_in_context as _set_span_in_context,
    )

    _HAS_OPENTELEMETRY = True
except ImportError:
    _HAS_OPENTELEMETRY = False
    _Status = None
    _StatusCode = None
    _set_span_in_context = None

if TYPE_CHECKING:
    from kompute._core import Computation


@runtime_checkable
class TraceHook(Protocol):
    """
    Protocol for trace hooks.

    Implement this to integrate with logging, OpenTelemetry, or other
    tracing systems. Every Computation node reached during a traced run
    reports on_enter, then on_exit on success or on_error on failure.

    Example:
        class MyHook:
            def on_enter(self, name, value, depth):
                print(f"{'  ' * depth}-> {name}")
                return None  # span token

            def on_exit(self, span, name, ok, duration_ms, depth):
                print(f"{'  ' * depth}<- {name} ({duration_ms:.2f}ms)")

            def on_error(self, span, name, error, duration_ms, depth):
                print(f"{'  ' * depth}<- {name} ERROR: {error}")
    """

    def on_enter(self, name: str, value: Any, depth: int) -> Any:
        """
        Called before a node runs.

        Args:
            name: Name/description of the node
            value: Input the node was invoked with
            depth: Nesting depth (0 = root)

        Returns:
            Span token to pass to on_exit / on_error (can be None)
        """
        ...

    def on_exit(
        self, span: Any, name: str, ok: bool, duration_ms: float, depth: int
    ) -> None:
        """
        Called after a node completes successfully.

        Args:
            span: Token returned from on_enter
            name: Name/description of the node
            ok: Always True; failures are reported through on_error
            duration_ms: Execution time in milliseconds
            depth: Nesting depth
        """
        ...

    def on_error(
        self,
        span: Any,
        name: str,
        error: BaseException,
        duration_ms: float,
        depth: int,
    ) -> None:
        """
        Called if a node raises or is cancelled. The error is re-raised
        unchanged afterwards.

        Args:
            span: Token returned from on_enter
            name: Name/description of the node
            error: The exception that was raised
            duration_ms: Execution time in milliseconds
            depth: Nesting depth
        """
        ...


@dataclass
class TraceConfig:
    """
    Configuration for tracing behavior.

    Attributes:
        nested: If True, trace nodes below the root
        max_depth: Maximum depth to trace (None = unlimited)
        include_leaf_only: If True, only trace nodes without operands
    """

    nested: bool = True
    max_depth: int | None = None
    include_leaf_only: bool = False


# Context variables for scoped tracing; each asyncio task sees its own copy
_trace_hook: ContextVar[TraceHook | None] = ContextVar("trace_hook", default=None)
_trace_config: ContextVar[TraceConfig] = ContextVar(
    "trace_config", default=TraceConfig()
)
_trace_depth: ContextVar[int] = ContextVar("trace_depth", default=0)


@contextmanager
def use_tracing(hook: TraceHook, config: TraceConfig | None = None) -> Iterator[None]:
    """
    Context manager to enable tracing for all pipeline runs in scope.

    Args:
        hook: TraceHook implementation to receive trace events
        config: Optional TraceConfig to customize tracing behavior

    Example:
        with use_tracing(LoggingHook()):
            await pipeline.run(request)  # This will be traced

        # Or with custom config
        with use_tracing(PrintHook(), TraceConfig(max_depth=2)):
            await pipeline.run(request)
    """
    hook_token = _trace_hook.set(hook)
    config_token = _trace_config.set(config or TraceConfig())
    depth_token = _trace_depth.set(0)
    try:
        yield
    finally:
        _trace_depth.reset(depth_token)
        _trace_config.reset(config_token)
        _trace_hook.reset(hook_token)


async def run_traced(
    computation: Computation[Any, Any],
    value: Any,
    hook: TraceHook,
    config: TraceConfig | None = None,
) -> Any:
    """
    Run a computation with explicit tracing.

    Args:
        computation: The computation to run
        value: Input to run it with
        hook: TraceHook to receive events
        config: Optional TraceConfig

    Returns:
        The computation's output

    Example:
        user = await run_traced(fetch_user, user_id, PrintHook())
    """
    with use_tracing(hook, config):
        return await computation.run(value)


def node_name(computation: Computation[Any, Any]) -> str:
    """Get a human-readable name for a node."""
    if computation.kind == "leaf":
        return f"Leaf({computation.name})"
    if computation.kind in ("branch", "pair"):
        return f"{computation.kind.upper()}[{computation.policy.value}]"
    if computation.kind in ("map", "contramap", "lift", "merge"):
        return f"{computation.kind.upper()}({computation.name})"
    return computation.kind.upper()


def _should_trace(
    computation: Computation[Any, Any], depth: int, config: TraceConfig
) -> bool:
    if config.max_depth is not None and depth > config.max_depth:
        return False
    if not config.nested and depth > 0:
        return False
    if config.include_leaf_only and computation.children:
        return False
    return True


async def traced_call(
    computation: Computation[Any, Any],
    value: Any,
    hook: TraceHook,
    config: TraceConfig,
) -> Any:
    """Invoke a node's wrapped function, reporting to the hook around it."""
    depth = _trace_depth.get()
    token = _trace_depth.set(depth + 1)

    if not _should_trace(computation, depth, config):
        try:
            return await computation.fn(value)
        finally:
            _trace_depth.reset(token)

    name = node_name(computation)
    span = hook.on_enter(name, value, depth)
    start = time.perf_counter()
    try:
        result = await computation.fn(value)
    except BaseException as e:
        # Includes CancelledError, so spans opened here are always closed
        duration_ms = (time.perf_counter() - start) * 1000
        hook.on_error(span, name, e, duration_ms, depth)
        raise
    finally:
        _trace_depth.reset(token)

    duration_ms = (time.perf_counter() - start) * 1000
    hook.on_exit(span, name, True, duration_ms, depth)
    return result


# =============================================================================
# Built-in Trace Hooks
# =============================================================================


class PrintHook:
    """
    Simple trace hook that prints to stdout.

    Example:
        with use_tracing(PrintHook()):
            await (fetch_user >> fetch_orders).run(42)

        # Output:
        # -> THEN
        #   -> Leaf(fetch_user)
        #   <- Leaf(fetch_user) ✔ (0.02ms)
        #   -> Leaf(fetch_orders)
        #   <- Leaf(fetch_orders) ✔ (0.01ms)
        # <- THEN ✔ (0.05ms)
    """

    def __init__(self, indent: str = "  ", show_value: bool = False):
        self.indent = indent
        self.show_value = show_value

    def on_enter(self, name: str, value: Any, depth: int) -> float:
        prefix = self.indent * depth
        if self.show_value:
            print(f"{prefix}-> {name} | value={value!r}")
        else:
            print(f"{prefix}-> {name}")
        return time.perf_counter()

    def on_exit(
        self, span: float, name: str, ok: bool, duration_ms: float, depth: int
    ) -> None:
        prefix = self.indent * depth
        status = "✔" if ok else "✗"
        print(f"{prefix}<- {name} {status} ({duration_ms:.2f}ms)")

    def on_error(
        self,
        span: float,
        name: str,
        error: BaseException,
        duration_ms: float,
        depth: int,
    ) -> None:
        prefix = self.indent * depth
        print(f"{prefix}<- {name} ERROR: {error!r} ({duration_ms:.2f}ms)")


class LoggingHook:
    """
    Trace hook that logs to a Python logger.

    Example:
        import logging
        logging.basicConfig(level=logging.DEBUG)

        with use_tracing(LoggingHook()):
            await pipeline.run(request)
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG):
        self.logger = logger or logging.getLogger("kompute")
        self.level = level

    def on_enter(self, name: str, value: Any, depth: int) -> dict:
        span = {"name": name, "depth": depth, "start": time.perf_counter()}
        self.logger.log(self.level, "[ENTER] %s (depth=%d)", name, depth)
        return span

    def on_exit(
        self, span: dict, name: str, ok: bool, duration_ms: float, depth: int
    ) -> None:
        status = "OK" if ok else "FAIL"
        self.logger.log(
            self.level, "[EXIT] %s -> %s (%.2fms)", name, status, duration_ms
        )

    def on_error(
        self,
        span: dict,
        name: str,
        error: BaseException,
        duration_ms: float,
        depth: int,
    ) -> None:
        self.logger.error("[ERROR] %s -> %r (%.2fms)", name, error, duration_ms)


class OpenTelemetryHook:
    """
    OpenTelemetry trace hook: one span per pipeline node.

    The current span is tracked in a ContextVar, so nodes running in
    concurrent branches are parented to the node that spawned them.

    Span attributes:
        kompute.kind, kompute.depth, kompute.success, kompute.duration_ms

    Requires: pip install opentelemetry-api
    """

    def __init__(self, tracer: Any, *, max_span_depth: int | None = None):
        if not _HAS_OPENTELEMETRY:
            raise ImportError(
                "OpenTelemetry is not installed. "
                "Install it with: pip install opentelemetry-api"
            )
        self.tracer = tracer
        self.max_span_depth = max_span_depth
        self._current: ContextVar[Any] = ContextVar(
            f"kompute_otel_span_{id(self)}", default=None
        )

    def on_enter(self, name: str, value: Any, depth: int) -> Any:
        assert _set_span_in_context is not None

        if self.max_span_depth is not None and depth > self.max_span_depth:
            return None

        parent = self._current.get()
        parent_ctx = _set_span_in_context(parent) if parent is not None else None
        span = self.tracer.start_span(name, context=parent_ctx)
        span.set_attribute("kompute.kind", name.split("(")[0].split("[")[0].lower())
        span.set_attribute("kompute.depth", depth)
        token = self._current.set(span)
        return span, token

    def on_exit(
        self, span: Any, name: str, ok: bool, duration_ms: float, depth: int
    ) -> None:
        if span is None:
            return
        otel_span, token = span
        otel_span.set_attribute("kompute.success", ok)
        otel_span.set_attribute("kompute.duration_ms", duration_ms)
        otel_span.end()
        self._current.reset(token)

    def on_error(
        self,
        span: Any,
        name: str,
        error: BaseException,
        duration_ms: float,
        depth: int,
    ) -> None:
        if span is None:
            return

        assert _Status is not None
        assert _StatusCode is not None

        otel_span, token = span
        otel_span.set_attribute("kompute.success", False)
        otel_span.set_attribute("kompute.duration_ms", duration_ms)
        otel_span.record_exception(error)
        otel_span.set_status(_Status(_StatusCode.ERROR, str(error)))
        otel_span.end()
        self._current.reset(token)
