"""
Kompute - Composable Asynchronous Computations

A Python library for building asynchronous pipelines out of small async
functions. A Computation wraps one ``input -> awaitable output`` function;
combinators build bigger Computations out of smaller ones, so the shape of a
pipeline is an ordinary value you can pass around, reuse and run many times.

Operators:
    >> = "then" (sequence, second runs on first's output)
    &  = "branch" (run both concurrently on the same input)
    *  = "pair" (run both concurrently on the halves of a pair)
    +  = "choose" (route Left/Right input, tag the output)
    |  = "fan in" (route Left/Right input, untagged output)

Example:
    from kompute import computation, merge

    @computation
    async def fetch_user(user_id):
        return await api.get_user(user_id)

    @computation
    async def fetch_orders(user_id):
        return await api.get_orders(user_id)

    # Fetch both concurrently, then combine
    profile = (fetch_user & fetch_orders) >> merge(build_profile)

    # Use it
    result = await profile.run(42)
"""

from __future__ import annotations

__version__ = "0.1.0"
__all__ = [
    # Core
    "Computation",
    "ComputationFactory",
    "make",
    "run",
    "lift",
    "identity",
    "merge",
    # Decorators
    "computation",
    "computation_args",
    # Combinators
    "map",
    "contramap",
    "then",
    "branch",
    "pair",
    "first",
    "second",
    "split",
    # Routing
    "choose",
    "fan_in",
    "add",
    "add_input",
    "Either",
    "Left",
    "Right",
    "left",
    "right",
    # Failure policy
    "FailurePolicy",
    "use_failure_policy",
    # Tracing
    "TraceHook",
    "TraceConfig",
    "use_tracing",
    "run_traced",
    "PrintHook",
    "LoggingHook",
    "OpenTelemetryHook",
    # Explanation
    "explain",
]

from kompute._core import (
    Computation,
    ComputationFactory,
    add,
    add_input,
    branch,
    choose,
    computation,
    computation_args,
    contramap,
    fan_in,
    first,
    identity,
    lift,
    make,
    map,
    merge,
    pair,
    run,
    second,
    split,
    then,
)
from kompute._either import Either, Left, Right, left, right
from kompute._explain import explain
from kompute._tracing import (
    LoggingHook,
    OpenTelemetryHook,
    PrintHook,
    TraceConfig,
    TraceHook,
    run_traced,
    use_tracing,
)
from kompute._types import FailurePolicy, use_failure_policy
