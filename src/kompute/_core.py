"""Computation and its combinators."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Generic

from kompute._either import Left, Right
from kompute._tracing import _trace_config, _trace_hook, traced_call
from kompute._types import (
    I2,
    O2,
    Extra,
    FailurePolicy,
    I,
    N,
    O,
    resolve_policy,
)

# Tasks left running after a FAIL_FAST failure; kept referenced until they finish
_detached: set[asyncio.Future[Any]] = set()


def _callable_name(fn: Callable[..., Any], default: str) -> str:
    return getattr(fn, "__name__", None) or default


def _require_callable(fn: Any, what: str) -> None:
    if not callable(fn):
        raise TypeError(f"{what} must be callable, got {type(fn).__name__}")


def _require_computation(value: Any, what: str) -> None:
    if not isinstance(value, Computation):
        raise TypeError(f"{what} must be a Computation, got {type(value).__name__}")


# =============================================================================
# Core Computation
# =============================================================================


class Computation(Generic[I, O]):
    """
    An immutable asynchronous computation from I to O.

    Wraps a single function ``fn(input) -> awaitable`` and builds larger
    pipelines out of smaller ones. Nothing runs until run() is awaited.

    Operators:
        >>  = then   (sequence, second gets first's output)
        &   = branch (run both concurrently on the same input)
        *   = pair   (run both concurrently on the two halves of a tuple)
        +   = choose (route an Either to one side, result tagged)
        |   = fan_in (route an Either to one side, result untagged)

    Example:
        fetch_user = make(api.get_user)
        fetch_orders = make(api.get_orders)

        profile = (fetch_user & fetch_orders).then(merge(build_profile))
        result = await profile.run(user_id)

    Attributes:
        fn: The wrapped async function
        name: Leaf function name, or the combinator's mapper name
        kind: Which constructor or combinator built this node
        children: Operand computations (empty for leaves)
        policy: Failure policy for branch/pair nodes, else None
    """

    __slots__ = ("fn", "name", "kind", "children", "policy")

    fn: Callable[[I], Awaitable[O]]
    name: str
    kind: str
    children: tuple[Computation[Any, Any], ...]
    policy: FailurePolicy | None

    def __init__(
        self,
        fn: Callable[[I], Awaitable[O]],
        name: str | None = None,
        *,
        kind: str = "leaf",
        children: Sequence[Computation[Any, Any]] = (),
        policy: FailurePolicy | None = None,
    ):
        object.__setattr__(self, "fn", fn)
        object.__setattr__(self, "name", name or _callable_name(fn, kind))
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "children", tuple(children))
        object.__setattr__(self, "policy", policy)

    def __setattr__(self, key: str, value: Any) -> None:
        raise AttributeError("Computation is immutable")

    def __delattr__(self, key: str) -> None:
        raise AttributeError("Computation is immutable")

    async def run(self, value: I) -> O:
        """
        Run the computation on value and return its output.

        Errors raised by the wrapped function propagate unchanged. If tracing
        is enabled via use_tracing(), the run is reported to the hook.
        """
        hook = _trace_hook.get()
        if hook is not None:
            return await traced_call(self, value, hook, _trace_config.get())
        return await self.fn(value)

    async def __call__(self, value: I) -> O:
        """Shorthand for run()."""
        return await self.run(value)

    def __repr__(self) -> str:
        if self.kind == "leaf":
            return f"Computation({self.name})"
        return f"Computation({self.kind}:{self.name})"

    # -------------------------------------------------------------------------
    # Sequencing and mapping
    # -------------------------------------------------------------------------

    def map(self, mapper: Callable[[O], N]) -> Computation[I, N]:
        """
        Transform the successful output with a synchronous function.

        ```
        I -> O -> N
        ```
        """
        _require_callable(mapper, "mapper")

        async def _map(value: I) -> N:
            return mapper(await self.run(value))

        return Computation(
            _map, _callable_name(mapper, "mapper"), kind="map", children=(self,)
        )

    def contramap(self, mapper: Callable[[N], I]) -> Computation[N, O]:
        """
        Transform the input with a synchronous function before running.

        In map, N gets added at the end of the pipeline; contramap adds N at
        the start.

        ```
        N -> I -> O
        ```
        """
        _require_callable(mapper, "mapper")

        async def _contramap(value: N) -> O:
            return await self.run(mapper(value))

        return Computation(
            _contramap,
            _callable_name(mapper, "mapper"),
            kind="contramap",
            children=(self,),
        )

    def then(self, computation: Computation[O, O2]) -> Computation[I, O2]:
        """
        Run another computation on this one's output, strictly afterwards.

        ```
        I -> O -> O2
        ```
        """
        _require_computation(computation, "then() operand")

        async def _then(value: I) -> O2:
            return await computation.run(await self.run(value))

        return Computation(_then, "then", kind="then", children=(self, computation))

    def __rshift__(self, other: Computation[O, O2]) -> Computation[I, O2]:
        """a >> b = run b on a's output."""
        if not isinstance(other, Computation):
            return NotImplemented
        return self.then(other)

    # -------------------------------------------------------------------------
    # Parallel combination
    # -------------------------------------------------------------------------

    def branch(
        self,
        computation: Computation[I, O2],
        policy: FailurePolicy | str | None = None,
    ) -> Computation[I, tuple[O, O2]]:
        """
        Run two computations concurrently on the same input.

        The result keeps operand order regardless of which finishes first.

        ```
             -> O
            /
        I -
            \\
             -> O2
        ```
        """
        _require_computation(computation, "branch() operand")
        resolved = resolve_policy(policy)

        async def _branch(value: I) -> tuple[O, O2]:
            return await _join(self.run(value), computation.run(value), resolved)

        return Computation(
            _branch,
            "branch",
            kind="branch",
            children=(self, computation),
            policy=resolved,
        )

    def __and__(self, other: Computation[I, O2]) -> Computation[I, tuple[O, O2]]:
        """a & b = branch(a, b)."""
        if not isinstance(other, Computation):
            return NotImplemented
        return self.branch(other)

    def pair(
        self,
        computation: Computation[I2, O2],
        policy: FailurePolicy | str | None = None,
    ) -> Computation[tuple[I, I2], tuple[O, O2]]:
        """
        Pair two computations; each gets its own half of a 2-tuple input.

        ```
        I  -> O
        I2 -> O2
        ```
        """
        _require_computation(computation, "pair() operand")
        resolved = resolve_policy(policy)

        async def _pair(value: tuple[I, I2]) -> tuple[O, O2]:
            first_in, second_in = value
            return await _join(
                self.run(first_in), computation.run(second_in), resolved
            )

        return Computation(
            _pair,
            "pair",
            kind="pair",
            children=(self, computation),
            policy=resolved,
        )

    def __mul__(
        self, other: Computation[I2, O2]
    ) -> Computation[tuple[I, I2], tuple[O, O2]]:
        """a * b = pair(a, b)."""
        if not isinstance(other, Computation):
            return NotImplemented
        return self.pair(other)

    # -------------------------------------------------------------------------
    # Positional lifting and duplication
    # -------------------------------------------------------------------------

    def first(self) -> Computation[tuple[I, Extra], tuple[O, Extra]]:
        """See first()."""
        return first(self)

    def second(self) -> Computation[tuple[Extra, I], tuple[Extra, O]]:
        """See second()."""
        return second(self)

    def split(self) -> Computation[I, tuple[O, O]]:
        """See split()."""
        return split(self)

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    def __add__(self, other: Computation[I2, O2]) -> Computation[Any, Any]:
        """a + b = choose(a, b)."""
        if not isinstance(other, Computation):
            return NotImplemented
        return choose(self, other)

    def __or__(self, other: Computation[I2, O]) -> Computation[Any, O]:
        """a | b = fan_in(a, b)."""
        if not isinstance(other, Computation):
            return NotImplemented
        return fan_in(self, other)

    def add(
        self,
        computation: Computation[I2, O2],
        is_second: Callable[[Any], bool],
    ) -> Computation[Any, Any]:
        """See add()."""
        return add(self, computation, is_second)

    def add_input(
        self,
        computation: Computation[I2, O],
        is_second: Callable[[Any], bool],
    ) -> Computation[Any, O]:
        """See add_input()."""
        return add_input(self, computation, is_second)


# =============================================================================
# Concurrent join
# =============================================================================


def _discard_outcome(task: asyncio.Future[Any]) -> None:
    _detached.discard(task)
    if not task.cancelled():
        # Retrieve so asyncio does not log "exception was never retrieved"
        task.exception()


def _detach(task: asyncio.Future[Any]) -> None:
    _detached.add(task)
    task.add_done_callback(_discard_outcome)


def _first_error(tasks: Sequence[asyncio.Future[Any]]) -> BaseException | None:
    """Retrieve the error of every finished task; return the leftmost one."""
    errors = [task.exception() for task in tasks if task.done()]
    for error in errors:
        if error is not None:
            return error
    return None


async def _join(
    left: Awaitable[Any], right: Awaitable[Any], policy: FailurePolicy
) -> tuple[Any, Any]:
    """Start both awaitables, then wait according to policy."""
    tasks = (asyncio.ensure_future(left), asyncio.ensure_future(right))
    return_when = (
        asyncio.FIRST_EXCEPTION
        if policy is FailurePolicy.FAIL_FAST
        else asyncio.ALL_COMPLETED
    )
    try:
        _, pending = await asyncio.wait(tasks, return_when=return_when)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        raise

    for task in pending:
        _detach(task)

    error = _first_error(tasks)
    if error is not None:
        raise error
    return tasks[0].result(), tasks[1].result()


# =============================================================================
# Construction & invocation
# =============================================================================


def make(fn: Callable[[I], Awaitable[O]]) -> Computation[I, O]:
    """
    Create a computation from an async function.

    fn is wrapped as is and not checked; anything it raises, including a
    TypeError for a non-callable fn, surfaces when the computation runs.

    Example:
        fetch = make(lambda url: client.get(url))

        try:
            response = await run(fetch, url)
        except httpx.HTTPError as error:
            ...
    """
    return Computation(fn)


def run(computation: Computation[I, O], value: I) -> Awaitable[O]:
    """Run the computation, returning an awaitable of its output."""
    _require_computation(computation, "run() target")
    return computation.run(value)


def lift(fn: Callable[[I], O]) -> Computation[I, O]:
    """
    Lift a pure synchronous function into a computation.

    Example:
        parse = lift(json.loads)
        pipeline = fetch_body >> parse
    """
    _require_callable(fn, "fn")

    async def _lift(value: I) -> O:
        return fn(value)

    return Computation(_lift, _callable_name(fn, "lift"), kind="lift")


def identity() -> Computation[I, I]:
    """The computation that returns its input unchanged."""

    async def _identity(value: I) -> I:
        return value

    return Computation(_identity, "identity", kind="identity")


def merge(combiner: Callable[[I, I2], O]) -> Computation[tuple[I, I2], O]:
    """
    Merge the two halves of a tuple into one value.

    ```
    I1 -
         \\
           -> O
         /
    I2 -
    ```

    Example:
        total = (count_orders & count_returns).then(merge(lambda a, b: a - b))
    """
    _require_callable(combiner, "combiner")

    async def _merge(value: tuple[I, I2]) -> O:
        first_in, second_in = value
        return combiner(first_in, second_in)

    return Computation(_merge, _callable_name(combiner, "merge"), kind="merge")


# =============================================================================
# Decorators
# =============================================================================


class ComputationFactory(Generic[I, O]):
    """
    A factory that creates Computations when called with arguments.

    Used for parameterized leaves like `fetch_page(2)`.
    """

    def __init__(self, fn: Callable[..., Awaitable[O]], name: str):
        self._fn = fn
        self._name = name
        self.__name__ = name

    def __call__(self, *args: Any, **kwargs: Any) -> Computation[I, O]:
        shown = [repr(a) for a in args] + [f"{k}={v!r}" for k, v in kwargs.items()]
        name = f"{self._name}({', '.join(shown)})"
        fn = self._fn
        return Computation(lambda value: fn(value, *args, **kwargs), name)

    def __repr__(self) -> str:
        return f"ComputationFactory({self._name})"


def computation(fn: Callable[[I], Awaitable[O]]) -> Computation[I, O]:
    """
    Decorator to turn an async function of one argument into a computation.

    Example:
        @computation
        async def fetch_user(user_id: int) -> User:
            return await db.get_user(user_id)

        user = await fetch_user.run(42)

    For parameterized leaves, use @computation_args instead.
    """
    return Computation(fn, _callable_name(fn, "computation"))


def computation_args(fn: Callable[..., Awaitable[O]]) -> ComputationFactory[Any, O]:
    """
    Decorator to create a parameterized computation factory.

    Example:
        @computation_args
        async def fetch_page(query: str, page: int) -> list[Item]:
            return await api.search(query, page=page)

        second_page = fetch_page(2)  # Returns Computation[str, list[Item]]
        items = await second_page.run("shoes")
    """
    return ComputationFactory(fn, _callable_name(fn, "computation"))


# =============================================================================
# Functional forms
# =============================================================================


def map(computation: Computation[I, O], mapper: Callable[[O], N]) -> Computation[I, N]:  # noqa: A001
    """Functional form of Computation.map()."""
    _require_computation(computation, "map() target")
    return computation.map(mapper)


def contramap(
    computation: Computation[I, O], mapper: Callable[[N], I]
) -> Computation[N, O]:
    """Functional form of Computation.contramap()."""
    _require_computation(computation, "contramap() target")
    return computation.contramap(mapper)


def then(first: Computation[I, O], second: Computation[O, O2]) -> Computation[I, O2]:
    """Functional form of Computation.then()."""
    _require_computation(first, "then() operand")
    return first.then(second)


def branch(
    a: Computation[I, O],
    b: Computation[I, O2],
    policy: FailurePolicy | str | None = None,
) -> Computation[I, tuple[O, O2]]:
    """Functional form of Computation.branch()."""
    _require_computation(a, "branch() operand")
    return a.branch(b, policy)


def pair(
    a: Computation[I, O],
    b: Computation[I2, O2],
    policy: FailurePolicy | str | None = None,
) -> Computation[tuple[I, I2], tuple[O, O2]]:
    """Functional form of Computation.pair()."""
    _require_computation(a, "pair() operand")
    return a.pair(b, policy)


def first(
    computation: Computation[I, O],
) -> Computation[tuple[I, Extra], tuple[O, Extra]]:
    """
    Run a computation on the first half of a tuple; pass the second through.

    ```
    -> I     -> O
    -> Extra -> Extra
    ```
    """
    _require_computation(computation, "first() operand")

    async def _first(value: tuple[I, Extra]) -> tuple[O, Extra]:
        head, extra = value
        return await computation.run(head), extra

    return Computation(_first, "first", kind="first", children=(computation,))


def second(
    computation: Computation[I, O],
) -> Computation[tuple[Extra, I], tuple[Extra, O]]:
    """
    Run a computation on the second half of a tuple; pass the first through.

    ```
    -> Extra -> Extra
    -> I     -> O
    ```
    """
    _require_computation(computation, "second() operand")

    async def _second(value: tuple[Extra, I]) -> tuple[Extra, O]:
        extra, tail = value
        return extra, await computation.run(tail)

    return Computation(_second, "second", kind="second", children=(computation,))


def split(computation: Computation[I, O]) -> Computation[I, tuple[O, O]]:
    """
    Run a computation once and duplicate its output.

    The side effect happens exactly once. To run it twice (maybe you want
    different values) use ``computation & computation`` instead.

    ```
         -> O
        /
    I -
        \\
         -> O
    ```
    """
    _require_computation(computation, "split() operand")

    async def _split(value: I) -> tuple[O, O]:
        result = await computation.run(value)
        return result, result

    return Computation(_split, "split", kind="split", children=(computation,))


# =============================================================================
# Routing
# =============================================================================


def _unknown_tag(combinator: str, value: Any) -> TypeError:
    return TypeError(
        f"{combinator}() expects a Left or Right input, got {type(value).__name__}"
    )


def choose(a: Computation[I, O], b: Computation[I2, O2]) -> Computation[Any, Any]:
    """
    Route a tagged input to one of two computations; tag the result.

    Left(x) runs a on x and returns Left(result); Right(x) runs b on x and
    returns Right(result). The other side never runs.

    ```
    Either[I, I2] -> Either[O, O2]
    ```
    """
    _require_computation(a, "choose() operand")
    _require_computation(b, "choose() operand")

    async def _choose(value: Any) -> Any:
        if isinstance(value, Left):
            return Left(await a.run(value.value))
        if isinstance(value, Right):
            return Right(await b.run(value.value))
        raise _unknown_tag("choose", value)

    return Computation(_choose, "choose", kind="choose", children=(a, b))


def fan_in(a: Computation[I, O], b: Computation[I2, O]) -> Computation[Any, O]:
    """
    Route a tagged input to one of two computations sharing an output type.

    ```
    Either[I, I2] -> O
    ```
    """
    _require_computation(a, "fan_in() operand")
    _require_computation(b, "fan_in() operand")

    async def _fan_in(value: Any) -> O:
        if isinstance(value, Left):
            return await a.run(value.value)
        if isinstance(value, Right):
            return await b.run(value.value)
        raise _unknown_tag("fan_in", value)

    return Computation(_fan_in, "fan_in", kind="fan_in", children=(a, b))


def _tagger(is_second: Callable[[Any], bool]) -> Callable[[Any], Any]:
    def tag(value: Any) -> Any:
        return Right(value) if is_second(value) else Left(value)

    return tag


def add(
    a: Computation[I, O],
    b: Computation[I2, O2],
    is_second: Callable[[Any], bool],
) -> Computation[Any, Any]:
    """
    Accept either of two input types, routing by a discriminator.

    ``is_second(x)`` returning True sends x to b, otherwise to a. The
    discriminator must be total, pure and agree with the runtime type of x;
    a wrong classification hands x to a computation that cannot handle it.

    ```
    I OR I2 -> O OR O2
    ```
    """
    _require_callable(is_second, "is_second")
    tag = _tagger(is_second)
    tagged = choose(a, b)

    async def _add(value: Any) -> Any:
        # Call the routing node directly; only a and b show up as nodes
        return (await tagged.fn(tag(value))).value

    return Computation(
        _add, _callable_name(is_second, "add"), kind="add", children=(a, b)
    )


def add_input(
    a: Computation[I, O],
    b: Computation[I2, O],
    is_second: Callable[[Any], bool],
) -> Computation[Any, O]:
    """
    Like add(), for two computations with the same output type.

    ```
    I OR I2 -> O
    ```
    """
    _require_callable(is_second, "is_second")
    tag = _tagger(is_second)
    tagged = fan_in(a, b)

    async def _add_input(value: Any) -> O:
        return await tagged.fn(tag(value))

    return Computation(
        _add_input,
        _callable_name(is_second, "add_input"),
        kind="add_input",
        children=(a, b),
    )
