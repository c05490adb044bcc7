"""Shared type variables, failure policies and scoped configuration."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import TypeVar

I = TypeVar("I")  # noqa: E741
I2 = TypeVar("I2")
O = TypeVar("O")  # noqa: E741
O2 = TypeVar("O2")
N = TypeVar("N")
A = TypeVar("A")
B = TypeVar("B")
Extra = TypeVar("Extra")


class FailurePolicy(str, Enum):
    """
    How branch() and pair() react when one side fails.

    FAIL_FAST:
        The first failure reported surfaces immediately. The other side keeps
        running unobserved and its outcome is discarded.
    WAIT_ALL:
        Both sides are awaited to completion before any failure surfaces.

    In both policies the left operand's error wins when both have failed.
    """

    FAIL_FAST = "fail_fast"
    WAIT_ALL = "wait_all"


_failure_policy: ContextVar[FailurePolicy] = ContextVar(
    "failure_policy", default=FailurePolicy.FAIL_FAST
)


def resolve_policy(policy: FailurePolicy | str | None) -> FailurePolicy:
    """Turn an explicit policy, its string value, or None into a FailurePolicy."""
    if policy is None:
        return _failure_policy.get()
    try:
        return FailurePolicy(policy)
    except ValueError:
        valid = ", ".join(p.value for p in FailurePolicy)
        raise ValueError(
            f"Unknown failure policy {policy!r} (expected one of: {valid})"
        ) from None


@contextmanager
def use_failure_policy(policy: FailurePolicy | str) -> Iterator[None]:
    """
    Context manager that sets the default failure policy for branch() and pair().

    The policy is read when the combinator is built, not when it runs:

        with use_failure_policy(FailurePolicy.WAIT_ALL):
            both = fetch_user & fetch_orders  # waits for both sides

        await both.run(user_id)  # still WAIT_ALL outside the block
    """
    token = _failure_policy.set(resolve_policy(policy))
    try:
        yield
    finally:
        _failure_policy.reset(token)
