"""Plain English rendering of a pipeline's shape."""

from __future__ import annotations

from typing import Any

from kompute._core import Computation
from kompute._types import FailurePolicy

_POLICY_TEXT = {
    FailurePolicy.FAIL_FAST: "fail fast",
    FailurePolicy.WAIT_ALL: "wait for both",
}

# Headers for routing nodes that list their operands underneath
_ROUTING_HEADERS = {
    "choose": "Route tagged input (result tagged):",
    "fan_in": "Route tagged input:",
}


def explain(computation: Computation[Any, Any]) -> str:
    """
    Generate a plain English explanation of what a pipeline does.

    Args:
        computation: The pipeline to explain

    Returns:
        Human-readable explanation string

    Example:
        pipeline = (fetch_user & fetch_orders) >> merge(build_profile)
        print(explain(pipeline))

        # Output:
        # Run in sequence:
        #   • Run concurrently on the same input (fail fast):
        #     • Leaf: fetch_user
        #     • Leaf: fetch_orders
        #   • Merge pair with: build_profile
    """
    output_lines: list[str] = []

    # Stack: (computation, depth); children pushed in reverse to keep order
    stack: list[tuple[Computation[Any, Any], int]] = [(computation, 0)]

    while stack:
        comp, depth = stack.pop()
        indent = "  " * depth
        bullet = "• " if depth > 0 else ""
        kind = comp.kind
        children = list(comp.children)

        if kind == "then":
            # Flatten nested sequences: (a >> b) >> c lists a, b, c
            children = _collect_chain(comp, "then")
            header = "Run in sequence:" if depth == 0 else "Sequence:"
        elif kind in _ROUTING_HEADERS:
            header = _ROUTING_HEADERS[kind]
        elif kind == "branch":
            header = (
                f"Run concurrently on the same input ({_POLICY_TEXT[comp.policy]}):"
            )
        elif kind == "pair":
            header = (
                f"Run concurrently on each half of a pair ({_POLICY_TEXT[comp.policy]}):"
            )
        elif kind == "map":
            header = f"Map output with {comp.name}, after:"
        elif kind == "contramap":
            header = f"Map input with {comp.name}, then:"
        elif kind == "first":
            header = "On the first half (second passes through):"
        elif kind == "second":
            header = "On the second half (first passes through):"
        elif kind == "split":
            header = "Run once and duplicate the output:"
        elif kind == "add":
            header = f"Route by {comp.name}:"
        elif kind == "add_input":
            header = f"Route by {comp.name} (shared output):"
        elif kind == "merge":
            header = f"Merge pair with: {comp.name}"
        elif kind == "lift":
            header = f"Apply: {comp.name}"
        elif kind == "identity":
            header = "Pass input through unchanged"
        elif kind == "leaf":
            header = f"Leaf: {comp.name}"
        else:
            header = repr(comp)

        output_lines.append(f"{indent}{bullet}{header}")
        for child in reversed(children):
            stack.append((child, depth + 1))

    return "\n".join(output_lines)


def _collect_chain(
    computation: Computation[Any, Any], kind: str
) -> list[Computation[Any, Any]]:
    """Flatten left- and right-nested chains of the same kind into a list."""
    result: list[Computation[Any, Any]] = []
    stack = [computation]
    while stack:
        current = stack.pop()
        if current.kind == kind:
            stack.extend(reversed(current.children))
        else:
            result.append(current)
    return result
