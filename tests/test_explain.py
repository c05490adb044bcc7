"""Tests for explain()."""

from __future__ import annotations

from kompute import (
    FailurePolicy,
    add,
    explain,
    first,
    identity,
    lift,
    make,
    merge,
    pair,
    split,
)


async def fetch_user(user_id):
    return {"id": user_id}


async def fetch_orders(user_id):
    return []


def build_profile(user, orders):
    return {**user, "orders": orders}


class TestExplain:
    def test_leaf(self):
        assert explain(make(fetch_user)) == "Leaf: fetch_user"

    def test_branch_then_merge(self):
        pipeline = (make(fetch_user) & make(fetch_orders)) >> merge(build_profile)
        assert explain(pipeline) == "\n".join(
            [
                "Run in sequence:",
                "  • Run concurrently on the same input (fail fast):",
                "    • Leaf: fetch_user",
                "    • Leaf: fetch_orders",
                "  • Merge pair with: build_profile",
            ]
        )

    def test_sequence_is_flattened(self):
        a, b, c = make(fetch_user), make(fetch_orders), lift(len)
        expected = "\n".join(
            [
                "Run in sequence:",
                "  • Leaf: fetch_user",
                "  • Leaf: fetch_orders",
                "  • Apply: len",
            ]
        )
        assert explain((a >> b) >> c) == expected
        assert explain(a >> (b >> c)) == expected

    def test_pair_policy_and_positional(self):
        pipeline = pair(
            split(make(fetch_user)),
            first(identity()),
            policy=FailurePolicy.WAIT_ALL,
        )
        assert explain(pipeline) == "\n".join(
            [
                "Run concurrently on each half of a pair (wait for both):",
                "  • Run once and duplicate the output:",
                "    • Leaf: fetch_user",
                "  • On the first half (second passes through):",
                "    • Pass input through unchanged",
            ]
        )

    def test_routing_and_mapping(self):
        def is_text(x):
            return isinstance(x, str)

        pipeline = add(make(fetch_user), make(fetch_orders).map(len), is_text)
        assert explain(pipeline) == "\n".join(
            [
                "Route by is_text:",
                "  • Leaf: fetch_user",
                "  • Map output with len, after:",
                "    • Leaf: fetch_orders",
            ]
        )

    def test_contramap_and_fan_in(self):
        pipeline = (make(fetch_user) | make(fetch_orders)).contramap(str)
        assert explain(pipeline) == "\n".join(
            [
                "Map input with str, then:",
                "  • Route tagged input:",
                "    • Leaf: fetch_user",
                "    • Leaf: fetch_orders",
            ]
        )
