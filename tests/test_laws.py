"""Algebraic laws: identity, associativity, functor composition."""

from __future__ import annotations

import asyncio

import pytest

from kompute import identity, make, then

INPUTS = [0, 1, -3, 7, 100]


async def _inc(x):
    await asyncio.sleep(0)
    return x + 1


async def _triple(x):
    return x * 3


async def _square(x):
    return x * x


inc = make(_inc)
triple = make(_triple)
square = make(_square)


def run_all(computation):
    async def _all():
        return [await computation.run(x) for x in INPUTS]

    return asyncio.run(_all())


class TestIdentityLaws:
    def test_right_identity(self):
        returns = make(lambda x: asyncio.sleep(0, x))
        assert run_all(then(triple, returns)) == run_all(triple)

    def test_left_identity(self):
        assert run_all(then(identity(), triple)) == run_all(triple)

    def test_identity_on_both_sides(self):
        assert run_all(identity() >> inc >> identity()) == run_all(inc)


class TestAssociativity:
    def test_then_is_associative(self):
        left_nested = then(then(inc, triple), square)
        right_nested = then(inc, then(triple, square))
        assert run_all(left_nested) == run_all(right_nested)

    def test_operator_grouping(self):
        assert run_all((inc >> triple) >> square) == run_all(inc >> (triple >> square))


class TestFunctorLaws:
    @pytest.mark.parametrize(
        "f,g",
        [
            (lambda x: x + 1, lambda x: x * 2),
            (str, len),
            (lambda x: [x], lambda xs: xs * 2),
        ],
    )
    def test_composition(self, f, g):
        assert run_all(triple.map(f).map(g)) == run_all(triple.map(lambda x: g(f(x))))

    def test_map_identity(self):
        assert run_all(triple.map(lambda x: x)) == run_all(triple)

    def test_contramap_composition(self):
        f = abs
        g = lambda x: x - 5  # noqa: E731
        assert run_all(square.contramap(f).contramap(g)) == run_all(
            square.contramap(lambda x: f(g(x)))
        )
