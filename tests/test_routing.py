"""Tests for Either and the routing combinators: choose, fan_in, add, add_input."""

from __future__ import annotations

import asyncio

import pytest

from kompute import Left, Right, add, add_input, choose, fan_in, left, make, right


class Counted:
    """A computation that records every input it sees."""

    def __init__(self, fn):
        self.seen = []

        async def _run(x):
            self.seen.append(x)
            return fn(x)

        self.computation = make(_run)


# ---------------------------------------------------------------------------
# Either
# ---------------------------------------------------------------------------


class TestEither:
    def test_tags(self):
        assert left(1).is_left and not left(1).is_right
        assert right(1).is_right and not right(1).is_left

    def test_equality_includes_tag(self):
        assert Left(1) == Left(1)
        assert Left(1) != Right(1)
        assert len({Left(1), Left(1), Right(1)}) == 2

    def test_fold(self):
        assert Left(2).fold(lambda x: x * 10, str) == 20
        assert Right(2).fold(lambda x: x * 10, str) == "2"

    def test_frozen(self):
        with pytest.raises(AttributeError):
            Left(1).value = 2

    def test_repr(self):
        assert repr(Left("a")) == "Left('a')"
        assert repr(Right(3)) == "Right(3)"


# ---------------------------------------------------------------------------
# Tagged routing
# ---------------------------------------------------------------------------


class TestChoose:
    def test_routes_by_tag_and_tags_result(self):
        lengths = Counted(len)
        negate = Counted(lambda n: -n)
        routed = choose(lengths.computation, negate.computation)

        assert asyncio.run(routed.run(Left("abc"))) == Left(3)
        assert asyncio.run(routed.run(Right(5))) == Right(-5)
        assert lengths.seen == ["abc"]
        assert negate.seen == [5]

    def test_operator(self):
        routed = make(lambda x: asyncio.sleep(0, x)) + make(lambda x: asyncio.sleep(0, x))
        assert asyncio.run(routed.run(Right("r"))) == Right("r")

    def test_untagged_input_runs_nothing(self):
        a = Counted(lambda x: x)
        b = Counted(lambda x: x)
        with pytest.raises(TypeError, match="Left or Right"):
            asyncio.run(choose(a.computation, b.computation).run("plain"))
        assert a.seen == [] and b.seen == []

    def test_selected_failure_propagates(self):
        async def fail(x):
            raise KeyError(x)

        ok = Counted(lambda x: x)
        with pytest.raises(KeyError):
            asyncio.run((make(fail) + ok.computation).run(Left("k")))
        assert ok.seen == []


class TestFanIn:
    def test_untagged_result(self):
        from_text = make(lambda s: asyncio.sleep(0, int(s)))
        from_number = make(lambda n: asyncio.sleep(0, n))
        parse = fan_in(from_text, from_number)
        assert asyncio.run(parse.run(Left("7"))) == 7
        assert asyncio.run(parse.run(Right(8))) == 8
        assert asyncio.run((from_text | from_number).run(Left("9"))) == 9

    def test_untagged_input_raises(self):
        a = make(lambda x: asyncio.sleep(0, x))
        with pytest.raises(TypeError, match="fan_in"):
            asyncio.run((a | a).run(1))


# ---------------------------------------------------------------------------
# Predicate routing
# ---------------------------------------------------------------------------


def is_str(x) -> bool:
    return isinstance(x, str)


class TestAdd:
    def test_routes_by_predicate(self):
        numbers = Counted(lambda n: n * 2)
        strings = Counted(str.upper)
        routed = add(numbers.computation, strings.computation, is_str)

        assert asyncio.run(routed.run(21)) == 42
        assert asyncio.run(routed.run("hi")) == "HI"

    def test_exclusivity_sweep(self):
        numbers = Counted(lambda n: n)
        strings = Counted(lambda s: s)
        routed = numbers.computation.add(strings.computation, is_str)

        inputs = [1, "a", 2, "b", 3.5, "", 0]
        for value in inputs:
            asyncio.run(routed.run(value))

        assert numbers.seen == [1, 2, 3.5, 0]
        assert strings.seen == ["a", "b", ""]

    def test_output_is_untagged(self):
        routed = add(
            make(lambda x: asyncio.sleep(0, x)), make(lambda x: asyncio.sleep(0, x)), is_str
        )
        assert asyncio.run(routed.run("s")) == "s"

    def test_rejects_non_callable_predicate(self):
        a = make(lambda x: asyncio.sleep(0, x))
        with pytest.raises(TypeError):
            add(a, a, "is_str")


class TestAddInput:
    def test_shared_output(self):
        from_text = Counted(len)
        from_list = Counted(len)
        size = add_input(
            from_text.computation, from_list.computation, lambda x: isinstance(x, list)
        )

        assert asyncio.run(size.run("abcd")) == 4
        assert asyncio.run(size.run([1, 2])) == 2
        assert from_text.seen == ["abcd"]
        assert from_list.seen == [[1, 2]]

    def test_method_form(self):
        a = Counted(lambda x: "a")
        b = Counted(lambda x: "b")
        routed = a.computation.add_input(b.computation, lambda x: x > 0)
        assert asyncio.run(routed.run(1)) == "b"
        assert asyncio.run(routed.run(-1)) == "a"
        assert a.seen == [-1] and b.seen == [1]

    def test_selected_failure_propagates(self):
        async def fail(x):
            raise ValueError("bad text")

        never = Counted(lambda x: x)
        routed = add_input(make(fail), never.computation, lambda x: isinstance(x, int))
        with pytest.raises(ValueError, match="bad text"):
            asyncio.run(routed.run("text"))
        assert never.seen == []
