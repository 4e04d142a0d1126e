"""Tests for ReactiveExpression."""

import pytest

from tickflow import CycleError, DerivationError, UnknownNodeError, create_session


class TestExpression:
    def test_lazy_eval(self):
        call_count = 0
        s = create_session()
        o = s.value(5)

        def fn():
            nonlocal call_count
            call_count += 1
            return o.get() * 2

        c = s.expression(fn)
        assert call_count == 0  # not yet evaluated
        assert c.get() == 10
        assert call_count == 1

    def test_caches_until_stale(self):
        s = create_session()
        o = s.value(5)
        c = s.expression(lambda: o.get() * 2)
        assert c.get() == 10
        c.get()
        c.get()
        assert c.compute_count == 1  # cached, no re-eval

    def test_returns_identical_object(self):
        s = create_session()
        rows = s.value([1, 2, 3])
        evens = s.expression(lambda: [r for r in rows.get() if r % 2 == 0])
        assert evens.get() is evens.get()

    def test_invalidation(self):
        s = create_session()
        o = s.value(5)
        c = s.expression(lambda: o.get() * 2)
        assert c.get() == 10
        o.set(10)
        assert not c.fresh
        assert c.get() == 20
        assert c.compute_count == 2

    def test_dependency_tracking(self):
        """Expressions re-subscribe to whatever the latest run read."""
        s = create_session()
        flag = s.value(True)
        a = s.value(1)
        b = s.value(2)

        c = s.expression(lambda: a.get() if flag.get() else b.get())
        assert c.get() == 1

        flag.set(False)
        assert c.get() == 2  # now depends on b, not a
        a.set(100)
        assert c.fresh

    def test_chained(self):
        s = create_session()
        o = s.value(3)
        doubled = s.expression(lambda: o.get() * 2)
        quadrupled = s.expression(lambda: doubled.get() * 2)
        assert quadrupled.get() == 12
        o.set(5)
        assert not doubled.fresh
        assert not quadrupled.fresh
        assert quadrupled.get() == 20

    def test_unread_expression_never_recomputes(self):
        """An expression no observer reaches is marked stale, not recomputed."""
        s = create_session()
        o = s.value(1)
        c = s.expression(lambda: o.get() + 1)
        c.get()
        o.set(2)
        o.set(3)
        s.flush()
        assert c.compute_count == 1
        assert c.get() == 4
        assert c.compute_count == 2

    def test_manual_invalidate(self):
        s = create_session()
        c = s.expression(lambda: 1)
        c.get()
        c.invalidate()
        assert not c.fresh
        c.get()
        assert c.compute_count == 2

    def test_decorator(self):
        s = create_session()
        o = s.value(7)

        @s.expression
        def doubled():
            return o.get() * 2

        assert doubled.get() == 14
        assert doubled() == 14
        assert doubled.label == "doubled"
        o.set(3)
        assert doubled.get() == 6

    def test_get_through_session(self):
        s = create_session()
        c = s.expression(lambda: "x")
        assert s.get(c) == "x"
        with pytest.raises(UnknownNodeError):
            create_session().get(c)

    def test_repr(self):
        s = create_session()

        @s.expression
        def answer():
            return 42

        assert repr(answer) == "ReactiveExpression(answer, stale)"
        answer.get()
        assert repr(answer) == "ReactiveExpression(answer, cached=42)"


class TestPoison:
    def test_error_is_wrapped(self):
        s = create_session()
        d = s.value(0)
        ratio = s.expression(lambda: 10 / d.get())
        with pytest.raises(DerivationError) as exc:
            ratio.get()
        assert isinstance(exc.value.__cause__, ZeroDivisionError)
        assert ratio.poisoned

    def test_propagates_same_error(self):
        s = create_session()
        d = s.value(0)
        ratio = s.expression(lambda: 10 / d.get())
        label = s.expression(lambda: f"ratio={ratio.get()}")

        with pytest.raises(DerivationError) as first:
            label.get()
        with pytest.raises(DerivationError) as second:
            ratio.get()
        assert first.value is second.value
        assert label.poisoned

    def test_poison_is_cached(self):
        s = create_session()
        d = s.value(0)
        ratio = s.expression(lambda: 10 / d.get())
        for _ in range(3):
            with pytest.raises(DerivationError):
                ratio.get()
        assert ratio.compute_count == 1

    def test_repeated_reads_keep_traceback_depth(self):
        s = create_session()
        ratio = s.expression(lambda: 1 / 0)
        label = s.expression(lambda: f"ratio={ratio.get()}")

        def depth(tb):
            n = 0
            while tb is not None:
                n += 1
                tb = tb.tb_next
            return n

        for expr in (ratio, label):
            depths = []
            for _ in range(200):
                with pytest.raises(DerivationError) as exc:
                    expr.get()
                depths.append(depth(exc.value.__traceback__))
            assert len(set(depths[1:])) == 1
            assert depths[-1] <= depths[0]

    def test_recovers_when_cause_fixed(self):
        s = create_session()
        d = s.value(0)
        ratio = s.expression(lambda: 10 / d.get())
        label = s.expression(lambda: f"ratio={ratio.get()}")
        with pytest.raises(DerivationError):
            label.get()

        d.set(2)
        assert label.get() == "ratio=5.0"
        assert not ratio.poisoned
        assert not label.poisoned


class TestCycles:
    def test_self_reference(self):
        s = create_session()
        loop = s.expression(lambda: loop.get() + 1)
        with pytest.raises(CycleError):
            loop.get()

    def test_detected_on_first_evaluation(self):
        """Building the cycle is fine; evaluating it raises."""
        s = create_session()
        holder = {}
        a = s.expression(lambda: holder["b"].get() + 1)
        b = s.expression(lambda: a.get() + 1)
        holder["b"] = b

        with pytest.raises(CycleError) as exc:
            a.get()
        assert b.poisoned
        assert a.poisoned
        with pytest.raises(CycleError) as again:
            b.get()
        assert again.value is exc.value

    def test_through_isolate(self):
        s = create_session()
        loop = s.expression(lambda: s.isolate(loop.get))
        with pytest.raises(CycleError):
            loop.get()

    def test_unrelated_nodes_unaffected(self):
        s = create_session()
        v = s.value(1)
        loop = s.expression(lambda: loop.get())
        fine = s.expression(lambda: v.get() + 1)
        with pytest.raises(CycleError):
            loop.get()
        assert fine.get() == 2
