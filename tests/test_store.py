"""Tests for ValueStore."""

import logging

import pytest

from tickflow import (
    DerivationError,
    ReactiveWriteError,
    UnknownNodeError,
    UnknownValueError,
    create_session,
)


class TestReadWrite:
    def test_by_name(self):
        s = create_session()
        s.value("A", name="artist")
        assert s.read("artist") == "A"
        s.write("artist", "B")
        assert s.read("artist") == "B"
        assert s.store.handle("artist").get() == "B"

    def test_unknown_name(self):
        s = create_session()
        with pytest.raises(UnknownValueError):
            s.read("nope")
        with pytest.raises(UnknownValueError):
            s.write("nope", 1)

    def test_foreign_handle(self):
        """A handle from another session is not registered here."""
        a = create_session()
        b = create_session()
        v = a.value(1)
        with pytest.raises(UnknownValueError) as exc:
            b.read(v)
        assert isinstance(exc.value, UnknownNodeError)

    def test_expression_is_not_a_value(self):
        s = create_session()
        e = s.expression(lambda: 1)
        with pytest.raises(UnknownValueError):
            s.write(e, 2)

    def test_duplicate_name(self):
        s = create_session()
        s.value(1, name="x")
        with pytest.raises(ValueError):
            s.value(2, name="x")

    def test_contains(self):
        s = create_session()
        v = s.value(1, name="x")
        assert "x" in s.store
        assert v in s.store
        assert "y" not in s.store

    def test_outside_evaluation_registers_nothing(self):
        s = create_session()
        v = s.value(1)
        v.get()
        assert s.graph.dependents(v._id) == frozenset()


class TestUpdate:
    def test_writes_all(self):
        s = create_session()
        s.store.ensure({"x": 0, "y": 0})
        log = []
        s.observer(lambda: log.append((s.read("x"), s.read("y"))))
        s.flush()
        s.store.update({"x": 1, "y": 2})
        s.flush()
        assert log == [(0, 0), (1, 2)]

    def test_unknown_name_writes_nothing(self):
        s = create_session()
        s.store.ensure({"x": 0})
        with pytest.raises(UnknownValueError):
            s.store.update({"x": 1, "nope": 2})
        assert s.read("x") == 0


class TestEnsure:
    def test_adds_missing(self):
        s = create_session()
        s.store.ensure({"x": 1})
        added = s.store.ensure({"x": 1, "z": 99})
        assert added == ["z"]
        assert s.read("z") == 99
        assert s.store.names() == ["x", "z"]

    def test_preserves_values(self):
        s = create_session()
        s.store.ensure({"x": 1})
        s.write("x", 42)
        s.store.ensure({"x": 1})
        assert s.read("x") == 42

    def test_logs_added(self, caplog):
        s = create_session()
        with caplog.at_level(logging.INFO, logger="tickflow.store"):
            s.store.ensure({"a": 1, "b": 2})
        assert "Added 2 reactive value(s)" in caplog.text


class TestChanged:
    def test_tracks_writes_until_flush(self):
        s = create_session()
        a = s.value(0)
        b = s.value(0)
        a.set(1)
        assert s.store.changed() == [a]
        b.set(1)
        assert s.store.changed() == [a, b]
        s.flush()
        assert s.store.changed() == []

    def test_dedup_is_not_a_change(self):
        s = create_session()
        a = s.value(0)
        a.set(0)
        assert s.store.changed() == []


class TestWritesDuringEvaluation:
    def test_flush_defers_writes(self):
        """Writes from an observer land after the flush, in the next tick."""
        s = create_session()
        src = s.value(1)
        out = s.value(0)
        seen = []

        @s.observer(priority=10)
        def copy():
            out.set(src.get() * 10)

        @s.observer
        def show():
            seen.append(out.get())

        s.flush()
        assert seen == [0]  # same tick still sees the old value
        assert out.get() == 10
        assert s.pending_count() == 1
        s.flush()
        assert seen == [0, 10]

    def test_write_inside_expression(self):
        s = create_session()
        v = s.value(0)
        e = s.expression(lambda: v.set(1))
        with pytest.raises(ReactiveWriteError):
            e.get()
        assert v.get() == 0

    def test_write_error_is_not_wrapped(self):
        s = create_session()
        v = s.value(0)
        e = s.expression(lambda: v.set(1))
        with pytest.raises(ReactiveWriteError) as exc:
            e.get()
        assert not isinstance(exc.value, DerivationError)

    def test_deferred_modify_reads_latest_value(self):
        s = create_session()
        total = s.value(0)

        @s.observer
        def add():
            s.store.modify(total, lambda n: n + 1)
            s.store.modify(total, lambda n: n * 10)

        s.flush()
        assert total.get() == 10

    def test_modify_inside_expression(self):
        s = create_session()
        v = s.value(0)
        e = s.expression(lambda: s.store.modify(v, lambda n: n + 1))
        with pytest.raises(ReactiveWriteError):
            e.get()
        assert v.get() == 0

    def test_modify_unknown_value_fails_immediately(self):
        s = create_session()
        errors = []

        @s.observer
        def bad():
            try:
                s.store.modify("missing", lambda n: n)
            except UnknownValueError as exc:
                errors.append(exc)

        s.flush()
        assert len(errors) == 1
