"""Tests for the observer registry."""

import pytest

from rcells import destroy, formula_cell, input_cell, subscribe, transaction, unsubscribe


class TestSubscribe:
    def test_notified_with_new_value(self):
        a = input_cell("hello")
        log = []
        subscribe(a, log.append)
        a.set("world")
        assert log == ["world"]

    def test_not_notified_on_subscribe(self):
        a = input_cell(1)
        log = []
        a.subscribe(log.append)
        assert log == []

    def test_unsubscribe(self):
        a = input_cell(1)
        log = []
        sub = subscribe(a, log.append)
        a.set(2)
        unsubscribe(sub)
        a.set(3)
        assert log == [2]
        assert not sub.active
        unsubscribe(sub)  # twice is fine

    def test_multiple_listeners(self):
        a = input_cell(1)
        first, second = [], []
        a.subscribe(first.append)
        a.subscribe(second.append)
        a.set(2)
        assert first == [2]
        assert second == [2]

    def test_downstream_listener_sees_settled_graph(self):
        a = input_cell(1)
        b = formula_cell(lambda: a.get() + 1)
        c = formula_cell(lambda: b.get() * 2)
        seen = []
        b.subscribe(lambda v: seen.append(("b", v, c.value)))
        c.subscribe(lambda v: seen.append(("c", v, b.value)))
        a.set(2)
        assert sorted(seen) == [("b", 3, 6), ("c", 6, 3)]

    def test_only_changed_cells_notified(self):
        a = input_cell(1)
        parity = formula_cell(lambda: a.get() % 2)
        log = []
        parity.subscribe(log.append)
        a.set(3)
        assert log == []
        a.set(4)
        assert log == [0]

    def test_once_per_transaction(self):
        a = input_cell(0)
        log = []
        a.subscribe(log.append)
        with transaction():
            a.set(1)
            a.set(2)
            a.set(3)
        assert log == [3]

    def test_listener_reads_are_not_tracked(self):
        a = input_cell(1)
        other = input_cell(10)
        calls = []
        f = formula_cell(lambda: calls.append(a.get()) or a.get())
        f.subscribe(lambda v: other.get())
        a.set(2)
        assert f.sources == {a}
        other.set(11)
        assert calls == [1, 2]

    def test_listener_may_write(self):
        a = input_cell(1)
        b = input_cell(0)
        doubled = formula_cell(lambda: b.get() * 2)
        a.subscribe(lambda v: b.set(v))
        a.set(5)
        assert doubled.get() == 10

    def test_listener_error_propagates(self):
        a = input_cell(1)

        def fail(value):
            raise ValueError(value)

        a.subscribe(fail)
        with pytest.raises(ValueError):
            a.set(2)
        assert a.get() == 2

    def test_destroy_revokes(self):
        a = input_cell(1)
        f = formula_cell(lambda: a.get())
        sub = f.subscribe(lambda v: None)
        destroy(f)
        assert not sub.active
        assert "disposed" in repr(sub)
