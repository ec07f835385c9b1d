"""Tests for transactions, the action decorator and run_transaction."""

import logging

import pytest

from rcells import action, autorun, formula_cell, in_transaction, input_cell, run_transaction, transaction
from rcells.transaction import begin_transaction, end_transaction


class TestTransaction:
    def test_coalesces_writes(self):
        a = input_cell(100)
        b = input_cell(200)
        log = []
        formula_cell(lambda: log.append(f"a+b={a.get() + b.get()}"))
        assert log == ["a+b=300"]

        def body():
            a.set(101)
            a.set(102)
            b.set(201)

        run_transaction(body)
        assert log == ["a+b=300", "a+b=303"]

    def test_writes_visible_inside(self):
        a = input_cell(0)
        doubled = formula_cell(lambda: a.get() * 2)
        with transaction():
            a.set(5)
            assert a.get() == 5
            assert doubled.get() == 0  # not propagated yet
        assert doubled.get() == 10

    def test_nested_transactions(self):
        o = input_cell(0)
        log = []
        autorun(lambda: log.append(o.get()))

        with transaction():
            o.set(1)
            with transaction():
                o.set(2)
            assert log == [0]
            o.set(3)

        assert log == [0, 3]

    def test_write_back_to_original_is_noop(self):
        a = input_cell(1)
        log = []
        autorun(lambda: log.append(a.get()))
        changes = []
        a.subscribe(changes.append)
        with transaction():
            a.set(2)
            a.set(1)
        assert log == [1]
        assert changes == []

    def test_observers_run_once_after_commit(self):
        a = input_cell(0)
        b = input_cell(0)
        total = formula_cell(lambda: a.get() + b.get())
        seen = []
        total.subscribe(lambda v: seen.append((v, a.value, b.value)))
        with transaction():
            a.set(1)
            b.set(2)
            assert seen == []
        assert seen == [(3, 1, 2)]

    def test_run_transaction_returns_result(self):
        assert run_transaction(lambda: 42) == 42

    def test_in_transaction(self):
        assert not in_transaction()
        with transaction():
            assert in_transaction()
            with transaction():
                assert in_transaction()
            assert in_transaction()
        assert not in_transaction()

    def test_error_leaves_writes_applied_without_propagation(self, caplog):
        a = input_cell(0)
        doubled = formula_cell(lambda: a.get() * 2)
        with caplog.at_level(logging.WARNING, logger="rcells.transaction"):
            with pytest.raises(RuntimeError):
                with transaction():
                    a.set(5)
                    raise RuntimeError("boom")
        assert a.get() == 5
        assert doubled.get() == 0
        assert not in_transaction()
        assert "Transaction aborted" in caplog.text

    def test_inner_error_caught_by_outer_still_commits(self):
        a = input_cell(0)
        doubled = formula_cell(lambda: a.get() * 2)
        with transaction():
            try:
                with transaction():
                    a.set(4)
                    raise ValueError
            except ValueError:
                pass
        assert doubled.get() == 8

    def test_explicit_begin_end(self):
        a = input_cell(0)
        doubled = formula_cell(lambda: a.get() * 2)
        txn = begin_transaction()
        a.set(3)
        assert txn.depth == 1
        assert list(txn.pending) == [a._id]
        end_transaction()
        assert doubled.get() == 6

    def test_end_without_begin_raises(self):
        with pytest.raises(RuntimeError):
            end_transaction()


class TestAction:
    def test_batches_updates(self):
        a = input_cell(0)
        b = input_cell(0)
        log = []
        autorun(lambda: log.append((a.get(), b.get())))
        assert log == [(0, 0)]

        @action
        def update_both():
            a.set(1)
            b.set(2)

        update_both()
        # Should see (1, 2) not intermediate (1, 0)
        assert log == [(0, 0), (1, 2)]

    def test_nested_actions(self):
        o = input_cell(0)
        log = []
        autorun(lambda: log.append(o.get()))

        @action
        def outer():
            o.set(1)

            @action
            def inner():
                o.set(2)

            inner()
            o.set(3)

        outer()
        assert log == [0, 3]

    def test_preserves_return_value(self):
        @action
        def compute():
            return 42

        assert compute() == 42
