"""
Tests for cachecell.cell Counter.
"""

import pytest

from cachecell.cell import Counter
from cachecell.errors import CounterIntegerOnly, Destroyed


class TestCounterValues:
    def test_absent_reads_zero(self, counter):
        assert counter.get() == 0

    def test_set_returns_int(self, counter):
        assert counter.set(5) == 5
        assert isinstance(counter.get(), int)

    def test_stored_raw(self, client, counter):
        counter.set(12)
        assert client.get("test:counter", raw=True) == "12"

    def test_raw_mode(self, counter):
        assert counter.raw_mode is True

    @pytest.mark.parametrize("value", ["abc", 1.5, None, [1], True])
    def test_non_integer_rejected(self, counter, value):
        counter.set(3)
        with pytest.raises(CounterIntegerOnly):
            counter.set(value)
        assert counter.get() == 3

    def test_error_message_names_counter(self, counter):
        with pytest.raises(CounterIntegerOnly) as exc_info:
            counter.set("abc")
        assert "counter variable 'test:counter'" in str(exc_info.value)


class TestCounterArithmetic:
    def test_increment(self, counter):
        counter.set(5)
        assert counter.increment(3) == 8
        assert counter.get() == 8

    def test_decrement_floors_at_zero(self, counter):
        counter.set(5)
        assert counter.decrement(100) == 0
        assert counter.get() == 0

    def test_default_amount(self, counter):
        counter.set(1)
        assert counter.incr() == 2
        assert counter.decr() == 1

    def test_absent_entry(self, counter):
        assert counter.increment() is None
        assert counter.decrement() is None

    def test_non_integer_amount(self, counter):
        counter.set(1)
        with pytest.raises(CounterIntegerOnly):
            counter.increment("2")
        assert counter.get() == 1

    def test_shared_between_instances(self, client):
        a = Counter(client, "hits", 0)
        b = Counter(client, "hits")
        a.increment(2)
        b.increment(3)
        assert a.get() == 5

    def test_destroyed(self, counter):
        counter.set(1)
        counter.destroy()
        with pytest.raises(Destroyed):
            counter.increment()
        with pytest.raises(Destroyed):
            counter.set("abc")
