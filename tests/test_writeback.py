"""
Tests for cachecell.writeback module.

Covers:
- enwrap/unwrap/is_wrapped for immutable, container and object values
- In-place mutations of fetched values persisted to the owning Blob
- Non-mutating operations and no-op mutations leave the cache alone
- IncompatibleType on type-changing replacement
- Wrappers pickle and copy as plain values
"""

import copy
import pickle
from dataclasses import dataclass, field
from unittest.mock import MagicMock

import pytest

from cachecell.cell import Blob
from cachecell.errors import IncompatibleType
from cachecell.writeback import (
    CachedDict,
    CachedList,
    CachedObject,
    CachedSet,
    enwrap,
    is_wrapped,
    unwrap,
)


@dataclass
class Profile:
    name: str
    tags: list = field(default_factory=list)


class NotCopyable:
    def __deepcopy__(self, memo):
        raise TypeError("no copies")


class TestEnwrap:
    """Which values get wrapped, and how."""

    @pytest.mark.parametrize("value", [None, 1, 2.5, "s", b"b", (1, 2), frozenset({1})])
    def test_immutable_returned_as_is(self, value):
        assert enwrap(value, MagicMock()) is value

    def test_containers(self):
        owner = MagicMock()
        assert type(enwrap([1], owner)) is CachedList
        assert type(enwrap({"a": 1}, owner)) is CachedDict
        assert type(enwrap({1}, owner)) is CachedSet

    def test_object_handle(self):
        wrapped = enwrap(Profile("Ada"), MagicMock())
        assert isinstance(wrapped, CachedObject)
        assert wrapped.name == "Ada"
        assert wrapped == Profile("Ada")

    def test_uncopyable_value_unwrapped(self):
        value = NotCopyable()
        assert enwrap(value, MagicMock()) is value

    def test_unwrap(self):
        wrapped = enwrap([1, 2], MagicMock())
        assert is_wrapped(wrapped)
        plain = unwrap(wrapped)
        assert type(plain) is list
        assert not is_wrapped(plain)
        assert unwrap(5) == 5

    def test_rewrap_replaces_owner(self):
        first, second = MagicMock(), MagicMock()
        wrapped = enwrap(enwrap([1], first), second)
        assert wrapped.owner is second


class TestListWriteBack:
    """List mutations persist to the owning Blob."""

    def test_append_persists(self, blob):
        blob.set([1])
        items = blob.get()
        items.append(2)
        assert blob.get() == [1, 2]

    def test_result_of_builtin_returned(self, blob):
        blob.set([1, 2, 3])
        assert blob.get().pop() == 3
        assert blob.get() == [1, 2]

    def test_setitem_and_delitem(self, blob):
        blob.set(["a", "b", "c"])
        items = blob.get()
        items[0] = "z"
        del items[1]
        assert blob.get() == ["z", "c"]

    def test_iadd(self, blob):
        blob.set([1])
        items = blob.get()
        items += [2, 3]
        assert blob.get() == [1, 2, 3]

    def test_sort(self, blob):
        blob.set([3, 1, 2])
        blob.get().sort(reverse=True)
        assert blob.get() == [3, 2, 1]

    def test_no_op_mutation_does_not_write(self):
        owner = MagicMock()
        items = enwrap([1, 2], owner)
        items.sort()
        owner.set.assert_not_called()

    def test_reads_do_not_write(self):
        owner = MagicMock()
        items = enwrap([1, 2], owner)
        assert len(items) == 2
        assert items.index(2) == 1
        owner.set.assert_not_called()


class TestDictAndSetWriteBack:
    def test_dict_setitem(self, blob):
        blob.set({"a": 1})
        blob.get()["b"] = 2
        assert blob.get() == {"a": 1, "b": 2}

    def test_dict_update_and_pop(self, blob):
        blob.set({"a": 1, "b": 2})
        data = blob.get()
        data.update(c=3)
        assert data.pop("a") == 1
        assert blob.get() == {"b": 2, "c": 3}

    def test_set_add_discard(self, blob):
        blob.set({1, 2})
        members = blob.get()
        members.add(3)
        members.discard(1)
        assert blob.get() == {2, 3}


class TestObjectWriteBack:
    def test_setattr(self, blob):
        blob.set(Profile("Ada"))
        blob.get().setattr("name", "Grace")
        assert blob.get().value == Profile("Grace")

    def test_apply(self, blob):
        blob.set(Profile("Ada"))
        blob.get().apply(lambda p: p.tags.append("x"))
        assert blob.get().tags == ["x"]

    def test_replace_same_type(self, blob):
        blob.set(Profile("Ada"))
        blob.get().replace(Profile("Bob"))
        assert blob.get().name == "Bob"

    def test_replace_incompatible_type(self, blob):
        blob.set(Profile("Ada"))
        handle = blob.get()
        with pytest.raises(IncompatibleType) as exc_info:
            handle.replace("not a profile")
        assert "incompatible type str (was Profile)" in str(exc_info.value)
        assert handle.value == "not a profile"
        assert blob.get().value == Profile("Ada")

    def test_handle_does_not_alias_stored_value(self):
        original = Profile("Ada")
        handle = enwrap(original, MagicMock())
        handle.setattr("name", "Grace")
        assert original.name == "Ada"


class TestSerialization:
    """Wrappers never leak into the backend."""

    def test_list_pickles_plain(self):
        data = pickle.loads(pickle.dumps(enwrap([1, 2], MagicMock())))
        assert type(data) is list
        assert data == [1, 2]

    def test_set_pickles_plain(self):
        data = pickle.loads(pickle.dumps(enwrap({1}, MagicMock())))
        assert type(data) is set

    def test_object_pickles_plain(self):
        data = pickle.loads(pickle.dumps(enwrap(Profile("Ada"), MagicMock())))
        assert type(data) is Profile

    def test_copy_is_plain(self):
        assert type(copy.copy(enwrap({"a": 1}, MagicMock()))) is dict

    def test_stored_value_is_plain(self, client):
        blob = Blob(client, "k")
        blob.set([1])
        blob.get().append(2)
        assert type(client.get("k")) is list
