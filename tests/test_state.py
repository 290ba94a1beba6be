"""Tests for stepwright.state."""

from __future__ import annotations

import pytest

from stepwright import state as keys
from stepwright.errors import MissingKeyError, StateError, StateTypeError
from stepwright.state import StateBag, StateKey

COUNT = StateKey("count", int)


class TestStateKey:
    def test_str_is_name(self):
        assert str(COUNT) == "count"

    def test_keys_are_hashable_and_equal_by_value(self):
        assert StateKey("count", int) == COUNT
        assert {COUNT: 1}[StateKey("count", int)] == 1


class TestPutGet:
    def test_put_then_get_typed_key(self):
        bag = StateBag()
        bag.put(COUNT, 3)
        assert bag.get(COUNT) == 3

    def test_put_overwrites(self):
        bag = StateBag()
        bag.put(COUNT, 1)
        bag.put(COUNT, 2)
        assert bag.get(COUNT) == 2

    def test_string_and_typed_keys_share_storage(self):
        bag = StateBag()
        bag.put("count", 7)
        assert bag.get(COUNT) == 7
        assert bag.get("count", int) == 7

    def test_get_missing_raises(self):
        bag = StateBag()
        with pytest.raises(MissingKeyError, match="count"):
            bag.get(COUNT)

    def test_missing_key_is_a_key_error(self):
        bag = StateBag()
        with pytest.raises(KeyError):
            bag.get("nope")

    def test_get_wrong_type_raises(self):
        bag = StateBag()
        bag.put("count", "three")
        with pytest.raises(StateTypeError) as exc_info:
            bag.get(COUNT)
        assert exc_info.value.key == "count"
        assert exc_info.value.expected is int
        assert "str" in str(exc_info.value)

    def test_wrong_type_with_explicit_expected(self):
        bag = StateBag()
        bag.put("name", 42)
        with pytest.raises(StateTypeError):
            bag.get("name", str)

    def test_untyped_get_returns_anything(self):
        bag = StateBag()
        bag.put("anything", [1, 2])
        assert bag.get("anything") == [1, 2]

    def test_errors_share_base(self):
        assert issubclass(MissingKeyError, StateError)
        assert issubclass(StateTypeError, StateError)


class TestGetOk:
    def test_absent(self):
        bag = StateBag()
        assert bag.get_ok(COUNT) == (None, False)

    def test_present(self):
        bag = StateBag()
        bag.put(COUNT, 5)
        assert bag.get_ok(COUNT) == (5, True)

    def test_present_none_value(self):
        bag = StateBag()
        bag.put("maybe", None)
        assert bag.get_ok("maybe") == (None, True)

    def test_wrong_type_still_raises(self):
        bag = StateBag()
        bag.put(COUNT, "five")
        with pytest.raises(StateTypeError):
            bag.get_ok(COUNT)


class TestContainer:
    def test_contains_accepts_both_key_kinds(self):
        bag = StateBag()
        bag.put(COUNT, 1)
        assert COUNT in bag
        assert "count" in bag
        assert "other" not in bag

    def test_remove(self):
        bag = StateBag()
        bag.put(COUNT, 1)
        bag.remove(COUNT)
        assert COUNT not in bag

    def test_remove_missing_is_noop(self):
        bag = StateBag()
        bag.remove("never-set")
        assert len(bag) == 0

    def test_len_and_keys(self):
        bag = StateBag()
        bag.put("a", 1)
        bag.put("b", 2)
        assert len(bag) == 2
        assert bag.keys() == ["a", "b"]
        assert list(bag) == ["a", "b"]


class TestConventionalKeys:
    def test_result_marker_types(self):
        assert keys.IMAGE_LIST_VERSION.type is int
        assert keys.MACHINE_IMAGE_NAME.type is str
        assert keys.MACHINE_IMAGE_FILE.type is str

    def test_ui_key_checks_protocol(self, ui):
        bag = StateBag()
        bag.put(keys.UI, ui)
        assert bag.get(keys.UI) is ui

    def test_ui_key_rejects_non_ui(self):
        bag = StateBag()
        bag.put(keys.UI, object())
        with pytest.raises(StateTypeError):
            bag.get(keys.UI)
