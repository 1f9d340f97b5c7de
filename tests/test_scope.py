"""Tests for scope resolution."""

import pytest

from wordtemplate.engine.scope import LoopMeta, ScopeManager, get_value_by_path, parse_path
from wordtemplate.engine.values import UNDEFINED


@pytest.fixture
def scope():
    manager = ScopeManager()
    manager.initialize({
        "company": "Acme",
        "user": {"name": "Ann", "tags": ["a", "b"]},
        "orders": [{"id": 1, "lines": [{"sku": "X"}]}],
    })
    return manager


class TestGetValueByPath:
    """Tests for dotted and indexed path lookups."""

    def test_nested_keys(self):
        """Dotted paths walk nested objects."""
        assert get_value_by_path({"a": {"b": {"c": 3}}}, "a.b.c") == 3

    def test_bracket_index(self):
        """Bracket indexes read list items."""
        data = {"rows": [[1, 2], [3, 4]]}
        assert get_value_by_path(data, "rows[1][0]") == 3

    def test_out_of_range_is_undefined(self):
        """Indexes past the end are undefined."""
        assert get_value_by_path({"items": [1]}, "items[5]") is UNDEFINED

    def test_index_on_non_list_is_undefined(self):
        """Indexing a non-list is undefined."""
        assert get_value_by_path({"name": "Ann"}, "name[0]") is UNDEFINED

    def test_missing_key_is_undefined(self):
        """Missing keys are undefined."""
        assert get_value_by_path({"a": {}}, "a.b.c") is UNDEFINED

    def test_explicit_null_is_kept(self):
        """An explicit null is returned as None."""
        assert get_value_by_path({"a": None}, "a") is None

    def test_list_length(self):
        """length reads the size of a list."""
        assert get_value_by_path({"items": [1, 2, 3]}, "items.length") == 3

    def test_parse_path(self):
        """Paths split into keys and indexes."""
        assert parse_path("a.b[0][1].c") == [("a", ()), ("b", (0, 1)), ("c", ())]


class TestScopeManager:
    """Tests for the scope stack."""

    def test_root_lookup(self, scope):
        """Paths resolve against the root data."""
        assert scope.resolve("user.name") == "Ann"

    def test_loop_meta_reads_current_frame(self, scope):
        """Loop metadata comes from the innermost loop."""
        scope.push_scope({"id": 1}, LoopMeta(index=2, is_first=False, is_last=True, count=3))
        assert scope.resolve("$index") == 2
        assert scope.resolve("$first") is False
        assert scope.resolve("$last") is True
        assert scope.resolve("$count") == 3

    def test_loop_meta_without_loop_is_undefined(self, scope):
        """Loop metadata outside a loop is undefined."""
        assert scope.resolve("$index") is UNDEFINED

    def test_this(self, scope):
        """this is the current item."""
        scope.push_scope("plain", LoopMeta(0, True, True, 1))
        assert scope.resolve("this") == "plain"

    def test_this_property_does_not_fall_back(self, scope):
        """Properties of this never fall back to outer frames."""
        scope.push_scope({"id": 7}, LoopMeta(0, True, True, 1))
        assert scope.resolve("this.id") == 7
        assert scope.resolve("this.company") is UNDEFINED

    def test_parent_path(self, scope):
        """The parent path reads the enclosing item."""
        scope.push_scope({"id": 1, "name": "order"}, LoopMeta(0, True, True, 1))
        scope.push_scope({"sku": "X", "name": "line"}, LoopMeta(0, True, True, 1))
        assert scope.resolve("name") == "line"
        assert scope.resolve("../name") == "order"

    def test_parent_path_beyond_stack_uses_root(self, scope):
        """Parents past the outermost loop resolve from the root."""
        scope.push_scope({"name": "inner"}, LoopMeta(0, True, True, 1))
        assert scope.resolve("../../../company") == "Acme"

    def test_fallback_to_outer_frames(self, scope):
        """Names missing on the item resolve from outer frames."""
        scope.push_scope({"id": 1}, LoopMeta(0, True, True, 1))
        scope.push_scope({"sku": "X"}, LoopMeta(0, True, True, 1))
        assert scope.resolve("id") == 1
        assert scope.resolve("company") == "Acme"
        assert scope.resolve("missing") is UNDEFINED

    def test_candidate_frames_order(self, scope):
        """Candidate frames run from innermost to root."""
        scope.push_scope({"level": 1})
        scope.push_scope({"level": 2})
        frames = scope.candidate_frames()
        assert frames[0] == {"level": 2}
        assert frames[1] == {"level": 1}
        assert frames[-1]["company"] == "Acme"

    def test_pop_never_removes_root(self, scope):
        """Popping an empty stack keeps the root."""
        scope.pop_scope()
        scope.pop_scope()
        assert scope.depth == 1
        assert scope.resolve("company") == "Acme"
