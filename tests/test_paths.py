"""Tests for rebuilding parent paths from parentOpId chains."""

import logging

from json_recipe.deltas import insert_op, rename_op
from json_recipe.paths import index_deltas, resolve_parent_path


class TestResolveParentPath:
    def test_no_parent(self) -> None:
        assert resolve_parent_path(None, None, {}, []) == []

    def test_parent_key_only(self) -> None:
        assert resolve_parent_path(None, "address", {}, []) == ["address"]

    def test_walks_op_id_chain(self) -> None:
        deltas = [
            insert_op("a", {}, op_id="op_1"),
            insert_op("b", {}, op_id="op_2", parent_op_id="op_1"),
            insert_op("c", {}, op_id="op_3", parent_op_id="op_2"),
        ]
        op_id_to_key = {"op_1": "a", "op_2": "b", "op_3": "c"}
        assert resolve_parent_path("op_3", None, op_id_to_key, deltas) == ["a", "b", "c"]

    def test_uses_current_key_after_rename(self) -> None:
        deltas = [insert_op("a", {}, op_id="op_1"), insert_op("b", {}, op_id="op_2", parent_op_id="op_1")]
        assert resolve_parent_path("op_2", None, {"op_1": "renamed", "op_2": "b"}, deltas) == ["renamed", "b"]

    def test_final_link_may_use_parent_key(self) -> None:
        deltas = [rename_op("city", "town", op_id="op_1", parent_key="address")]
        assert resolve_parent_path("op_1", None, {"op_1": "town"}, deltas) == ["address", "town"]

    def test_unmapped_ancestor_gives_empty_path(self) -> None:
        deltas = [insert_op("a", {}, op_id="op_1"), insert_op("b", {}, op_id="op_2", parent_op_id="op_1")]
        assert resolve_parent_path("op_2", None, {"op_2": "b"}, deltas) == []

    def test_accepts_prebuilt_index(self) -> None:
        deltas = [insert_op("a", {}, op_id="op_1")]
        assert resolve_parent_path("op_1", None, {"op_1": "a"}, index_deltas(deltas)) == ["a"]

    def test_cycle_stops_walk(self, caplog) -> None:
        deltas = [
            insert_op("a", {}, op_id="op_1", parent_op_id="op_2"),
            insert_op("b", {}, op_id="op_2", parent_op_id="op_1"),
        ]
        with caplog.at_level(logging.WARNING):
            assert resolve_parent_path("op_1", None, {"op_1": "a", "op_2": "b"}, deltas) == []
        assert "Cycle" in caplog.text

    def test_index_keeps_first_delta_per_op_id(self) -> None:
        first = insert_op("a", 1, op_id="op_1")
        index = index_deltas([first, insert_op("b", 2, op_id="op_1"), {"op": "retain", "count": 1}])
        assert index == {"op_1": first}
