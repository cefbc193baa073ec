"""Tests for recording deltas."""

import json
import logging

import pytest

from json_recipe.applier import apply_deltas
from json_recipe.errors import RecipeImportError
from json_recipe.recorder import DeltaRecorder


@pytest.fixture
def recorder() -> DeltaRecorder:
    return DeltaRecorder()


class TestRecording:
    def test_op_ids_are_sequential(self, recorder) -> None:
        assert recorder.record_insert("a", 1) == "op_1"
        assert recorder.record_delete("b") == "op_2"
        assert recorder.record_transform("a", "Add", [1]) == "op_3"
        assert recorder.record_rename("a", "c") == "op_4"
        assert [d["op"] for d in recorder.deltas] == ["insert", "delete", "transform", "rename"]

    def test_deltas_carry_wire_fields(self, recorder) -> None:
        recorder.record_insert("zip", "75001", parent_op_id="op_9", description="zip code")
        delta = recorder.deltas[0]
        assert delta["parentOpId"] == "op_9"
        assert delta["metadata"]["description"] == "zip code"
        assert "timestamp" in delta["metadata"]
        assert "sourceKey" not in delta

    def test_ids_never_reused_after_removal(self, recorder) -> None:
        recorder.record_transform("a", "Add", [1])
        recorder.remove_transforms_by_key("a")
        assert recorder.deltas == []
        assert recorder.record_transform("a", "Add", [2]) == "op_2"

    def test_clear_keeps_counting(self, recorder) -> None:
        recorder.record_insert("a", 1)
        recorder.clear()
        assert recorder.deltas == []
        assert recorder.record_insert("a", 1) == "op_2"

    def test_find_delta(self, recorder) -> None:
        op_id = recorder.record_insert("a", 1)
        assert recorder.find_delta(op_id)["key"] == "a"
        assert recorder.find_delta("op_99") is None

    def test_updated_at_moves(self, recorder) -> None:
        created = recorder.recipe["metadata"]["createdAt"]
        recorder.record_insert("a", 1)
        assert recorder.recipe["metadata"]["updatedAt"] >= created


class TestNodes:
    def test_node_mapping(self, recorder) -> None:
        op_id = recorder.record_insert("address", {}, node_id="node-1")
        assert recorder.get_node_op_id("node-1") == op_id
        renamed = recorder.record_rename("address", "addr", node_id="node-1")
        assert recorder.get_node_op_id("node-1") == renamed
        recorder.forget_node("node-1")
        assert recorder.get_node_op_id("node-1") is None

    def test_removal_drops_stale_node_mappings(self, recorder) -> None:
        recorder.record_insert("name_0", "a", source_key="name", created_by={"transformName": "Split"}, node_id="n0")
        recorder.remove_structural_inserts("name")
        assert recorder.get_node_op_id("n0") is None


class TestUpdateParams:
    def test_ordinal_among_key_transforms(self, recorder, registry) -> None:
        recorder.record_transform("age", "Add", [1])
        recorder.record_transform("other", "Add", [1])
        recorder.record_transform("age", "Multiply", [2])
        recorder.record_update_params("age", 1, [10])

        transforms = [d for d in recorder.deltas if d["op"] == "transform"]
        assert transforms[0]["params"] == [1]
        assert transforms[2]["params"] == [10]
        audit = recorder.deltas[-1]
        assert audit == {"op": "updateParams", "key": "age", "transformIndex": 1, "params": [10], "opId": "op_4"}
        assert apply_deltas({"age": 1}, recorder.deltas, registry) == {"age": 20}

    def test_no_match_warns_and_still_records(self, recorder, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            recorder.record_update_params("missing", 0, [1])
        assert "No transform #0 recorded for missing" in caplog.text
        assert recorder.deltas[-1]["op"] == "updateParams"

    def test_index_rebuilt_after_removal(self, recorder) -> None:
        recorder.record_transform("a", "Add", [1])
        recorder.record_transform("a", "Multiply", [2])
        recorder.remove_transforms_by_key("a", "Add")
        recorder.record_update_params("a", 0, [5])
        assert recorder.deltas[0]["transformName"] == "Multiply"
        assert recorder.deltas[0]["params"] == [5]

    def test_record_transforms(self, recorder) -> None:
        ids = recorder.record_transforms("a", [{"name": "Add", "params": [1]}, {"name": "isTrue", "isCondition": True}])
        assert ids == ["op_1", "op_2"]
        assert recorder.deltas[1]["isCondition"] is True
        assert "isCondition" not in recorder.deltas[0]


class TestRemovals:
    def test_remove_structural_inserts_by_transform(self, recorder) -> None:
        recorder.record_insert("n_0", "a", source_key="n", created_by={"transformName": "Split"})
        recorder.record_insert("n_x", "b", source_key="n", created_by={"transformName": "To Object"})
        recorder.record_insert("n", "restored", source_key="n")
        assert recorder.remove_structural_inserts("n", "Split") == 1
        assert recorder.remove_structural_inserts("n") == 1
        assert [d["key"] for d in recorder.deltas] == ["n"]

    def test_remove_deletes_by_key(self, recorder) -> None:
        recorder.record_delete("n")
        recorder.record_delete("m")
        assert recorder.remove_deletes_by_key("n") == 1
        assert [d["key"] for d in recorder.deltas] == ["m"]


class TestImportExport:
    def test_round_trip(self, recorder) -> None:
        recorder.record_insert("a", {"b": [1, 2]})
        recorder.record_transform("a", "Add", [1])
        text = recorder.export_recipe()
        other = DeltaRecorder()
        assert other.import_recipe(text) == recorder.recipe
        assert json.loads(text) == recorder.recipe

    def test_import_moves_counter_past_existing_ids(self, recorder) -> None:
        source = DeltaRecorder()
        for key in "abc":
            source.record_insert(key, 1)
        recorder.import_recipe(source.export_recipe())
        assert recorder.record_insert("d", 1) == "op_4"

    def test_import_rejects_garbage(self, recorder) -> None:
        with pytest.raises(RecipeImportError):
            recorder.import_recipe("not json")
