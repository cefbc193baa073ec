"""Tests for the interactive editing session."""

import pytest

from json_recipe.applier import apply_recipe
from json_recipe.errors import SessionError
from json_recipe.session import RecipeSession


class TestEdits:
    def test_split_records_inserts_and_delete(self, registry) -> None:
        session = RecipeSession({"name": "john doe", "age": 30}, registry)
        assert session.apply_transform("name", "Split", [" "]) == ["op_1", "op_2", "op_3"]
        assert session.working == {"age": 30, "name_0": "john", "name_1": "doe"}

        deltas = session.recipe["deltas"]
        assert [d["op"] for d in deltas] == ["insert", "insert", "delete"]
        assert deltas[0]["createdBy"] == {"transformName": "Split", "params": [" "]}
        assert deltas[0]["sourceKey"] == "name"

        other = apply_recipe({"name": "ana lima", "age": 1}, session.recipe, registry)
        assert other == {"age": 1, "name_0": "ana", "name_1": "lima"}

    def test_split_after_transform_keeps_transformed_value(self, registry) -> None:
        session = RecipeSession({"name": "john doe"}, registry)
        session.apply_transform("name", "Uppercase")
        session.apply_transform("name", "Split", [" "])
        inserts = [d for d in session.recipe["deltas"] if d["op"] == "insert"]
        assert [d["value"] for d in inserts] == ["JOHN", "DOE"]
        assert session.working == {"name_0": "JOHN", "name_1": "DOE"}
        assert session.apply_to_all() == {"name_0": "JOHN", "name_1": "DOE"}
        assert apply_recipe({"name": "ana lima"}, session.recipe, registry) == {"name_0": "ANA", "name_1": "LIMA"}

    def test_plain_transform_and_param_update(self, registry) -> None:
        session = RecipeSession({"age": 30}, registry)
        session.apply_transform("age", "Add", [1])
        assert session.working == {"age": 31}
        session.update_transform_params("age", 0, [5])
        assert session.working == {"age": 35}
        assert session.recipe["deltas"][0]["params"] == [5]

    def test_nested_inserts_follow_renamed_parent(self, registry) -> None:
        session = RecipeSession({"name": "a"}, registry)
        session.insert_property("address", {})
        session.insert_property("zip", "75001", parent="address")
        session.rename_property("address", "addr")
        session.insert_property("city", "paris", parent="addr")
        session.apply_transform("addr.city", "Uppercase")
        assert session.working == {"name": "a", "addr": {"zip": "75001", "city": "PARIS"}}
        assert apply_recipe({"name": "b"}, session.recipe, registry) == {
            "name": "b", "addr": {"zip": "75001", "city": "PARIS"},
        }

    def test_rename_conflict_gets_suffix(self, registry) -> None:
        session = RecipeSession({"a": 1, "b": 2}, registry)
        op_id = session.rename_property("a", "b")
        assert session.working == {"b_1": 1, "b": 2}
        delta = session.recorder.find_delta(op_id)
        assert delta["to"] == "b_1"
        assert delta["autoRenamed"] is True

    def test_rename_to_same_name_is_noop(self, registry) -> None:
        session = RecipeSession({"a": 1}, registry)
        assert session.rename_property("a", "a") is None
        assert session.recipe["deltas"] == []

    def test_delete_records_value(self, registry) -> None:
        session = RecipeSession({"a": {"b": 1}, "c": 2}, registry)
        session.delete_property("a")
        assert session.working == {"c": 2}
        assert session.recipe["deltas"][0]["deletedValue"] == {"b": 1}

    def test_nested_structural_expansion(self, registry) -> None:
        session = RecipeSession({"person": {"full": "Ana Lima"}}, registry)
        session.apply_transform("person.full", "Name Parts")
        assert session.working == {"person": {"full_first": "Ana", "full_last": "Lima"}}
        inserts = [d for d in session.recipe["deltas"] if d["op"] == "insert"]
        assert [d["createdBy"]["resultKey"] for d in inserts] == ["first", "last"]
        assert apply_recipe({"person": {"full": "Bo Ek"}}, session.recipe, registry) == {
            "person": {"full_first": "Bo", "full_last": "Ek"},
        }

    def test_replace_structural_transform(self, registry) -> None:
        session = RecipeSession({"name": "john doe"}, registry)
        session.apply_transform("name", "Split", [" "])
        session.apply_transform("name_0", "Uppercase")
        session.replace_structural_transform("name", "Name Parts")
        assert session.working == {"name_first": "john", "name_last": "doe"}
        assert [d["key"] for d in session.recipe["deltas"]] == ["name_first", "name_last", "name"]


class TestConditions:
    def test_condition_gates_later_edits(self, registry) -> None:
        session = RecipeSession([{"name": "vip ana"}, {"name": "bob"}], registry)
        session.add_condition("name", "contains", ["vip"])
        session.apply_transform("name", "Uppercase")
        assert session.conditions_for("name") == [{"conditionName": "contains", "conditionParams": ["vip"]}]
        assert session.apply_to_all() == [{"name": "VIP ANA"}, {"name": "bob"}]

    def test_conditions_follow_rename(self, registry) -> None:
        session = RecipeSession({"name": "vip"}, registry)
        session.add_condition("name", "contains", ["vip"])
        session.rename_property("name", "title")
        assert session.conditions_for("title") == [{"conditionName": "contains", "conditionParams": ["vip"]}]
        assert session.conditions_for("name") == []

    def test_only_conditions_accepted(self, registry) -> None:
        session = RecipeSession({"a": "x"}, registry)
        with pytest.raises(SessionError):
            session.add_condition("a", "Uppercase")


class TestTemplateMode:
    def test_most_complete_element_is_template(self, registry) -> None:
        session = RecipeSession([{"age": 30}, {"age": 40, "x": 1}], registry)
        assert session.template_index == 1
        assert session.recipe["metadata"] == {**session.recipe["metadata"], "rootType": "array", "templateIndex": 1}
        session.apply_transform("age", "Add", [1])
        assert session.working == {"age": 41, "x": 1}
        assert session.apply_to_all() == [{"age": 31}, {"age": 41, "x": 1}]

    def test_explicit_template_index(self, registry) -> None:
        session = RecipeSession([{"age": 30}, {"age": 40, "x": 1}], registry, template_index=0)
        assert session.source == {"age": 30}

    def test_apply_to_other_data(self, registry) -> None:
        session = RecipeSession({"age": 1}, registry)
        session.apply_transform("age", "Multiply", [2])
        assert session.apply_to_all([{"age": 2}, {"age": 3}]) == [{"age": 4}, {"age": 6}]


class TestErrors:
    @pytest.mark.parametrize("data", ["text", 5, [1, 2]])
    def test_rejects_unusable_data(self, data) -> None:
        with pytest.raises(SessionError):
            RecipeSession(data)

    def test_missing_property(self, registry) -> None:
        session = RecipeSession({"a": 1}, registry)
        with pytest.raises(SessionError):
            session.delete_property("b")
        with pytest.raises(SessionError):
            session.apply_transform("", "Uppercase")

    def test_unknown_or_failing_transform(self, registry) -> None:
        session = RecipeSession({"a": 1}, registry)
        with pytest.raises(SessionError):
            session.apply_transform("a", "Nope")
        with pytest.raises(SessionError):
            session.apply_transform("a", "Explode")
        assert session.recipe["deltas"] == []

    def test_deep_source_path_not_addressable(self, registry) -> None:
        session = RecipeSession({"a": {"b": {"c": "x"}}}, registry)
        with pytest.raises(SessionError, match="Cannot address"):
            session.apply_transform("a.b.c", "Uppercase")

    def test_insert_conflict(self, registry) -> None:
        session = RecipeSession({"a": 1}, registry)
        with pytest.raises(SessionError):
            session.insert_property("a", 2)


class TestRecipeText:
    def test_export_and_load(self, registry) -> None:
        session = RecipeSession({"name": "ana", "age": 1}, registry)
        session.apply_transform("name", "Uppercase")
        session.insert_property("extra", True)

        other = RecipeSession({"name": "ana", "age": 1}, registry)
        other.load_recipe(session.export_recipe())
        assert other.working == session.working
        assert other.insert_property("more", 1) == "op_3"

    def test_default_registry_used(self) -> None:
        session = RecipeSession({"name": "ana"})
        session.apply_transform("name", "Capitalized")
        assert session.value_at("name") == "Ana"
