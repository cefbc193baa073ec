"""Tests for the Gradio callback functions (called directly, no UI)."""

import io
import json

import pytest

from json_recipe import handlers
from json_recipe.config import Settings, settings


@pytest.fixture
def export_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "export_dir", str(tmp_path))
    return tmp_path


def _upload(data) -> io.BytesIO:
    return io.BytesIO(json.dumps(data).encode("utf-8"))


class TestParsing:
    def test_parse_value(self) -> None:
        assert handlers.parse_value("12") == 12
        assert handlers.parse_value('{"a": 1}') == {"a": 1}
        assert handlers.parse_value("plain text") == "plain text"

    def test_parse_params(self) -> None:
        assert handlers.parse_params("") is None
        assert handlers.parse_params('[" ", 2]') == [" ", 2]
        assert handlers.parse_params("-, 3") == ["-", 3]


class TestBuildTab:
    def test_load_and_start_session(self) -> None:
        data, root_update, status = handlers.load_build_dataset(_upload({"rows": [{"a": 1}, {"a": 2, "b": 1}]}))
        assert root_update["choices"] == ["rows"]
        assert "Documents: 1" in status

        session, properties, working, recipe, status = handlers.start_session(data, "rows", None)
        assert session.template_index == 1
        assert properties["choices"] == ["a", "b"]
        assert working == {"a": 2, "b": 1}
        assert recipe["deltas"] == []
        assert status.startswith("Editing template element #1")

    def test_edit_errors_become_status(self) -> None:
        session = handlers.start_session({"a": "x"})[0]
        outputs = handlers.apply_transform_handler(session, "missing", "Uppercase", "")
        assert outputs[0] is session
        assert outputs[-1].startswith("SessionError:")

    def test_edits_update_outputs(self) -> None:
        session = handlers.start_session({"name": "john doe"})[0]
        _, properties, working, recipe, status = handlers.apply_transform_handler(session, "name", "Split", "")
        assert working == {"name_0": "john", "name_1": "doe"}
        assert properties["choices"] == ["name_0", "name_1"]
        assert len(recipe["deltas"]) == 3
        assert status == 'Applied "Split" to "name".'

        handlers.rename_property_handler(session, "name_0", "first")
        handlers.insert_property_handler(session, None, "tags", "[]")
        assert session.working == {"first": "john", "name_1": "doe", "tags": []}

    def test_no_session(self) -> None:
        assert handlers.delete_property_handler(None, "a")[-1] == "No session. Load data first."

    def test_transform_choices(self) -> None:
        session = handlers.start_session({"n": 1})[0]
        transforms, conditions = handlers.transform_choices(session, "n")
        assert "Add" in transforms["choices"]
        assert "Greater Than" in conditions["choices"]

    def test_export_recipe(self, export_dir) -> None:
        session = handlers.start_session({"a": "x"})[0]
        handlers.apply_transform_handler(session, "a", "Uppercase", "")
        path, status = handlers.export_recipe_handler(session, "my_recipe")
        assert path == str(export_dir / "my_recipe.json")
        with open(path, encoding="utf-8") as f:
            assert json.load(f)["deltas"][0]["transformName"] == "Uppercase"
        assert "1 operations" in status


class TestApplyTab:
    def test_run_recipe_on_nested_root(self) -> None:
        session = handlers.start_session({"price": 10})[0]
        handlers.apply_transform_handler(session, "price", "Multiply", "2")
        data = {"meta": "kept", "items": [{"price": 1}, {"price": 5}]}
        assert handlers.run_recipe(data, session.recipe, "items") == {
            "meta": "kept", "items": [{"price": 2}, {"price": 10}],
        }

    def test_load_recipe_rejects_garbage(self) -> None:
        recipe, status = handlers.load_recipe_handler(io.StringIO("{}"))
        assert recipe is None
        assert status.startswith("RecipeImportError:")

    def test_apply_and_download(self, export_dir) -> None:
        session = handlers.start_session({"a": "x"})[0]
        handlers.apply_transform_handler(session, "a", "Uppercase", "")
        recipe, _ = handlers.load_recipe_handler(io.StringIO(session.export_recipe()))

        path, status, preview = handlers.apply_recipe_handler([{"a": "b"}, {"a": "c"}], recipe, "(root)", "")
        assert path == str(export_dir / "transformed.json")
        assert preview == [{"a": "B"}, {"a": "C"}]
        assert status.startswith("Applied 1 operations")

    def test_missing_inputs(self) -> None:
        assert handlers.apply_recipe_handler(None, {}, None, None)[1] == "No data loaded."
        assert handlers.preview_apply_handler({"a": 1}, None, None) is None
        assert handlers.compute_document_count_text([1, 2, 3]) == "Documents: 3"


class TestSettings:
    def test_env_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("JSON_RECIPE_PREVIEW_LIMIT", "7")
        monkeypatch.setenv("JSON_RECIPE_DEBUG", "true")
        configured = Settings()
        assert configured.preview_limit == 7
        assert configured.debug is True
        assert configured.default_root_type == "object"
