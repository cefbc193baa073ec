"""Shared fixtures: a small transform registry mirroring what a UI would register."""

import pytest

from json_recipe.structural import structural_result
from json_recipe.transforms import Transform, TransformRegistry


def _split(value, delimiter=" "):
    return structural_result("split", parts=value.split(delimiter), remove_source=True)


def _to_object(value):
    first, _, last = value.partition(" ")
    return structural_result("toObject", obj={"first": first, "last": last}, remove_source=True)


@pytest.fixture
def registry() -> TransformRegistry:
    return TransformRegistry([
        Transform("Uppercase", lambda v: v.upper()),
        Transform("Add", lambda v, n=0: v + n),
        Transform("Multiply", lambda v, n=1: v * n),
        Transform("Split", _split, structural=True),
        Transform("Name Parts", _to_object, structural=True),
        Transform("Explode", lambda v: 1 / 0),
        Transform("isTrue", lambda v: v, condition=lambda v: v is True),
        Transform("contains", lambda v, s="": v, condition=lambda v, s="": isinstance(v, str) and s in v),
    ])
