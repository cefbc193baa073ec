from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional


def count_nested_properties(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, list):
        return sum(count_nested_properties(item) for item in value)
    if isinstance(value, dict):
        return sum(1 + count_nested_properties(v) for v in value.values())
    return 1


def find_most_complete_object(items: List[Any]) -> int:
    """Index of the element with the most (nested) properties; first wins ties."""
    if not isinstance(items, list) or not items:
        return 0
    best_index, best_count = 0, count_nested_properties(items[0])
    for index, item in enumerate(items[1:], start=1):
        count = count_nested_properties(item)
        if count > best_count:
            best_index, best_count = index, count
    return best_index


def suggest_template_mode(data: Any) -> bool:
    """True for a non-empty array whose elements are all objects."""
    return isinstance(data, list) and bool(data) and all(isinstance(item, dict) for item in data)


def select_template_index(items: List[Any], metadata: Optional[Mapping[str, Any]] = None) -> int:
    index = (metadata or {}).get("templateIndex")
    if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(items):
        return index
    return find_most_complete_object(items)


def _placeholder(template_value: Any) -> Any:
    if isinstance(template_value, list):
        return []
    return merge_with_template({}, template_value)


def merge_with_template(target: Any, template: Any) -> Any:
    """Give ``target`` every property of ``template`` it lacks.

    Missing arrays become ``[]`` and missing objects are merged recursively
    from ``{}``. Missing scalars stay missing, so a replayed element never
    gains keys its own data did not have. Existing values are kept; nested
    objects present on both sides are merged. A non-object target is
    returned as-is.
    """
    if not isinstance(template, dict):
        if isinstance(template, list):
            return target if isinstance(target, list) else []
        return target
    if not isinstance(target, dict):
        return target

    merged: Dict[str, Any] = dict(target)
    for key, template_value in template.items():
        if key not in merged:
            if isinstance(template_value, (dict, list)):
                merged[key] = _placeholder(template_value)
        elif isinstance(template_value, dict) and isinstance(merged[key], dict):
            merged[key] = merge_with_template(merged[key], template_value)
    return merged


def normalize_array_with_template(items: List[Any], template_index: int) -> List[Any]:
    """Align every object element with the template element's shape.

    The template itself and non-object elements are returned untouched.
    """
    if not isinstance(items, list) or not items:
        return items
    if not 0 <= template_index < len(items):
        return items
    template = items[template_index]
    if not isinstance(template, dict):
        return items
    return [
        item if index == template_index or not isinstance(item, dict) else merge_with_template(item, template)
        for index, item in enumerate(items)
    ]


def analyze_array_differences(items: List[Any]) -> List[Dict[str, Any]]:
    """Per-property coverage across array elements, least common first.

    Nested object properties are reported with dotted names.
    """
    if not isinstance(items, list) or not items:
        return []

    counts: Dict[str, int] = {}

    def _count(obj: Any, prefix: str = "") -> None:
        if not isinstance(obj, dict):
            return
        for key, value in obj.items():
            full_key = f"{prefix}.{key}" if prefix else str(key)
            counts[full_key] = counts.get(full_key, 0) + 1
            if isinstance(value, dict):
                _count(value, full_key)

    for item in items:
        _count(item)

    total = len(items)
    variations = [
        {
            "property": prop,
            "presentIn": present,
            "missingIn": total - present,
            "totalObjects": total,
            "coverage": round(present * 100 / total),
        }
        for prop, present in counts.items()
    ]
    return sorted(variations, key=lambda v: v["coverage"])
