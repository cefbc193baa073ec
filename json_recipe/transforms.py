"""Named transforms and conditions the recipe engine looks up at replay time.

A ``Transform`` maps a value (plus positional params) to a new value, or to
a structural result. When it also carries ``condition`` it can gate other
operations through a condition stack.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .structural import structural_result


@dataclass(frozen=True)
class ParamSpec:
    name: str
    label: str = ""
    type: str = "string"
    default: Any = None


@dataclass(frozen=True)
class Transform:
    name: str
    fn: Callable[..., Any]
    condition: Optional[Callable[..., bool]] = None
    params: List[ParamSpec] = field(default_factory=list)
    applicable_to: List[str] = field(default_factory=list)
    structural: bool = False

    @property
    def is_condition(self) -> bool:
        return self.condition is not None

    def default_params(self) -> List[Any]:
        return [p.default for p in self.params]

    def applies_to(self, value_kind: str) -> bool:
        return not self.applicable_to or value_kind in self.applicable_to


def value_type(value: Any) -> str:
    """JSON kind of a value: string, number, boolean, object, array, null."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    return "unknown"


class TransformRegistry(Mapping[str, Transform]):
    """Name -> Transform table; later registrations replace earlier ones."""

    def __init__(self, transforms: Iterable[Transform] = ()) -> None:
        self._transforms: Dict[str, Transform] = {}
        self.add(*transforms)

    def add(self, *transforms: Transform) -> None:
        for transform in transforms:
            self._transforms[transform.name] = transform

    def __getitem__(self, name: str) -> Transform:
        return self._transforms[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._transforms)

    def __len__(self) -> int:
        return len(self._transforms)

    def names(self) -> List[str]:
        return list(self._transforms)

    def for_type(self, value_kind: str, conditions: bool = False) -> List[str]:
        return [
            t.name
            for t in self._transforms.values()
            if t.applies_to(value_kind) and t.is_condition == conditions
        ]

    def conditions(self) -> List[str]:
        return [t.name for t in self._transforms.values() if t.is_condition]

    def default_params(self, name: str) -> List[Any]:
        transform = self._transforms.get(name)
        return transform.default_params() if transform else []


TransformSource = Union[TransformRegistry, Mapping[str, Transform], Iterable[Transform], None]


def as_registry(transforms: TransformSource) -> TransformRegistry:
    if isinstance(transforms, TransformRegistry):
        return transforms
    if transforms is None:
        return TransformRegistry()
    if isinstance(transforms, Mapping):
        return TransformRegistry(transforms.values())
    return TransformRegistry(transforms)


# --- built-ins ---


def _str_only(fn: Callable[..., Any]) -> Callable[..., Any]:
    def wrapper(value: Any, *params: Any) -> Any:
        return fn(value, *params) if isinstance(value, str) else value
    return wrapper


def _num_only(fn: Callable[..., Any]) -> Callable[..., Any]:
    def wrapper(value: Any, *params: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return value
        return fn(value, *params)
    return wrapper


def _to_number(value: str) -> Any:
    try:
        number = float(value.strip())
    except ValueError:
        return value
    return int(number) if number.is_integer() and "." not in value else number


def _split(value: Any, delimiter: str = " ", remove_source: bool = True) -> Any:
    if not isinstance(value, str):
        return value
    return structural_result("split", parts=value.split(delimiter or " "), remove_source=bool(remove_source))


def _string_to_object(value: Any, pair_sep: str = ",", kv_sep: str = "=") -> Any:
    """'a=1,b=2' -> fields a and b."""
    if not isinstance(value, str):
        return value
    obj: Dict[str, Any] = {}
    for chunk in value.split(pair_sep or ","):
        if not chunk.strip():
            continue
        k, _, v = chunk.partition(kv_sep or "=")
        obj[k.strip()] = v.strip()
    return structural_result("toObject", obj=obj, remove_source=True)


def _array_to_properties(value: Any) -> Any:
    if not isinstance(value, list):
        return value
    return structural_result("arrayToProperties", obj={str(i): v for i, v in enumerate(value)}, remove_source=True)


def _num(param: Any, fallback: float) -> Any:
    if isinstance(param, bool) or not isinstance(param, (int, float)):
        try:
            return float(param)
        except (TypeError, ValueError):
            return fallback
    return param


def _identity(value: Any, *_params: Any) -> Any:
    return value


def _compare(value: Any, other: Any, op: Callable[[Any, Any], bool]) -> bool:
    try:
        return bool(op(value, other))
    except TypeError:
        return False


def _contains(value: Any, search: Any = "") -> bool:
    if isinstance(value, str):
        return str(search) in value
    return isinstance(value, list) and search in value


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and len(value) == 0)


def default_transforms() -> List[Transform]:
    text = ["string"]
    number = ["number"]
    return [
        Transform("Uppercase", _str_only(lambda v: v.upper()), applicable_to=text),
        Transform("Lowercase", _str_only(lambda v: v.lower()), applicable_to=text),
        Transform("Capitalized", _str_only(lambda v: v[:1].upper() + v[1:].lower()), applicable_to=text),
        Transform("Trim", _str_only(lambda v: v.strip()), applicable_to=text),
        Transform(
            "Replace",
            _str_only(lambda v, s="", r="": v.replace(s, r or "") if s else v),
            params=[ParamSpec("search", "Search"), ParamSpec("replace", "Replace with", default="")],
            applicable_to=text,
        ),
        Transform("Append", _str_only(lambda v, s="": v + str(s or "")), params=[ParamSpec("suffix", "Suffix", default="")],
                  applicable_to=text),
        Transform("Prepend", _str_only(lambda v, p="": str(p or "") + v), params=[ParamSpec("prefix", "Prefix", default="")],
                  applicable_to=text),
        Transform("To Number", _str_only(_to_number), applicable_to=text),
        Transform("Split", _split, params=[ParamSpec("delimiter", "Delimiter", default=" ")], applicable_to=text,
                  structural=True),
        Transform(
            "To Object",
            _string_to_object,
            params=[ParamSpec("pair_sep", "Pair separator", default=","), ParamSpec("kv_sep", "Key/value separator", default="=")],
            applicable_to=text,
            structural=True,
        ),
        Transform("Add", _num_only(lambda v, n=0: v + _num(n, 0)), params=[ParamSpec("amount", "Amount to add", "number", 0)],
                  applicable_to=number),
        Transform("Multiply", _num_only(lambda v, f=1: v * _num(f, 1)),
                  params=[ParamSpec("factor", "Multiplication factor", "number", 1)], applicable_to=number),
        Transform("Round", _num_only(lambda v, d=0: round(v, int(_num(d, 0))) if d else round(v)),
                  params=[ParamSpec("digits", "Decimals", "number", 0)], applicable_to=number),
        Transform("To String", lambda v: v if isinstance(v, str) or v is None else str(v),
                  applicable_to=["number", "boolean"]),
        Transform("Toggle", lambda v: (not v) if isinstance(v, bool) else v, applicable_to=["boolean"]),
        Transform("Join", lambda v, sep=", ": sep.join(str(x) for x in v) if isinstance(v, list) else v,
                  params=[ParamSpec("separator", "Separator", default=", ")], applicable_to=["array"]),
        Transform("To Properties", _array_to_properties, applicable_to=["array"], structural=True),
        # Conditions keep the value and gate later operations.
        Transform("Is True", _identity, condition=lambda v: v is True, applicable_to=["boolean"]),
        Transform("Is False", _identity, condition=lambda v: v is False, applicable_to=["boolean"]),
        Transform("Contains", _identity, condition=_contains,
                  params=[ParamSpec("search", "Contains")], applicable_to=["string", "array"]),
        Transform("Starts With", _identity, condition=lambda v, s="": isinstance(v, str) and v.startswith(str(s)),
                  params=[ParamSpec("prefix", "Prefix")], applicable_to=text),
        Transform("Equals", _identity, condition=lambda v, other=None: v == other,
                  params=[ParamSpec("other", "Value")]),
        Transform("Greater Than", _identity, condition=lambda v, n=0: _compare(v, n, lambda a, b: a > b),
                  params=[ParamSpec("threshold", "Threshold", "number", 0)], applicable_to=number),
        Transform("Less Than", _identity, condition=lambda v, n=0: _compare(v, n, lambda a, b: a < b),
                  params=[ParamSpec("threshold", "Threshold", "number", 0)], applicable_to=number),
        Transform("Is Empty", _identity, condition=_is_empty),
        Transform("Has Property", _identity, condition=lambda v, key="": isinstance(v, dict) and key in v,
                  params=[ParamSpec("key", "Property")], applicable_to=["object"]),
    ]


def default_registry() -> TransformRegistry:
    return TransformRegistry(default_transforms())
