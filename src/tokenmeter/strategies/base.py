from typing import Any, Mapping, Protocol, Sequence

from tokenmeter.models import UsageData

_SCALARS = (str, bytes, bytearray, memoryview, int, float, complex, bool)
_SEQUENCES = (list, tuple, set, frozenset)


class ExtractionStrategy(Protocol):
    """
    ExtractionStrategy recognizes one provider's response shape and
    turns it into UsageData.

    can_handle must be a pure structural check that never raises.
    extract must return None whenever can_handle would be False for
    the same input, and otherwise always return UsageData, even when
    some quantities are missing.
    """

    provider: "str"

    def can_handle(self, method_path: "Sequence[str]", result: "Any") -> "bool": ...

    def extract(
        self,
        method_path: "Sequence[str]",
        result: "Any",
        args: "Sequence[Any]",
        kwargs: "Mapping[str, Any]",
    ) -> "UsageData | None": ...


def is_object(value: "Any") -> "bool":
    """
    True for mappings and attribute-bearing objects, False for None,
    scalars and plain sequences.
    """
    return value is not None and not isinstance(value, _SCALARS + _SEQUENCES)


def has_field(obj: "Any", name: "str") -> "bool":
    if isinstance(obj, Mapping):
        return name in obj
    if not is_object(obj):
        return False
    try:
        return hasattr(obj, name)
    except Exception:
        return False


def get_field(obj: "Any", *names: "str") -> "Any":
    """
    returns the first present field among `names`, reading dict keys
    for mappings and attributes for SDK model objects.
    """
    if isinstance(obj, Mapping):
        for name in names:
            if name in obj:
                return obj[name]
        return None

    if not is_object(obj):
        return None

    for name in names:
        try:
            return getattr(obj, name)
        except AttributeError:
            continue
    return None


def as_number(value: "Any") -> "int | float | None":
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def as_str(value: "Any") -> "str | None":
    if isinstance(value, str) and value:
        return value
    return None


def request_param(
    args: "Sequence[Any]", kwargs: "Mapping[str, Any]", *names: "str"
) -> "Any":
    """
    reads a request parameter from keyword arguments first, then from
    the first positional argument when that is a params object.
    """
    for name in names:
        if name in kwargs and kwargs[name] is not None:
            return kwargs[name]
    if args:
        return get_field(args[0], *names)
    return None


def compact(values: "Mapping[str, Any]") -> "dict[str, Any]":
    """
    drops None values from a metadata dict.
    """
    return {key: value for key, value in values.items() if value is not None}
