"""Grouping registry used to build the tree index."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Dict, Sequence

from .errors import ConfigurationError
from .text import Messages

PathTuple = Sequence[Any]
GroupingFunc = Callable[[Mapping[str, Any]], Sequence[PathTuple]]


def _no_grouping(record: Mapping[str, Any]) -> list[PathTuple]:
    return []


_GROUPINGS: Dict[str, GroupingFunc] = {
    "none": _no_grouping,
}


def register_grouping(name: str, func: GroupingFunc, *, replace: bool = False) -> GroupingFunc:
    """Register *func* under *name* so configs can refer to it."""

    clean_name = (name or "").strip()
    if not clean_name or not callable(func):
        raise ConfigurationError(Messages.ERROR_GROUPING_INVALID.format(value=name))
    if clean_name in _GROUPINGS and not replace:
        raise ConfigurationError(Messages.ERROR_GROUPING_DUPLICATE.format(name=clean_name))
    _GROUPINGS[clean_name] = func
    return func


def unregister_grouping(name: str) -> None:
    _GROUPINGS.pop(name, None)


def get_grouping(name: str) -> GroupingFunc:
    try:
        return _GROUPINGS[name]
    except KeyError as exc:
        allowed = ", ".join(available_groupings())
        raise ConfigurationError(
            Messages.ERROR_GROUPING_UNKNOWN.format(name=name, allowed=allowed)
        ) from exc


def available_groupings() -> list[str]:
    return sorted(_GROUPINGS.keys())


def lookup_attribute(record: Mapping[str, Any], name: str) -> Any:
    """Read *name* from *record*; dotted names descend into nested mappings."""

    if name in record:
        return record[name]
    value: Any = record
    for part in name.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return None
        value = value[part]
    return value


def attribute_paths(*paths: Sequence[str]) -> GroupingFunc:
    """Build a grouping that reads one path tuple per attribute-name sequence.

    ``attribute_paths(("country", "city"), ("type",))`` files a record under
    ``country/city`` and, independently, under ``type``.
    """

    frozen: list[tuple[str, ...]] = []
    for path in paths:
        if isinstance(path, str) or not path:
            raise ConfigurationError(Messages.ERROR_GROUPING_INVALID.format(value=path))
        frozen.append(tuple(str(part) for part in path))

    def grouping(record: Mapping[str, Any]) -> list[PathTuple]:
        return [[lookup_attribute(record, name) for name in path] for path in frozen]

    return grouping


def combine_groupings(funcs: Sequence[GroupingFunc]) -> GroupingFunc:
    if len(funcs) == 1:
        return funcs[0]

    def grouping(record: Mapping[str, Any]) -> list[PathTuple]:
        result: list[PathTuple] = []
        for func in funcs:
            result.extend(func(record) or [])
        return result

    return grouping


def resolve_tree(spec: object) -> GroupingFunc:
    """Turn a tree definition into a single grouping function.

    Accepts a callable, a registered grouping name, or a sequence whose
    entries are grouping names (``str``) or attribute paths (lists of names).
    """

    if spec is None:
        return _no_grouping
    if callable(spec):
        return spec
    if isinstance(spec, str):
        return get_grouping(spec)
    if not isinstance(spec, (list, tuple)):
        raise ConfigurationError(Messages.ERROR_GROUPING_INVALID.format(value=spec))
    if not spec:
        return _no_grouping
    funcs: list[GroupingFunc] = []
    pending_paths: list[Sequence[str]] = []
    for entry in spec:
        if isinstance(entry, str):
            if pending_paths:
                funcs.append(attribute_paths(*pending_paths))
                pending_paths = []
            funcs.append(get_grouping(entry))
        elif callable(entry):
            if pending_paths:
                funcs.append(attribute_paths(*pending_paths))
                pending_paths = []
            funcs.append(entry)
        elif isinstance(entry, (list, tuple)):
            pending_paths.append(entry)
        else:
            raise ConfigurationError(Messages.ERROR_GROUPING_INVALID.format(value=entry))
    if pending_paths:
        funcs.append(attribute_paths(*pending_paths))
    return combine_groupings(funcs)
