"""Named parameters and per-type column name discovery.

Records handed to the CRUD helpers come in two shapes: a named-parameter
bag (``Parameters`` or any mapping), whose names are read directly, or an
arbitrary object whose public fields are discovered once per type and
cached for the life of the process.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
import threading
import typing
from collections.abc import Iterator, Mapping
from typing import Any

logger = logging.getLogger(__name__)

# Process-wide, append-only. Never invalidated.
_param_name_cache: dict[type, tuple[str, ...]] = {}
_param_name_lock = threading.Lock()


class Parameters:
    """An ordered bag of named SQL parameters.

    Seeded from a mapping, another Parameters, or any record object (whose
    field names come from names_for). Values added later replace earlier
    ones with the same name.
    """

    def __init__(self, template: Any = None) -> None:
        self._values: dict[str, Any] = {}
        if template is not None:
            self._values.update(as_mapping(template))

    def add(self, name: str, value: Any) -> None:
        self._values[name] = value

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(self._values)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Parameters({self._values!r})"


def _public(names: Any) -> list[str]:
    return [n for n in names if not n.startswith("_")]


def _is_class_var(annotation: Any) -> bool:
    if annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar:
        return True
    # Unresolvable string annotations are matched by spelling.
    return isinstance(annotation, str) and annotation.split("[", 1)[0].strip() in (
        "ClassVar",
        "typing.ClassVar",
    )


def _instance_annotations(klass: type) -> list[str]:
    """Names annotated on klass itself, minus ClassVar declarations."""
    own = inspect.get_annotations(klass)
    try:
        hints = typing.get_type_hints(klass)
    except Exception:  # noqa: BLE001
        hints = {}
    return [name for name, raw in own.items() if not _is_class_var(hints.get(name, raw))]


def _discover_names(record: Any) -> tuple[str, ...]:
    """Enumerate the public field names of record in declaration order."""
    cls = type(record)

    if dataclasses.is_dataclass(cls):
        return tuple(_public(f.name for f in dataclasses.fields(cls)))

    fields = getattr(cls, "_fields", None)
    if isinstance(record, tuple) and fields is not None:
        return tuple(_public(fields))

    slots: list[str] = []
    for klass in reversed(cls.__mro__):
        declared = vars(klass).get("__slots__", ())
        if isinstance(declared, str):
            declared = (declared,)
        slots.extend(n for n in declared if n not in ("__dict__", "__weakref__"))
    if slots:
        return tuple(dict.fromkeys(_public(slots)))

    annotated: list[str] = []
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        annotated.extend(_instance_annotations(klass))
    if annotated:
        return tuple(dict.fromkeys(_public(annotated)))

    return tuple(_public(getattr(record, "__dict__", {})))


def names_for(record: Any) -> tuple[str, ...]:
    """Return the ordered column/parameter names for record.

    Parameter bags and mappings report their own keys and are not cached.
    For any other object the names are computed once per runtime type and
    reused afterwards; concurrent first use may compute them twice, the
    last write wins.

    Args:
        record: A Parameters bag, a mapping, or a record object.

    Returns:
        Tuple of field names in declaration order.

    Logs:
        - DEBUG: "Cached parameter names for {type}: {names}" on a cache miss.
    """
    if isinstance(record, Parameters):
        return record.parameter_names
    if isinstance(record, Mapping):
        return tuple(record)

    cls = type(record)
    names = _param_name_cache.get(cls)
    if names is None:
        names = _discover_names(record)
        with _param_name_lock:
            _param_name_cache[cls] = names
        logger.debug("Cached parameter names for %s: %s", cls.__qualname__, names)
    return names


def as_mapping(params: Any) -> dict[str, Any]:
    """Normalise any accepted parameter value to a plain dict.

    Args:
        params: None, a Parameters bag, a mapping, or a record object.

    Returns:
        A new dict of parameter name to value.
    """
    if params is None:
        return {}
    if isinstance(params, Parameters):
        return params.as_dict()
    if isinstance(params, Mapping):
        return dict(params)
    # A declared field the instance never set binds as NULL.
    return {name: getattr(params, name, None) for name in names_for(params)}


def clear_cache() -> None:
    """Drop every cached entry. Intended for tests only."""
    with _param_name_lock:
        _param_name_cache.clear()
