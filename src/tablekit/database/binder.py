"""Wire annotated Table slots on Database subclasses.

Given::

    class AppDb(Database):
        Users: Table[User]
        Posts: Table[Post]

``bind_tables`` assigns ``Table(db, "Users", entity_type=User)`` and friends
to a fresh instance. The slot scan (MRO walk, annotation resolution,
constructor checks) happens once per Database class. The resulting
constructor is cached and reused for every later instance.
"""

from __future__ import annotations

import inspect
import logging
import threading
import typing
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import TableBindingError
from .tables import entity_type_of

if TYPE_CHECKING:
    from .container import Database

logger = logging.getLogger(__name__)

TableConstructor = Callable[["Database"], None]

# Process-wide, one entry per Database class. Never invalidated.
_constructor_cache: dict[type, TableConstructor] = {}
_constructor_lock = threading.Lock()


@dataclass(frozen=True)
class TableSlot:
    """One declared accessor slot."""

    name: str
    accessor_type: type
    entity_type: type
    declared_on: type
    # False for accessors built as accessor(database, likely_table_name).
    takes_entity_type: bool = True
    # The annotation itself, e.g. ``Table[User]``; calling it records the
    # entity type on a two-argument accessor.
    factory: Any = None


def _binds(signature: inspect.Signature, *args: Any, **kwargs: Any) -> bool:
    try:
        signature.bind(*args, **kwargs)
    except TypeError:
        return False
    return True


def _constructor_shape(accessor_type: type) -> bool | None:
    """Return whether the accessor takes ``entity_type=``, or None if unusable.

    Accessors must accept ``(database, likely_table_name)``; the
    ``entity_type`` keyword is optional.
    """
    try:
        signature = inspect.signature(accessor_type)
    except (TypeError, ValueError):
        return None
    if not _binds(signature, None, ""):
        return None
    return _binds(signature, None, "", entity_type=object)


def discover_table_slots(database_type: type, table_type: type) -> list[TableSlot]:
    """Find every annotated slot whose type derives from table_type.

    Slots are collected from every class in the MRO, base classes first; a
    subclass redeclaring a slot name replaces the base declaration.

    Args:
        database_type: Database subclass to scan.
        table_type: Accessor base class (usually Table).

    Returns:
        List of TableSlot in declaration order.

    Raises:
        TableBindingError: If an annotation cannot be resolved, a slot has
            no determinable entity type, or its accessor class cannot be
            built as ``accessor(database, likely_table_name)``.
    """
    try:
        hints = typing.get_type_hints(database_type)
    except Exception as exc:
        raise TableBindingError(
            f"Cannot resolve annotations of {database_type.__qualname__}: {exc}"
        ) from exc

    slots: dict[str, TableSlot] = {}
    for klass in reversed(database_type.__mro__):
        for name in inspect.get_annotations(klass):
            hint = hints.get(name)
            if typing.get_origin(hint) is typing.ClassVar:
                continue
            origin = typing.get_origin(hint) or hint
            if not (isinstance(origin, type) and issubclass(origin, table_type)):
                continue

            args = typing.get_args(hint)
            entity = args[0] if args else entity_type_of(origin)
            if not isinstance(entity, type):
                raise TableBindingError(
                    f"Slot {klass.__qualname__}.{name} has no concrete entity type"
                )
            takes_entity_type = _constructor_shape(origin)
            if takes_entity_type is None:
                raise TableBindingError(
                    f"Slot {klass.__qualname__}.{name}: {origin.__qualname__} must accept "
                    "(database, likely_table_name)"
                )
            slots.pop(name, None)
            slots[name] = TableSlot(name, origin, entity, klass, takes_entity_type, hint)
    return list(slots.values())


def build_table_constructor(database_type: type, table_type: type) -> TableConstructor:
    """Return a procedure that wires every slot of database_type on an instance.

    Logs:
        - DEBUG: "Built table constructor for {type}: {slots}".
    """
    slots = discover_table_slots(database_type, table_type)
    plan = tuple(slots)

    def construct(database: Any) -> None:
        for slot in plan:
            if slot.takes_entity_type:
                accessor = slot.accessor_type(database, slot.name, entity_type=slot.entity_type)
            else:
                accessor = (slot.factory or slot.accessor_type)(database, slot.name)
            setattr(database, slot.name, accessor)

    logger.debug(
        "Built table constructor for %s: %s",
        database_type.__qualname__,
        [s.name for s in slots],
    )
    return construct


def bind_tables(database: Database) -> None:
    """Populate every Table slot on database, building the constructor once per class."""
    database_type = type(database)
    constructor = _constructor_cache.get(database_type)
    if constructor is None:
        constructor = build_table_constructor(database_type, database_type.table_type)
        with _constructor_lock:
            constructor = _constructor_cache.setdefault(database_type, constructor)
    constructor(database)


def clear_cache() -> None:
    """Drop every cached constructor. Intended for tests only."""
    with _constructor_lock:
        _constructor_cache.clear()
