"""ORM listeners that keep committed movement records append-only."""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..core.exceptions import ImmutableRecordError


def _reject_update(mapper, connection, target) -> None:
    session = object_session(target)
    # before_update also fires for objects whose only change is a collection.
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise ImmutableRecordError(
        f"{type(target).__name__} records cannot be modified once committed",
        entity=mapper.local_table.name,
    )


def _reject_delete(mapper, connection, target) -> None:
    raise ImmutableRecordError(
        f"{type(target).__name__} records cannot be deleted",
        entity=mapper.local_table.name,
    )


def guard_immutable(*models: type) -> None:
    """Refuse ORM UPDATE/DELETE for instances of ``models``."""

    for model in models:
        if event.contains(model, "before_update", _reject_update):
            continue
        event.listen(model, "before_update", _reject_update)
        event.listen(model, "before_delete", _reject_delete)
