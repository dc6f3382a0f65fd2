"""
Series Resolver (``review_modules.events.series``).

Responsibility
--------------
Turn an event action's scope into the concrete set of request ids the
orchestrator must transition as one unit.

* ``single`` -> the target alone.
* ``all``    -> the series root (the target's parent, or the target when
  it has none) plus every record whose ``parent_event_id`` is the root.

Invariants enforced
-------------------
* ``all`` requires ``is_recurring`` on the target.
* Series are two levels deep.  Stored data that violates this (a root
  that has its own parent, a missing or non-recurring root or child, a
  record listed as its own child) fails InvalidScope instead of being trusted.
* The returned ids are unique and sorted, which is also the order the
  store locks them in.
"""

from __future__ import annotations

from typing import Protocol, Sequence
from uuid import UUID

from review_kernel.domain.values import ReviewScope
from review_kernel.exceptions import InvalidScopeError, RequestNotFoundError
from review_kernel.logging_config import get_logger

logger = get_logger("modules.events.series")


class SeriesMember(Protocol):
    id: UUID
    is_recurring: bool
    parent_event_id: UUID | None


class SeriesLookup(Protocol):
    """Organization-scoped event lookups the resolver needs."""

    def get_event(self, event_id: UUID) -> SeriesMember: ...

    def find_children(self, parent_id: UUID) -> Sequence[SeriesMember]: ...


class SeriesResolver:
    """Resolves ``ReviewScope`` for one event request."""

    def __init__(self, lookup: SeriesLookup):
        self._lookup = lookup

    def resolve(self, target: SeriesMember, scope: ReviewScope | str) -> tuple[UUID, ...]:
        scope = ReviewScope(scope)
        if scope is ReviewScope.SINGLE:
            return (target.id,)

        if not target.is_recurring:
            raise InvalidScopeError(
                str(target.id), scope.value, "request is not part of a recurring series",
            )

        root = self._root_of(target)
        children = self._lookup.find_children(root.id)

        ids = {root.id}
        for child in children:
            if child.id == root.id:
                raise InvalidScopeError(
                    str(target.id), scope.value, f"record {root.id} is listed as its own child",
                )
            if not child.is_recurring:
                raise InvalidScopeError(
                    str(target.id), scope.value, f"series member {child.id} is not recurring",
                )
            ids.add(child.id)

        resolved = tuple(sorted(ids, key=str))
        logger.info(
            "series_resolved",
            extra={
                "target_id": str(target.id),
                "root_id": str(root.id),
                "member_count": len(resolved),
            },
        )
        return resolved

    def _root_of(self, target: SeriesMember) -> SeriesMember:
        if target.parent_event_id is None:
            return target

        try:
            root = self._lookup.get_event(target.parent_event_id)
        except RequestNotFoundError:
            raise InvalidScopeError(
                str(target.id), ReviewScope.ALL.value,
                f"series root {target.parent_event_id} not found",
            ) from None

        if root.parent_event_id is not None:
            logger.warning(
                "series_depth_violation",
                extra={"target_id": str(target.id), "root_id": str(root.id)},
            )
            raise InvalidScopeError(
                str(target.id), ReviewScope.ALL.value,
                f"series root {root.id} has its own parent; series depth is one",
            )
        if not root.is_recurring:
            raise InvalidScopeError(
                str(target.id), ReviewScope.ALL.value,
                f"series root {root.id} is not recurring",
            )
        return root
