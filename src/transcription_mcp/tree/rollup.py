"""Completion-status rollup from a container's immediate children.

The rule is the same at both container levels (Section over Blocs,
Document over Sections):

1. A container whose stored status is ``done`` keeps it while every
   immediate child is ``done``. ``done`` is never produced here; it only
   survives.
2. Otherwise the container is ``in-progress`` when any child is
   ``in-progress`` or ``done``, and ``draft`` in every other case
   (including no children at all).
"""

from collections.abc import Iterable, Sequence

from ..models import Status

_ADVANCED = (Status.IN_PROGRESS, Status.DONE)


def rollup_status(current: Status | None, child_statuses: Iterable[Status | None]) -> Status:
    """Return the status a container must hold given its children's statuses."""
    statuses: Sequence[Status | None] = list(child_statuses)
    if current is Status.DONE and all(s is Status.DONE for s in statuses):
        return Status.DONE
    if any(s in _ADVANCED for s in statuses):
        return Status.IN_PROGRESS
    return Status.DRAFT


def needs_update(current: Status | None, child_statuses: Iterable[Status | None]) -> Status | None:
    """Return the new status when the stored one is stale, else None."""
    candidate = rollup_status(current, child_statuses)
    return None if candidate is current else candidate
