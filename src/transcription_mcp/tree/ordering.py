"""Dense 1..N sibling positions."""

from collections.abc import Iterable
from typing import TypeVar

N = TypeVar("N")


def assign_positions(nodes: Iterable[N]) -> list[N]:
    """Set each node's ``position`` to its 1-based rank in ``nodes``.

    ``nodes`` is the desired final order. The same objects are returned, in
    that order. Duplicate ids are not checked; callers pass each sibling once.
    """
    ordered = list(nodes)
    for index, node in enumerate(ordered, start=1):
        node.position = index  # type: ignore[attr-defined]
    return ordered


def insert_at(siblings: list[N], node: N, index: int | None = None) -> list[N]:
    """Return a re-positioned copy of ``siblings`` with ``node`` inserted.

    ``index`` None (or past the end) appends; negative indexes are clamped to 0.
    """
    if index is None or index > len(siblings):
        index = len(siblings)
    index = max(index, 0)
    return assign_positions([*siblings[:index], node, *siblings[index:]])


def positions_are_dense(nodes: Iterable[object]) -> bool:
    positions = sorted(getattr(n, "position") for n in nodes)
    return positions == list(range(1, len(positions) + 1))
