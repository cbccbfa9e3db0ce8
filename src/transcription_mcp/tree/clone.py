"""Deep subtree duplication with fresh identifiers."""

from collections.abc import Callable

from ..models import Bloc, Status
from .ordering import assign_positions

COPY_SUFFIX = " (copy)"


def clone_subtree(node, remap_id: Callable[[str], str], parent_id: str | None = None):
    """Return a deep copy of ``node`` and all its descendants.

    Every cloned node gets ``remap_id(old_id)`` as id, status ``draft`` and,
    for titled nodes, the copy suffix. Children point at their cloned parent
    and are re-positioned densely. Annotations are not cloned: they belong to
    the original Blocs.

    Args:
        node: Document, Section or Bloc to copy.
        remap_id: maps an original id to the id of its clone; must mint a
            never-used id for each call.
        parent_id: parent pointer for the clone (defaults to the original's).
    """
    updates: dict = {
        "id": remap_id(node.id),
        "status": Status.DRAFT,
    }
    if hasattr(node, "title"):
        updates["title"] = f"{node.title}{COPY_SUFFIX}"
    if isinstance(node, Bloc):
        updates["annotations"] = []

    clone = node.model_copy(update=updates)
    clone.set_parent(parent_id if parent_id is not None else node.parent_id)

    if clone.child_field is not None:
        children = [clone_subtree(child, remap_id, clone.id) for child in node.get_children()]
        clone.set_children(assign_positions(children))
    return clone


def fresh_id_mapper(mint: Callable[[], str]) -> Callable[[str], str]:
    """Build a remap function that mints one new id per original id."""
    mapping: dict[str, str] = {}

    def remap(old_id: str) -> str:
        if old_id not in mapping:
            mapping[old_id] = mint()
        return mapping[old_id]

    return remap
