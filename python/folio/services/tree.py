"""Tree resolver.

The hierarchy is stored flat (parent_id on each row). Everything here derives
structure from a flat list: the forest for navigation, ancestor chains for
breadcrumbs, and pre-order subtree listings for publishing.

Traversals are iterative and track visited ids, so corrupted parent links
(cycles, missing parents) never recurse forever:
- the forest surfaces unreachable nodes as dangling roots
- breadcrumbs and subtree walks raise CycleError

The pure helpers accept any node exposing id, parent_id and order_index, so
they serve both live documents and publication snapshots.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from folio.db.models import Document
from folio.errors import ApiErrorCode, CycleError, NotFoundError
from folio.schemas.document import DocumentOut, DocumentTreeNodeOut
from folio.services.spaces import get_space_or_404


@dataclass
class ForestNode:
    """A node with its derived children."""

    node: Any
    dangling: bool = False
    children: list["ForestNode"] = field(default_factory=list)


# =============================================================================
# Pure helpers
# =============================================================================


def sibling_sort_key(node: Any) -> tuple[int, str]:
    """Sibling order: order_index, then id for a stable tie-break."""
    return (node.order_index, str(node.id))


def index_children(nodes: Iterable[Any]) -> dict[UUID | None, list[Any]]:
    """Group nodes by parent_id, each group in sibling order."""
    children: dict[UUID | None, list[Any]] = defaultdict(list)
    for node in nodes:
        children[node.parent_id].append(node)
    for group in children.values():
        group.sort(key=sibling_sort_key)
    return children


def build_forest(nodes: Sequence[Any]) -> list[ForestNode]:
    """Derive the forest from a flat node list.

    Roots are nodes without a parent. Nodes whose parent is not in the list
    are surfaced at the root level flagged dangling. Nodes caught in a parent
    cycle are unreachable from any root; each cycle is broken at its first
    node in sibling order, which is surfaced as a dangling root.
    """
    by_id = {node.id: node for node in nodes}
    children = index_children(nodes)
    visited: set[UUID] = set()
    forest: list[ForestNode] = []

    def attach(root: Any, dangling: bool) -> ForestNode:
        top = ForestNode(root, dangling=dangling)
        visited.add(root.id)
        stack = [top]
        while stack:
            current = stack.pop()
            for child in children.get(current.node.id, []):
                if child.id in visited:
                    continue
                visited.add(child.id)
                child_node = ForestNode(child)
                current.children.append(child_node)
                stack.append(child_node)
        return top

    roots = sorted(
        (n for n in nodes if n.parent_id is None or n.parent_id not in by_id),
        key=sibling_sort_key,
    )
    for root in roots:
        forest.append(attach(root, dangling=root.parent_id is not None))

    for node in sorted(nodes, key=sibling_sort_key):
        if node.id not in visited:
            forest.append(attach(node, dangling=True))

    return forest


def preorder(roots: Sequence[Any], children: dict[UUID | None, list[Any]]) -> list[Any]:
    """List the subtrees under the given roots in pre-order.

    Raises:
        CycleError: If a node is reached twice.
    """
    ordered: list[Any] = []
    visited: set[UUID] = set()
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        if node.id in visited:
            raise CycleError(f"Cycle detected at document {node.id}")
        visited.add(node.id)
        ordered.append(node)
        stack.extend(reversed(children.get(node.id, [])))
    return ordered


def flatten_forest(forest: Sequence[ForestNode]) -> list[Any]:
    """List the nodes of a forest in pre-order."""
    ordered: list[Any] = []
    stack = list(reversed(forest))
    while stack:
        item = stack.pop()
        ordered.append(item.node)
        stack.extend(reversed(item.children))
    return ordered


def ancestor_chain(node: Any, by_id: dict[UUID, Any]) -> list[Any]:
    """Walk parent links from node to its root.

    Returns:
        Nodes ordered root first, ending with node. The walk stops at a
        parent missing from by_id.

    Raises:
        CycleError: If a node is visited twice.
    """
    chain = [node]
    visited = {node.id}
    current = node
    while current.parent_id is not None:
        parent = by_id.get(current.parent_id)
        if parent is None:
            break
        if parent.id in visited:
            raise CycleError(f"Cycle detected at document {parent.id}")
        visited.add(parent.id)
        chain.append(parent)
        current = parent
    chain.reverse()
    return chain


# =============================================================================
# Live tree queries
# =============================================================================


def load_live_documents(db: Session, space_id: UUID, *, refresh: bool = False) -> list[Document]:
    """Load every non-deleted document of a space.

    refresh overwrites instances already in the session with the stored rows.
    """
    stmt = select(Document).where(Document.space_id == space_id, Document.is_deleted.is_(False))
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    return list(db.scalars(stmt))


def _to_tree_out(item: ForestNode) -> DocumentTreeNodeOut:
    doc = item.node
    return DocumentTreeNodeOut(
        id=doc.id,
        parent_id=doc.parent_id,
        title=doc.title,
        slug=doc.slug,
        is_public=doc.is_public,
        order_index=doc.order_index,
        dangling=item.dangling,
        children=[_to_tree_out(child) for child in item.children],
    )


def build_tree(db: Session, space_id: UUID) -> list[DocumentTreeNodeOut]:
    """Derive the live document forest of a space."""
    get_space_or_404(db, space_id)
    return [_to_tree_out(item) for item in build_forest(load_live_documents(db, space_id))]


def subtree_documents(db: Session, root_id: UUID, *, refresh: bool = False) -> list[Document]:
    """List a live document and all its live descendants in pre-order.

    Raises:
        NotFoundError: If the root is missing or deleted.
        CycleError: If the stored parent links form a cycle.
    """
    root = db.get(Document, root_id)
    if root is None or root.is_deleted:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Document not found")
    nodes = load_live_documents(db, root.space_id, refresh=refresh)
    return preorder([root], index_children(nodes))


def subtree_ids(db: Session, root_id: UUID) -> list[UUID]:
    """Ids of a live document and its live descendants in pre-order."""
    return [doc.id for doc in subtree_documents(db, root_id)]


def space_documents_preorder(db: Session, space_id: UUID) -> list[Document]:
    """List every live document of a space in forest pre-order.

    Root order follows build_forest, so dangling nodes come after true roots.
    """
    return flatten_forest(build_forest(load_live_documents(db, space_id)))


def breadcrumbs(db: Session, document_id: UUID) -> list[DocumentOut]:
    """Ancestor chain of a live document, root first, ending with itself.

    Raises:
        NotFoundError: If the document is missing or deleted.
        CycleError: If the stored parent links form a cycle.
    """
    doc = db.get(Document, document_id)
    if doc is None or doc.is_deleted:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Document not found")
    by_id = {node.id: node for node in load_live_documents(db, doc.space_id)}
    return [DocumentOut.model_validate(node) for node in ancestor_chain(doc, by_id)]
