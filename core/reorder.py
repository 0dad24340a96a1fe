# core/reorder.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from core.cache import FILTER_ALL, normalize_filter
from core.models.blog import BlogSummary
from core.operations import OrderUpdate
from core.sync_engine import DeleteResult, SyncEngine
from utils.api import ApiError

logger = logging.getLogger(__name__)

STATUS_UNCHANGED = "unchanged"
STATUS_SAVED = "saved"
STATUS_QUEUED = "queued"
STATUS_REVERTED = "reverted"


@dataclass
class ReorderResult:
    """
    Outcome of a drag-and-drop reorder.

    status:  unchanged | saved | queued | reverted
    blogs:   the in-memory list after the operation
    updates: the {id, order} batch that was sent or queued (empty if unchanged)
    error:   server error message when status is "reverted"
    """

    status: str
    blogs: List[BlogSummary]
    updates: List[OrderUpdate] = field(default_factory=list)
    error: Optional[str] = None


def sort_by_order(blogs: List[BlogSummary]) -> List[BlogSummary]:
    """Stable sort on `order`; posts without one sort as 0."""
    return sorted(blogs, key=lambda blog: blog.order if blog.order is not None else 0)


def reorder_blogs(blogs: List[BlogSummary], source: int, destination: Optional[int]) -> List[BlogSummary]:
    """
    Move one post from `source` to `destination` and renumber every post.

    Returns a new list of copies whose `order` equals their index (0..N-1).
    A drop outside the list (destination None) or onto the same index
    returns copies with order values untouched.
    """
    items = [blog.copy() for blog in blogs]
    if destination is None or destination == source:
        return items

    size = len(items)
    if not 0 <= source < size:
        raise IndexError(f"source index {source} out of range for {size} posts")
    if not 0 <= destination < size:
        raise IndexError(f"destination index {destination} out of range for {size} posts")

    moved = items.pop(source)
    items.insert(destination, moved)
    for index, blog in enumerate(items):
        blog.order = index
    return items


def order_payload(blogs: List[BlogSummary]) -> List[OrderUpdate]:
    return [OrderUpdate(id=blog.id, order=blog.order) for blog in blogs]


class ReorderCoordinator:
    """
    The ordered list of posts a view is showing, and the operations on it.

    Reorders are applied to `self.blogs` immediately; if the server then
    rejects the batch the list is thrown away and fetched again.
    """

    def __init__(self, engine: SyncEngine, filter_name: str = FILTER_ALL):
        self.engine = engine
        self.filter_name = normalize_filter(filter_name)
        self.blogs: List[BlogSummary] = []

    def load(self, filter_name: Optional[str] = None) -> List[BlogSummary]:
        if filter_name is not None:
            self.filter_name = normalize_filter(filter_name)
        self.blogs = sort_by_order(self.engine.fetch_collection(self.filter_name))
        return self.blogs

    def reorder(self, source: int, destination: Optional[int]) -> ReorderResult:
        if destination is None or destination == source:
            logger.info("Reorder is a no-op (source=%s, destination=%s).", source, destination)
            return ReorderResult(status=STATUS_UNCHANGED, blogs=self.blogs)

        reordered = reorder_blogs(self.blogs, source, destination)
        self.blogs = reordered  # optimistic
        updates = order_payload(reordered)

        try:
            queued = self.engine.update_order(updates)
        except ApiError as e:
            logger.error("Saving new order failed (%s); reverting to server order.", e)
            self.load()
            return ReorderResult(status=STATUS_REVERTED, blogs=self.blogs, updates=updates, error=str(e))

        status = STATUS_QUEUED if queued else STATUS_SAVED
        logger.info("Moved post %d -> %d (%s).", source, destination, status)
        return ReorderResult(status=status, blogs=self.blogs, updates=updates)

    def remove(self, blog_id: str) -> DeleteResult:
        """Delete through the engine and drop the post from the in-memory list, if present."""
        result = self.engine.delete(blog_id)
        self.blogs = [blog for blog in self.blogs if blog.id != blog_id]
        return result
