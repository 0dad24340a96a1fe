# core/cache.py
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from core.models.blog import BlogSummary, blogs_from_list, blogs_to_list
from utils.storage import LocalStore, StorageResult

logger = logging.getLogger(__name__)

CACHE_KEY = "offlineBlogs"

FILTER_ALL = "all"
FILTER_DRAFTS = "drafts"
FILTER_PUBLISHED = "published"

# The same predicates the API applies through its isDraft query parameter.
_FILTERS: Dict[str, Callable[[BlogSummary], bool]] = {
    FILTER_ALL: lambda blog: True,
    FILTER_DRAFTS: lambda blog: blog.is_draft is True,
    FILTER_PUBLISHED: lambda blog: blog.is_draft is False,
}


def normalize_filter(name: Optional[str]) -> str:
    """Map '', None and 'all' to FILTER_ALL; reject anything we can't apply."""
    key = (name or FILTER_ALL).strip().lower()
    if key not in _FILTERS:
        raise ValueError(f"Unknown blog filter: {name!r} (expected one of {sorted(_FILTERS)})")
    return key


def filter_predicate(name: Optional[str]) -> Callable[[BlogSummary], bool]:
    return _FILTERS[normalize_filter(name)]


class LocalCache:
    """
    Last known-good snapshot of every blog, for reads while offline.

    The whole collection lives under one key and is rewritten in full on each
    save. Caching is best-effort: a failed save or an unreadable snapshot never
    raises, it just leaves `last_result.ok` False.
    """

    def __init__(self, store: LocalStore, key: str = CACHE_KEY):
        self.store = store
        self.key = key
        self.last_result = StorageResult(ok=True, key=key)

    def save(self, blogs: List[BlogSummary]) -> StorageResult:
        self.last_result = self.store.set(self.key, blogs_to_list(blogs))
        if self.last_result.ok:
            logger.debug("Cached %d blogs under %s", len(blogs), self.key)
        return self.last_result

    def load(self, filter_name: Optional[str] = FILTER_ALL) -> List[BlogSummary]:
        predicate = filter_predicate(filter_name)
        raw, self.last_result = self.store.get(self.key, default=[])
        try:
            blogs = blogs_from_list(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Cached blog snapshot is unreadable, ignoring it: %s", e)
            self.last_result = StorageResult(ok=False, key=self.key, error=f"decode failed: {e}")
            return []
        return [blog for blog in blogs if predicate(blog)]

    def find(self, blog_id: str) -> Optional[BlogSummary]:
        for blog in self.load(FILTER_ALL):
            if blog.id == blog_id:
                return blog
        return None
