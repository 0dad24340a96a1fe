# core/models/blog.py
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

TEMP_ID_PREFIX = "temp_"

# Wire name -> attribute name for the fields we model explicitly.
_WIRE_FIELDS = {
    "_id": "id",
    "title": "title",
    "content": "content",
    "images": "images",
    "isDraft": "is_draft",
    "order": "order",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


def is_temporary_id(blog_id: Optional[str]) -> bool:
    """True for ids minted locally for posts created while offline."""
    return bool(blog_id) and str(blog_id).startswith(TEMP_ID_PREFIX)


@dataclass
class BlogSummary:
    """
    One blog post as known to the client.

    Attribute names are snake_case; `to_dict()` / `from_dict()` translate to the
    server's JSON shape (`_id`, `isDraft`, `createdAt`, ...). Fields the server
    sends that we don't model are kept in `extra` so they survive a round-trip
    through the local cache.

    Attributes:
        id:         server id, or a `temp_` token for posts created offline
        title:      post title
        content:    serialized rich text (HTML)
        images:     ordered image paths/URLs
        is_draft:   True until the post is published
        order:      display position (not guaranteed contiguous)
        created_at: ISO-8601 timestamp string, as the server returns it
        updated_at: ISO-8601 timestamp string, as the server returns it
    """

    id: Optional[str] = None
    title: str = ""
    content: str = ""
    images: List[str] = field(default_factory=list)
    is_draft: bool = True
    order: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_temporary(self) -> bool:
        return is_temporary_id(self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlogSummary":
        if isinstance(data, BlogSummary):
            return data.copy()
        if not isinstance(data, dict):
            raise TypeError(f"Expected a blog dict, got {type(data).__name__}")

        raw_id = data.get("_id", data.get("id"))
        order = data.get("order")
        try:
            order = int(order) if order is not None else 0
        except (TypeError, ValueError):
            order = 0

        images = data.get("images") or []
        if not isinstance(images, list):
            images = [images]

        extra = {k: copy.deepcopy(v) for k, v in data.items() if k not in _WIRE_FIELDS and k != "id"}

        return cls(
            id=str(raw_id) if raw_id is not None else None,
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
            images=[str(i) for i in images],
            is_draft=bool(data.get("isDraft", True)),
            order=order,
            created_at=_as_timestamp(data.get("createdAt")),
            updated_at=_as_timestamp(data.get("updatedAt")),
            extra=extra,
        )

    def to_dict(self, include_id: bool = True) -> Dict[str, Any]:
        """JSON-serializable dict in the server's wire shape."""
        payload: Dict[str, Any] = dict(copy.deepcopy(self.extra))
        if include_id and self.id is not None:
            payload["_id"] = self.id
        payload.update(
            {
                "title": self.title,
                "content": self.content,
                "images": list(self.images),
                "isDraft": self.is_draft,
                "order": self.order,
            }
        )
        if self.created_at is not None:
            payload["createdAt"] = self.created_at
        if self.updated_at is not None:
            payload["updatedAt"] = self.updated_at
        return payload

    def merged(self, fields: Dict[str, Any]) -> "BlogSummary":
        """Return a copy with wire-shaped `fields` applied over this post."""
        base = self.to_dict()
        base.update(fields)
        if self.id is not None:
            base["_id"] = self.id
        return BlogSummary.from_dict(base)

    def copy(self) -> "BlogSummary":
        return copy.deepcopy(self)


def _as_timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    # Older cache files may hold epoch millis rather than ISO strings.
    return str(value)


def blogs_from_list(items: Any) -> List[BlogSummary]:
    """Parse a JSON array of blogs, skipping anything that isn't an object."""
    if not isinstance(items, list):
        return []
    return [BlogSummary.from_dict(item) for item in items if isinstance(item, dict)]


def blogs_to_list(blogs: List[BlogSummary]) -> List[Dict[str, Any]]:
    return [blog.to_dict() for blog in blogs]
