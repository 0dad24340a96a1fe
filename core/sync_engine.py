# core/sync_engine.py
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from core.cache import FILTER_ALL, FILTER_DRAFTS, FILTER_PUBLISHED, LocalCache, filter_predicate, normalize_filter
from core.connectivity import EVENT_ONLINE, ConnectivityMonitor, Subscription
from core.models.blog import TEMP_ID_PREFIX, BlogSummary, blogs_from_list, is_temporary_id
from core.operations import (
    CreateOperation,
    DeleteOperation,
    OrderUpdate,
    QueuedOperation,
    UpdateOperation,
    UpdateOrderOperation,
)
from core.queue import DrainResult, OperationQueue
from utils.api import ApiConnectionError, ApiError, BlogApiClient, OfflineError
from utils.others import now_ms, utc_now_iso
from utils.storage import LocalStore

logger = logging.getLogger(__name__)

ALIASES_KEY = "tempIdAliases"

READ_SOURCE_REMOTE = "remote"
READ_SOURCE_CACHE = "cache"

# Fields the server owns; never sent back in a create/update body.
_SERVER_FIELDS = ("_id", "id", "createdAt", "updatedAt", "__v")

BlogInput = Union[BlogSummary, Dict[str, Any]]


@dataclass
class SaveResult:
    """A saved post and which path it took (`queued` = stored offline, will sync)."""

    blog: BlogSummary
    queued: bool


@dataclass
class DeleteResult:
    id: str
    queued: bool
    message: Optional[str] = None


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{now_ms()}_{uuid4().hex[:6]}"


def _request_body(data: BlogInput) -> Dict[str, Any]:
    if isinstance(data, BlogSummary):
        data = data.to_dict(include_id=False)
    return {k: v for k, v in dict(data).items() if k not in _SERVER_FIELDS}


class SyncEngine:
    """
    Offline-aware gateway to the blog API.

    Reads go to the server first and fall back to the local cache; writes go
    to the server when online and into the operation queue when not. When the
    connectivity monitor reports a transition back online, the queue is
    drained against the server.

    Construct one per process, call `start()` once, and `shutdown()` on exit
    (or use it as a context manager).
    """

    def __init__(
        self,
        api: BlogApiClient,
        cache: LocalCache,
        queue: OperationQueue,
        connectivity: ConnectivityMonitor,
        store: Optional[LocalStore] = None,
        monitor: Optional[object] = None,
    ):
        self.api = api
        self.cache = cache
        self.queue = queue
        self.connectivity = connectivity
        self.store = store or cache.store
        self.monitor = monitor

        self.last_read_source: Optional[str] = None
        self.last_drain: Optional[DrainResult] = None
        self._subscription: Optional[Subscription] = None
        # Held for every load-edit-save of the cache snapshot.
        self._cache_lock = threading.RLock()

    @classmethod
    def from_config(cls, config: Dict[str, Any], monitor: Optional[object] = None) -> "SyncEngine":
        script_cfg = config.get("script", {}) or {}
        conn_cfg = config.get("connectivity", {}) or {}

        data_dir = os.path.abspath(script_cfg.get("data_dir", "./data"))
        on_failure = monitor.record_storage_failure if monitor is not None else None
        store = LocalStore(data_dir, on_failure=on_failure)
        api = BlogApiClient.from_config(config, monitor=monitor)
        connectivity = ConnectivityMonitor(online=bool(conn_cfg.get("start_online", True)), probe=api.ping)

        return cls(
            api=api,
            cache=LocalCache(store),
            queue=OperationQueue(store),
            connectivity=connectivity,
            store=store,
            monitor=monitor,
        )

    # ---------- lifecycle ----------

    def start(self, probe_interval: float = 0) -> None:
        """Register the reconnect handler (once) and optionally start probing."""
        if self._subscription is None:
            self._subscription = self.connectivity.subscribe(EVENT_ONLINE, self._on_online)
            logger.info("SyncEngine started (online=%s, queued=%d).", self.is_online, len(self.queue))
        self.connectivity.start_probe(probe_interval)
        self._report_state()

    def shutdown(self) -> None:
        self.connectivity.stop_probe()
        if self._subscription is not None:
            self.connectivity.unsubscribe(self._subscription)
            self._subscription = None
        self.api.close()
        logger.info("SyncEngine shut down.")

    def __enter__(self) -> "SyncEngine":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    @property
    def is_online(self) -> bool:
        return self.connectivity.is_online

    def _on_online(self) -> None:
        self.sync_queued_operations()

    def _went_unreachable(self, error: Exception) -> None:
        logger.warning("Blog API unreachable (%s); switching to offline mode.", error)
        self.connectivity.set_online(False)
        self._report_state()

    # ---------- reads ----------

    def fetch_collection(self, filter_name: Optional[str] = FILTER_ALL) -> List[BlogSummary]:
        """
        Return the blogs matching `filter_name` ('all', 'drafts', 'published').

        Never raises for transport problems: if the server can't be read the
        cached snapshot is filtered and returned instead. `last_read_source`
        tells which one was used.
        """
        key = normalize_filter(filter_name)
        if self.is_online:
            is_draft = {FILTER_DRAFTS: True, FILTER_PUBLISHED: False}.get(key)
            try:
                blogs = blogs_from_list(self.api.list_blogs(is_draft=is_draft))
            except (ApiError, TypeError, ValueError) as e:
                logger.warning("Remote blog list failed (%s); serving cached copy.", e)
            else:
                self._store_fetched(key, blogs)
                self._record_read(READ_SOURCE_REMOTE)
                return blogs

        blogs = self.cache.load(key)
        self._record_read(READ_SOURCE_CACHE)
        return blogs

    def fetch_blog(self, blog_id: str) -> Optional[BlogSummary]:
        blog_id = self.resolve_id(blog_id)
        if self.is_online and not is_temporary_id(blog_id):
            try:
                blog = BlogSummary.from_dict(self.api.get_blog(blog_id))
            except (ApiError, TypeError, ValueError) as e:
                logger.warning("Remote fetch of blog %s failed (%s); checking cache.", blog_id, e)
            else:
                self._record_read(READ_SOURCE_REMOTE)
                return blog

        self._record_read(READ_SOURCE_CACHE)
        return self.cache.find(blog_id)

    def _store_fetched(self, key: str, blogs: List[BlogSummary]) -> None:
        if key == FILTER_ALL:
            with self._cache_lock:
                self.cache.save(blogs)
            return
        # Keep the snapshot a superset: swap out only the entries this filter covers.
        matches = filter_predicate(key)
        with self._cache_lock:
            others = [b for b in self.cache.load(FILTER_ALL) if not matches(b)]
            self.cache.save(others + blogs)

    # ---------- writes ----------

    def save(self, data: BlogInput, blog_id: Optional[str] = None) -> SaveResult:
        """
        Create (no id) or update (`blog_id`, or the id carried by a BlogSummary).

        Online: the server's response is returned and cached. Offline, or when
        the server turns out to be unreachable: the change is queued, the
        cached snapshot is updated, and a locally built post is returned.
        Server-side rejections (4xx/5xx) propagate as ApiResponseError.
        """
        if blog_id is None and isinstance(data, BlogSummary):
            blog_id = data.id
        if blog_id:
            blog_id = self.resolve_id(blog_id)
        body = _request_body(data)

        if self.is_online and not is_temporary_id(blog_id):
            try:
                raw = self.api.update_blog(blog_id, body) if blog_id else self.api.create_blog(body)
            except ApiConnectionError as e:
                self._went_unreachable(e)
            else:
                blog = BlogSummary.from_dict(raw)
                self._cache_upsert(blog)
                return SaveResult(blog=blog, queued=False)

        if blog_id:
            return self._save_offline_update(blog_id, body)
        return self._save_offline_create(body)

    def _save_offline_create(self, body: Dict[str, Any]) -> SaveResult:
        temp_id = new_temp_id()
        stamp = utc_now_iso()
        blog = BlogSummary.from_dict({**body, "_id": temp_id, "createdAt": stamp, "updatedAt": stamp})
        # The cached entry must exist before a drain can replay its create.
        self._cache_upsert(blog)
        self._enqueue(CreateOperation(data={**body, "_id": temp_id}))
        logger.info("Saved new blog offline as %s.", temp_id)
        return SaveResult(blog=blog, queued=True)

    def _save_offline_update(self, blog_id: str, body: Dict[str, Any]) -> SaveResult:
        self._enqueue(UpdateOperation(id=blog_id, data=body))

        changes = {**body, "updatedAt": utc_now_iso()}
        with self._cache_lock:
            cached = self.cache.find(blog_id)
            if cached is not None:
                blog = cached.merged(changes)
            else:
                blog = BlogSummary.from_dict({**changes, "_id": blog_id})
            self._cache_upsert(blog)
        logger.info("Saved update to blog %s offline.", blog_id)
        return SaveResult(blog=blog, queued=True)

    def delete(self, blog_id: str) -> DeleteResult:
        """Delete a post. The cached copy is removed immediately on either path."""
        blog_id = self.resolve_id(blog_id)
        if self.is_online and not is_temporary_id(blog_id):
            try:
                resp = self.api.delete_blog(blog_id)
            except ApiConnectionError as e:
                self._went_unreachable(e)
            else:
                self._cache_remove(blog_id)
                message = resp.get("message") if isinstance(resp, dict) else None
                return DeleteResult(id=blog_id, queued=False, message=message)

        self._enqueue(DeleteOperation(id=blog_id))
        self._cache_remove(blog_id)
        logger.info("Deleted blog %s offline; will sync when online.", blog_id)
        return DeleteResult(id=blog_id, queued=True)

    def publish(self, blog_id: str) -> SaveResult:
        blog_id = self.resolve_id(blog_id)
        if self.is_online and not is_temporary_id(blog_id):
            try:
                raw = self.api.publish_blog(blog_id)
            except ApiConnectionError as e:
                self._went_unreachable(e)
            else:
                blog = BlogSummary.from_dict(raw)
                self._cache_upsert(blog)
                return SaveResult(blog=blog, queued=False)

        # No offline publish variant: it is an update of isDraft.
        return self._save_offline_update(blog_id, {"isDraft": False})

    def update_order(self, updates: List[OrderUpdate]) -> bool:
        """
        Persist new positions for many posts at once.

        Returns True if the batch was queued (offline) and False if the server
        accepted it. Server rejections propagate as ApiResponseError.
        """
        updates = [OrderUpdate(id=self.resolve_id(u.id), order=u.order) for u in updates]
        if self.is_online:
            try:
                self.api.batch_update_order([u.to_dict() for u in updates])
            except ApiConnectionError as e:
                self._went_unreachable(e)
            else:
                self._cache_apply_orders(updates)
                return False

        self._enqueue(UpdateOrderOperation(updates=updates))
        self._cache_apply_orders(updates)
        return True

    def upload_image(self, file_path: str) -> Dict[str, Any]:
        """Upload one image; returns {imageUrl, imagePath}. Requires connectivity."""
        if not self.is_online:
            raise OfflineError("Image uploads require a connection to the blog server.")
        try:
            return self.api.upload_image(file_path)
        except ApiConnectionError as e:
            self._went_unreachable(e)
            raise OfflineError("Image uploads require a connection to the blog server.") from e

    # ---------- replay ----------

    def sync_queued_operations(self) -> DrainResult:
        """Replay the queue against the server. Does nothing while offline."""
        if not self.is_online:
            logger.info("Still offline; leaving %d queued operation(s) in place.", len(self.queue))
            return DrainResult(remaining=len(self.queue))

        result = self.queue.drain(self.replay)
        if not result.skipped:
            self.last_drain = result
            if self.monitor is not None:
                self.monitor.record_drain(result.as_dict())
        self._report_state()
        return result

    def replay(self, op: QueuedOperation) -> Any:
        """Perform the remote call for one queued operation."""
        if isinstance(op, CreateOperation):
            body = dict(op.data)
            temp_id = body.pop("_id", None)
            created = self.api.create_blog(_request_body(body))
            if is_temporary_id(temp_id):
                self._adopt_server_id(temp_id, created)
            return created
        if isinstance(op, UpdateOperation):
            return self.api.update_blog(self.resolve_id(op.id), op.data)
        if isinstance(op, DeleteOperation):
            return self.api.delete_blog(self.resolve_id(op.id))
        if isinstance(op, UpdateOrderOperation):
            return self.api.batch_update_order(
                [{"id": self.resolve_id(u.id), "order": u.order} for u in op.updates]
            )
        raise TypeError(f"Cannot replay unknown operation: {op!r}")

    # ---------- temp id aliases ----------

    def _aliases(self) -> Dict[str, str]:
        aliases, _ = self.store.get(ALIASES_KEY, default={})
        return aliases if isinstance(aliases, dict) else {}

    def resolve_id(self, blog_id: str) -> str:
        """Server id for a post created offline, once its create has replayed."""
        if not is_temporary_id(blog_id):
            return blog_id
        return self._aliases().get(blog_id, blog_id)

    def _adopt_server_id(self, temp_id: str, created: Any) -> None:
        if not isinstance(created, dict) or not created.get("_id"):
            logger.warning("Create for %s returned no id; later operations on it cannot be remapped.", temp_id)
            return
        server_blog = BlogSummary.from_dict(created)
        aliases = self._aliases()
        aliases[temp_id] = server_blog.id
        self.store.set(ALIASES_KEY, aliases)

        with self._cache_lock:
            blogs = self.cache.load(FILTER_ALL)
            replaced = [server_blog if b.id == temp_id else b for b in blogs]
            if not any(b.id == temp_id for b in blogs):
                replaced.append(server_blog)
            self.cache.save(replaced)
        logger.info("Offline blog %s is now %s on the server.", temp_id, server_blog.id)

    # ---------- cache helpers ----------

    def _enqueue(self, op: QueuedOperation) -> None:
        self.queue.enqueue(op)
        self._report_state()

    def _cache_upsert(self, blog: BlogSummary) -> None:
        with self._cache_lock:
            blogs = self.cache.load(FILTER_ALL)
            for i, existing in enumerate(blogs):
                if existing.id == blog.id:
                    blogs[i] = blog
                    break
            else:
                blogs.append(blog)
            self.cache.save(blogs)

    def _cache_remove(self, blog_id: str) -> None:
        with self._cache_lock:
            blogs = self.cache.load(FILTER_ALL)
            kept = [b for b in blogs if b.id != blog_id]
            if len(kept) != len(blogs):
                self.cache.save(kept)

    def _cache_apply_orders(self, updates: List[OrderUpdate]) -> None:
        positions = {u.id: u.order for u in updates}
        with self._cache_lock:
            blogs = self.cache.load(FILTER_ALL)
            for blog in blogs:
                if blog.id in positions:
                    blog.order = positions[blog.id]
            self.cache.save(blogs)

    # ---------- status ----------

    def _record_read(self, source: str) -> None:
        self.last_read_source = source
        if self.monitor is not None:
            self.monitor.record_read(source)

    def _report_state(self) -> None:
        if self.monitor is not None:
            self.monitor.update_sync_state(online=self.is_online, queue_length=len(self.queue))

    def status(self) -> Dict[str, Any]:
        return {
            "online": self.is_online,
            "queue_length": len(self.queue),
            "last_read_source": self.last_read_source,
            "last_drain": self.last_drain.as_dict() if self.last_drain else None,
            "cache_ok": self.cache.last_result.ok,
            "queue_ok": self.queue.last_result.ok,
        }
