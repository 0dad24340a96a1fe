"""Shared pytest fixtures and configuration

This file contains fixtures that can be used across all test files.
Pytest automatically discovers this file and makes fixtures available.
"""

import copy
import itertools
from pathlib import Path

import pytest

from core.cache import LocalCache
from core.connectivity import ConnectivityMonitor
from core.queue import OperationQueue
from core.sync_engine import SyncEngine
from utils.api import ApiResponseError
from utils.storage import LocalStore

# ==================== Fake Blog API ====================


class FakeBlogApi:
    """
    In-memory stand-in for BlogApiClient.

    Behaves like the Express/Mongo server: assigns ids on create, 404s on
    unknown ids for get/update/publish, and answers delete with a message even
    when the id is already gone.

    Set `failures[method_name] = exception` to make that call raise, or
    `fail_on_call[method_name] = {n, ...}` to raise only on the nth call
    (1-based) of that method.
    """

    def __init__(self, blogs=None):
        self.blogs = {}
        self._ids = itertools.count(1)
        self.calls = []
        self.failures = {}
        self.fail_on_call = {}
        self._call_counts = {}
        for blog in blogs or []:
            self.blogs[blog["_id"]] = copy.deepcopy(blog)

    def _enter(self, name, *args):
        self.calls.append((name, *args))
        self._call_counts[name] = self._call_counts.get(name, 0) + 1
        if name in self.failures:
            raise self.failures[name]
        nth = self.fail_on_call.get(name)
        if nth and self._call_counts[name] in nth:
            raise ApiResponseError(f"{name} failed on call {self._call_counts[name]}", status_code=500)

    def _get_or_404(self, blog_id):
        if blog_id not in self.blogs:
            raise ApiResponseError("Blog not found", status_code=404, body="Blog not found")
        return self.blogs[blog_id]

    def list_blogs(self, is_draft=None):
        self._enter("list_blogs", is_draft)
        blogs = list(self.blogs.values())
        if is_draft is not None:
            blogs = [b for b in blogs if b.get("isDraft", True) is is_draft]
        return copy.deepcopy(blogs)

    def get_blog(self, blog_id):
        self._enter("get_blog", blog_id)
        return copy.deepcopy(self._get_or_404(blog_id))

    def create_blog(self, data):
        self._enter("create_blog", copy.deepcopy(data))
        blog_id = f"srv{next(self._ids)}"
        blog = {"isDraft": True, "order": 0, "images": [], **copy.deepcopy(data), "_id": blog_id}
        blog.setdefault("createdAt", "2025-01-01T00:00:00.000Z")
        blog.setdefault("updatedAt", "2025-01-01T00:00:00.000Z")
        self.blogs[blog_id] = blog
        return copy.deepcopy(blog)

    def update_blog(self, blog_id, data):
        self._enter("update_blog", blog_id, copy.deepcopy(data))
        blog = self._get_or_404(blog_id)
        blog.update(copy.deepcopy(data))
        return copy.deepcopy(blog)

    def delete_blog(self, blog_id):
        self._enter("delete_blog", blog_id)
        self.blogs.pop(blog_id, None)
        return {"message": "Blog deleted"}

    def publish_blog(self, blog_id):
        self._enter("publish_blog", blog_id)
        blog = self._get_or_404(blog_id)
        blog["isDraft"] = False
        return copy.deepcopy(blog)

    def batch_update_order(self, updates):
        self._enter("batch_update_order", copy.deepcopy(updates))
        for update in updates:
            if update["id"] in self.blogs:
                self.blogs[update["id"]]["order"] = update["order"]
        return {"message": "Blog orders updated successfully"}

    def upload_image(self, file_path):
        self._enter("upload_image", file_path)
        name = Path(file_path).name
        return {"imageUrl": f"http://localhost:5001/uploads/{name}", "imagePath": f"uploads/{name}"}

    def ping(self):
        return "ping" not in self.failures

    def close(self):
        pass

    def call_names(self):
        return [call[0] for call in self.calls]


# ==================== Sample Data ====================


def make_blog(blog_id, title=None, is_draft=True, order=0, **extra):
    blog = {
        "_id": blog_id,
        "title": title or f"Post {blog_id}",
        "content": f"<p>Body of {blog_id}</p>",
        "images": [],
        "isDraft": is_draft,
        "order": order,
        "createdAt": "2025-01-01T00:00:00.000Z",
        "updatedAt": "2025-01-01T00:00:00.000Z",
    }
    blog.update(extra)
    return blog


@pytest.fixture
def sample_blogs():
    """Three posts: a, b, c at orders 0..2; b is published, the others are drafts"""
    return [
        make_blog("a", order=0, is_draft=True),
        make_blog("b", order=1, is_draft=False),
        make_blog("c", order=2, is_draft=True),
    ]


# ==================== File System Fixtures ====================


@pytest.fixture
def data_dir(tmp_path):
    """A fresh data directory for LocalStore blobs"""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir):
    return LocalStore(str(data_dir))


@pytest.fixture
def cache(store):
    return LocalCache(store)


@pytest.fixture
def op_queue(store):
    return OperationQueue(store)


# ==================== Engine Fixtures ====================


@pytest.fixture
def fake_api(sample_blogs):
    return FakeBlogApi(sample_blogs)


@pytest.fixture
def connectivity():
    return ConnectivityMonitor(online=True)


@pytest.fixture
def engine(fake_api, cache, op_queue, connectivity, store):
    """A started SyncEngine wired to the fake API; online by default"""
    eng = SyncEngine(api=fake_api, cache=cache, queue=op_queue, connectivity=connectivity, store=store)
    eng.start()
    yield eng
    eng.shutdown()


@pytest.fixture
def offline_engine(engine):
    """The same engine, flipped offline before the test starts"""
    engine.connectivity.set_online(False)
    return engine
