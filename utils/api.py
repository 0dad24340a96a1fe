# utils/api.py
from __future__ import annotations

import logging
import mimetypes
import os
from typing import Any, Dict, List, Optional

import requests

log = logging.getLogger(__name__)

# ===== Tunables (overridable via config.yaml -> api) =====
DEFAULT_BASE_URL = "http://localhost:5001/api/blogs"
TIMEOUT = 10.0  # per request timeout
USER_AGENT = "blogsync/1.0"


# ===== Errors =====
class ApiError(Exception):
    """Base class for every failure talking to the blog API."""


class ApiConnectionError(ApiError):
    """The server could not be reached (no route, refused, timed out)."""


class ApiResponseError(ApiError):
    """The server answered, but not with a 2xx / valid JSON body."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class OfflineError(ApiError):
    """An online-only operation (e.g. image upload) was attempted while offline."""


def _server_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "").strip()[:200]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return ""


class BlogApiClient:
    """
    Thin `requests` client for the blog REST API.

    Every call either returns decoded JSON or raises:
      - ApiConnectionError for connection failures and timeouts
      - ApiResponseError for non-2xx answers and undecodable bodies

    Calls are made exactly once; retrying is left to the offline queue.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = TIMEOUT,
        user_agent: str = USER_AGENT,
        session: Optional[requests.Session] = None,
        monitor: Optional[object] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)
        self.monitor = monitor
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})

    @classmethod
    def from_config(cls, config: Dict[str, Any], monitor: Optional[object] = None) -> "BlogApiClient":
        api_cfg = config.get("api", {}) or {}
        return cls(
            api_cfg.get("base_url", DEFAULT_BASE_URL),
            timeout=api_cfg.get("timeout", TIMEOUT),
            user_agent=api_cfg.get("user_agent", USER_AGENT),
            monitor=monitor,
        )

    # ---------- transport ----------

    def _url(self, *parts: str) -> str:
        return "/".join([self.base_url, *[str(p).strip("/") for p in parts if p]])

    def _record(self, success: bool) -> None:
        if self.monitor is not None:
            self.monitor.record_api_call(success=success)

    def _request(self, method: str, url: str, **kwargs) -> Any:
        kwargs.setdefault("timeout", self.timeout)
        log.debug("%s %s", method, url)
        try:
            resp = self.session.request(method, url, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            self._record(success=False)
            log.warning("%s %s unreachable (%s)", method, url, type(e).__name__)
            raise ApiConnectionError(f"{method} {url} failed: {e}") from e
        except requests.exceptions.RequestException as e:
            self._record(success=False)
            raise ApiResponseError(f"{method} {url} failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            self._record(success=False)
            message = _server_message(resp)
            log.warning("%s %s -> %d %s", method, url, resp.status_code, message)
            raise ApiResponseError(
                f"{method} {url} returned {resp.status_code}: {message}",
                status_code=resp.status_code,
                body=message,
            )

        try:
            data = resp.json()
        except ValueError as e:
            self._record(success=False)
            raise ApiResponseError(f"Invalid JSON from {url}: {e}", status_code=resp.status_code) from e

        self._record(success=True)
        return data

    # ---------- endpoints ----------

    def list_blogs(self, is_draft: Optional[bool] = None) -> List[Dict[str, Any]]:
        """GET /api/blogs, optionally filtered with ?isDraft=true|false."""
        params = None
        if is_draft is not None:
            params = {"isDraft": "true" if is_draft else "false"}
        data = self._request("GET", self.base_url, params=params)
        if not isinstance(data, list):
            raise ApiResponseError(f"Expected a list of blogs from {self.base_url}, got {type(data).__name__}")
        return data

    def get_blog(self, blog_id: str) -> Dict[str, Any]:
        return self._request("GET", self._url(blog_id))

    def create_blog(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", self.base_url, json=data)

    def update_blog(self, blog_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", self._url(blog_id), json=data)

    def delete_blog(self, blog_id: str) -> Dict[str, Any]:
        return self._request("DELETE", self._url(blog_id))

    def publish_blog(self, blog_id: str) -> Dict[str, Any]:
        return self._request("PATCH", self._url(blog_id, "publish"))

    def batch_update_order(self, updates: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self._request("POST", self._url("batch-update-order"), json={"updates": updates})

    def upload_image(self, file_path: str) -> Dict[str, Any]:
        """POST a single image as multipart field `images`; returns {imageUrl, imagePath}."""
        mime_type = mimetypes.guess_type(file_path)[0] or "application/octet-stream"
        with open(file_path, "rb") as f:
            files = {"images": (os.path.basename(file_path), f, mime_type)}
            return self._request("POST", self._url("upload"), files=files)

    def ping(self) -> bool:
        """Cheap reachability check used by the connectivity probe."""
        try:
            resp = self.session.head(self.base_url, timeout=min(self.timeout, 5.0))
        except requests.exceptions.RequestException:
            return False
        return resp.status_code < 500

    def close(self) -> None:
        self.session.close()
