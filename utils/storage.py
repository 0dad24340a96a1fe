# utils/storage.py
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass(frozen=True)
class StorageResult:
    """Outcome of a single local persistence call.

    ok:    False when the read or write failed and a default was used instead
    key:   the storage key involved
    error: short description of the failure (None on success)
    """

    ok: bool
    key: str
    error: Optional[str] = None


class LocalStore:
    """
    Restart-safe key/value store of JSON blobs.

    Each key maps to one file:
      {root_dir}/{key}.json

    Writes go to a temp file in the same directory and are moved into place
    with os.replace, so a reader never sees a half-written blob. Failures are
    never raised to the caller; they are logged and returned as a
    StorageResult with ok=False.
    """

    def __init__(self, root_dir: str, on_failure: Optional[Callable[[StorageResult], None]] = None):
        self.root_dir = str(root_dir)
        self.on_failure = on_failure
        self._lock = threading.Lock()

    def path_for(self, key: str) -> str:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self.root_dir, f"{key}.json")

    # ---------- public ----------

    def get(self, key: str, default: Any = None) -> Tuple[Any, StorageResult]:
        path = self.path_for(key)
        if not os.path.exists(path):
            return default, StorageResult(ok=True, key=key)

        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f), StorageResult(ok=True, key=key)
        except (OSError, ValueError) as e:
            # Corrupt or unreadable blob? Start clean.
            return default, self._failed(key, f"read failed: {e}")

    def set(self, key: str, value: Any) -> StorageResult:
        path = self.path_for(key)
        try:
            payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            return self._failed(key, f"serialization failed: {e}")

        with self._lock:
            tmp = None
            try:
                os.makedirs(self.root_dir, exist_ok=True)
                fd, tmp = tempfile.mkstemp(prefix=f".{key}.", suffix=".json.tmp", dir=self.root_dir)
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp, path)  # atomic on POSIX
            except OSError as e:
                return self._failed(key, f"write failed: {e}")
            finally:
                if tmp is not None and os.path.exists(tmp):
                    try:
                        os.remove(tmp)
                    except OSError:
                        pass

        return StorageResult(ok=True, key=key)

    def remove(self, key: str) -> StorageResult:
        path = self.path_for(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            return self._failed(key, f"remove failed: {e}")
        return StorageResult(ok=True, key=key)

    def keys(self) -> List[str]:
        if not os.path.isdir(self.root_dir):
            return []
        return sorted(name[: -len(".json")] for name in os.listdir(self.root_dir) if name.endswith(".json"))

    # ---------- internals ----------

    def _failed(self, key: str, error: str) -> StorageResult:
        result = StorageResult(ok=False, key=key, error=error)
        logger.warning("Local storage degraded for key=%s: %s", key, error)
        if self.on_failure is not None:
            self.on_failure(result)
        return result
