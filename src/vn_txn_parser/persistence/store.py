import os
import re
import threading
from typing import Protocol

from vn_txn_parser.logger import get_logger

logger = get_logger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def append(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class FileKeyValueStore:
    """One file per key under ``data_dir``.

    ``set`` goes through a temp file and ``os.replace``; ``append`` extends the file in place.
    """

    def __init__(self, data_dir: str) -> None:
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.data_dir, f"{_SAFE_KEY.sub('_', key)}.json")

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, encoding="utf-8") as f:
            return f.read()

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = f"{path}.{os.getpid()}.{threading.get_ident()}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(value)
        os.replace(tmp_path, path)
        logger.debug("[STORE] Wrote %s (%d bytes)", key, len(value))

    def append(self, key: str, value: str) -> None:
        with open(self._path(key), "a", encoding="utf-8") as f:
            f.write(value)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)
            logger.info("[STORE] Deleted %s", key)


class InMemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def append(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = self._data.get(key, "") + value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
