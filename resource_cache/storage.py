"""
Durable object store tier.

Keys are slash-separated paths (``images/logos/example-com_google.png``).
Reads of missing keys return None; I/O failures raise StorageReadError or
StorageWriteError for the coordinators to log and swallow.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import StorageReadError, StorageWriteError
from .models import StoredObject

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
META_DIR = ".meta"


class ObjectStore:
    """Binary/JSON blob store with prefix listing and no transactions"""

    def __init__(self, read_only: bool = False):
        self.read_only = read_only

    async def read(self, key: str) -> Optional[bytes]:
        stored = await self.read_object(key)
        return stored.data if stored else None

    async def read_object(self, key: str) -> Optional[StoredObject]:
        raise NotImplementedError

    async def write(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> bool:
        """Store ``data`` at ``key``; returns False when the store is read-only"""
        if self.read_only:
            logger.info(f"Read-only store, skipping write of {key}")
            return False
        await self._write(key, data, content_type)
        return True

    async def _write(self, key: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    async def read_json(self, key: str) -> Optional[Dict[str, Any]]:
        data = await self.read(key)
        if data is None:
            return None
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageReadError(f"Corrupt JSON at {key}: {e}", key) from e

    async def write_json(self, key: str, payload: Dict[str, Any]) -> bool:
        return await self.write(key, json.dumps(payload).encode("utf-8"), JSON_CONTENT_TYPE)

    async def list(self, prefix: str) -> List[str]:
        raise NotImplementedError

    async def exists(self, key: str) -> bool:
        return await self.read_object(key) is not None

    async def delete(self, key: str) -> bool:
        raise NotImplementedError


class InMemoryObjectStore(ObjectStore):
    def __init__(self, read_only: bool = False):
        super().__init__(read_only)
        self._objects: Dict[str, Tuple[bytes, str]] = {}

    async def read_object(self, key: str) -> Optional[StoredObject]:
        found = self._objects.get(key)
        if found is None:
            return None
        return StoredObject(key=key, data=found[0], content_type=found[1])

    async def _write(self, key: str, data: bytes, content_type: str) -> None:
        self._objects[key] = (bytes(data), content_type)

    async def list(self, prefix: str) -> List[str]:
        return sorted(key for key in self._objects if key.startswith(prefix))

    async def exists(self, key: str) -> bool:
        return key in self._objects

    async def delete(self, key: str) -> bool:
        if self.read_only:
            return False
        return self._objects.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._objects)


class FileSystemObjectStore(ObjectStore):
    """Object store backed by a directory tree under ``root``.

    The content type of each object lives in a JSON sidecar under
    ``{root}/.meta/{key}.json``.
    """

    def __init__(self, root: str, read_only: bool = False):
        super().__init__(read_only)
        self.root = Path(root)
        if not read_only:
            self.root.mkdir(parents=True, exist_ok=True)

    def _parts(self, key: str) -> List[str]:
        parts = [part for part in key.split("/") if part not in ("", ".", "..")]
        if not parts or parts[0] == META_DIR:
            raise StorageReadError(f"Invalid storage key: {key!r}", key)
        return parts

    def _path(self, key: str) -> Path:
        return self.root.joinpath(*self._parts(key))

    def _meta_path(self, key: str) -> Path:
        parts = self._parts(key)
        return self.root.joinpath(META_DIR, *parts[:-1], f"{parts[-1]}.json")

    async def read_object(self, key: str) -> Optional[StoredObject]:
        path = self._path(key)

        def _read() -> Optional[StoredObject]:
            if not path.is_file():
                return None
            data = path.read_bytes()
            content_type = "application/octet-stream"
            meta_path = self._meta_path(key)
            if meta_path.is_file():
                try:
                    content_type = json.loads(meta_path.read_text()).get("content_type", content_type)
                except ValueError:
                    logger.warning(f"Ignoring unreadable sidecar for {key}")
            return StoredObject(key=key, data=data, content_type=content_type)

        try:
            return await asyncio.to_thread(_read)
        except OSError as e:
            raise StorageReadError(f"Failed to read {key}: {e}", key) from e

    async def _write(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        meta_path = self._meta_path(key)

        def _write_files() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_name(path.name + ".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
            meta_path.parent.mkdir(parents=True, exist_ok=True)
            meta_path.write_text(json.dumps({"content_type": content_type, "size": len(data)}))

        try:
            await asyncio.to_thread(_write_files)
        except OSError as e:
            raise StorageWriteError(f"Failed to write {key}: {e}", key) from e

    async def list(self, prefix: str) -> List[str]:
        directory = prefix.rpartition("/")[0]
        base = self.root.joinpath(*[p for p in directory.split("/") if p]) if directory else self.root

        def _list() -> List[str]:
            if not base.is_dir():
                return []
            keys = []
            for path in base.rglob("*"):
                if not path.is_file() or path.name.endswith(".tmp"):
                    continue
                key = path.relative_to(self.root).as_posix()
                if key.startswith(META_DIR + "/"):
                    continue
                if key.startswith(prefix):
                    keys.append(key)
            return sorted(keys)

        try:
            return await asyncio.to_thread(_list)
        except OSError as e:
            raise StorageReadError(f"Failed to list {prefix}: {e}", prefix) from e

    async def delete(self, key: str) -> bool:
        if self.read_only:
            return False
        path = self._path(key)
        meta_path = self._meta_path(key)

        def _delete() -> bool:
            meta_path.unlink(missing_ok=True)
            if path.is_file():
                path.unlink()
                return True
            return False

        try:
            return await asyncio.to_thread(_delete)
        except OSError as e:
            raise StorageWriteError(f"Failed to delete {key}: {e}", key) from e
