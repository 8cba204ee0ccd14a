"""Read-only MCP server registry backed by a static index file."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote

from .models import DEFAULT_SERVER_FILE, RegistryEntry

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 30
MAX_LIMIT = 100
OFFICIAL_META_KEY = "io.modelcontextprotocol.registry/official"

Loader = Callable[[str], Any]

_VERSION_CHUNKS = re.compile(r"(\d+)")


def json_file_loader(root: str | Path) -> Loader:
    base = Path(root)

    def load(filename: str) -> Any:
        with (base / filename).open("r", encoding="utf-8") as handle:
            return json.load(handle)

    return load


class RegistryCache:
    """Index and descriptor documents, loaded lazily and kept for the process lifetime.

    Concurrent first loads may read the same file twice; both store the same
    value, so no lock is taken.
    """

    def __init__(self, loader: Loader, index_file: str = "registry-index.json") -> None:
        self.loader = loader
        self.index_file = index_file
        self._entries: Optional[List[RegistryEntry]] = None
        self._documents: Dict[str, Any] = {}

    def entries(self) -> List[RegistryEntry]:
        if self._entries is None:
            raw = self.loader(self.index_file) or {}
            self._entries = [
                RegistryEntry(
                    name=item["name"],
                    version=item["version"],
                    file=item.get("file") or DEFAULT_SERVER_FILE,
                )
                for item in raw.get("entries") or []
            ]
            logger.info("Loaded registry index %s (%s entries)", self.index_file, len(self._entries))
        return self._entries

    def document(self, filename: str) -> Any:
        if filename not in self._documents:
            self._documents[filename] = self.loader(filename)
        return self._documents[filename]


class RegistryQueryEngine:
    def __init__(self, cache: RegistryCache) -> None:
        self.cache = cache

    def list_servers(
        self,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        updated_since: Optional[str] = None,
    ) -> Dict[str, Any]:
        # updated_since is accepted for API compatibility; the index has no timestamps.
        entries = self.cache.entries()
        limit = min(max(1, DEFAULT_LIMIT if limit is None else limit), MAX_LIMIT)

        start = 0
        if cursor:
            for position, entry in enumerate(entries):
                if entry.cursor == cursor:
                    start = position + 1
                    break

        page = entries[start : start + limit]
        has_next = start + len(page) < len(entries)

        now = datetime.now(timezone.utc).isoformat()
        servers: List[Dict[str, Any]] = []
        for entry in page:
            detail = self.find_server_version(entry.name, entry.version)
            if detail is None:
                continue
            servers.append(
                {
                    "server": detail,
                    "_meta": {
                        OFFICIAL_META_KEY: {
                            "status": "active",
                            "publishedAt": now,
                            "updatedAt": now,
                        }
                    },
                }
            )

        metadata: Dict[str, Any] = {"count": len(servers)}
        if has_next and page:
            metadata["nextCursor"] = page[-1].cursor
        return {"servers": servers, "metadata": metadata}

    def get_server_version(self, name: str, version: str) -> Optional[Dict[str, Any]]:
        """Look up a server by its URL-encoded name."""
        return self.find_server_version(unquote(name), version)

    def find_server_version(self, name: str, version: str) -> Optional[Dict[str, Any]]:
        """Look up a server by its exact, already-decoded name."""
        entry = self._resolve(name, version)
        if entry is None:
            return None

        document = self.cache.document(entry.file)
        if not isinstance(document, dict):
            return None
        if document.get("name") != name or document.get("version") != entry.version:
            return {**document, "name": name, "version": entry.version}
        return document

    def _resolve(self, name: str, version: str) -> Optional[RegistryEntry]:
        candidates = [entry for entry in self.cache.entries() if entry.name == name]
        if version == "latest":
            if not candidates:
                return None
            return max(candidates, key=lambda entry: version_sort_key(entry.version))
        return next((entry for entry in candidates if entry.version == version), None)


def version_sort_key(version: str) -> Tuple[Tuple[int, Any], ...]:
    """Numeric-aware key: ``1.10.0`` sorts after ``1.9.0``."""
    key = []
    for chunk in _VERSION_CHUNKS.split(version):
        if not chunk:
            continue
        if chunk.isdigit():
            key.append((1, int(chunk)))
        else:
            key.append((0, chunk.lower()))
    return tuple(key)
