from __future__ import annotations

from enum import Enum
from typing import Dict, ItemsView, Optional, ValuesView

import orjson
import requests

from common.logger import get_logger
from store.content_store import (
    ContentStoreClient,
    ContentStoreError,
    FileNotFoundInStore,
)

log = get_logger(__name__)


class RestoreOutcome(str, Enum):
    RESTORED = "restored"
    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"


def parse_jsonl(raw: str) -> Dict[str, str]:
    """
    Parse `{"key", "content"}` records, one per line. Blank lines are ignored.
    Raises on the first malformed record so callers never see a partial cache.
    """
    entries: Dict[str, str] = {}
    for line in raw.split("\n"):
        if not line.strip():
            continue
        record = orjson.loads(line)
        if not isinstance(record, dict):
            raise TypeError(f"Cache record is not an object: {line[:80]!r}")
        key, content = record["key"], record["content"]
        if not isinstance(key, str) or not isinstance(content, str):
            raise TypeError(f"Cache record has non-string fields: {line[:80]!r}")
        entries[key] = content
    return entries


def dump_jsonl(entries: Dict[str, str]) -> str:
    return "\n".join(
        orjson.dumps({"key": key, "content": content}).decode("utf-8")
        for key, content in entries.items()
    )


class CacheStore:
    """
    Durable key -> document text mapping, backed by one JSONL blob in the
    content store. Constructed once per run and handed to every stage.

    A key present here means that document never needs to be fetched again,
    neither later in this run nor on resume.
    """

    def __init__(self, client: ContentStoreClient, blob_key: str):
        self.client = client
        self.blob_key = blob_key
        self._entries: Dict[str, str] = {}
        self._dirty = False

    def load(self) -> RestoreOutcome:
        """Best-effort restore. Missing or unreadable state means a cold start."""
        try:
            url = self.client.get_file_url(self.blob_key)
        except FileNotFoundInStore:
            log.info("No cache found at %s, starting cold", self.blob_key)
            return RestoreOutcome.NOT_FOUND
        except (ContentStoreError, requests.RequestException) as e:
            log.warning("Cache at %s is unreadable (%s), starting cold", self.blob_key, e)
            return RestoreOutcome.CORRUPT

        try:
            entries = parse_jsonl(self.client.download(url))
        except (
            requests.RequestException,
            UnicodeDecodeError,
            orjson.JSONDecodeError,
            KeyError,
            TypeError,
        ) as e:
            log.warning(
                "Cache at %s was found but is corrupt (%s), starting cold",
                self.blob_key,
                e,
            )
            return RestoreOutcome.CORRUPT

        self._entries = entries
        self._dirty = False
        log.info("Cache restored from %s (%d items)", self.blob_key, len(entries))
        return RestoreOutcome.RESTORED

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def put(self, key: str, content: str) -> None:
        if self._entries.get(key) != content:
            self._dirty = True
        self._entries[key] = content

    def persist(self) -> None:
        """
        Upload every entry as one JSONL blob, replacing the previous version.
        Errors propagate: a failed persist is lost work.
        """
        self.client.upload_file(self.blob_key, dump_jsonl(self._entries))
        self._dirty = False
        log.info("Cache saved to %s (%d items)", self.blob_key, len(self._entries))

    @property
    def dirty(self) -> bool:
        return self._dirty

    def items(self) -> ItemsView[str, str]:
        return self._entries.items()

    def values(self) -> ValuesView[str]:
        return self._entries.values()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
