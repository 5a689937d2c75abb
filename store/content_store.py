from __future__ import annotations

from typing import Any, Dict, Iterator, Optional
from urllib.parse import quote

import orjson
import requests
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from common.config import yaml_config
from common.logger import get_logger
from store.document_models import Document, Passage

log = get_logger(__name__)

KB_SOURCE_TAG = "knowledge-base"


class ContentStoreError(RuntimeError):
    """Raised when the content store rejects or fails a request."""


class FileNotFoundInStore(ContentStoreError):
    pass


def _path_param(value: str) -> str:
    # keys contain "/" (and may contain "#", "?", spaces): one path segment each
    return quote(value, safe="")


class ContentStoreClient:
    """
    Thin wrapper over the Botpress Files API.

    Only the calls the categorizer needs are exposed: listing files, paging
    through passages, uploading/fetching a blob and replacing file metadata.
    Listing calls are lazy generators that follow `meta.nextToken`.
    """

    def __init__(
        self,
        bot_id: str,
        token: str,
        base_url: str | None = None,
        timeout: int | None = None,
        max_attempts: int | None = None,
        session: Optional[requests.Session] = None,
    ):
        cfg = yaml_config.content_store
        self.base_url = (base_url or cfg.base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else cfg.timeout
        self.max_attempts = (
            max_attempts if max_attempts is not None else cfg.max_attempts
        )
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "x-bot-id": bot_id,
            }
        )

    # --------------------
    # Transport
    # --------------------
    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        # max_attempts=1 means a single try: reruns are the recovery mechanism
        retryer = Retrying(
            retry=retry_if_exception_type(
                (requests.ConnectionError, requests.Timeout)
            ),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        )
        return retryer(
            self._session.request, method, url, timeout=self.timeout, **kwargs
        )

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        resp = self._send(method, url, **kwargs)
        if resp.status_code == 404:
            raise FileNotFoundInStore(f"{method} {path}: not found")
        if not resp.ok:
            raise ContentStoreError(
                f"{method} {path} failed with {resp.status_code}: {resp.text[:500]}"
            )
        if not resp.content:
            return {}
        return resp.json()

    def _paginate(
        self, path: str, items_field: str, params: Dict[str, Any]
    ) -> Iterator[Dict[str, Any]]:
        next_token: str | None = None
        while True:
            page_params = dict(params)
            if next_token:
                page_params["nextToken"] = next_token
            body = self._request("GET", path, params=page_params)
            yield from body.get(items_field, [])
            next_token = (body.get("meta") or {}).get("nextToken")
            if not next_token:
                return

    # --------------------
    # Files
    # --------------------
    def list_files(
        self,
        tags: Dict[str, str],
        sort_field: str = "updatedAt",
        sort_direction: str = "desc",
    ) -> Iterator[Document]:
        params = {
            "tags": orjson.dumps(tags).decode("utf-8"),
            "sortField": sort_field,
            "sortDirection": sort_direction,
        }
        for raw in self._paginate("/v1/files", "files", params):
            yield Document.from_api(raw)

    def list_kb_files(self, kb_id: str) -> Iterator[Document]:
        """Knowledge-base files, most recently updated first."""
        return self.list_files({"source": KB_SOURCE_TAG, "kbId": kb_id})

    def list_passages(self, file_id: str) -> Iterator[Passage]:
        path = f"/v1/files/{_path_param(file_id)}/passages"
        for raw in self._paginate(path, "passages", {}):
            yield Passage.from_api(raw)

    def upload_file(
        self, key: str, content: str, tags: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Register `key` and PUT the bytes to the returned upload URL.
        The remote object is only replaced once the PUT succeeds.
        """
        data = content.encode("utf-8")
        body = self._request(
            "PUT",
            "/v1/files",
            json={
                "key": key,
                "size": len(data),
                "tags": tags or {},
                "contentType": "application/x-ndjson",
            },
        )
        upload_url = (body.get("file") or {}).get("uploadUrl")
        if not upload_url:
            raise ContentStoreError(f"No upload URL returned for {key}")

        resp = self._send(
            "PUT",
            upload_url,
            data=data,
            headers={"Content-Type": "application/x-ndjson"},
        )
        if not resp.ok:
            raise ContentStoreError(
                f"Upload of {key} failed with {resp.status_code}: {resp.text[:500]}"
            )

    def get_file_url(self, key: str) -> str:
        body = self._request("GET", f"/v1/files/{_path_param(key)}")
        url = (body.get("file") or {}).get("url")
        if not url:
            raise ContentStoreError(f"File {key} has no retrieval URL")
        return url

    def download(self, url: str) -> str:
        # pre-signed URL: the API credentials must not be forwarded
        resp = requests.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.content.decode("utf-8")

    def update_file_metadata(self, file_id: str, metadata: Dict[str, Any]) -> None:
        self._request(
            "PUT",
            f"/v1/files/{_path_param(file_id)}/metadata",
            json={"metadata": metadata},
        )
        log.debug("Updated metadata of %s: %s", file_id, list(metadata))
