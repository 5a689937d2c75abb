from __future__ import annotations

from dataclasses import dataclass
from typing import List

from tqdm import tqdm

from cache.cache_store import CacheStore
from common.config import yaml_config
from common.logger import get_logger
from ingestion.assembler import DocumentAssembler
from store.content_store import ContentStoreClient
from store.document_models import Document

log = get_logger(__name__)


@dataclass(frozen=True)
class IngestionResult:
    total_found: int
    considered: int
    skipped_cached: int
    skipped_by_cap: int
    newly_processed: int
    checkpoints: int

    @property
    def cap_reached(self) -> bool:
        return self.skipped_by_cap > 0


class IngestionDriver:
    """
    Pull every knowledge-base document's text into the cache.

    Documents come newest-updated first, so repeated capped runs keep working
    on the same frontier. Anything already cached is skipped without touching
    the content store, which is what makes a rerun resume instead of restart.
    """

    def __init__(
        self,
        client: ContentStoreClient,
        cache: CacheStore,
        kb_id: str,
        assembler: DocumentAssembler | None = None,
        max_files: int | None = None,
        checkpoint_every: int | None = None,
        show_progress: bool | None = None,
    ):
        self.client = client
        self.cache = cache
        self.kb_id = kb_id
        self.assembler = assembler or DocumentAssembler(client)
        self.max_files = (
            yaml_config.app.max_files_to_process if max_files is None else max_files
        )
        self.checkpoint_every = (
            yaml_config.app.checkpoint_every
            if checkpoint_every is None
            else checkpoint_every
        )
        if self.checkpoint_every < 1:
            raise ValueError("checkpoint_every must be a positive integer")
        self.show_progress = (
            yaml_config.app.show_progress if show_progress is None else show_progress
        )

    def list_documents(self) -> List[Document]:
        files = list(self.client.list_kb_files(self.kb_id))
        log.info("Total files: %d", len(files))
        return files

    def run(self) -> IngestionResult:
        files = self.list_documents()
        # deterministic prefix cutoff, never a sample
        candidates = files[: self.max_files]
        skipped_by_cap = len(files) - len(candidates)

        skipped_cached = 0
        new_count = 0
        checkpoints = 0

        iterator = (
            tqdm(candidates, desc="Ingesting files", unit="file")
            if self.show_progress
            else candidates
        )
        for i, doc in enumerate(iterator, start=1):
            log.info("Processing file %d of %d: %s", i, len(files), doc.key)

            if doc.key in self.cache:
                log.info("File %s already processed, skipping...", doc.key)
                skipped_cached += 1
                continue

            content = self.assembler.assemble(doc.id)
            self.cache.put(doc.key, content)
            new_count += 1

            if new_count % self.checkpoint_every == 0:
                self.cache.persist()
                checkpoints += 1

        if skipped_by_cap:
            log.info(
                "Reached max files to process (%d), %d files left for a later run",
                self.max_files,
                skipped_by_cap,
            )

        if new_count > 0:
            log.info("Processed %d new files", new_count)
        # the last checkpoint may already hold every entry
        if self.cache.dirty:
            self.cache.persist()
            checkpoints += 1

        return IngestionResult(
            total_found=len(files),
            considered=len(candidates),
            skipped_cached=skipped_cached,
            skipped_by_cap=skipped_by_cap,
            newly_processed=new_count,
            checkpoints=checkpoints,
        )
