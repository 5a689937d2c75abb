from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from cache.cache_store import CacheStore, RestoreOutcome
from categories.synthesizer import CategorySynthesizer
from common.logger import get_logger
from ingestion.ingest_pipeline import IngestionDriver, IngestionResult
from labeling.labeler import LabelingDriver, LabelingResult

log = get_logger(__name__)


class PipelineState(str, Enum):
    COLD_START = "cold_start"
    CACHE_RESTORED = "cache_restored"
    INGESTING = "ingesting"
    CAP_REACHED = "cap_reached"
    INGESTION_COMPLETE = "ingestion_complete"
    CATEGORIES_SYNTHESIZED = "categories_synthesized"
    LABELING = "labeling"
    DONE = "done"


class PipelineStateError(RuntimeError):
    """A stage was called out of order."""


@dataclass(frozen=True)
class PipelineResult:
    restore: RestoreOutcome
    ingestion: IngestionResult
    categories: List[str]
    labeling: LabelingResult


class KBPipeline:
    """
    restore cache -> ingest -> synthesize categories -> label.

    Stages run strictly in sequence and can be called one by one; `run()` just
    chains them. A failing stage leaves the last persisted cache as the resume
    point for the next invocation.
    """

    def __init__(
        self,
        cache: CacheStore,
        ingestion: IngestionDriver,
        synthesizer: CategorySynthesizer,
        labeling: LabelingDriver,
    ):
        self.cache = cache
        self.ingestion = ingestion
        self.synthesizer = synthesizer
        self.labeling = labeling
        self.state = PipelineState.COLD_START
        self.categories: Optional[List[str]] = None

    def _expect(self, *allowed: PipelineState) -> None:
        if self.state not in allowed:
            names = ", ".join(s.name for s in allowed)
            raise PipelineStateError(
                f"Pipeline is {self.state.name}, expected one of: {names}"
            )

    def restore_cache(self) -> RestoreOutcome:
        self._expect(PipelineState.COLD_START)
        outcome = self.cache.load()
        self.state = PipelineState.CACHE_RESTORED
        return outcome

    def ingest(self) -> IngestionResult:
        self._expect(PipelineState.CACHE_RESTORED)
        self.state = PipelineState.INGESTING
        result = self.ingestion.run()
        self.state = (
            PipelineState.CAP_REACHED
            if result.cap_reached
            else PipelineState.INGESTION_COMPLETE
        )
        return result

    def synthesize_categories(self) -> List[str]:
        self._expect(PipelineState.CAP_REACHED, PipelineState.INGESTION_COMPLETE)
        self.categories = self.synthesizer.synthesize()
        self.state = PipelineState.CATEGORIES_SYNTHESIZED
        return self.categories

    def label_documents(self) -> LabelingResult:
        self._expect(PipelineState.CATEGORIES_SYNTHESIZED)
        self.state = PipelineState.LABELING
        result = self.labeling.run(self.categories or [])
        self.state = PipelineState.DONE
        return result

    def run(self) -> PipelineResult:
        restore = self.restore_cache()
        ingestion = self.ingest()
        log.info(
            "Ingestion: %d found, %d already cached, %d new, %d left by the cap",
            ingestion.total_found,
            ingestion.skipped_cached,
            ingestion.newly_processed,
            ingestion.skipped_by_cap,
        )
        categories = self.synthesize_categories()
        labeling = self.label_documents()
        log.info(
            "Labeling: %d documents labeled, %d metadata writes",
            labeling.documents_labeled,
            labeling.metadata_writes,
        )
        return PipelineResult(
            restore=restore,
            ingestion=ingestion,
            categories=categories,
            labeling=labeling,
        )
