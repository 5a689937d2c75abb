from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from cache.cache_store import CacheStore
from common.config import yaml_config
from common.logger import get_logger
from models.prompts import LABELING_INSTRUCTIONS
from store.content_store import ContentStoreClient

log = get_logger(__name__)

SLUG_SEPARATOR = "_"
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")

WRITE_CANDIDATES = "candidates"
WRITE_SELECTED = "selected"


def slugify(name: str) -> str:
    """Collapse every run of non-alphanumeric characters into one separator."""
    return _NON_ALNUM.sub(SLUG_SEPARATOR, name)


def build_candidates(categories: Sequence[str]) -> List[Tuple[str, str]]:
    return [(slugify(name), name) for name in categories]


@dataclass(frozen=True)
class LabelingResult:
    documents_labeled: int
    metadata_writes: int
    selections: Dict[str, List[str]] = field(default_factory=dict)


class LabelingDriver:
    """
    Label every cached document with the synthesized categories and write the
    outcome into the document's `categories` metadata.

    write_mode="candidates" reproduces the historical behaviour: the whole
    candidate list is written, whatever the model selected. "selected" writes
    only the labels the model picked.
    """

    def __init__(
        self,
        client: ContentStoreClient,
        cache: CacheStore,
        labeler,
        write_mode: str | None = None,
    ):
        self.client = client
        self.cache = cache
        self.labeler = labeler
        self.write_mode = write_mode or yaml_config.labeling.write_mode
        if self.write_mode not in (WRITE_CANDIDATES, WRITE_SELECTED):
            raise ValueError(f"Unsupported write_mode: {self.write_mode}")

    def _labels_to_write(
        self, candidates: List[Tuple[str, str]], selected: List[str]
    ) -> List[Tuple[str, str]] | None:
        if self.write_mode == WRITE_SELECTED:
            chosen = set(selected)
            return [pair for pair in candidates if pair[0] in chosen]
        return candidates if candidates else None

    def run(self, categories: Sequence[str]) -> LabelingResult:
        candidates = build_candidates(categories)
        candidate_map = dict(candidates)

        if self.write_mode == WRITE_CANDIDATES and candidates:
            log.warning(
                "write_mode=candidates: writing all %d candidate labels to every "
                "document, not only the selected ones",
                len(candidates),
            )

        selections: Dict[str, List[str]] = {}
        writes = 0
        for key, content in self.cache.items():
            selected = self.labeler.label(
                content, candidate_map, instructions=LABELING_INSTRUCTIONS
            )
            selections[key] = selected
            log.info("File %s labels: %s", key, selected)

            labels = self._labels_to_write(candidates, selected)
            if labels is None:
                continue
            # addressed by cache key: the Files API accepts a key wherever an id is expected
            self.client.update_file_metadata(
                key, {"categories": [list(pair) for pair in labels]}
            )
            writes += 1

        return LabelingResult(
            documents_labeled=len(selections),
            metadata_writes=writes,
            selections=selections,
        )
