from __future__ import annotations

from typing import Iterable, List

import orjson
from pydantic import BaseModel, Field

from cache.cache_store import CacheStore
from common.config import yaml_config
from common.logger import get_logger
from models.prompts import (
    CATEGORY_EXTRACTION_INSTRUCTIONS,
    CATEGORY_FORMAT,
    CATEGORY_PROMPT,
)

log = get_logger(__name__)


# --------------------
# Extraction schema
# --------------------
class CategoryRecord(BaseModel):
    name: str


class CategoryList(BaseModel):
    categories: List[CategoryRecord] = Field(default_factory=list)


def clean_category_names(names: Iterable[str], max_categories: int) -> List[str]:
    """
    Trim, drop empties, keep order, truncate to the cap.
    Near-duplicates are kept on purpose.
    """
    cleaned = [n.strip() for n in names]
    return [n for n in cleaned if n][:max_categories]


class CategorySynthesizer:
    """
    Reduce the whole cached corpus to at most `max_categories` names:
    summarize into a bulleted list, then extract typed records from it.
    """

    def __init__(
        self,
        cache: CacheStore,
        summarizer,
        extractor,
        max_categories: int | None = None,
    ):
        self.cache = cache
        self.summarizer = summarizer
        self.extractor = extractor
        self.max_categories = (
            max_categories
            if max_categories is not None
            else yaml_config.app.max_categories
        )

    def build_corpus(self) -> str:
        return "\n".join(self.cache.values())

    def synthesize(self) -> List[str]:
        corpus = self.build_corpus()
        if not corpus.strip():
            log.warning("Cache is empty, no categories to generate")
            return []

        categories_as_text = self.summarizer.summarize(
            corpus,
            format=CATEGORY_FORMAT.format(max_categories=self.max_categories),
            prompt=CATEGORY_PROMPT.format(max_categories=self.max_categories),
        )

        extracted: CategoryList = self.extractor.extract(
            categories_as_text,
            CategoryList,
            instructions=CATEGORY_EXTRACTION_INSTRUCTIONS,
        )

        categories = clean_category_names(
            (c.name for c in extracted.categories), self.max_categories
        )
        log.info(
            "Found %d categories: %s",
            len(categories),
            orjson.dumps(categories, option=orjson.OPT_INDENT_2).decode("utf-8"),
        )
        return categories
