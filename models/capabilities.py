from __future__ import annotations

from typing import Dict, List, Type, TypeVar

from langchain_core.language_models import BaseLanguageModel
from langchain_text_splitters import RecursiveCharacterTextSplitter
from pydantic import BaseModel, Field

from common.config import yaml_config
from common.logger import get_logger
from models.prompts import (
    EXTRACTION_TEMPLATE,
    LABELING_TEMPLATE,
    SUMMARY_CHUNK_TEMPLATE,
    SUMMARY_REDUCE_TEMPLATE,
)

log = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class CapabilityError(RuntimeError):
    """An AI capability (summarize / extract / label) failed."""


class SummarizationError(CapabilityError):
    pass


class LabelSelection(BaseModel):
    labels: List[str] = Field(default_factory=list)


class MapReduceSummarizer:
    """
    Summarize text of any length.

    The text is split into chunks that fit the model, each chunk is summarized
    with the caller's prompt/format, and the joined partial results are
    summarized again until one chunk is left.
    """

    def __init__(
        self,
        llm: BaseLanguageModel,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
        max_rounds: int | None = None,
    ):
        cfg = yaml_config.summarization
        self.llm = llm
        self.max_rounds = max_rounds if max_rounds is not None else cfg.max_rounds
        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=cfg.chunk_size if chunk_size is None else chunk_size,
            chunk_overlap=cfg.chunk_overlap if chunk_overlap is None else chunk_overlap,
            separators=["\n\n", "\n", " ", ""],
        )

    def _invoke(self, template: str, text: str, prompt: str, format: str) -> str:
        message = template.format(prompt=prompt, format=format, text=text)
        try:
            out = self.llm.invoke(message)
        except Exception as e:
            raise SummarizationError(f"Summarization call failed: {e}") from e
        return out if isinstance(out, str) else str(getattr(out, "content", out))

    def summarize(self, text: str, *, format: str, prompt: str) -> str:
        parts = self.splitter.split_text(text)
        if not parts:
            return ""

        template = SUMMARY_CHUNK_TEMPLATE
        rounds = 0
        while len(parts) > 1:
            rounds += 1
            if rounds > self.max_rounds:
                raise SummarizationError(
                    f"Still {len(parts)} chunks after {self.max_rounds} reduce rounds"
                )
            log.info("Summarization round %d over %d chunks", rounds, len(parts))
            partials = [self._invoke(template, p, prompt, format) for p in parts]
            merged = self.splitter.split_text("\n".join(partials))
            if len(merged) >= len(parts):
                raise SummarizationError(
                    f"Reduce round {rounds} did not shrink the text "
                    f"({len(parts)} -> {len(merged)} chunks)"
                )
            parts = merged
            template = SUMMARY_REDUCE_TEMPLATE

        return self._invoke(template, parts[0], prompt, format)


class StructuredExtractor:
    """Turn free text into records of a declared pydantic shape."""

    def __init__(self, client, model: str | None = None):
        self.client = client
        self.model = model or yaml_config.llm_extraction.model_name

    def extract(self, text: str, response_model: Type[T], *, instructions: str) -> T:
        prompt = EXTRACTION_TEMPLATE.format(instructions=instructions, text=text)
        try:
            return self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_model=response_model,
                temperature=yaml_config.llm_extraction.temperature,
            )
        except Exception as e:
            raise CapabilityError(f"Extraction call failed: {e}") from e


class StructuredLabeler:
    """Ask the model which of the candidate labels apply to a text."""

    def __init__(self, client, model: str | None = None):
        self.client = client
        self.model = model or yaml_config.llm_extraction.model_name

    def label(
        self, text: str, candidates: Dict[str, str], *, instructions: str
    ) -> List[str]:
        """
        Returns the selected candidate ids, in candidate order.
        Ids the model made up are dropped.
        """
        if not candidates:
            return []
        listing = "\n".join(f"- {slug}: {name}" for slug, name in candidates.items())
        prompt = LABELING_TEMPLATE.format(
            instructions=instructions, labels=listing, text=text
        )
        try:
            selection: LabelSelection = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_model=LabelSelection,
                temperature=yaml_config.llm_extraction.temperature,
            )
        except Exception as e:
            raise CapabilityError(f"Labeling call failed: {e}") from e

        chosen = {s.strip() for s in selection.labels}
        unknown = chosen - set(candidates)
        if unknown:
            log.warning("Ignoring %d unknown labels: %s", len(unknown), sorted(unknown))
        return [slug for slug in candidates if slug in chosen]
