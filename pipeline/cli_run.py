from __future__ import annotations

from cache.cache_store import CacheStore
from categories.synthesizer import CategorySynthesizer
from common.config import Secrets, load_secrets, yaml_config
from common.logger import get_logger
from ingestion.ingest_pipeline import IngestionDriver
from labeling.labeler import LabelingDriver
from models.capabilities import (
    MapReduceSummarizer,
    StructuredExtractor,
    StructuredLabeler,
)
from models.llm import load_local_llm, load_structured_client
from pipeline.runner import KBPipeline
from store.content_store import ContentStoreClient

log = get_logger(__name__)


def build_pipeline(secrets: Secrets) -> KBPipeline:
    client = ContentStoreClient(bot_id=secrets.bot_id, token=secrets.token)
    cache = CacheStore(
        client, yaml_config.app.cache_key_template.format(kb_id=secrets.kb_id)
    )

    structured = load_structured_client("llm_extraction")
    summarizer = MapReduceSummarizer(load_local_llm("llm_summary"))

    return KBPipeline(
        cache=cache,
        ingestion=IngestionDriver(client, cache, kb_id=secrets.kb_id),
        synthesizer=CategorySynthesizer(
            cache, summarizer, StructuredExtractor(structured)
        ),
        labeling=LabelingDriver(client, cache, StructuredLabeler(structured)),
    )


def main():
    # no flags: credentials and the KB come from BOT_ID / TOKEN / KB_ID
    secrets = load_secrets()
    log.info("Categorizing knowledge base %s", secrets.kb_id)
    build_pipeline(secrets).run()
    log.info("Done.")


if __name__ == "__main__":
    main()
