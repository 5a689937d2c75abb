from __future__ import annotations

from typing import Iterable, List

from store.content_store import ContentStoreClient
from store.document_models import Passage

PASSAGE_SEPARATOR = "\n"


def order_passages(passages: Iterable[Passage]) -> List[Passage]:
    """
    Put passages back in reading order. `sorted` is stable, so passages with
    equal (or missing, i.e. 0) positions keep the order the store returned.
    """
    return sorted(passages, key=lambda p: p.sort_key)


def join_passages(passages: Iterable[Passage]) -> str:
    return PASSAGE_SEPARATOR.join(p.content for p in order_passages(passages))


class DocumentAssembler:
    """Rebuild a document's full text from its stored passages."""

    def __init__(self, client: ContentStoreClient):
        self.client = client

    def assemble(self, document_id: str) -> str:
        # list() drains every page before sorting
        passages = list(self.client.list_passages(document_id))
        return join_passages(passages)
