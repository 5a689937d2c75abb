from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Document:
    id: str  # content-store identifier
    key: str  # stable lookup key, also the cache key
    updated_at: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Document":
        return cls(
            id=str(raw["id"]),
            key=str(raw["key"]),
            updated_at=raw.get("updatedAt"),
            tags=dict(raw.get("tags") or {}),
            metadata=dict(raw.get("metadata") or {}),
        )


@dataclass(frozen=True)
class Passage:
    content: str
    position: Optional[int] = None  # only used for reordering; may repeat or skip

    @property
    def sort_key(self) -> int:
        return self.position if self.position is not None else 0

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Passage":
        meta = raw.get("meta") or {}
        position = meta.get("position")
        return cls(
            content=str(raw.get("content") or ""),
            position=int(position) if position is not None else None,
        )
