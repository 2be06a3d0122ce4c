from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable


def merge_cache_tags(*groups: Iterable[str] | None) -> list[str]:
    merged: set[str] = set()
    for group in groups:
        if group:
            merged.update(str(tag) for tag in group if tag)
    return sorted(merged)


def merge_cache_contexts(*groups: Iterable[str] | None) -> list[str]:
    return merge_cache_tags(*groups)


@dataclass(slots=True)
class CacheMetadata:
    """Cache tags and contexts attached to one rendered element."""

    tags: list[str] = field(default_factory=list)
    contexts: list[str] = field(default_factory=list)

    def merge(self, other: "CacheMetadata") -> "CacheMetadata":
        return CacheMetadata(
            tags=merge_cache_tags(self.tags, other.tags),
            contexts=merge_cache_contexts(self.contexts, other.contexts),
        )

    def as_dict(self) -> dict[str, list[str]]:
        return {"tags": list(self.tags), "contexts": list(self.contexts)}
