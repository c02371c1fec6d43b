#!/usr/bin/env python3
"""Source adapters: where node titles and URLs come from.

The engine never scrapes chat pages itself; an adapter hands it the
conversations currently available and the engine only uses them as
``create`` arguments.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Union

from arbor.core.logging_config import get_logger
from arbor.core.validation import sanitize_title
from arbor.tree.tree_types import Node, Tree

logger = get_logger(__name__)


@dataclass(frozen=True)
class SourceItem:
    """One conversation offered by a source adapter."""
    id: str
    title: str
    url: str
    platform: Optional[str] = None


class SourceAdapter(Protocol):
    def available_items(self) -> List[SourceItem]:
        ...


class StaticSourceAdapter:
    """Adapter over a fixed list, e.g. a sidebar snapshot saved to JSON."""

    def __init__(self, items: Iterable[SourceItem]):
        self.items = list(items)

    @classmethod
    def from_json_file(cls, file_path: Union[str, Path]) -> "StaticSourceAdapter":
        """Load ``[{"id", "title", "url", "platform"?}, ...]``; bad entries are skipped."""
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON array in {file_path}")

        items = []
        for entry in data:
            if not isinstance(entry, dict) or not entry.get('url'):
                logger.warning(f"Skipping source entry without url: {entry!r}")
                continue
            items.append(SourceItem(
                id=str(entry.get('id') or entry['url']),
                title=sanitize_title(entry.get('title')) or entry['url'],
                url=entry['url'],
                platform=entry.get('platform'),
            ))
        return cls(items)

    def available_items(self) -> List[SourceItem]:
        return list(self.items)


def tracked_urls(trees: Iterable[Tree]) -> set:
    return {node.source_url for tree in trees for node in tree.nodes.values() if node.source_url}


def untracked_items(adapter: SourceAdapter, trees: Iterable[Tree]) -> List[SourceItem]:
    """Items whose URL is not yet any node's source URL, first occurrence wins."""
    seen = tracked_urls(trees)
    result = []
    for item in adapter.available_items():
        if item.url in seen:
            continue
        seen.add(item.url)
        result.append(item)
    return result


def find_tracked_node(item: SourceItem, tree: Tree) -> Optional[Node]:
    for node in tree.nodes.values():
        if node.source_url == item.url:
            return node
    return None
