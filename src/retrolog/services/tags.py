"""Hashtag extraction and normalization."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

from retrolog.schemas.feed import TagCount
from retrolog.schemas.message import MAX_TAG_LENGTH, Message

# ``\w`` is Unicode-aware, so Cyrillic and other alphabets are word characters.
TAG_PATTERN = re.compile(r"#\w+")

POPULAR_TAGS_LIMIT = 30


def extract_tags(content: str) -> list[str]:
    """Return hashtag tokens found in free text, in order of appearance."""
    return TAG_PATTERN.findall(content)


def split_manual_tags(manual_tags: Iterable[str]) -> list[str]:
    """Split comma separated tag input and ensure every tag starts with ``#``."""
    tags: list[str] = []
    for raw in manual_tags:
        for segment in raw.split(","):
            tag = segment.strip()
            if not tag:
                continue
            tags.append(tag if tag.startswith("#") else f"#{tag}")
    return tags


def normalize_tags(content: str, manual_tags: Iterable[str] = ()) -> list[str]:
    """Merge automatic and manual tags into a deduplicated, lower-cased list.

    Automatic tags come first, then manual ones, each in first-seen order.
    Duplicates are detected case-insensitively and tags outside
    ``2..MAX_TAG_LENGTH`` characters (a bare ``#`` carries no tag) are dropped.

    Args:
        content: Message body scanned for ``#word`` tokens.
        manual_tags: Explicitly entered tags, possibly comma separated.

    Returns:
        The normalized tag list.
    """
    seen: set[str] = set()
    result: list[str] = []
    for tag in [*extract_tags(content), *split_manual_tags(manual_tags)]:
        normalized = tag.lower()
        if normalized in seen:
            continue
        seen.add(normalized)
        if not 2 <= len(normalized) <= MAX_TAG_LENGTH:
            continue
        result.append(normalized)
    return result


def popular_tags(messages: Iterable[Message], limit: int = POPULAR_TAGS_LIMIT) -> list[TagCount]:
    """Count tag usage across messages, most used first.

    Ties keep the order in which tags were first encountered.
    """
    counts: Counter[str] = Counter()
    for message in messages:
        counts.update(tag.lower() for tag in message.tags)
    return [TagCount(tag=tag, count=count) for tag, count in counts.most_common(limit)]
