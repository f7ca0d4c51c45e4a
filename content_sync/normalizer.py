"""
Conversion of GitHub discussions into stored records.

Pure functions, no I/O.
"""

import hashlib
import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional

from content_sync.config import SourceConfig, TopicConfig
from content_sync.github_api import Discussion
from content_sync.models import Record


def generate_slug(title: str) -> str:
    """
    Generate a URL-safe slug from a title.

    Examples:
        "Niccolò Machiavelli" -> "niccolo-machiavelli"
        "The Catholic Church" -> "the-catholic-church"
        "U.S. Congress" -> "u-s-congress"

    Args:
        title: The title to convert.

    Returns:
        Lowercase ASCII slug, possibly empty.
    """
    # Decompose accented characters and drop the combining marks
    decomposed = unicodedata.normalize("NFD", title)
    slug = "".join(ch for ch in decomposed if not unicodedata.combining(ch))

    slug = slug.lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")
    slug = re.sub(r"-{2,}", "-", slug)

    return slug


def generate_checksum(body: str) -> str:
    """SHA-256 hex digest of the body, used for change detection."""
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


def legacy_checksum(body: str) -> str:
    """
    32-bit rolling hash over UTF-16 code units.

    Kept for reading checksums produced by older tooling. Not collision
    resistant; the sync path uses generate_checksum.
    """
    encoded = body.encode("utf-16-le")
    value = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        value = (value * 31 + code_unit) & 0xFFFFFFFF

    # Signed 32-bit interpretation
    if value >= 0x80000000:
        value -= 0x100000000

    return format(abs(value), "x").zfill(8)


def discussion_to_record(
    discussion: Discussion,
    source: SourceConfig,
    topic: TopicConfig,
    retrieved_at: Optional[datetime] = None,
) -> Record:
    """
    Convert a GitHub discussion into a Record.

    Args:
        discussion: Discussion as returned by the API client.
        source: Source the discussion belongs to.
        topic: Topic (category) the discussion was retrieved for.
        retrieved_at: Retrieval time. Defaults to now (UTC).

    Returns:
        Fully populated Record.
    """
    if topic.slug_from != "title":
        raise ValueError(f"Unsupported slug field: {topic.slug_from}")

    retrieved_at = retrieved_at or datetime.now(timezone.utc)

    return Record(
        source=source.name,
        source_type=source.type,
        category=topic.category,
        title=discussion.title,
        slug=generate_slug(discussion.title),
        external_id=discussion.number,
        external_url=discussion.url,
        retrieved_at=retrieved_at.isoformat(),
        updated_at=discussion.updated_at,
        checksum=generate_checksum(discussion.body),
        body=discussion.body,
    )
