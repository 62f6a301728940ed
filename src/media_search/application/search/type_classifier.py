"""
TypeClassifier - Content Type Inference for Multi-Source Results

Providers report type metadata in incompatible vocabularies, or not at all.
This module maps every raw item to exactly one ContentType with a confidence
score, using a priority-ordered chain where the first applicable rule wins:

1. API-provided type that is a valid ContentType (1.0, api)
2. Reserved source keys for live streams and short dramas (0.9)
3. Keyword table over ``type_name`` (0.9 / 0.8)
4. Lower-weight keyword table over ``title`` (0.7)
5. Episode count: one episode is a movie, more is a series (0.3)
6. Fallback to tv (0.1, fallback)

Architecture Decision:
    The keyword tables are ordered tuples of (keywords, type, weight)
    evaluated top to bottom. Order is significant: "综艺" must be checked
    before the generic "show"-like series keywords, and "电视电影" only
    matters when nothing above matched.

    classify() is pure and never calls any external API.

Example:
    >>> item = RawResultItem(title="电影A 高清版", type_name="电影")
    >>> result = classify(item)
    >>> result.type, result.confidence
    (<ContentType.MOVIE: 'movie'>, 0.9)
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any

from media_search.domain.entities import (
    ClassifiedResult,
    ConfidenceOrigin,
    ContentType,
    RawResultItem,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Rule Tables
# =============================================================================

KeywordRule = tuple[tuple[str, ...], ContentType, float]

# Source keys whose items are always of one type.
RESERVED_SOURCE_TYPES: dict[str, ContentType] = {
    "live": ContentType.LIVE,
    "shortdrama": ContentType.SHORTDRAMA,
    "moonshortdrama": ContentType.SHORTDRAMA,
}
RESERVED_SOURCE_WEIGHT = 0.9

TYPE_NAME_RULES: tuple[KeywordRule, ...] = (
    (
        ("综艺", "真人秀", "娱乐", "脱口秀", "选秀", "访谈", "晚会", "相声", "小品", "variety", "show"),
        ContentType.VARIETY,
        0.9,
    ),
    (("电影", "影片", "院线", "movie"), ContentType.MOVIE, 0.9),
    (
        ("动漫", "动画", "番剧", "国漫", "日漫", "动画片", "anime", "cartoon", "acg"),
        ContentType.ANIME,
        0.9,
    ),
    (("纪录片", "documentary", "纪录"), ContentType.DOCUMENTARY, 0.9),
    (("短剧", "短片", "小剧场", "微剧"), ContentType.SHORTDRAMA, 0.9),
    (("电视剧", "连续剧", "剧集", "tv", "series"), ContentType.TV, 0.8),
    (("电视电影",), ContentType.MOVIE, 0.8),
)

TITLE_RULES: tuple[KeywordRule, ...] = (
    (("电影", "片", "院线"), ContentType.MOVIE, 0.7),
    (("剧集", "连续剧", "第", "季", "集"), ContentType.TV, 0.7),
    (("动漫", "动画", "番"), ContentType.ANIME, 0.7),
    (("综艺", "秀", "节目"), ContentType.VARIETY, 0.7),
    (("纪录", "纪录片"), ContentType.DOCUMENTARY, 0.7),
    (("短剧", "微剧"), ContentType.SHORTDRAMA, 0.7),
)

# Thresholds
TITLE_SCAN_BELOW = 0.8
EPISODE_SCAN_BELOW = 0.5
EPISODE_WEIGHT = 0.3
FALLBACK_BELOW = 0.3
FALLBACK_CONFIDENCE = 0.1
FALLBACK_TYPE = ContentType.TV

# Confidence bands used by inference_quality()
HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5


def _first_match(text: str, rules: Sequence[KeywordRule]) -> tuple[ContentType, float] | None:
    """Return (type, weight) of the first rule with a keyword contained in text."""
    if not text:
        return None
    for keywords, content_type, weight in rules:
        if any(keyword in text for keyword in keywords):
            return content_type, weight
    return None


# =============================================================================
# Classification
# =============================================================================


def classify(item: RawResultItem) -> ClassifiedResult:
    """Classify one raw item. Total over all inputs."""
    api_type = ContentType.parse(item.type)
    if api_type is not None:
        return ClassifiedResult(item=item, type=api_type, confidence=1.0, origin=ConfidenceOrigin.API)

    reserved = RESERVED_SOURCE_TYPES.get((item.source or "").lower())
    if reserved is not None:
        return ClassifiedResult(
            item=item,
            type=reserved,
            confidence=RESERVED_SOURCE_WEIGHT,
            origin=ConfidenceOrigin.INFERRED,
        )

    best_type: ContentType | None = None
    confidence = 0.0

    match = _first_match((item.type_name or "").lower(), TYPE_NAME_RULES)
    if match is not None:
        best_type, confidence = match

    if confidence < TITLE_SCAN_BELOW:
        lowered_title = (item.title or "").lower()
        for keywords, content_type, weight in TITLE_RULES:
            if any(keyword in lowered_title for keyword in keywords) and confidence < weight:
                best_type, confidence = content_type, weight

    if confidence < EPISODE_SCAN_BELOW:
        count = item.episode_count
        if count > 0:
            best_type = ContentType.MOVIE if count == 1 else ContentType.TV
            confidence = EPISODE_WEIGHT

    if best_type is None or confidence < FALLBACK_BELOW:
        return ClassifiedResult(
            item=item,
            type=FALLBACK_TYPE,
            confidence=FALLBACK_CONFIDENCE,
            origin=ConfidenceOrigin.FALLBACK,
        )

    return ClassifiedResult(item=item, type=best_type, confidence=confidence, origin=ConfidenceOrigin.INFERRED)


def classify_safely(item: RawResultItem) -> ClassifiedResult:
    """classify() that degrades to tv / 0.0 instead of raising."""
    try:
        return classify(item)
    except Exception as e:
        logger.warning(f"Classification failed for {getattr(item, 'title', '?')!r}: {e}")
        return ClassifiedResult(item=item, type=FALLBACK_TYPE, confidence=0.0, origin=ConfidenceOrigin.FALLBACK)


def classify_batch(items: Iterable[RawResultItem]) -> list[ClassifiedResult]:
    """Classify items in order."""
    return [classify_safely(item) for item in items]


# =============================================================================
# Diagnostics
# =============================================================================


def type_statistics(results: Iterable[ClassifiedResult]) -> dict[str, int]:
    """Count results per content type."""
    counts = Counter(result.type.value for result in results)
    return dict(counts)


def inference_quality(results: Sequence[ClassifiedResult]) -> dict[str, Any]:
    """Bucket results by confidence band."""
    high = medium = low = unknown = 0
    for result in results:
        if result.confidence == 0:
            unknown += 1
        elif result.confidence >= HIGH_CONFIDENCE:
            high += 1
        elif result.confidence >= MEDIUM_CONFIDENCE:
            medium += 1
        else:
            low += 1
    return {
        "total": len(results),
        "high": high,
        "medium": medium,
        "low": low,
        "unknown": unknown,
    }
