"""
Domain Entities: RawResultItem, ClassifiedResult

A raw item is whatever a provider returned, reduced to the few fields the
pipeline reads. Every field except ``title`` is optional and a missing or
ill-typed field means "no signal", never an error.
Provider mapping is handled by Infrastructure layer adapters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ContentType(str, Enum):
    """Closed set of content categories."""

    MOVIE = "movie"
    TV = "tv"
    ANIME = "anime"
    VARIETY = "variety"
    SHORTDRAMA = "shortdrama"
    DOCUMENTARY = "documentary"
    LIVE = "live"

    @classmethod
    def parse(cls, value: Any) -> ContentType | None:
        """Return the member for ``value`` or None if it is not one."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                return None
        return None


class ConfidenceOrigin(str, Enum):
    """Where a classification came from."""

    API = "api"
    INFERRED = "inferred"
    FALLBACK = "fallback"


Episodes = int | str | list[str] | None

# Fields read by the pipeline; everything else goes to ``extra``.
_KNOWN_FIELDS = frozenset({"title", "type", "type_name", "episodes", "source", "source_name"})


@dataclass(frozen=True)
class RawResultItem:
    """
    One upstream record.

    Only ``title`` is mandatory. ``extra`` carries provider fields the
    pipeline passes through untouched (id, poster, year, ...).
    """

    title: str
    type: str | None = None
    type_name: str | None = None
    episodes: Episodes = None
    source: str = ""
    source_name: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, source: str = "", source_name: str = "") -> RawResultItem:
        """Build an item from a loosely structured provider dict."""
        title = data.get("title")
        type_value = data.get("type")
        type_name = data.get("type_name")
        episodes = data.get("episodes")
        if not isinstance(episodes, (int, str, list)) or isinstance(episodes, bool):
            episodes = None
        return cls(
            title=title if isinstance(title, str) else ("" if title is None else str(title)),
            type=type_value if isinstance(type_value, str) else None,
            type_name=type_name if isinstance(type_name, str) else None,
            episodes=episodes,
            source=source or str(data.get("source") or ""),
            source_name=source_name or str(data.get("source_name") or ""),
            extra={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )

    @property
    def episode_count(self) -> int:
        """Number of episodes, 0 when not derivable."""
        episodes = self.episodes
        if isinstance(episodes, list):
            return len(episodes)
        if isinstance(episodes, bool):
            return 0
        if isinstance(episodes, int):
            return max(episodes, 0)
        if isinstance(episodes, str):
            digits = ""
            for char in episodes.strip():
                if not char.isdigit():
                    break
                digits += char
            return int(digits) if digits else 0
        return 0


@dataclass(frozen=True)
class ClassifiedResult:
    """A raw item plus exactly one content type and a confidence in [0, 1]."""

    item: RawResultItem
    type: ContentType
    confidence: float
    origin: ConfidenceOrigin

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")

    @property
    def title(self) -> str:
        return self.item.title

    @property
    def type_name(self) -> str | None:
        return self.item.type_name

    @property
    def source(self) -> str:
        return self.item.source

    def to_dict(self) -> dict[str, Any]:
        """Wire shape shared by the batch and streaming responses."""
        payload: dict[str, Any] = dict(self.item.extra)
        payload.update(
            {
                "title": self.item.title,
                "type": self.type.value,
                "confidence": self.confidence,
                "confidence_origin": self.origin.value,
                "type_name": self.item.type_name,
                "original_type": self.item.type,
                "episodes": self.item.episodes,
                "source": self.item.source,
                "source_name": self.item.source_name,
            }
        )
        return payload
