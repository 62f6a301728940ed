"""
Source adapters - one implementation of the SourceAdapter port per provider API family.
"""

from .cms_adapter import CmsSourceAdapter, map_vod_record, parse_episodes

__all__ = [
    "CmsSourceAdapter",
    "map_vod_record",
    "parse_episodes",
]
