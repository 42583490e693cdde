"""Export package - share links and result submissions."""

from storydeck.export.results import (
    DEFAULT_NICKNAME,
    ResultStore,
    build_result,
    format_elapsed,
    rank_results,
)
from storydeck.export.share import (
    ShareLinkError,
    ShareLinkTooLargeError,
    SharedStory,
    build_share_url,
    decode_story,
    encode_story,
    parse_share_url,
)

__all__ = [
    "DEFAULT_NICKNAME",
    "ResultStore",
    "ShareLinkError",
    "ShareLinkTooLargeError",
    "SharedStory",
    "build_result",
    "build_share_url",
    "decode_story",
    "encode_story",
    "format_elapsed",
    "parse_share_url",
    "rank_results",
]
