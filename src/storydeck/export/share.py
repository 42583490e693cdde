"""Share-link codec.

A story is shared by embedding it in a play URL: the record is dumped as
compact JSON, zlib-compressed and url-safe base64 encoded into the ``data``
query parameter. Stories too large for a URL fall back to a ``ref``
parameter naming where the story is stored (a document id or sheet URL
owned by the persistence collaborator).
"""

from __future__ import annotations

import base64
import binascii
import json
import zlib
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, quote, urlsplit

from pydantic import ValidationError

from storydeck.models.story import StoryDefinition
from storydeck.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_MAX_URL_LENGTH = 8000
PLAY_PATH = "/play"


class ShareLinkError(Exception):
    """Raised when a share link cannot be built or read."""


class ShareLinkTooLargeError(ShareLinkError):
    """Raised when the encoded story exceeds the URL budget and no reference exists."""

    def __init__(self, length: int, max_length: int) -> None:
        self.length = length
        self.max_length = max_length
        super().__init__(
            f"Share URL would be {length} characters (limit {max_length}); "
            "save the story and share a reference or the JSON file instead"
        )


@dataclass(frozen=True)
class SharedStory:
    """What a share URL carried: an embedded story or a storage reference."""

    story: StoryDefinition | None = None
    reference: str | None = None


def encode_story(story: StoryDefinition | dict[str, Any]) -> str:
    """Encode a story record as a url-safe token."""
    record = story.to_record() if isinstance(story, StoryDefinition) else story
    payload = json.dumps(record, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    token = base64.urlsafe_b64encode(zlib.compress(payload, 9)).decode("ascii")
    return token.rstrip("=")


def decode_story(token: str) -> StoryDefinition:
    """Decode a token produced by encode_story().

    Raises:
        ShareLinkError: If the token is corrupt or not a valid story.
    """
    padded = token + "=" * (-len(token) % 4)
    try:
        payload = zlib.decompress(base64.urlsafe_b64decode(padded))
        record = json.loads(payload.decode("utf-8"))
    except (binascii.Error, zlib.error, UnicodeDecodeError, ValueError) as e:
        raise ShareLinkError(f"Share data is corrupt: {e}") from e
    try:
        return StoryDefinition.model_validate(record)
    except ValidationError as e:
        raise ShareLinkError(f"Share data is not a valid story: {e}") from e


def build_share_url(
    story: StoryDefinition,
    base_url: str,
    *,
    reference: str | None = None,
    max_length: int = DEFAULT_MAX_URL_LENGTH,
) -> str:
    """Build a play URL for *story*.

    Args:
        story: Story to share.
        base_url: Site root, e.g. ``https://example.org``.
        reference: Storage reference used when the embedded URL is too long.
        max_length: Longest URL that will be produced with embedded data.

    Returns:
        ``<base>/play?data=<token>`` or ``<base>/play?ref=<reference>``.

    Raises:
        ShareLinkTooLargeError: If the story does not fit and no reference
            was given.
    """
    root = base_url.rstrip("/") + PLAY_PATH
    url = f"{root}?data={encode_story(story)}"
    if len(url) <= max_length:
        return url
    if reference:
        log.info("share_url_fallback", length=len(url), max_length=max_length)
        return f"{root}?ref={quote(reference, safe='')}"
    raise ShareLinkTooLargeError(len(url), max_length)


def parse_share_url(url: str) -> SharedStory:
    """Read a play URL back into its story or reference.

    Raises:
        ShareLinkError: If the URL has neither a ``data`` nor a ``ref``
            parameter, or the data is corrupt.
    """
    params = parse_qs(urlsplit(url).query)
    if "data" in params:
        return SharedStory(story=decode_story(params["data"][0]))
    if "ref" in params:
        return SharedStory(reference=params["ref"][0])
    raise ShareLinkError(f"URL carries no story data or reference: {url}")
