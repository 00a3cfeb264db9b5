"""Utilities for normalising YouTube channel identifiers."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

from ytmirror.core.errors import NotFoundError, UpstreamUnavailableError
from ytmirror.services.youtube_client import YouTubeDataClient

CHANNEL_ID_REGEX = re.compile(r"^UC[0-9A-Za-z_-]{22}$")
HANDLE_REGEX = re.compile(r"^@[0-9A-Za-z_.-]{1,100}$")


class ChannelResolutionError(ValueError):
    """Raised when a channel identifier cannot be normalised."""


def extract_handle(raw: str) -> str | None:
    """Return the `@handle` contained in a raw identifier or channel URL, if any."""

    identifier = raw.strip()
    if HANDLE_REGEX.match(identifier):
        return identifier

    if identifier.startswith("http://") or identifier.startswith("https://"):
        parts = [part for part in urlparse(identifier).path.split("/") if part]
        if parts and HANDLE_REGEX.match(parts[0]):
            return parts[0]
    return None


def extract_channel_id(raw: str) -> str:
    """Normalise user-supplied channel identifiers into canonical YouTube channel IDs.

    Supports:
      * Raw channel IDs (starting with UC)
      * YouTube feed URLs containing `channel_id`
      * Standard channel URLs (`/channel/UC...`)

    Handles need a Data API lookup; use :func:`resolve_channel_identifier` for those.
    """

    identifier = raw.strip()
    if not identifier:
        raise ChannelResolutionError("Empty channel identifier")

    if CHANNEL_ID_REGEX.match(identifier):
        return identifier

    if extract_handle(identifier):
        raise ChannelResolutionError("Channel handles must be resolved through the YouTube Data API")

    if identifier.startswith("http://") or identifier.startswith("https://"):
        parsed = urlparse(identifier)
        # Check query param first (feed URLs)
        channel_ids = parse_qs(parsed.query).get("channel_id")
        if channel_ids:
            candidate = channel_ids[-1]
            if CHANNEL_ID_REGEX.match(candidate):
                return candidate

        # Fallback: /channel/UC...
        parts = [part for part in parsed.path.split("/") if part]
        if len(parts) >= 2 and parts[-2] == "channel" and CHANNEL_ID_REGEX.match(parts[-1]):
            return parts[-1]

        raise ChannelResolutionError("Unsupported YouTube URL format")

    raise ChannelResolutionError("Unsupported channel identifier format")


async def resolve_channel_identifier(raw: str, client: YouTubeDataClient | None) -> str:
    """Like :func:`extract_channel_id`, but also resolves `@handles` via the Data API.

    ``QuotaExhaustedError`` from the client propagates unchanged.
    """

    handle = extract_handle(raw)
    if handle is None:
        return extract_channel_id(raw)

    if client is None or not client.has_credentials:
        raise ChannelResolutionError("Channel handle resolution requires YouTube credentials")

    try:
        channel_id = await client.resolve_handle(handle)
    except NotFoundError as exc:
        raise ChannelResolutionError("Channel handle not found") from exc
    except UpstreamUnavailableError as exc:
        raise ChannelResolutionError("Unable to contact YouTube Data API") from exc

    if not CHANNEL_ID_REGEX.match(channel_id):
        raise ChannelResolutionError("Channel handle not found")
    return channel_id
