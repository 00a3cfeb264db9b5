"""Import, export and item mutations for local playlists.

Every mutation keeps ``Playlist.items`` free of duplicate video ids and
bumps ``updated_at`` only when the item list actually changed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ytmirror.core.errors import PlaylistValidationError
from ytmirror.db.models import Playlist, PlaylistItem, as_utc

EXPORT_FORMAT = "ytmirror.playlist"
EXPORT_VERSION = 1
PLAYLIST_ORIGINS = ("video", "music")
DEFAULT_IMPORT_NAME = "Imported Playlist"


@dataclass(slots=True)
class ItemData:
    """An item to be placed in a playlist."""

    video_id: str
    title: str = ""
    artist_or_channel: str = ""
    duration: str | None = None
    thumbnail_url: str | None = None


@dataclass(slots=True)
class ImportStats:
    total: int
    added: int


@dataclass(slots=True)
class ParsedImport:
    """A validated import payload."""

    items: list[ItemData]
    name: str | None = None
    description: str | None = None
    origin: str = "video"
    playlist_id: str | None = None


def _video_ids(playlist: Playlist) -> set[str]:
    return {item.video_id for item in playlist.items}


def _to_item(data: ItemData, now: datetime) -> PlaylistItem:
    return PlaylistItem(
        video_id=data.video_id,
        title=data.title,
        artist_or_channel=data.artist_or_channel,
        duration=data.duration,
        thumbnail_url=data.thumbnail_url,
        added_at=now,
    )


def add_item(target: Playlist, item: ItemData, *, now: datetime) -> bool:
    """Append ``item`` unless its video is already present."""

    if item.video_id in _video_ids(target):
        return False
    target.items.append(_to_item(item, now))
    target.updated_at = now
    return True


def remove_item(target: Playlist, video_id: str, *, now: datetime) -> bool:
    for item in target.items:
        if item.video_id == video_id:
            target.items.remove(item)
            target.updated_at = now
            return True
    return False


def import_playlist(target: Playlist, incoming: Iterable[ItemData], *, now: datetime) -> ImportStats:
    """Append incoming items in order, skipping videos already present.

    Repeats inside ``incoming`` count once: after the first is added the
    later ones are treated as already present.
    """

    present = _video_ids(target)
    total = 0
    added = 0
    for data in incoming:
        total += 1
        if data.video_id in present:
            continue
        target.items.append(_to_item(data, now))
        present.add(data.video_id)
        added += 1

    if added:
        target.updated_at = now
    return ImportStats(total=total, added=added)


def _isoformat(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def export_playlist(source: Playlist, *, exported_at: datetime | None = None) -> dict[str, Any]:
    """Portable JSON document for ``source``; item order is preserved."""

    return {
        "format": EXPORT_FORMAT,
        "version": EXPORT_VERSION,
        "sourcePlaylistId": str(source.id) if source.id is not None else None,
        "name": source.name,
        "description": source.description,
        "origin": source.origin,
        "exportedAt": _isoformat(exported_at),
        "items": [
            {
                "videoId": item.video_id,
                "title": item.title,
                "artistOrChannel": item.artist_or_channel,
                "duration": item.duration,
                "thumbnailUrl": item.thumbnail_url,
                "addedAt": _isoformat(item.added_at),
            }
            for item in source.items
        ],
    }


def _optional_str(payload: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise PlaylistValidationError(f"Field '{key}' must be a string")
        text = str(value).strip()
        if text:
            return text
    return None


def _parse_item(raw: Any, index: int) -> ItemData:
    if not isinstance(raw, Mapping):
        raise PlaylistValidationError(f"Item {index} must be an object")
    video_id = _optional_str(raw, "videoId", "video_id")
    if video_id is None:
        raise PlaylistValidationError(f"Item {index} is missing a videoId")
    return ItemData(
        video_id=video_id,
        title=_optional_str(raw, "title") or "",
        artist_or_channel=_optional_str(raw, "artistOrChannel", "artist", "channelTitle") or "",
        duration=_optional_str(raw, "duration"),
        thumbnail_url=_optional_str(raw, "thumbnailUrl", "thumbnail"),
    )


def parse_import_payload(payload: Any) -> ParsedImport:
    """Validate an import body.

    Accepts the export document as well as looser shapes: ``title`` instead
    of ``name``, ``videos`` instead of ``items`` and a bare ``videoIds`` list.
    Only ``playlistId`` names a merge target; the ``sourcePlaylistId`` an
    export carries is informational.
    """

    if not isinstance(payload, Mapping):
        raise PlaylistValidationError("Import payload must be a JSON object")

    items: list[ItemData] = []
    for key in ("items", "videos"):
        raw_items = payload.get(key)
        if raw_items is None:
            continue
        if not isinstance(raw_items, list):
            raise PlaylistValidationError(f"Field '{key}' must be a list")
        items.extend(_parse_item(raw, index) for index, raw in enumerate(raw_items))

    raw_ids = payload.get("videoIds")
    if raw_ids is not None:
        if not isinstance(raw_ids, list):
            raise PlaylistValidationError("Field 'videoIds' must be a list")
        for raw_id in raw_ids:
            if isinstance(raw_id, str) and raw_id.strip():
                items.append(ItemData(video_id=raw_id.strip()))

    origin = _optional_str(payload, "origin") or "video"
    if origin not in PLAYLIST_ORIGINS:
        raise PlaylistValidationError(f"Unknown playlist origin: {origin}")

    return ParsedImport(
        items=items,
        name=_optional_str(payload, "name", "title"),
        description=_optional_str(payload, "description"),
        origin=origin,
        playlist_id=_optional_str(payload, "playlistId"),
    )
