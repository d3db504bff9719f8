"""
Decoding of BluOS XML responses into typed models.

Firmware generations disagree on which fields they send, so decoding is
lenient: unknown elements and attributes are ignored, optional fields that
are missing or malformed are left unset, and unknown enumeration tokens
resolve to the ``NONE`` member. Only a payload that cannot be read as the
expected shape at all (bad markup, wrong root element, missing required
field) raises ``XMLDecodeError``.

Every field is looked up first as an attribute, then as a child element,
since the protocol uses both styles.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Sequence, Type, TypeVar, Union
from xml.etree import ElementTree

from .errors import PayloadReadError, XMLDecodeError
from .models import (
    Action,
    Browse,
    BrowseItem,
    BrowseKind,
    DeviceDescriptor,
    ItemKind,
    PlayerState,
    Playlist,
    PlaylistEntry,
    Quality,
    QualityCategory,
    RepeatMode,
    Status,
)

_LOGGER = logging.getLogger(__name__)

Payload = Union[str, bytes]
E = TypeVar("E", PlayerState, BrowseKind, ItemKind)

_INT_RE = re.compile(r"[+-]?[0-9]+\Z")


# -----------------------------------------------------------------------------
# Enumeration resolution
# -----------------------------------------------------------------------------

def resolve_enum(kind: Type[E], token: Optional[str]) -> E:
    """Map a wire token onto ``kind``; unknown or missing tokens give ``kind.NONE``."""
    if token is None:
        return kind.NONE
    try:
        return kind(token.strip())
    except ValueError:
        _LOGGER.debug("Unknown %s token %r", kind.__name__, token)
        return kind.NONE


def resolve_quality(token: str) -> Quality:
    """
    Map a ``quality`` token onto a Quality.

    Named categories match exactly (protocol casing). Anything else is read
    as a bitrate; a token that is not an integer gives bitrate 0 with
    ``is_degraded`` set.
    """
    value = token.strip()
    try:
        category = QualityCategory(value)
    except ValueError:
        pass
    else:
        return Quality(category=category, raw=token)

    if _INT_RE.match(value):
        return Quality(bitrate=int(value), raw=token)

    _LOGGER.debug("Quality token %r is neither a category nor a bitrate", token)
    return Quality(bitrate=0, raw=token, is_degraded=True)


# -----------------------------------------------------------------------------
# Field conversion
# -----------------------------------------------------------------------------

def _parse_int(value: str) -> int:
    stripped = value.strip()
    if not _INT_RE.match(stripped):
        raise ValueError(f"not an integer: {value!r}")
    return int(stripped)


def _parse_flag(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    # Numeric flags are u8 on the wire; anything non-zero is set
    if _INT_RE.match(lowered):
        return int(lowered) != 0
    raise ValueError(f"not a flag: {value!r}")


def _parse_repeat(value: str) -> RepeatMode:
    return RepeatMode(_parse_int(value))


def _flag(value: bool) -> str:
    return "1" if value else "0"


def _true_false(value: bool) -> str:
    return "true" if value else "false"


def _identity(value: str) -> str:
    return value


@dataclass(frozen=True)
class _Field:
    attr: str
    wire: str
    parse: Callable[[str], Any] = _identity
    render: Callable[[Any], str] = str
    required: bool = False
    as_attribute: bool = False


def _str(attr: str, wire: Optional[str] = None, **kwargs: Any) -> _Field:
    return _Field(attr, wire or attr, **kwargs)


def _int(attr: str, wire: Optional[str] = None, **kwargs: Any) -> _Field:
    return _Field(attr, wire or attr, _parse_int, **kwargs)


def _float(attr: str, wire: Optional[str] = None, **kwargs: Any) -> _Field:
    return _Field(attr, wire or attr, float, repr, **kwargs)


def _quality(attr: str = "quality", wire: str = "quality", **kwargs: Any) -> _Field:
    return _Field(attr, wire, resolve_quality, Quality.to_wire, **kwargs)


def _enum(kind: Type[E], attr: str, wire: str, **kwargs: Any) -> _Field:
    return _Field(attr, wire, lambda token: resolve_enum(kind, token), lambda v: v.value, **kwargs)


_STATUS_FIELDS: Sequence[_Field] = (
    _str("etag", required=True, as_attribute=True),
    _int("volume", required=True),
    _float("volume_db", "db", required=True),
    _Field("muted", "mute", _parse_flag, _flag, required=True),
    _int("muted_volume", "muteVolume"),
    _float("muted_db", "muteDb"),
    _str("name"),
    _str("album"),
    _str("artist"),
    _int("total_length", "totlen"),
    _int("seconds_played", "secs"),
    _Field("repeat", "repeat", _parse_repeat, lambda v: str(v.value)),
    _Field("shuffle", "shuffle", _parse_flag, _flag),
    _int("queue_position", "song"),
    _quality(),
    _str("filename", "fn"),
    _str("service"),
    _str("stream_format", "streamFormat"),
    _str("image"),
    _str("title1"),
    _str("title2"),
    _str("title3"),
    _str("twoline_title1"),
    _str("twoline_title2"),
    _str("current_image", "currentImage"),
    _str("group_name", "groupName"),
    _str("group_volume", "groupVolume"),
    _Field("can_seek", "canSeek", _parse_flag, _flag),
    _Field("can_move_playback", "canMovePlayback", _parse_flag, _true_false),
    _str("notify_url", "notifyurl"),
    _int("mode"),
    _int("pid"),
    _int("prid"),
    _int("sid"),
    _enum(PlayerState, "state", "state"),
    _str("stream_url", "streamUrl"),
    _int("sync_stat", "syncStat"),
    _int("cursor"),
    _int("indexing"),
    _int("mid"),
)

_PLAYLIST_FIELDS: Sequence[_Field] = (
    _int("id", required=True, as_attribute=True),
    _str("name", as_attribute=True),
    _Field("modified", "modified", _parse_flag, _flag, as_attribute=True),
    _int("length", as_attribute=True),
)

_PLAYLIST_ENTRY_FIELDS: Sequence[_Field] = (
    _str("song_id", "songid", as_attribute=True),
    _str("album_id", "albumid", as_attribute=True),
    _str("artist_id", "artistid", as_attribute=True),
    _str("service", as_attribute=True),
    _str("title"),
    _str("artist", "art"),
    _str("album", "alb"),
    _str("filename", "fn"),
    _quality(),
)

_BROWSE_FIELDS: Sequence[_Field] = (
    _str("sid", as_attribute=True),
    _enum(BrowseKind, "kind", "type", as_attribute=True),
    _str("service_name", "serviceName", as_attribute=True),
    _str("service_icon", "serviceIcon", as_attribute=True),
    _str("search_key", "searchKey", as_attribute=True),
    _str("next_key", "nextKey", as_attribute=True),
    _str("parent_key", "parentKey", as_attribute=True),
)

_BROWSE_ITEM_FIELDS: Sequence[_Field] = (
    _str("text", as_attribute=True),
    _str("text2", as_attribute=True),
    _str("image", as_attribute=True),
    _enum(ItemKind, "kind", "type", as_attribute=True),
    _str("browse_key", "browseKey", as_attribute=True),
    _str("context_menu_key", "contextMenuKey", as_attribute=True),
    _str("play_url", "playURL", as_attribute=True),
    _str("autoplay_url", "autoplayURL", as_attribute=True),
    _str("action_url", "actionURL", as_attribute=True),
)

_SYNC_STATUS_FIELDS: Sequence[_Field] = (
    _str("mac", required=True, as_attribute=True),
    _str("id", required=True, as_attribute=True),
    _str("name", as_attribute=True),
    _str("brand", as_attribute=True),
    _str("model", as_attribute=True),
    _str("model_name", "modelName", as_attribute=True),
    _str("icon", as_attribute=True),
    _int("volume", as_attribute=True),
    _float("db", as_attribute=True),
    _str("group", as_attribute=True),
    _str("schema_version", "schemaVersion", as_attribute=True),
)


# -----------------------------------------------------------------------------
# Decoding
# -----------------------------------------------------------------------------

class _Document:
    """A parsed payload plus what is needed to report it on failure."""

    def __init__(self, payload: Payload, root_tag: str, url: str) -> None:
        if isinstance(payload, bytes):
            self.xml = payload.decode("utf-8", errors="replace")
        else:
            self.xml = payload
        self.url = url

        try:
            self.root = ElementTree.fromstring(payload)
        except ElementTree.ParseError as err:
            raise self.error(str(err)) from err

        if self.root.tag != root_tag:
            raise self.error(f"expected <{root_tag}> element, got <{self.root.tag}>")

    def error(self, reason: str) -> XMLDecodeError:
        return XMLDecodeError(self.xml, self.url, reason)

    def fields(self, element: ElementTree.Element, fields: Sequence[_Field]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for spec in fields:
            raw = _lookup(element, spec.wire)
            if raw is None:
                if spec.required:
                    raise self.error(f"missing required field {spec.wire!r}")
                continue

            try:
                values[spec.attr] = spec.parse(raw)
            except ValueError as err:
                if spec.required:
                    raise self.error(f"invalid value for {spec.wire!r}: {err}") from err
                _LOGGER.debug("Dropping <%s> field %s=%r", element.tag, spec.wire, raw)

        return values


def _lookup(element: ElementTree.Element, name: str) -> Optional[str]:
    value = element.get(name)
    if value is not None:
        return value

    child = element.find(name)
    if child is None:
        return None

    return child.text or ""


def decode_status(payload: Payload, url: str = "") -> Status:
    doc = _Document(payload, "status", url)
    values = doc.fields(doc.root, _STATUS_FIELDS)

    actions = []
    for action in doc.root.iterfind("actions/action"):
        name = action.get("name")
        if not name:
            _LOGGER.debug("Skipping unnamed action in %s", url or "status")
            continue
        try:
            hide = _parse_flag(action.get("hide", "0"))
        except ValueError:
            hide = False
        actions.append(Action(name=name, hide=hide, url=action.get("url")))

    return Status(actions=actions, **values)


def decode_playlist(payload: Payload, url: str = "") -> Playlist:
    doc = _Document(payload, "playlist", url)
    values = doc.fields(doc.root, _PLAYLIST_FIELDS)

    entries = []
    for position, song in enumerate(doc.root.iterfind("song")):
        entry_values = doc.fields(song, _PLAYLIST_ENTRY_FIELDS)
        try:
            entry_id = _parse_int(song.get("id", ""))
        except ValueError:
            _LOGGER.debug("Playlist entry without usable id, using position %s", position)
            entry_id = position
        entries.append(PlaylistEntry(id=entry_id, **entry_values))

    return Playlist(entries=entries, **values)


def _browse_item_elements(root: ElementTree.Element) -> Iterator[ElementTree.Element]:
    # Some services group items in undocumented <category> elements
    for child in root:
        if child.tag == "item":
            yield child
        elif child.tag == "category":
            yield from child.iterfind("item")


def decode_browse(payload: Payload, url: str = "") -> Browse:
    doc = _Document(payload, "browse", url)
    values = doc.fields(doc.root, _BROWSE_FIELDS)
    items = [
        BrowseItem(**doc.fields(item, _BROWSE_ITEM_FIELDS))
        for item in _browse_item_elements(doc.root)
    ]
    return Browse(items=items, **values)


def decode_sync_status(payload: Payload, url: str = "") -> DeviceDescriptor:
    doc = _Document(payload, "SyncStatus", url)
    return DeviceDescriptor(**doc.fields(doc.root, _SYNC_STATUS_FIELDS))


_DECODERS: Dict[str, Callable[[Payload, str], Any]] = {
    "status": decode_status,
    "playlist": decode_playlist,
    "browse": decode_browse,
    "sync_status": decode_sync_status,
}

SHAPES = tuple(_DECODERS)


def decode(payload: Payload, shape: str, url: str = "") -> Any:
    """Decode ``payload`` as one of ``SHAPES``."""
    try:
        decoder = _DECODERS[shape]
    except KeyError:
        raise ValueError(f"Unknown response shape: {shape!r}") from None

    return decoder(payload, url)


def decode_file(path: Union[str, Path], shape: str) -> Any:
    path = Path(path)
    try:
        payload = path.read_bytes()
    except OSError as err:
        raise PayloadReadError(str(path), err) from err

    return decode(payload, shape, url=str(path))


# -----------------------------------------------------------------------------
# Encoding
# -----------------------------------------------------------------------------

def _render(element: ElementTree.Element, obj: Any, fields: Sequence[_Field]) -> None:
    for spec in fields:
        value = getattr(obj, spec.attr)
        if value is None:
            continue
        text = spec.render(value)
        if spec.as_attribute:
            element.set(spec.wire, text)
        else:
            ElementTree.SubElement(element, spec.wire).text = text


def _to_string(element: ElementTree.Element) -> str:
    return ElementTree.tostring(element, encoding="unicode")


def encode_status(status: Status) -> str:
    root = ElementTree.Element("status")
    _render(root, status, _STATUS_FIELDS)
    if status.actions:
        actions = ElementTree.SubElement(root, "actions")
        for action in status.actions:
            element = ElementTree.SubElement(
                actions, "action", name=action.name, hide=_flag(action.hide)
            )
            if action.url is not None:
                element.set("url", action.url)
    return _to_string(root)


def encode_playlist(playlist: Playlist) -> str:
    root = ElementTree.Element("playlist")
    _render(root, playlist, _PLAYLIST_FIELDS)
    for entry in playlist.entries:
        song = ElementTree.SubElement(root, "song", id=str(entry.id))
        _render(song, entry, _PLAYLIST_ENTRY_FIELDS)
    return _to_string(root)


def encode_browse(browse: Browse) -> str:
    root = ElementTree.Element("browse")
    _render(root, browse, _BROWSE_FIELDS)
    for item in browse.items:
        _render(ElementTree.SubElement(root, "item"), item, _BROWSE_ITEM_FIELDS)
    return _to_string(root)


def encode_sync_status(device: DeviceDescriptor) -> str:
    root = ElementTree.Element("SyncStatus")
    _render(root, device, _SYNC_STATUS_FIELDS)
    return _to_string(root)


_ENCODERS: Dict[type, Callable[[Any], str]] = {
    Status: encode_status,
    Playlist: encode_playlist,
    Browse: encode_browse,
    DeviceDescriptor: encode_sync_status,
}


def encode(obj: Union[Status, Playlist, Browse, DeviceDescriptor]) -> str:
    """Render a decoded object back into protocol markup."""
    try:
        encoder = _ENCODERS[type(obj)]
    except KeyError:
        raise TypeError(f"Cannot encode {type(obj).__name__}") from None

    return encoder(obj)
