"""Typed views of BluOS player responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

# -----------------------------------------------------------------------------
# Enumerations
# -----------------------------------------------------------------------------


class QualityCategory(str, Enum):
    """Named fidelity categories of the playing source."""

    CD = "cd"  # lossless at CD quality
    HD = "hd"  # lossless above CD quality, or >= 88200 samples/s
    DOLBY_AUDIO = "dolbyAudio"  # DolbyDigital or AC3
    MQA = "mqa"
    MQA_AUTHORED = "mqaAuthored"


class PlayerState(str, Enum):
    STOP = "stop"
    PLAY = "play"
    PAUSE = "pause"
    STREAM = "stream"
    CONNECTING = "connecting"
    NONE = "none"


class RepeatMode(int, Enum):
    QUEUE = 0
    TRACK = 1
    OFF = 2


class BrowseKind(str, Enum):
    """What kind of list a /Browse response holds."""

    MENU = "menu"
    CONTEXT_MENU = "contextMenu"
    ARTISTS = "artists"
    COMPOSERS = "composers"
    ALBUMS = "albums"
    PLAYLISTS = "playlists"
    TRACKS = "tracks"
    GENRES = "genres"
    SECTIONS = "sections"
    ITEMS = "items"
    FOLDERS = "folders"
    NONE = "none"


class ItemKind(str, Enum):
    """What a single browse item represents."""

    LINK = "link"
    AUDIO = "audio"
    ARTIST = "artist"
    COMPOSER = "composer"
    ALBUM = "album"
    PLAYLIST = "playlist"
    TRACK = "track"
    TEXT = "text"
    SECTION = "section"
    FOLDER = "folder"
    GENRE = "genre"
    NONE = "none"


# -----------------------------------------------------------------------------
# Quality
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Quality:
    """
    Quality of the playing source.

    Holds either a named ``category`` or the approximate ``bitrate`` of a
    compressed source, never both. ``raw`` keeps the wire token so that a
    bitrate of zero produced by an unparsable token can be told apart from
    a real zero (see ``is_degraded``).
    """

    category: Optional[QualityCategory] = None
    bitrate: Optional[int] = None
    raw: Optional[str] = field(default=None, compare=False)
    is_degraded: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        if (self.category is None) == (self.bitrate is None):
            raise ValueError("Quality holds exactly one of category or bitrate")

    @classmethod
    def named(cls, category: QualityCategory) -> "Quality":
        return cls(category=category, raw=category.value)

    @classmethod
    def compressed(cls, bitrate: int) -> "Quality":
        return cls(bitrate=bitrate, raw=str(bitrate))

    @property
    def is_compressed(self) -> bool:
        return self.bitrate is not None

    def to_wire(self) -> str:
        if self.category is not None:
            return self.category.value
        return str(self.bitrate)


# -----------------------------------------------------------------------------
# /Status
# -----------------------------------------------------------------------------


@dataclass
class Action:
    """A transport action the current source allows (or hides)."""
    name: str
    hide: bool = False
    url: Optional[str] = None


@dataclass
class Status:
    """Snapshot of a player returned by /Status."""

    etag: str
    # Volume
    volume: int  # percentage, -1 means fixed volume
    volume_db: float
    muted: bool
    muted_volume: Optional[int] = None
    muted_db: Optional[float] = None

    # Playback
    name: Optional[str] = None
    album: Optional[str] = None
    artist: Optional[str] = None
    total_length: Optional[int] = None
    seconds_played: Optional[int] = None
    repeat: RepeatMode = RepeatMode.OFF
    shuffle: bool = False
    queue_position: Optional[int] = None
    quality: Optional[Quality] = None
    filename: Optional[str] = None
    service: Optional[str] = None
    stream_format: Optional[str] = None

    # Display; UIs must prefer title1..3 / twoline_title1..2 over name/artist/album
    image: Optional[str] = None
    title1: Optional[str] = None
    title2: Optional[str] = None
    title3: Optional[str] = None
    twoline_title1: Optional[str] = None
    twoline_title2: Optional[str] = None
    current_image: Optional[str] = None

    # Group, only reported by the primary player
    group_name: Optional[str] = None
    group_volume: Optional[str] = None

    # Capabilities
    actions: List[Action] = field(default_factory=list)
    can_seek: Optional[bool] = None
    can_move_playback: Optional[bool] = None

    # System / undocumented, kept as received
    notify_url: Optional[str] = None
    mode: Optional[int] = None
    pid: Optional[int] = None  # matches Playlist.id; changes with the queue
    prid: Optional[int] = None  # preset id; a change invalidates cached /Presets
    sid: Optional[int] = None
    state: PlayerState = PlayerState.NONE
    stream_url: Optional[str] = None
    sync_stat: Optional[int] = None
    cursor: Optional[int] = None
    indexing: Optional[int] = None
    mid: Optional[int] = None

    @property
    def is_fixed_volume(self) -> bool:
        return self.volume == -1


# -----------------------------------------------------------------------------
# /Playlist
# -----------------------------------------------------------------------------


@dataclass
class PlaylistEntry:
    # Position in the queue; equals Status.queue_position when selected.
    # Not stable across queue changes.
    id: int
    song_id: Optional[str] = None
    album_id: Optional[str] = None
    artist_id: Optional[str] = None
    service: Optional[str] = None
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    filename: Optional[str] = None
    quality: Optional[Quality] = None


@dataclass
class Playlist:
    """The play queue returned by /Playlist."""
    id: int
    name: Optional[str] = None
    modified: bool = False  # modified since it was loaded
    length: Optional[int] = None
    entries: List[PlaylistEntry] = field(default_factory=list)


# -----------------------------------------------------------------------------
# /Browse
# -----------------------------------------------------------------------------


@dataclass
class BrowseItem:
    text: Optional[str] = None
    text2: Optional[str] = None
    image: Optional[str] = None
    kind: ItemKind = ItemKind.NONE
    browse_key: Optional[str] = None  # descend the hierarchy
    context_menu_key: Optional[str] = None
    play_url: Optional[str] = None
    autoplay_url: Optional[str] = None
    action_url: Optional[str] = None


@dataclass
class Browse:
    """One node of the browse hierarchy."""
    sid: Optional[str] = None
    kind: BrowseKind = BrowseKind.NONE
    service_name: Optional[str] = None
    service_icon: Optional[str] = None
    search_key: Optional[str] = None
    next_key: Optional[str] = None
    parent_key: Optional[str] = None
    items: List[BrowseItem] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Discovery
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Advertisement:
    """A responder seen by the service-advertisement collaborator."""
    instance_name: str
    host: str
    port: int
    properties: Dict[str, str] = field(default_factory=dict)


@dataclass
class DeviceDescriptor:
    """A player found on the network, as reported by /SyncStatus."""

    mac: str  # identity key
    id: str  # "ip:port"
    name: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    model_name: Optional[str] = None
    icon: Optional[str] = None
    volume: Optional[int] = None  # -1 means fixed volume
    db: Optional[float] = None
    group: Optional[str] = None
    schema_version: Optional[str] = None

    @property
    def host(self) -> str:
        return self.id.rsplit(":", 1)[0]

    @property
    def port(self) -> Optional[int]:
        _host, sep, port = self.id.rpartition(":")
        if not sep or not port.isdigit():
            return None
        return int(port)

    @property
    def base_url(self) -> str:
        return f"http://{self.id}"

    @property
    def icon_url(self) -> Optional[str]:
        if not self.icon:
            return None
        if "://" in self.icon:
            return self.icon
        return f"{self.base_url}/{self.icon.lstrip('/')}"
