"""Discovery and response decoding for BluOS network players."""

from .client import BluOSClient
from .decoder import (
    decode,
    decode_browse,
    decode_file,
    decode_playlist,
    decode_status,
    decode_sync_status,
    encode,
    resolve_enum,
    resolve_quality,
)
from .discovery import (
    DiscoveryCoordinator,
    DiscoveryState,
    SyncStatusResolver,
    descriptor_from_advertisement,
)
from .errors import (
    AlreadyDiscoveringError,
    BluOSError,
    DiscoveryCancelError,
    DiscoveryError,
    NoControllerFoundError,
    PayloadReadError,
    RequestError,
    RequestFetchError,
    UnknownError,
    XMLDecodeError,
)
from .models import (
    Action,
    Advertisement,
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

__all__ = [
    "Action",
    "Advertisement",
    "AlreadyDiscoveringError",
    "BluOSClient",
    "BluOSError",
    "Browse",
    "BrowseItem",
    "BrowseKind",
    "DeviceDescriptor",
    "DiscoveryCancelError",
    "DiscoveryCoordinator",
    "DiscoveryError",
    "DiscoveryState",
    "ItemKind",
    "NoControllerFoundError",
    "PayloadReadError",
    "PlayerState",
    "Playlist",
    "PlaylistEntry",
    "Quality",
    "QualityCategory",
    "RepeatMode",
    "RequestError",
    "RequestFetchError",
    "Status",
    "SyncStatusResolver",
    "UnknownError",
    "XMLDecodeError",
    "decode",
    "decode_browse",
    "decode_file",
    "decode_playlist",
    "decode_status",
    "decode_sync_status",
    "descriptor_from_advertisement",
    "encode",
    "resolve_enum",
    "resolve_quality",
]
