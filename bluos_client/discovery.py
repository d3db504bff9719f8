"""
Discovery of BluOS players on the local network.

A ``DiscoveryCoordinator`` runs at most one search at a time. The search
listens to an ``AdvertisementSource`` (mDNS by default), resolves every
responder into a ``DeviceDescriptor`` and keeps one descriptor per MAC;
a repeated advertisement replaces the earlier descriptor.

States::

    IDLE --start()--> SEARCHING --cancel()--> CANCELLING
      ^                   |                       |
      +----- timeout -----+------ acknowledged ---+

Every search ends in IDLE, whether it succeeded, found nothing or was
cancelled, so a failed attempt can always be retried.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Set, Tuple, TypeVar

import aiohttp

from .client import BLUOS_PORT, BluOSClient
from .errors import (
    AlreadyDiscoveringError,
    BluOSError,
    DiscoveryCancelError,
    DiscoveryError,
    NoControllerFoundError,
    UnknownError,
)
from .models import Advertisement, DeviceDescriptor
from .util import normalize_mac
from .zeroconf import BLUOS_SERVICE, DEFAULT_REQUEST_TIMEOUT_MS, ZeroconfAdvertisementSource

_LOGGER = logging.getLogger(__name__)

DEFAULT_DISCOVERY_TIMEOUT = 5.0

T = TypeVar("T")

Resolver = Callable[[Advertisement], Awaitable[Optional[DeviceDescriptor]]]


class AdvertisementSource(Protocol):
    async def start(self, on_advertisement: Callable[[Advertisement], None]) -> None:
        ...

    async def stop(self) -> None:
        ...


class DiscoveryState(Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    CANCELLING = "cancelling"


# -----------------------------------------------------------------------------
# Resolvers
# -----------------------------------------------------------------------------

def _first(props: Dict[str, str], *keys: str) -> Optional[str]:
    lowered = {k.lower(): v for k, v in props.items()}
    for key in keys:
        value = lowered.get(key.lower())
        if value:
            return value
    return None


def _optional_number(value: Optional[str], convert: Callable[[str], T]) -> Optional[T]:
    if value is None:
        return None
    try:
        return convert(value)
    except ValueError:
        return None


async def descriptor_from_advertisement(advertisement: Advertisement) -> Optional[DeviceDescriptor]:
    """Build a descriptor from the advertisement's TXT records alone."""
    props = advertisement.properties
    mac = _first(props, "mac", "macAddress")
    if not mac:
        _LOGGER.debug("Advertisement %s has no mac, skipping", advertisement.instance_name)
        return None

    return DeviceDescriptor(
        mac=mac,
        id=f"{advertisement.host}:{advertisement.port}",
        name=_first(props, "name"),
        brand=_first(props, "brand"),
        model=_first(props, "model"),
        model_name=_first(props, "modelName", "model_name"),
        icon=_first(props, "icon"),
        volume=_optional_number(_first(props, "volume"), int),
        db=_optional_number(_first(props, "db"), float),
        group=_first(props, "group"),
        schema_version=_first(props, "schemaVersion", "version"),
    )


class SyncStatusResolver:
    """Resolve each responder by asking it for /SyncStatus."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: float = 5.0) -> None:
        self._session = session
        self._timeout = timeout

    async def __call__(self, advertisement: Advertisement) -> Optional[DeviceDescriptor]:
        async with BluOSClient(
            advertisement.host,
            advertisement.port or BLUOS_PORT,
            session=self._session,
            timeout=self._timeout,
        ) as client:
            return await client.sync_status()


# -----------------------------------------------------------------------------
# Coordinator
# -----------------------------------------------------------------------------

class DiscoveryCoordinator:
    """Runs searches one at a time and collects the players they find."""

    def __init__(
        self,
        source_factory: Optional[Callable[[], AdvertisementSource]] = None,
        resolver: Optional[Resolver] = None,
        service_types: Iterable[str] = (BLUOS_SERVICE,),
        request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
    ) -> None:
        if source_factory is None:
            service_types = list(service_types)

            def source_factory() -> AdvertisementSource:
                return ZeroconfAdvertisementSource(service_types, request_timeout_ms)

        self._source_factory = source_factory
        self._resolver: Resolver = resolver or descriptor_from_advertisement

        # Guards _state, _task, _cancel_event and _finished
        self._lock = threading.Lock()
        self._state = DiscoveryState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._cancel_event: Optional[asyncio.Event] = None
        # Set once the running search stopped on its own and can no longer be cancelled
        self._finished = False

    @property
    def state(self) -> DiscoveryState:
        with self._lock:
            return self._state

    @property
    def is_discovering(self) -> bool:
        return self.state is not DiscoveryState.IDLE

    def start(self, timeout: float = DEFAULT_DISCOVERY_TIMEOUT) -> asyncio.Task:
        """
        Begin a search in the background and return its task.

        The task resolves to the list of players found, or raises
        ``NoControllerFoundError`` if none answered within ``timeout``.
        Raises ``AlreadyDiscoveringError`` right away if a search is running.
        """
        loop = asyncio.get_running_loop()

        with self._lock:
            if self._state is not DiscoveryState.IDLE:
                raise AlreadyDiscoveringError()
            self._state = DiscoveryState.SEARCHING
            self._finished = False
            cancel_event = asyncio.Event()
            self._cancel_event = cancel_event
            self._task = loop.create_task(self._search(timeout, cancel_event))
            task = self._task
            task.add_done_callback(self._release)

        _LOGGER.info("Discovery started (timeout=%ss)", timeout)
        return task

    async def wait(self) -> List[DeviceDescriptor]:
        """Wait for the running search to finish."""
        with self._lock:
            task = self._task
        if task is None:
            raise DiscoveryError("Discovery is not running")
        return await asyncio.shield(task)

    async def discover(self, timeout: float = DEFAULT_DISCOVERY_TIMEOUT) -> List[DeviceDescriptor]:
        return await self.start(timeout)

    async def cancel(self) -> List[DeviceDescriptor]:
        """
        Ask the running search to stop and wait until it has.

        Returns the players found before the search stopped. Raises
        ``DiscoveryCancelError`` if there is no search left to signal.
        """
        with self._lock:
            if (
                self._state is not DiscoveryState.SEARCHING
                or self._task is None
                or self._task.done()
                or self._finished
                or self._cancel_event is None
            ):
                raise DiscoveryCancelError()
            self._state = DiscoveryState.CANCELLING
            self._cancel_event.set()
            task = self._task

        _LOGGER.info("Discovery cancel requested")
        return await asyncio.shield(task)

    def _release(self, task: asyncio.Task) -> None:
        # Covers a task cancelled before its body ever ran
        with self._lock:
            if self._task is task:
                self._state = DiscoveryState.IDLE
                self._task = None
                self._cancel_event = None

    async def _search(self, timeout: float, cancel_event: asyncio.Event) -> List[DeviceDescriptor]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        queue: "asyncio.Queue[Advertisement]" = asyncio.Queue()
        # mac -> (arrival order, descriptor); a later arrival always wins
        found: Dict[str, Tuple[int, DeviceDescriptor]] = {}
        resolving: Set[asyncio.Task] = set()
        arrivals = 0
        cancelled = False
        source: Optional[AdvertisementSource] = None
        cancel_waiter = loop.create_task(cancel_event.wait())

        try:
            source = self._source_factory()
            try:
                await source.start(queue.put_nowait)
            except BluOSError:
                raise
            except Exception as err:
                raise UnknownError(f"Could not start advertisement browser: {err}") from err

            while True:
                if cancel_event.is_set():
                    break

                remaining = deadline - loop.time()
                if remaining <= 0:
                    break

                getter = loop.create_task(queue.get())
                done, _pending = await asyncio.wait(
                    {getter, cancel_waiter},
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if getter not in done:
                    getter.cancel()
                    continue

                # Resolves run side by side; unfinished ones are dropped when the search stops
                merge = loop.create_task(self._merge(getter.result(), arrivals, found))
                arrivals += 1
                resolving.add(merge)
                merge.add_done_callback(resolving.discard)

            with self._lock:
                if self._state is DiscoveryState.CANCELLING:
                    cancelled = True
                else:
                    self._finished = True
        finally:
            cancel_waiter.cancel()
            for merge in resolving:
                merge.cancel()
            try:
                if resolving:
                    await asyncio.gather(*resolving, return_exceptions=True)
                if source is not None:
                    await source.stop()
            finally:
                with self._lock:
                    self._state = DiscoveryState.IDLE
                    self._task = None
                    self._cancel_event = None

        devices = [device for _order, device in found.values()]
        if cancelled:
            _LOGGER.info("Discovery cancelled with %s player(s) found", len(devices))
            return devices

        if not devices:
            _LOGGER.info("Discovery timed out without finding a player")
            raise NoControllerFoundError()

        _LOGGER.info("Discovery finished with %s player(s) found", len(devices))
        return devices

    async def _merge(
        self,
        advertisement: Advertisement,
        order: int,
        found: Dict[str, Tuple[int, DeviceDescriptor]],
    ) -> None:
        try:
            device = await self._resolver(advertisement)
        except Exception:
            _LOGGER.debug(
                "Could not resolve %s (%s:%s)",
                advertisement.instance_name,
                advertisement.host,
                advertisement.port,
                exc_info=True,
            )
            return

        if device is None:
            return

        key = normalize_mac(device.mac)
        previous = found.get(key)
        if previous is None:
            _LOGGER.debug("Found player %s (%s) at %s", device.name, key, device.id)
        elif previous[0] > order:
            _LOGGER.debug("Ignoring stale answer for player %s (%s)", device.name, key)
            return
        else:
            _LOGGER.debug("Updated player %s (%s)", device.name, key)
        found[key] = (order, device)
