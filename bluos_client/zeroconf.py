"""Browses mDNS for BluOS players."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Optional, Set

from zeroconf import ServiceStateChange
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from .models import Advertisement
from .util import decode_properties

_LOGGER = logging.getLogger(__name__)

BLUOS_SERVICE = "_musc._tcp.local."
DEFAULT_REQUEST_TIMEOUT_MS = 1500

AdvertisementCallback = Callable[[Advertisement], None]


def instance_label(name: str, service_type: str) -> str:
    """'Kitchen._musc._tcp.local.' -> 'Kitchen'"""
    suffix = "." + service_type
    if name.endswith(suffix):
        return name[: -len(suffix)]
    return name


class ZeroconfAdvertisementSource:
    """
    Feeds responders announcing ``service_types`` to a callback.

    One instance serves one search: ``start`` opens a fresh
    AsyncZeroconf and browser, ``stop`` tears both down.
    """

    def __init__(
        self,
        service_types: Iterable[str] = (BLUOS_SERVICE,),
        request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
    ) -> None:
        self.service_types = list(service_types)
        self.request_timeout_ms = request_timeout_ms
        self._aiozc: Optional[AsyncZeroconf] = None
        self._browser: Optional[AsyncServiceBrowser] = None
        self._callback: Optional[AdvertisementCallback] = None
        self._pending: Set[asyncio.Task] = set()

    async def start(self, on_advertisement: AdvertisementCallback) -> None:
        self._callback = on_advertisement
        self._aiozc = AsyncZeroconf()
        self._browser = AsyncServiceBrowser(
            self._aiozc.zeroconf,
            self.service_types,
            handlers=[self._on_state_change],
        )
        _LOGGER.debug("Browsing for %s", ", ".join(self.service_types))

    async def stop(self) -> None:
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

        if self._browser is not None:
            await self._browser.async_cancel()
            self._browser = None

        if self._aiozc is not None:
            await self._aiozc.async_close()
            self._aiozc = None

        self._callback = None

    # zeroconf calls handlers using keyword args, so the parameter names matter.
    def _on_state_change(
        self, zeroconf, service_type: str, name: str, state_change: ServiceStateChange
    ) -> None:
        if state_change not in (ServiceStateChange.Added, ServiceStateChange.Updated):
            return

        task = asyncio.create_task(self._resolve(zeroconf, service_type, name))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _resolve(self, zeroconf, service_type: str, name: str) -> None:
        try:
            info = AsyncServiceInfo(service_type, name)
            if not await info.async_request(zeroconf, timeout=self.request_timeout_ms):
                _LOGGER.debug("No service info for %s", name)
                return

            addrs = info.parsed_addresses()
            if not addrs or info.port is None:
                _LOGGER.debug("No address for %s", name)
                return

            props = decode_properties(info.properties)
            props.setdefault("name", instance_label(name, service_type))
            advertisement = Advertisement(
                instance_name=name,
                host=addrs[0],  # prefer first (often IPv4 first)
                port=int(info.port),
                properties=props,
            )
        except Exception:
            _LOGGER.debug("Zeroconf resolve error for %s", name, exc_info=True)
            return

        if self._callback is not None:
            self._callback(advertisement)
