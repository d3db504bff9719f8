"""Tests for the discovery coordinator."""

import asyncio
import threading
from typing import Callable, List, Optional, Sequence

import pytest

from bluos_client.discovery import (
    DiscoveryCoordinator,
    DiscoveryState,
    descriptor_from_advertisement,
)
from bluos_client.errors import (
    AlreadyDiscoveringError,
    DiscoveryCancelError,
    DiscoveryError,
    NoControllerFoundError,
    UnknownError,
)
from bluos_client.models import Advertisement, DeviceDescriptor


class FakeSource:
    """Replays a fixed list of advertisements as soon as it is started."""

    def __init__(self, advertisements: Sequence[Advertisement] = (), fail: bool = False) -> None:
        self.advertisements = list(advertisements)
        self.fail = fail
        self.started = False
        self.stopped = False

    async def start(self, on_advertisement: Callable[[Advertisement], None]) -> None:
        if self.fail:
            raise OSError("no multicast route")
        self.started = True
        for advertisement in self.advertisements:
            on_advertisement(advertisement)

    async def stop(self) -> None:
        self.stopped = True


def _ad(mac: Optional[str] = "90:56:82:AA:BB:CC", name: str = "Kitchen", host: str = "10.0.0.2") -> Advertisement:
    properties = {"name": name, "brand": "Bluesound", "model": "N130", "volume": "30", "db": "-28.5"}
    if mac is not None:
        properties["mac"] = mac
    return Advertisement(instance_name=f"{name}._musc._tcp.local.", host=host, port=11000, properties=properties)


def _coordinator(*advertisements: Advertisement, **kwargs) -> DiscoveryCoordinator:
    return DiscoveryCoordinator(source_factory=lambda: FakeSource(advertisements), **kwargs)


def test_descriptor_from_advertisement() -> None:
    device = asyncio.run(descriptor_from_advertisement(_ad()))

    assert device == DeviceDescriptor(
        mac="90:56:82:AA:BB:CC",
        id="10.0.0.2:11000",
        name="Kitchen",
        brand="Bluesound",
        model="N130",
        volume=30,
        db=-28.5,
    )
    assert asyncio.run(descriptor_from_advertisement(_ad(mac=None))) is None


def test_descriptor_drops_malformed_numbers() -> None:
    advertisement = _ad()
    advertisement.properties.update(volume="loud", db="-12")

    device = asyncio.run(descriptor_from_advertisement(advertisement))

    assert device is not None
    assert device.volume is None
    assert device.db == -12.0


def test_discover_finds_players() -> None:
    coordinator = _coordinator(_ad(), _ad(mac="90:56:82:00:00:01", name="Office", host="10.0.0.3"))

    devices = asyncio.run(coordinator.discover(timeout=0.05))

    assert sorted(device.name for device in devices) == ["Kitchen", "Office"]
    assert coordinator.state is DiscoveryState.IDLE


def test_repeated_advertisement_is_deduplicated() -> None:
    coordinator = _coordinator(
        _ad(name="Kitchen"),
        _ad(mac="905682aabbcc", name="Kitchen (renamed)"),
    )

    devices = asyncio.run(coordinator.discover(timeout=0.05))

    assert len(devices) == 1
    assert devices[0].name == "Kitchen (renamed)"


def test_no_players_found() -> None:
    coordinator = _coordinator()

    with pytest.raises(NoControllerFoundError):
        asyncio.run(coordinator.discover(timeout=0.05))

    assert coordinator.state is DiscoveryState.IDLE

    # A failed attempt can be retried
    with pytest.raises(NoControllerFoundError):
        asyncio.run(coordinator.discover(timeout=0.01))


def test_start_while_searching_is_rejected() -> None:
    async def run() -> List[bool]:
        coordinator = _coordinator(_ad())

        async def attempt() -> bool:
            await asyncio.sleep(0)
            try:
                task = coordinator.start(timeout=0.1)
            except AlreadyDiscoveringError:
                return False
            await task
            return True

        return await asyncio.gather(attempt(), attempt(), attempt())

    assert sorted(asyncio.run(run())) == [False, False, True]


def test_concurrent_start_from_threads() -> None:
    coordinator = _coordinator(_ad())
    barrier = threading.Barrier(2)
    outcomes: List[str] = []
    lock = threading.Lock()

    async def attempt() -> str:
        barrier.wait()
        try:
            task = coordinator.start(timeout=0.5)
        except AlreadyDiscoveringError:
            return "rejected"
        await task
        return "won"

    def worker() -> None:
        outcome = asyncio.run(attempt())
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["rejected", "won"]
    assert coordinator.state is DiscoveryState.IDLE


def test_cancel_running_search() -> None:
    async def run() -> None:
        source = FakeSource([_ad()])
        coordinator = DiscoveryCoordinator(source_factory=lambda: source)
        loop = asyncio.get_running_loop()

        started = loop.time()
        task = coordinator.start(timeout=30)
        await asyncio.sleep(0.05)
        assert coordinator.state is DiscoveryState.SEARCHING

        devices = await coordinator.cancel()

        assert loop.time() - started < 5
        assert [device.name for device in devices] == ["Kitchen"]
        assert coordinator.state is DiscoveryState.IDLE
        assert task.done()
        assert source.stopped

    asyncio.run(run())


def test_cancel_empty_search_returns_nothing() -> None:
    async def run() -> None:
        coordinator = _coordinator()
        coordinator.start(timeout=30)
        await asyncio.sleep(0)
        assert await coordinator.cancel() == []
        assert not coordinator.is_discovering

    asyncio.run(run())


def test_cancel_after_completion_fails() -> None:
    async def run() -> None:
        coordinator = _coordinator(_ad())
        await coordinator.start(timeout=0.01)

        with pytest.raises(DiscoveryCancelError):
            await asyncio.wait_for(coordinator.cancel(), timeout=1)

    asyncio.run(run())


def test_cancel_twice_fails() -> None:
    async def run() -> None:
        coordinator = _coordinator()
        coordinator.start(timeout=30)
        await asyncio.sleep(0)

        first = asyncio.ensure_future(coordinator.cancel())
        await asyncio.sleep(0)
        with pytest.raises(DiscoveryCancelError):
            await coordinator.cancel()
        assert await first == []

    asyncio.run(run())


def test_wait_for_running_search() -> None:
    async def run() -> None:
        coordinator = _coordinator(_ad())
        with pytest.raises(DiscoveryError):
            await coordinator.wait()

        coordinator.start(timeout=0.05)
        devices = await coordinator.wait()
        assert len(devices) == 1

    asyncio.run(run())


def test_resolver_failure_skips_responder() -> None:
    async def resolver(advertisement: Advertisement) -> Optional[DeviceDescriptor]:
        if advertisement.host == "10.0.0.9":
            raise ConnectionError("player went away")
        return await descriptor_from_advertisement(advertisement)

    coordinator = _coordinator(
        _ad(mac="90:56:82:00:00:09", host="10.0.0.9"),
        _ad(),
        resolver=resolver,
    )

    devices = asyncio.run(coordinator.discover(timeout=0.05))

    assert [device.host for device in devices] == ["10.0.0.2"]


def test_source_failure_resets_to_idle() -> None:
    coordinator = DiscoveryCoordinator(source_factory=lambda: FakeSource(fail=True))

    with pytest.raises(UnknownError):
        asyncio.run(coordinator.discover(timeout=0.05))

    assert coordinator.state is DiscoveryState.IDLE


class SlowStopSource(FakeSource):
    """Takes a while to shut down once the search is over."""

    async def stop(self) -> None:
        await asyncio.sleep(0.2)
        await super().stop()


def test_cancel_while_stopping_after_deadline_fails() -> None:
    async def run() -> None:
        source = SlowStopSource([_ad()])
        coordinator = DiscoveryCoordinator(source_factory=lambda: source)

        task = coordinator.start(timeout=0.05)
        await asyncio.sleep(0.1)
        assert not source.stopped

        with pytest.raises(DiscoveryCancelError):
            await coordinator.cancel()

        devices = await task
        assert [device.name for device in devices] == ["Kitchen"]
        assert coordinator.state is DiscoveryState.IDLE

    asyncio.run(run())


async def _slow_resolver(advertisement: Advertisement) -> Optional[DeviceDescriptor]:
    await asyncio.sleep(1.0)
    return await descriptor_from_advertisement(advertisement)


def test_slow_resolver_does_not_overrun_deadline() -> None:
    async def run() -> None:
        coordinator = _coordinator(_ad(), resolver=_slow_resolver)
        loop = asyncio.get_running_loop()

        started = loop.time()
        with pytest.raises(NoControllerFoundError):
            await coordinator.discover(timeout=0.1)

        assert loop.time() - started < 0.8
        assert coordinator.state is DiscoveryState.IDLE

    asyncio.run(run())


def test_cancel_interrupts_slow_resolver() -> None:
    async def run() -> None:
        coordinator = _coordinator(_ad(), resolver=_slow_resolver)
        loop = asyncio.get_running_loop()

        coordinator.start(timeout=30)
        await asyncio.sleep(0.05)

        started = loop.time()
        assert await coordinator.cancel() == []
        assert loop.time() - started < 0.8
        assert coordinator.state is DiscoveryState.IDLE

    asyncio.run(run())


def test_slow_resolvers_keep_arrival_order() -> None:
    async def resolver(advertisement: Advertisement) -> Optional[DeviceDescriptor]:
        # The first answer for the player arrives after the second one
        if advertisement.properties["name"] == "Kitchen":
            await asyncio.sleep(0.05)
        return await descriptor_from_advertisement(advertisement)

    coordinator = _coordinator(
        _ad(name="Kitchen"),
        _ad(name="Kitchen (renamed)"),
        resolver=resolver,
    )

    devices = asyncio.run(coordinator.discover(timeout=0.2))

    assert [device.name for device in devices] == ["Kitchen (renamed)"]
