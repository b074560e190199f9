"""Shared fixtures: an in-memory stand-in for the audio server."""

from __future__ import annotations

import dataclasses
from typing import Dict, List, Optional

import pytest

from models import AppStream, AudioDevice, DeviceKind, ResolutionError


class FakeBackend:
    """Same interface as PulseBackend, backed by plain dicts."""

    def __init__(self) -> None:
        self.devices: Dict[DeviceKind, Dict[int, AudioDevice]] = {DeviceKind.SINK: {}, DeviceKind.SOURCE: {}}
        self.streams: List[AppStream] = []
        self.defaults: Dict[DeviceKind, str] = {}
        self.calls: List[tuple] = []
        self.failing: set = set()

    # setup helpers

    def add_device(self, kind: DeviceKind, index: int, name: str = "", volume: float = 1.0,
                   channels: int = 2, mute: bool = False) -> AudioDevice:
        d = AudioDevice(
            index=index,
            name=name or f"{kind.value}-{index}",
            description=f"{kind.value} {index}",
            kind=kind,
            channel_volumes=(volume,) * channels,
            mute=mute,
        )
        self.devices[kind][index] = d
        return d

    def add_stream(self, index: int, props: Dict[str, str], volume: float = 1.0,
                   channels: int = 2, mute: bool = False) -> AppStream:
        s = AppStream(index=index, name=f"stream-{index}", props=dict(props),
                      channel_volumes=(volume,) * channels, mute=mute)
        self.streams.append(s)
        return s

    def stream(self, index: int) -> Optional[AppStream]:
        return next((s for s in self.streams if s.index == index), None)

    def _enter(self, name: str, *args) -> None:
        self.calls.append((name,) + args)
        if name in self.failing:
            raise ResolutionError(f"{name} failed")

    def mutations(self) -> List[tuple]:
        return [c for c in self.calls if c[0].startswith("set_")]

    # backend interface

    def list_devices(self, kind: DeviceKind) -> List[AudioDevice]:
        self._enter("list_devices", kind)
        return list(self.devices[kind].values())

    def get_device(self, kind: DeviceKind, index: int) -> AudioDevice:
        self._enter("get_device", kind, index)
        try:
            return self.devices[kind][index]
        except KeyError:
            raise ResolutionError(f"No {kind.value} with index {index}") from None

    def get_device_by_name(self, kind: DeviceKind, name: str) -> AudioDevice:
        self._enter("get_device_by_name", kind, name)
        for d in self.devices[kind].values():
            if d.name == name:
                return d
        raise ResolutionError(f"No {kind.value} named {name}")

    def set_device_volume(self, kind: DeviceKind, index: int, channel_volumes) -> None:
        self._enter("set_device_volume", kind, index, tuple(channel_volumes))
        d = self.get_device(kind, index)
        self.devices[kind][index] = dataclasses.replace(d, channel_volumes=tuple(channel_volumes))

    def set_device_mute(self, kind: DeviceKind, index: int, mute: bool) -> None:
        self._enter("set_device_mute", kind, index, mute)
        d = self.get_device(kind, index)
        self.devices[kind][index] = dataclasses.replace(d, mute=mute)

    def get_default_device(self, kind: DeviceKind) -> AudioDevice:
        self._enter("get_default_device", kind)
        return self.get_device_by_name(kind, self.defaults[kind])

    def set_default_device(self, kind: DeviceKind, name: str) -> None:
        self._enter("set_default_device", kind, name)
        self.defaults[kind] = name

    def list_application_streams(self) -> List[AppStream]:
        self._enter("list_application_streams")
        return list(self.streams)

    def set_stream_volume(self, index: int, channel_volumes) -> None:
        self._enter("set_stream_volume", index, tuple(channel_volumes))
        self._replace_stream(index, channel_volumes=tuple(channel_volumes))

    def set_stream_mute(self, index: int, mute: bool) -> None:
        self._enter("set_stream_mute", index, mute)
        self._replace_stream(index, mute=mute)

    def _replace_stream(self, index: int, **changes) -> None:
        for i, s in enumerate(self.streams):
            if s.index == index:
                self.streams[i] = dataclasses.replace(s, **changes)
                return
        raise ResolutionError(f"No stream with index {index}")


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sent() -> List[bytes]:
    return []
