# target.py
"""
Logical audio targets and the operations that act on whatever they resolve to.

A target only describes how to find an entity. Each operation resolves it
again against the live server, so streams and devices that come and go
between polls are always seen as they are now.

Outcomes: a value when something resolved, None when nothing currently
matches, ResolutionError when the server itself failed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from models import DeviceKind, EntityKind, ResolutionError, ResolvedEntity


APPLICATION_NAME = "application.name"
APPLICATION_PROCESS_BINARY = "application.process.binary"
MEDIA_NAME = "media.name"

NO_STREAM_SELECTION = "application streams cannot be used for selection"


@dataclass(frozen=True)
class StaticDevice:
    kind: DeviceKind
    index: int

    @classmethod
    def sink(cls, index: int) -> StaticDevice:
        return cls(DeviceKind.SINK, index)

    @classmethod
    def source(cls, index: int) -> StaticDevice:
        return cls(DeviceKind.SOURCE, index)


@dataclass(frozen=True)
class PropertyMatch:
    prop: str
    value: str


@dataclass(frozen=True)
class FirstValid:
    targets: Tuple["Target", ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "targets", tuple(self.targets))


Target = Union[StaticDevice, PropertyMatch, FirstValid]


def app_name(value: str) -> PropertyMatch:
    return PropertyMatch(APPLICATION_NAME, value)


def process_binary(value: str) -> PropertyMatch:
    return PropertyMatch(APPLICATION_PROCESS_BINARY, value)


def media_name(value: str) -> PropertyMatch:
    return PropertyMatch(MEDIA_NAME, value)


def describe(target: Target) -> str:
    if isinstance(target, StaticDevice):
        return f"{target.kind.value}#{target.index}"
    if isinstance(target, PropertyMatch):
        return f"stream[{target.prop}={target.value!r}]"
    if isinstance(target, FirstValid):
        return " | ".join(describe(t) for t in target.targets)
    raise TypeError(f"Not a target: {target!r}")


def resolve(target: Target, backend) -> Optional[ResolvedEntity]:
    if isinstance(target, StaticDevice):
        # A static index that vanished is a configuration problem, not absence.
        return ResolvedEntity.from_device(backend.get_device(target.kind, target.index))

    if isinstance(target, PropertyMatch):
        for s in backend.list_application_streams():
            if s.props.get(target.prop) == target.value:
                return ResolvedEntity.from_stream(s)
        return None

    if isinstance(target, FirstValid):
        # ResolutionError from a child propagates before later children run.
        for child in target.targets:
            found = resolve(child, backend)
            if found is not None:
                return found
        return None

    raise TypeError(f"Not a target: {target!r}")


def _selectable(entity: ResolvedEntity) -> DeviceKind:
    kind = entity.device_kind
    if kind is None:
        raise ResolutionError(NO_STREAM_SELECTION)
    return kind


def read_volume(target: Target, backend) -> Optional[float]:
    entity = resolve(target, backend)
    if entity is None:
        return None
    return entity.volume


def read_mute(target: Target, backend) -> Optional[bool]:
    entity = resolve(target, backend)
    if entity is None:
        return None
    return entity.mute


def read_selected(target: Target, backend) -> Optional[bool]:
    entity = resolve(target, backend)
    if entity is None:
        return None
    default = backend.get_default_device(_selectable(entity))
    return default.index == entity.index


def write_volume(target: Target, backend, volume: float) -> Optional[ResolvedEntity]:
    if not 0.0 <= volume <= 1.0:
        raise ValueError(f"Volume must be within [0.0, 1.0], got {volume}")

    entity = resolve(target, backend)
    if entity is None:
        return None

    channels = [volume] * max(1, len(entity.channel_volumes))
    if entity.kind is EntityKind.APP_STREAM:
        backend.set_stream_volume(entity.index, channels)
    else:
        backend.set_device_volume(entity.device_kind, entity.index, channels)
    return entity


def toggle_mute(target: Target, backend) -> Optional[ResolvedEntity]:
    entity = resolve(target, backend)
    if entity is None:
        return None

    if entity.kind is EntityKind.APP_STREAM:
        backend.set_stream_mute(entity.index, not entity.mute)
    else:
        backend.set_device_mute(entity.device_kind, entity.index, not entity.mute)
    return entity


def select_as_default(target: Target, backend) -> Optional[ResolvedEntity]:
    entity = resolve(target, backend)
    if entity is None:
        return None

    kind = _selectable(entity)
    if not entity.name:
        raise ResolutionError("default device must have a name")
    backend.set_default_device(kind, entity.name)
    return entity
