# models.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class ResolutionError(RuntimeError):
    """The audio subsystem could not answer, or the answer is unusable."""


class BindingKindError(RuntimeError):
    """A hardware event of the wrong control type reached a binding."""


class ConfigError(RuntimeError):
    pass


class SurfaceError(RuntimeError):
    """Talking to the control surface failed."""


class DeviceKind(Enum):
    SINK = "sink"
    SOURCE = "source"


class EntityKind(Enum):
    DEVICE_SINK = "sink"
    DEVICE_SOURCE = "source"
    APP_STREAM = "stream"


class EventKind(Enum):
    KNOB = "knob"
    BUTTON_DOWN = "button_down"
    BUTTON_UP = "button_up"


def average_volume(channel_volumes: Tuple[float, ...]) -> float:
    if not channel_volumes:
        return 0.0
    return sum(channel_volumes) / len(channel_volumes)


@dataclass(frozen=True)
class AudioDevice:
    index: int
    name: str
    description: str
    kind: DeviceKind
    channel_volumes: Tuple[float, ...]
    mute: bool


@dataclass(frozen=True)
class AppStream:
    index: int
    name: str
    props: Dict[str, str] = field(hash=False)
    channel_volumes: Tuple[float, ...]
    mute: bool


@dataclass(frozen=True)
class ResolvedEntity:
    kind: EntityKind
    index: int
    channel_volumes: Tuple[float, ...]
    mute: bool
    name: Optional[str] = None  # devices only

    @property
    def volume(self) -> float:
        return average_volume(self.channel_volumes)

    @property
    def device_kind(self) -> Optional[DeviceKind]:
        if self.kind is EntityKind.DEVICE_SINK:
            return DeviceKind.SINK
        if self.kind is EntityKind.DEVICE_SOURCE:
            return DeviceKind.SOURCE
        return None

    @classmethod
    def from_device(cls, d: AudioDevice) -> ResolvedEntity:
        kind = EntityKind.DEVICE_SINK if d.kind is DeviceKind.SINK else EntityKind.DEVICE_SOURCE
        return cls(
            kind=kind,
            index=d.index,
            channel_volumes=d.channel_volumes,
            mute=d.mute,
            name=d.name or None,
        )

    @classmethod
    def from_stream(cls, s: AppStream) -> ResolvedEntity:
        return cls(
            kind=EntityKind.APP_STREAM,
            index=s.index,
            channel_volumes=s.channel_volumes,
            mute=s.mute,
        )


@dataclass(frozen=True)
class ControlEvent:
    kind: EventKind
    index: int  # 0..127
    value: int  # 0..127

    @property
    def is_button(self) -> bool:
        return self.kind is not EventKind.KNOB
