# binding.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Tuple

import target as tg
from models import BindingKindError, ConfigError, ControlEvent, EventKind
from surface import INDICATOR, KNOB_UPDATE
from target import Target


@dataclass(frozen=True)
class DisplayState:
    opcode: int
    value: int


def volume_level(volume: float) -> int:
    # The server stores volumes in 1/65536 steps; k/127 must still read back as k.
    return max(0, min(127, int(volume * 127 + 0.01)))


@dataclass(frozen=True)
class Binding(ABC):
    target: Target

    @abstractmethod
    def poll_for_display(self, backend) -> DisplayState:
        ...

    @abstractmethod
    def apply_hardware_event(self, event: ControlEvent, backend) -> None:
        ...


@dataclass(frozen=True)
class VolumeControl(Binding):
    def poll_for_display(self, backend) -> DisplayState:
        vol = tg.read_volume(self.target, backend)
        return DisplayState(KNOB_UPDATE, 0 if vol is None else volume_level(vol))

    def apply_hardware_event(self, event: ControlEvent, backend) -> None:
        if event.is_button:
            raise BindingKindError("Buttons can not be bound to volume control")
        tg.write_volume(self.target, backend, event.value / 127)


@dataclass(frozen=True)
class MuteToggle(Binding):
    def poll_for_display(self, backend) -> DisplayState:
        muted = tg.read_mute(self.target, backend)
        return DisplayState(INDICATOR, 1 if muted else 0)

    def apply_hardware_event(self, event: ControlEvent, backend) -> None:
        if not event.is_button:
            raise BindingKindError("Knobs can not be bound to mute toggles")
        if event.kind is EventKind.BUTTON_UP:
            tg.toggle_mute(self.target, backend)


@dataclass(frozen=True)
class DefaultSelect(Binding):
    def poll_for_display(self, backend) -> DisplayState:
        selected = tg.read_selected(self.target, backend)
        return DisplayState(INDICATOR, 127 if selected else 0)

    def apply_hardware_event(self, event: ControlEvent, backend) -> None:
        if not event.is_button:
            raise BindingKindError("Knobs can not be bound to default selection")
        if event.kind is EventKind.BUTTON_UP:
            tg.select_as_default(self.target, backend)


def derive_mute(binding: Binding) -> MuteToggle:
    return MuteToggle(binding.target)


def with_mute_pairs(bindings: Mapping[int, Binding], pairs: Iterable[Tuple[int, int]]) -> Dict[int, Binding]:
    """Bind each mute index to mute whatever its paired control addresses."""
    out = dict(bindings)
    for src, dst in pairs:
        b = bindings.get(src)
        if b is None:
            raise ConfigError(f"Mute pair {src}:{dst} refers to unbound control {src}")
        out[dst] = derive_mute(b)
    return out
