# surface.py
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

import mido

from models import ControlEvent, EventKind, SurfaceError


log = logging.getLogger(__name__)

KNOB_UPDATE = 0xBA
BTN_DOWN = 0x9A
BTN_UP = 0x8A

INDICATOR = BTN_UP

_KINDS = {
    KNOB_UPDATE: EventKind.KNOB,
    BTN_DOWN: EventKind.BUTTON_DOWN,
    BTN_UP: EventKind.BUTTON_UP,
}


def decode_message(data: Sequence[int]) -> Optional[ControlEvent]:
    """
    I turn a raw 3-byte surface message into a ControlEvent.
    Anything I do not recognise is logged and dropped.
    """
    if len(data) != 3:
        log.debug("Unknown message: %s", list(data))
        return None

    opcode, index, value = data
    kind = _KINDS.get(opcode)
    if kind is None or not 0 <= index <= 127 or not 0 <= value <= 127:
        log.debug("Unknown message: %s", list(data))
        return None

    return ControlEvent(kind=kind, index=index, value=value)


def encode_message(opcode: int, index: int, value: int) -> bytes:
    if opcode not in _KINDS:
        raise ValueError(f"Unknown opcode 0x{opcode:02X}")
    if not 0 <= index <= 127:
        raise ValueError(f"Control index out of range: {index}")
    if not 0 <= value <= 127:
        raise ValueError(f"Control value out of range: {value}")
    return bytes((opcode, index, value))


def _pick_port(names: List[str], wanted: str, direction: str) -> str:
    w = wanted.strip().lower()
    if not w:
        # No preference: first real port, skipping the ALSA loopback.
        for n in names:
            if "through" not in n.lower():
                return n
    for n in names:
        if w and w in n.lower():
            return n
    available = ", ".join(names) or "none"
    raise RuntimeError(f"No MIDI {direction} port matching {wanted!r} (available: {available})")


def port_names() -> Tuple[List[str], List[str]]:
    return list(mido.get_input_names()), list(mido.get_output_names())


class MidiSurface:
    """
    The physical control surface, reached over MIDI.

    on_message runs on the MIDI backend's own thread; callers must hand the
    bytes over to their consumer instead of acting on them there.
    """

    def __init__(self, input_port: str, output_port: str, on_message: Callable[[bytes], None]) -> None:
        ins, outs = port_names()
        in_name = _pick_port(ins, input_port, "input")
        out_name = _pick_port(outs, output_port, "output")

        self._on_message = on_message
        self._out = mido.open_output(out_name)
        try:
            self._in = mido.open_input(in_name, callback=self._receive)
        except Exception:
            self._out.close()
            raise

        log.info("Surface connected: in=%r out=%r", in_name, out_name)

    def _receive(self, msg: mido.Message) -> None:
        data = bytes(msg.bytes())
        log.debug("Surface in: %s", list(data))
        self._on_message(data)

    def send(self, data: bytes) -> None:
        try:
            self._out.send(mido.Message.from_bytes(list(data)))
        except Exception as e:
            raise SurfaceError(f"Cannot send {list(data)} to the surface: {e}") from e

    def close(self) -> None:
        self._in.close()
        self._out.close()
