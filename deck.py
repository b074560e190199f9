# deck.py
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Mapping, Sequence

from binding import Binding
from models import EventKind, ResolutionError
from surface import KNOB_UPDATE, decode_message, encode_message
from target import describe


log = logging.getLogger(__name__)


class Deck:
    """
    Dispatches between the surface and the audio server.

    Holds the binding table, the backend and the outbound send function.
    It keeps no other state; every flush and every event asks the server again.
    """

    def __init__(self, backend, bindings: Mapping[int, Binding], send: Callable[[bytes], None]) -> None:
        self.backend = backend
        self._bindings: Dict[int, Binding] = dict(bindings)
        self._send = send

    def bound_indices(self) -> List[int]:
        return sorted(self._bindings)

    def flush_to_surface(self) -> None:
        for index, binding in self._bindings.items():
            try:
                state = binding.poll_for_display(self.backend)
            except ResolutionError as e:
                log.warning("Could not poll control %d (%s): %s", index, describe(binding.target), e)
                raise
            self._send(encode_message(state.opcode, index, state.value))

    def handle_hardware_message(self, data: Sequence[int]) -> None:
        event = decode_message(data)
        if event is None:
            return

        binding = self._bindings.get(event.index)
        if binding is None:
            if event.kind is EventKind.KNOB:
                # Unmapped knobs are pulled back to zero.
                self._send(encode_message(KNOB_UPDATE, event.index, 0))
            return

        try:
            binding.apply_hardware_event(event, self.backend)
        except ResolutionError as e:
            log.warning("Could not apply %s on control %d (%s): %s",
                        event.kind.value, event.index, describe(binding.target), e)
            raise
