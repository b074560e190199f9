# app.py
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from PySide6.QtCore import QCoreApplication, QObject, Qt, QTimer, Signal

from deck import Deck
from models import ConfigError, ResolutionError
from pulse_backend import PulseBackend
from store_config import ConfigStore
from surface import MidiSurface, port_names


log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: str = "info") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


class DeckRunner(QObject):
    """
    The single consumer of flush requests and surface messages.

    The timer and the MIDI thread only enqueue; Qt delivers both through this
    object's event queue, one item at a time and in arrival order.
    """

    message_received = Signal(object)

    def __init__(self, poll_interval_ms: int, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.deck: Optional[Deck] = None
        self.exit_code = 0

        self.message_received.connect(self.on_message, Qt.QueuedConnection)

        self.timer = QTimer(self)
        self.timer.setInterval(poll_interval_ms)
        self.timer.timeout.connect(self.on_flush)

    def start(self, deck: Deck) -> None:
        self.deck = deck
        self.timer.start()

    def stop(self, exit_code: int = 0) -> None:
        self.timer.stop()
        self.exit_code = exit_code
        QCoreApplication.exit(exit_code)

    def submit(self, data: bytes) -> None:
        # Safe from any thread.
        self.message_received.emit(bytes(data))

    def on_flush(self) -> None:
        if self.deck is None:
            return
        try:
            self.deck.flush_to_surface()
        except ResolutionError:
            log.debug("Flush aborted, retrying on the next cycle")
        except Exception:
            log.exception("Flush failed")
            self.stop(1)

    def on_message(self, data: bytes) -> None:
        if self.deck is None:
            return
        try:
            self.deck.handle_hardware_message(data)
        except ResolutionError:
            log.debug("Surface message %s dropped", list(data))
        except Exception:
            log.exception("Surface message %s failed", list(data))
            self.stop(1)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="pulsedeck", description="Drive PulseAudio volumes from a MIDI control surface.")
    p.add_argument("--config", help="configuration file (default: ~/.config/pulsedeck/pulsedeck.cfg)")
    p.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    p.add_argument("--list-ports", action="store_true", help="list MIDI ports and exit")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    if args.list_ports:
        ins, outs = port_names()
        print("Inputs:")
        for n in ins:
            print(f"  {n}")
        print("Outputs:")
        for n in outs:
            print(f"  {n}")
        return 0

    store = ConfigStore(path=Path(args.config).expanduser() if args.config else None)

    try:
        settings = store.load_settings()
    except ConfigError as e:
        log.error("%s", e)
        return 1

    backend = PulseBackend(settings.client_name)
    try:
        bindings = store.load_bindings(backend)
        log.info("Audio server: %s", backend.server_label())
    except (ConfigError, ResolutionError) as e:
        log.error("%s", e)
        backend.close()
        return 1

    log.info("Loaded %d bindings from %s", len(bindings), store.file_path)

    qapp = QCoreApplication(sys.argv[:1])
    runner = DeckRunner(settings.poll_interval_ms)
    try:
        surface = MidiSurface(settings.input_port, settings.output_port, runner.submit)
    except (OSError, RuntimeError) as e:
        log.error("%s", e)
        backend.close()
        return 1

    signal.signal(signal.SIGINT, lambda *_: runner.stop(0))
    signal.signal(signal.SIGTERM, lambda *_: runner.stop(0))

    deck = Deck(backend, bindings, surface.send)
    log.debug("Bound controls: %s", deck.bound_indices())
    runner.start(deck)
    try:
        qapp.exec()
    finally:
        surface.close()
        backend.close()

    return runner.exit_code


if __name__ == "__main__":
    sys.exit(main())
