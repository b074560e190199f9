# store_config.py
from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import target as tg
from binding import Binding, DefaultSelect, MuteToggle, VolumeControl, with_mute_pairs
from models import ConfigError, DeviceKind, ResolutionError
from target import Target


DEFAULT_CONFIG_TEXT = """\
# pulsedeck configuration
#
# [Bindings] maps a control index (0-127) to "<mode> <target>".
#   mode:   volume | mute | select
#   target: sink:NAME  source:NAME  sink#INDEX  source#INDEX
#           app:VALUE  binary:VALUE  media:VALUE  prop:KEY=VALUE
#   Alternatives separated by "|" are tried in order; the first one that
#   currently exists is used.
#
# [MutePairs] pairs = KNOB:BUTTON ... binds BUTTON to mute whatever KNOB controls.
#
# Example (X-Touch Mini, layer B):
#   11 = volume sink:alsa_output.usb-speakers.analog-stereo
#   13 = volume app:WEBRTC VoiceEngine | app:ZOOM VoiceEngine
#   14 = volume binary:wine64-preloader | binary:streaming_client
#   32 = select sink:alsa_output.usb-speakers.analog-stereo
#   34 = mute source:alsa_input.usb-headset.mono-fallback

[Surface]
input_port =
output_port =
poll_interval_ms = 100

[Pulse]
client_name = pulsedeck

[Bindings]

[MutePairs]
pairs =
"""

MODES = {
    "volume": VolumeControl,
    "mute": MuteToggle,
    "select": DefaultSelect,
}

_PROPERTY_PREFIXES = {
    "app": tg.APPLICATION_NAME,
    "binary": tg.APPLICATION_PROCESS_BINARY,
    "media": tg.MEDIA_NAME,
}

_DEVICE_PREFIXES = {
    "sink": DeviceKind.SINK,
    "source": DeviceKind.SOURCE,
}


def _xdg_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def user_config_dir(app_name: str) -> Path:
    return _xdg_config_dir() / app_name


@dataclass(frozen=True)
class SurfaceSettings:
    input_port: str
    output_port: str
    poll_interval_ms: int
    client_name: str


def parse_index(raw: str) -> int:
    try:
        i = int(raw.strip())
    except ValueError:
        raise ConfigError(f"Control index is not a number: {raw!r}") from None
    if not 0 <= i <= 127:
        raise ConfigError(f"Control index out of range 0-127: {i}")
    return i


def parse_target(expr: str, backend) -> Target:
    """
    I turn one target expression into a Target.

    Device names are looked up once here; the resulting StaticDevice keeps
    only the index, like any other static configuration.
    """
    alts = [a.strip() for a in expr.split("|")]
    if not alts or any(not a for a in alts):
        raise ConfigError(f"Empty target in {expr!r}")

    targets = [_parse_single_target(a, backend) for a in alts]
    if len(targets) == 1:
        return targets[0]
    return tg.FirstValid(targets)


def _parse_single_target(expr: str, backend) -> Target:
    for prefix, kind in _DEVICE_PREFIXES.items():
        if expr.startswith(prefix + "#"):
            raw = expr[len(prefix) + 1:]
            try:
                return tg.StaticDevice(kind, int(raw))
            except ValueError:
                raise ConfigError(f"Bad {prefix} index in {expr!r}") from None
        if expr.startswith(prefix + ":"):
            name = expr[len(prefix) + 1:].strip()
            if not name:
                raise ConfigError(f"Missing {prefix} name in {expr!r}")
            try:
                dev = backend.get_device_by_name(kind, name)
            except ResolutionError as e:
                raise ConfigError(f"Unknown {prefix} {name!r}: {e}") from e
            return tg.StaticDevice(kind, dev.index)

    prefix, sep, rest = expr.partition(":")
    if not sep:
        raise ConfigError(f"Target needs a prefix: {expr!r}")

    prop = _PROPERTY_PREFIXES.get(prefix)
    if prop is not None:
        value = rest.strip()
        if not value:
            raise ConfigError(f"Missing value in {expr!r}")
        return tg.PropertyMatch(prop, value)

    if prefix == "prop":
        key, eq, value = rest.partition("=")
        if not eq or not key.strip():
            raise ConfigError(f"Expected prop:KEY=VALUE, got {expr!r}")
        return tg.PropertyMatch(key.strip(), value.strip())

    raise ConfigError(f"Unknown target prefix {prefix!r} in {expr!r}")


def parse_binding(raw: str, backend) -> Binding:
    mode, _, rest = raw.strip().partition(" ")
    cls = MODES.get(mode.lower())
    if cls is None:
        raise ConfigError(f"Unknown binding mode {mode!r} (expected one of {', '.join(MODES)})")
    return cls(parse_target(rest, backend))


def parse_mute_pairs(raw: str) -> List[Tuple[int, int]]:
    out: List[Tuple[int, int]] = []
    for tok in raw.replace(",", " ").split():
        src, sep, dst = tok.partition(":")
        if not sep:
            raise ConfigError(f"Mute pair must look like KNOB:BUTTON, got {tok!r}")
        out.append((parse_index(src), parse_index(dst)))
    return out


@dataclass(frozen=True)
class ConfigStore:
    app_name: str = "pulsedeck"
    filename: str = "pulsedeck.cfg"
    path: Optional[Path] = None

    @property
    def dir_path(self) -> Path:
        if self.path is not None:
            return self.path.parent
        return user_config_dir(self.app_name)

    @property
    def file_path(self) -> Path:
        if self.path is not None:
            return self.path
        return self.dir_path / self.filename

    def ensure_exists(self) -> None:
        self.dir_path.mkdir(parents=True, exist_ok=True)
        if not self.file_path.exists():
            self.file_path.write_text(DEFAULT_CONFIG_TEXT, encoding="utf-8")

    def load(self) -> configparser.ConfigParser:
        self.ensure_exists()
        cfg = configparser.ConfigParser(interpolation=None)
        try:
            cfg.read(self.file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigError(f"Cannot parse {self.file_path}: {e}") from e

        for section in ("Surface", "Pulse", "Bindings", "MutePairs"):
            if not cfg.has_section(section):
                cfg.add_section(section)
        cfg.set("Surface", "input_port", cfg.get("Surface", "input_port", fallback=""))
        cfg.set("Surface", "output_port", cfg.get("Surface", "output_port", fallback=""))
        cfg.set("Surface", "poll_interval_ms", cfg.get("Surface", "poll_interval_ms", fallback="100"))
        cfg.set("Pulse", "client_name", cfg.get("Pulse", "client_name", fallback="pulsedeck"))
        cfg.set("MutePairs", "pairs", cfg.get("MutePairs", "pairs", fallback=""))

        return cfg

    def load_settings(self) -> SurfaceSettings:
        cfg = self.load()
        try:
            interval = cfg.getint("Surface", "poll_interval_ms")
        except ValueError:
            raise ConfigError("[Surface] poll_interval_ms must be an integer") from None
        if interval <= 0:
            raise ConfigError("[Surface] poll_interval_ms must be positive")

        return SurfaceSettings(
            input_port=cfg.get("Surface", "input_port").strip(),
            output_port=cfg.get("Surface", "output_port").strip(),
            poll_interval_ms=interval,
            client_name=cfg.get("Pulse", "client_name").strip() or "pulsedeck",
        )

    def load_bindings(self, backend) -> Dict[int, Binding]:
        cfg = self.load()

        bindings: Dict[int, Binding] = {}
        for key, raw in cfg.items("Bindings"):
            index = parse_index(key)
            try:
                bindings[index] = parse_binding(raw, backend)
            except ConfigError as e:
                raise ConfigError(f"[Bindings] {key}: {e}") from e

        pairs = parse_mute_pairs(cfg.get("MutePairs", "pairs"))
        return with_mute_pairs(bindings, pairs)
