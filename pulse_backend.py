# pulse_backend.py
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence, TypeVar

import pulsectl

from models import AppStream, AudioDevice, DeviceKind, ResolutionError


log = logging.getLogger(__name__)

T = TypeVar("T")


def _channel_volumes(obj: Any) -> tuple:
    vol = getattr(obj, "volume", None)
    values = getattr(vol, "values", None) or []
    return tuple(float(v) for v in values)


def _props(obj: Any) -> dict:
    out = {}
    for k, v in (getattr(obj, "proplist", None) or {}).items():
        out[str(k)] = "" if v is None else str(v)
    return out


def device_from_pulse(obj: Any, kind: DeviceKind) -> AudioDevice:
    return AudioDevice(
        index=int(obj.index),
        name=obj.name or "",
        description=getattr(obj, "description", "") or "",
        kind=kind,
        channel_volumes=_channel_volumes(obj),
        mute=bool(obj.mute),
    )


def stream_from_pulse(obj: Any) -> AppStream:
    return AppStream(
        index=int(obj.index),
        name=getattr(obj, "name", "") or "",
        props=_props(obj),
        channel_volumes=_channel_volumes(obj),
        mute=bool(obj.mute),
    )


class PulseBackend:
    """
    Synchronous handle on the audio server (PulseAudio or pipewire-pulse).

    Every call asks the server again; nothing is cached except the connection.
    Server-side failures come back as ResolutionError.
    """

    def __init__(self, pulse_client_name: str = "pulsedeck", pulse: Optional[pulsectl.Pulse] = None) -> None:
        self._pulse_client_name = pulse_client_name
        self._pulse: Optional[pulsectl.Pulse] = pulse

    def _pulse_connect(self) -> pulsectl.Pulse:
        if self._pulse is None:
            try:
                self._pulse = pulsectl.Pulse(self._pulse_client_name)
            except pulsectl.PulseError as e:
                raise ResolutionError(f"Cannot connect to the audio server: {e}") from e
        return self._pulse

    def close(self) -> None:
        if self._pulse is not None:
            self._pulse.close()
        self._pulse = None

    def _drop_client(self) -> None:
        pulse, self._pulse = self._pulse, None
        if pulse is None:
            return
        try:
            pulse.close()
        except Exception as e:
            log.debug("Closing the dead audio server client failed: %s", e)

    def _call(self, what: str, fn: Callable[[pulsectl.Pulse], T]) -> T:
        pulse = self._pulse_connect()
        try:
            return fn(pulse)
        except pulsectl.PulseDisconnected as e:
            log.warning("Audio server connection lost during %s", what)
            self._drop_client()
            raise ResolutionError(f"{what} failed: audio server disconnected") from e
        except pulsectl.PulseError as e:
            raise ResolutionError(f"{what} failed: {e}") from e

    def server_label(self) -> str:
        info = self._call("server_info", lambda p: p.server_info())
        return f"{info.server_name} {info.server_version}"

    # devices

    def list_devices(self, kind: DeviceKind) -> List[AudioDevice]:
        if kind is DeviceKind.SINK:
            objs = self._call("sink_list", lambda p: p.sink_list())
        else:
            objs = self._call("source_list", lambda p: p.source_list())
        return [device_from_pulse(o, kind) for o in objs]

    def get_device(self, kind: DeviceKind, index: int) -> AudioDevice:
        if kind is DeviceKind.SINK:
            obj = self._call(f"sink_info({index})", lambda p: p.sink_info(index))
        else:
            obj = self._call(f"source_info({index})", lambda p: p.source_info(index))
        return device_from_pulse(obj, kind)

    def get_device_by_name(self, kind: DeviceKind, name: str) -> AudioDevice:
        if kind is DeviceKind.SINK:
            obj = self._call(f"get_sink_by_name({name})", lambda p: p.get_sink_by_name(name))
        else:
            obj = self._call(f"get_source_by_name({name})", lambda p: p.get_source_by_name(name))
        return device_from_pulse(obj, kind)

    def set_device_volume(self, kind: DeviceKind, index: int, channel_volumes: Sequence[float]) -> None:
        vol = pulsectl.PulseVolumeInfo(list(channel_volumes))
        if kind is DeviceKind.SINK:
            self._call(f"sink_volume_set({index})", lambda p: p.sink_volume_set(index, vol))
        else:
            self._call(f"source_volume_set({index})", lambda p: p.source_volume_set(index, vol))

    def set_device_mute(self, kind: DeviceKind, index: int, mute: bool) -> None:
        if kind is DeviceKind.SINK:
            self._call(f"sink_mute({index})", lambda p: p.sink_mute(index, mute))
        else:
            self._call(f"source_mute({index})", lambda p: p.source_mute(index, mute))

    def get_default_device(self, kind: DeviceKind) -> AudioDevice:
        info = self._call("server_info", lambda p: p.server_info())
        name = info.default_sink_name if kind is DeviceKind.SINK else info.default_source_name
        if not name:
            raise ResolutionError(f"Audio server reports no default {kind.value}")
        return self.get_device_by_name(kind, name)

    def set_default_device(self, kind: DeviceKind, name: str) -> None:
        if kind is DeviceKind.SINK:
            self._call(f"sink_default_set({name})", lambda p: p.sink_default_set(name))
        else:
            self._call(f"source_default_set({name})", lambda p: p.source_default_set(name))

    # application streams

    def list_application_streams(self) -> List[AppStream]:
        objs = self._call("sink_input_list", lambda p: p.sink_input_list())
        return [stream_from_pulse(o) for o in objs]

    def set_stream_volume(self, index: int, channel_volumes: Sequence[float]) -> None:
        vol = pulsectl.PulseVolumeInfo(list(channel_volumes))
        self._call(f"sink_input_volume_set({index})", lambda p: p.sink_input_volume_set(index, vol))

    def set_stream_mute(self, index: int, mute: bool) -> None:
        self._call(f"sink_input_mute({index})", lambda p: p.sink_input_mute(index, mute))
