"""
Decoder for the tag/value wire format carried inside the telemetry SEI.

The payload is a flat protobuf-style message: each field is a varint tag
(``field_number << 3 | wire_type``) followed by a value whose length is fixed
by the wire type. Known fields map onto :class:`TelemetryRecord`; anything
else is skipped by wire type so that newer recorder firmware adding fields
does not break decoding.

| Wire type | Meaning          | Skip rule                        |
|-----------|------------------|----------------------------------|
| 0         | varint           | read one varint                  |
| 1         | 64-bit fixed     | 8 bytes                          |
| 2         | length-delimited | varint length, then that many    |
| 5         | 32-bit fixed     | 4 bytes                          |
"""

from __future__ import annotations

import logging
import struct
from enum import IntEnum
from typing import Any

from dashcam_telemetry.telemetry_data import AutopilotState, GearState, TelemetryRecord

logger = logging.getLogger(__name__)

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5

_MAX_VARINT_BYTES = 10
_U64_MASK = (1 << 64) - 1

# Field number → (record attribute, value type)
# value type: "uint32", "uint64", "bool", "gear", "autopilot", "float", "double"
_TELEMETRY_FIELDS: dict[int, tuple[str, str]] = {
    1: ("version", "uint32"),
    2: ("gear_state", "gear"),
    3: ("frame_seq_no", "uint64"),
    4: ("vehicle_speed_mps", "float"),
    5: ("accelerator_pedal_position", "float"),
    6: ("steering_wheel_angle", "float"),
    7: ("blinker_on_left", "bool"),
    8: ("blinker_on_right", "bool"),
    9: ("brake_applied", "bool"),
    10: ("autopilot_state", "autopilot"),
    11: ("latitude_deg", "double"),
    12: ("longitude_deg", "double"),
    13: ("heading_deg", "double"),
    14: ("linear_acceleration_mps2_x", "double"),
    15: ("linear_acceleration_mps2_y", "double"),
    16: ("linear_acceleration_mps2_z", "double"),
}

_WIRE_TYPE_FOR_VALUE: dict[str, int] = {
    "uint32": WIRE_VARINT,
    "uint64": WIRE_VARINT,
    "bool": WIRE_VARINT,
    "gear": WIRE_VARINT,
    "autopilot": WIRE_VARINT,
    "float": WIRE_FIXED32,
    "double": WIRE_FIXED64,
}


class MalformedPayload(Exception):
    """A varint, length or fixed-width value runs past the end of the payload."""


class FieldReader:
    """Sequential reader over one payload; every read raises :class:`MalformedPayload` on overrun."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    @property
    def at_end(self) -> bool:
        return self.offset >= len(self.data)

    def read_varint(self) -> int:
        result = 0
        for i in range(_MAX_VARINT_BYTES):
            if self.offset >= len(self.data):
                raise MalformedPayload(f"varint runs past end at byte {self.offset}")
            byte = self.data[self.offset]
            self.offset += 1
            result |= (byte & 0x7F) << (7 * i)
            if not byte & 0x80:
                return result & _U64_MASK
        raise MalformedPayload(f"varint longer than {_MAX_VARINT_BYTES} bytes")

    def read_bytes(self, n: int) -> bytes:
        if self.offset + n > len(self.data):
            raise MalformedPayload(
                f"{n}-byte read at {self.offset} runs past end ({len(self.data)})"
            )
        chunk = self.data[self.offset : self.offset + n]
        self.offset += n
        return chunk

    def read_fixed32(self) -> bytes:
        return self.read_bytes(4)

    def read_fixed64(self) -> bytes:
        return self.read_bytes(8)

    def skip_field(self, wire_type: int) -> None:
        if wire_type == WIRE_VARINT:
            self.read_varint()
        elif wire_type == WIRE_FIXED64:
            self.read_bytes(8)
        elif wire_type == WIRE_LENGTH_DELIMITED:
            self.read_bytes(self.read_varint())
        elif wire_type == WIRE_FIXED32:
            self.read_bytes(4)
        else:
            raise MalformedPayload(f"unsupported wire type {wire_type}")


def _enum_or_default(enum_cls: type[IntEnum], raw: int, default: IntEnum) -> IntEnum:
    try:
        return enum_cls(raw)
    except ValueError:
        return default


def _read_value(reader: FieldReader, value_type: str) -> Any:
    if value_type == "uint32":
        return reader.read_varint() & 0xFFFFFFFF
    elif value_type == "uint64":
        return reader.read_varint()
    elif value_type == "bool":
        return reader.read_varint() != 0
    elif value_type == "gear":
        return _enum_or_default(GearState, reader.read_varint(), GearState.PARK)
    elif value_type == "autopilot":
        return _enum_or_default(AutopilotState, reader.read_varint(), AutopilotState.NONE)
    elif value_type == "float":
        return struct.unpack("<f", reader.read_fixed32())[0]
    elif value_type == "double":
        return struct.unpack("<d", reader.read_fixed64())[0]
    raise ValueError(f"Unknown value type {value_type!r}")


def decode_telemetry_record(payload: bytes) -> TelemetryRecord | None:
    """Decode an emulation-free payload into a :class:`TelemetryRecord`.

    Returns ``None`` if the payload is malformed. Missing fields keep their
    defaults, unknown fields are skipped. A known field number arriving with
    a different wire type is skipped as if it were unknown.
    """
    reader = FieldReader(payload)
    values: dict[str, Any] = {}
    try:
        while not reader.at_end:
            tag = reader.read_varint()
            field_number = tag >> 3
            wire_type = tag & 0x07

            spec = _TELEMETRY_FIELDS.get(field_number)
            if spec is None or _WIRE_TYPE_FOR_VALUE[spec[1]] != wire_type:
                reader.skip_field(wire_type)
                continue

            name, value_type = spec
            values[name] = _read_value(reader, value_type)
    except MalformedPayload as exc:
        logger.debug("Discarding telemetry payload (%d bytes): %s", len(payload), exc)
        return None

    return TelemetryRecord(**values)
