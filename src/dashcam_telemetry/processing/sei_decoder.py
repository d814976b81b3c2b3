"""
Extraction of the telemetry payload from an SEI NAL unit.

The recorder writes one SEI NAL unit ahead of each coded picture, laid out as::

    byte 0        NAL header (type 6)
    bytes 1-2     SEI payload type / size as written by the encoder
    0x42 ...      one or more padding bytes
    0x69          user-data marker identifying a telemetry SEI
    payload       field-encoded TelemetryRecord, with emulation prevention
    last byte     RBSP trailing bits (0x80)

Emulation prevention bytes (``00 00 03``) inside the payload must be removed
before field decoding.
"""

from __future__ import annotations

import logging

from dashcam_telemetry.processing.field_decoder import decode_telemetry_record
from dashcam_telemetry.telemetry_data import TelemetryRecord

logger = logging.getLogger(__name__)

SEI_PADDING_BYTE = 0x42
SEI_TELEMETRY_MARKER = 0x69

_PADDING_START = 3  # NAL header + two encoder bytes


def strip_emulation_prevention(data: bytes) -> bytes:
    """Drop every ``0x03`` that follows two or more consecutive zero bytes."""
    out = bytearray()
    zeros = 0
    for byte in data:
        if zeros >= 2 and byte == 0x03:
            zeros = 0
            continue
        out.append(byte)
        zeros = zeros + 1 if byte == 0 else 0
    return bytes(out)


def extract_telemetry_payload(nal: bytes) -> bytes | None:
    """Return the emulation-free payload of a telemetry SEI, or ``None`` if *nal* is not one."""
    if len(nal) < 4:
        return None
    i = _PADDING_START
    while i < len(nal) and nal[i] == SEI_PADDING_BYTE:
        i += 1
    # At least one padding byte, the marker and the trailing byte are required
    if i == _PADDING_START or i + 1 >= len(nal):
        return None
    if nal[i] != SEI_TELEMETRY_MARKER:
        return None
    return strip_emulation_prevention(nal[i + 1 : -1])


def decode_sei(nal: bytes) -> TelemetryRecord | None:
    """Decode one raw SEI NAL unit into a :class:`TelemetryRecord`.

    Returns ``None`` for SEI units that do not carry telemetry and for
    payloads that fail to decode.
    """
    payload = extract_telemetry_payload(nal)
    if payload is None:
        logger.debug("SEI unit (%d bytes) is not a telemetry SEI", len(nal))
        return None
    return decode_telemetry_record(payload)
