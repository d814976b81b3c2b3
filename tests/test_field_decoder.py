import struct

import pytest

from dashcam_telemetry.processing.field_decoder import (
    FieldReader,
    MalformedPayload,
    decode_telemetry_record,
)
from dashcam_telemetry.telemetry_data import AutopilotState, GearState, TelemetryRecord
from tests.builders import (
    encode_record,
    fixed32_field,
    fixed64_field,
    length_field,
    tag,
    varint,
    varint_field,
)

FULL_RECORD = dict(
    version=3,
    gear_state=GearState.REVERSE,
    frame_seq_no=2**40 + 7,
    vehicle_speed_mps=12.5,
    accelerator_pedal_position=0.25,
    steering_wheel_angle=-17.75,
    blinker_on_left=True,
    blinker_on_right=False,
    brake_applied=True,
    autopilot_state=AutopilotState.AUTOSTEER,
    latitude_deg=37.4219983,
    longitude_deg=-122.084,
    heading_deg=271.5,
    linear_acceleration_mps2_x=0.125,
    linear_acceleration_mps2_y=-9.80665,
    linear_acceleration_mps2_z=1e-3,
)

UNKNOWN_FIELDS = [
    varint_field(17, 300),
    fixed64_field(40, b"\xff" * 8),
    length_field(21, b"firmware-2024.44"),
    fixed32_field(99, b"\x01\x02\x03\x04"),
    length_field(1000, b""),
]


def test_every_known_field_round_trips():
    record = decode_telemetry_record(encode_record(**FULL_RECORD))
    assert record == TelemetryRecord(**FULL_RECORD)


def test_unknown_fields_are_skipped():
    payload = encode_record(unknown=UNKNOWN_FIELDS, **FULL_RECORD)
    assert decode_telemetry_record(payload) == TelemetryRecord(**FULL_RECORD)


def test_empty_payload_gives_default_record():
    assert decode_telemetry_record(b"") == TelemetryRecord()


def test_missing_fields_keep_defaults():
    record = decode_telemetry_record(encode_record(vehicle_speed_mps=3.5))
    assert record.vehicle_speed_mps == 3.5
    assert record.gear_state is GearState.PARK
    assert record.latitude_deg == 0.0
    assert not record.brake_applied


@pytest.mark.parametrize("raw", [4, 17, 2**35])
def test_out_of_range_enums_clamp_to_default(raw):
    payload = varint_field(2, raw) + varint_field(10, raw)
    record = decode_telemetry_record(payload)
    assert record.gear_state is GearState.PARK
    assert record.autopilot_state is AutopilotState.NONE


def test_nonzero_varint_is_true():
    record = decode_telemetry_record(varint_field(7, 2) + varint_field(9, 0))
    assert record.blinker_on_left
    assert not record.brake_applied


def test_version_is_truncated_to_32_bits():
    record = decode_telemetry_record(varint_field(1, (1 << 32) + 5))
    assert record.version == 5


def test_later_occurrence_of_a_field_wins():
    payload = encode_record(vehicle_speed_mps=1.0) + encode_record(vehicle_speed_mps=2.0)
    assert decode_telemetry_record(payload).vehicle_speed_mps == 2.0


def test_known_field_with_unexpected_wire_type_is_skipped():
    payload = length_field(4, b"\x00\x00\x20\x41") + encode_record(heading_deg=90.0)
    record = decode_telemetry_record(payload)
    assert record.vehicle_speed_mps == 0.0
    assert record.heading_deg == 90.0


@pytest.mark.parametrize(
    "payload",
    [
        pytest.param(tag(4, 5) + b"\x00\x00", id="short-fixed32"),
        pytest.param(tag(11, 1) + b"\x00" * 7, id="short-fixed64"),
        pytest.param(tag(30, 2) + varint(10) + b"abc", id="short-length-delimited"),
        pytest.param(tag(30, 2), id="missing-length"),
        pytest.param(encode_record(version=1) + b"\x80", id="truncated-tag"),
        pytest.param(tag(3, 0) + b"\xff\xff", id="truncated-varint"),
        pytest.param(tag(3, 0) + b"\xff" * 10 + b"\x01", id="overlong-varint"),
        pytest.param(tag(30, 3), id="group-wire-type"),
        pytest.param(tag(30, 7), id="invalid-wire-type"),
    ],
)
def test_malformed_payload_yields_none(payload):
    assert decode_telemetry_record(payload) is None


def test_ten_byte_varint_is_accepted():
    reader = FieldReader(b"\xff" * 9 + b"\x01")
    assert reader.read_varint() == 2**64 - 1
    assert reader.at_end


def test_reader_raises_on_overrun():
    reader = FieldReader(b"\x01\x02")
    with pytest.raises(MalformedPayload):
        reader.read_fixed32()


def test_fixed_width_values_are_little_endian():
    payload = fixed32_field(6, struct.pack("<f", -2.5)) + fixed64_field(13, struct.pack("<d", 180.0))
    record = decode_telemetry_record(payload)
    assert record.steering_wheel_angle == -2.5
    assert record.heading_deg == 180.0
