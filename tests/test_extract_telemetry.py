import logging

import pytest

from dashcam_telemetry.errors import BoxNotFound, MP4StructureError
from dashcam_telemetry.processing.extract_telemetry import (
    load_timeline,
    parse_telemetry_frames,
    parse_timeline,
)
from dashcam_telemetry.telemetry_data import GearState
from tests.builders import IDR_SLICE, P_SLICE, PPS, SPS, box, build_mp4, encode_record, sei_nal


def dashcam_clip(**kwargs):
    return build_mp4(
        [
            SPS,
            PPS,
            sei_nal(encode_record(gear_state=GearState.DRIVE, vehicle_speed_mps=10.0)),
            IDR_SLICE,
            sei_nal(encode_record(gear_state=GearState.PARK, vehicle_speed_mps=0.0)),
            P_SLICE,
            P_SLICE,
        ],
        **kwargs,
    )


def test_end_to_end_timeline():
    timeline = parse_timeline(dashcam_clip(timescale=1000, runs=[(2, 33), (2, 33), (2, 33)]))
    assert [f.timestamp_ms for f in timeline.frames] == [0.0, 33.0]
    assert [f.record.gear_state for f in timeline.frames] == [GearState.DRIVE, GearState.PARK]
    assert [f.record.vehicle_speed_mps for f in timeline.frames] == [10.0, 0.0]
    assert timeline.closest(20.0).record.gear_state is GearState.PARK
    assert timeline.closest(10.0).record.gear_state is GearState.DRIVE


def test_parse_timeline_from_path(tmp_path):
    clip = tmp_path / "2024-05-01_12-30-00-front.mp4"
    clip.write_bytes(dashcam_clip())
    timeline = parse_timeline(clip)
    assert len(timeline) == 2
    assert parse_timeline(str(clip)) == timeline


def test_non_telemetry_sei_contributes_no_frames():
    data = build_mp4(
        [
            sei_nal(encode_record(frame_seq_no=1), marker=0x05),
            IDR_SLICE,
            sei_nal(encode_record(frame_seq_no=2)),
            P_SLICE,
        ]
    )
    frames = parse_telemetry_frames(data)
    assert [f.record.frame_seq_no for f in frames] == [2]
    assert frames[0].timestamp_ms == 33.0


def test_frames_are_sorted():
    nals = []
    for seq in range(50):
        nals += [sei_nal(encode_record(frame_seq_no=seq)), P_SLICE]
    timeline = parse_timeline(build_mp4(nals, timescale=90000, runs=[(20, 3000), (30, 3003)]))
    ts = [f.timestamp_ms for f in timeline.frames]
    assert len(ts) == 50
    assert ts == sorted(ts)


def test_recording_without_telemetry_gives_empty_timeline():
    timeline = parse_timeline(build_mp4([SPS, PPS, IDR_SLICE, P_SLICE]))
    assert len(timeline) == 0
    assert timeline.closest(0.0) is None


def test_sample_count_mismatch_is_logged(caplog):
    with caplog.at_level(logging.WARNING):
        frames = parse_telemetry_frames(dashcam_clip(runs=[(1, 40)]))
    assert [f.timestamp_ms for f in frames] == [0.0, 40.0]
    assert "default frame duration" in caplog.text


def test_missing_mdat_is_box_not_found():
    data = dashcam_clip()
    data = data[: data.rindex(b"mdat") - 4]
    with pytest.raises(BoxNotFound):
        parse_timeline(data)


def test_missing_file_raises_oserror(tmp_path):
    with pytest.raises(OSError):
        parse_timeline(tmp_path / "missing.mp4")


@pytest.mark.parametrize(
    "data",
    [
        pytest.param(b"", id="empty"),
        pytest.param(b"not an mp4 at all", id="garbage"),
        pytest.param(box("ftyp", b"isom") + box("mdat", IDR_SLICE), id="no-moov"),
    ],
)
def test_structural_errors_raise(data):
    with pytest.raises(MP4StructureError):
        parse_timeline(data)


def test_load_timeline_degrades_to_none(tmp_path, caplog):
    with caplog.at_level(logging.WARNING):
        assert load_timeline(b"not an mp4 at all") is None
        assert load_timeline(tmp_path / "missing.mp4") is None
    assert "No telemetry" in caplog.text
    assert "Failed to read" in caplog.text


def test_load_timeline_returns_timeline():
    assert len(load_timeline(dashcam_clip())) == 2


def test_short_ctts_keeps_telemetry():
    timeline = load_timeline(dashcam_clip(extra_stbl=[box("ctts", b"\x00\x00")]))
    assert timeline is not None
    assert [f.record.gear_state for f in timeline.frames] == [GearState.DRIVE, GearState.PARK]


def test_impossible_sample_count_degrades_to_none():
    assert load_timeline(dashcam_clip(runs=[(0xFFFFFFFF, 33)])) is None
