"""Utility helpers for the dashcam_telemetry package."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dashcam_telemetry.telemetry_data import AutopilotState, GearState

if TYPE_CHECKING:
    from dashcam_telemetry.telemetry_data import TelemetryRecord

MPS_TO_KMH = 3.6

# ── Gear → shifter letter ───────────────────────────────────────────────────
_GEAR_LETTERS: dict[GearState, str] = {
    GearState.PARK: "P",
    GearState.DRIVE: "D",
    GearState.REVERSE: "R",
    GearState.NEUTRAL: "N",
}

# ── Autopilot state → short label ───────────────────────────────────────────
_AUTOPILOT_LABELS: dict[AutopilotState, str] = {
    AutopilotState.NONE: "Off",
    AutopilotState.SELF_DRIVING: "FSD",
    AutopilotState.AUTOSTEER: "Autosteer",
    AutopilotState.TACC: "TACC",
}


def format_telemetry_overlay(record: TelemetryRecord | None) -> str:
    """Build the one-line telemetry readout shown over the playing video.

    Parameters
    ----------
    record:
        The record nearest to the current playback time, typically
        ``timeline.closest(t).record``.

    Returns
    -------
    str
        A string such as ``"Speed: 36.0 km/h  Gear: D  AP: Off  Brake: Off"``,
        or ``""`` when there is no record.
    """
    if record is None:
        return ""

    speed_kmh = record.vehicle_speed_mps * MPS_TO_KMH
    gear = _GEAR_LETTERS[record.gear_state]
    autopilot = _AUTOPILOT_LABELS[record.autopilot_state]
    brake = "On" if record.brake_applied else "Off"
    return f"Speed: {speed_kmh:.1f} km/h  Gear: {gear}  AP: {autopilot}  Brake: {brake}"
