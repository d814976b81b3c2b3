"""
Dashcam Telemetry Scripts Package

This package contains command-line scripts built on the telemetry
extraction pipeline.

Available scripts:
- dump_dashcam_telemetry: Summarise, query and export SEI telemetry from MP4 clips
"""

__version__ = "0.1.0"
__all__ = ["dump_dashcam_telemetry"]
