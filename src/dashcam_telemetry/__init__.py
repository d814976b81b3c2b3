"""
Dashcam Telemetry

Recovers the vehicle telemetry a dashcam recorder embeds as SEI units in
the H.264 stream of each MP4 clip, and indexes it by playback time.
"""

__version__ = "0.1.0"
