import pathlib

import pydantic_settings


class DashcamTelemetryDirs(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_prefix="DASHCAM_DIR_")

    PROJECT_ROOT: pathlib.Path = pathlib.Path(__file__).parents[2]
    EXPORT: pathlib.Path = PROJECT_ROOT / "TelemetryExport"


class DashcamTelemetryConfig(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_prefix="DASHCAM_")

    DIR: DashcamTelemetryDirs = DashcamTelemetryDirs()

    # Used when the bitstream holds more pictures than the stts table describes
    # Units: milliseconds
    DEFAULT_FRAME_DURATION_MS: float = 33.333

    # Camera angles in the order they are tried as the telemetry source
    CAMERA_PRIORITY: list[str] = [
        "front",
        "back",
        "left_repeater",
        "right_repeater",
        "left_pillar",
        "right_pillar",
    ]


config = DashcamTelemetryConfig()
