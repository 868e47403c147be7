"""Pydantic response models for host-facing results.

All results leave the core as plain dicts with camelCase keys so the host can
ship them as JSON.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Response(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ErrorResponse(_Response):
    success: bool | None = None
    connected: bool | None = None
    error: str


class BandEnergiesResponse(_Response):
    bass: int
    low_mid: int
    mid: int
    high_mid: int
    treble: int


class FeaturesResponse(_Response):
    average: float
    peak: int
    peak_frequency_hz: int
    spectral_centroid: float
    band_energies: BandEnergiesResponse
    is_playing: bool
    is_silent: bool
    bass_to_treble_ratio: str
    brightness_label: str


class ConnectionStatusResponse(_Response):
    flagged: bool = True
    has_data: bool
    age_ms: int


class AnalysisResponse(_Response):
    connected: bool = True
    connection_status: ConnectionStatusResponse
    timestamp: int
    features: FeaturesResponse


class RecordingStartedResponse(_Response):
    success: bool = True
    mime_type: str


class PatternInfoResponse(_Response):
    cpm: float
    cycles: float
    expected_duration: float
    duration_formatted: str


class RecordingResponse(_Response):
    success: bool = True
    duration: float  # seconds
    size_bytes: int
    format: str  # container, e.g. "webm"
    mime_type: str
    audio_data: str  # base64
    pattern_info: PatternInfoResponse | None = None


class DurationResponse(_Response):
    success: bool = True
    cycles_per_minute: float
    cycle_count: float
    seconds: float
    formatted: str


def error_result(message: str, **fields) -> dict:
    """Structured failure result. Not-ready states are reported, never raised."""
    fields.setdefault("success", False)
    return ErrorResponse(error=message, **fields).to_dict()
