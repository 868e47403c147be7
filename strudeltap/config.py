"""Application configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Session settings with env var overrides."""

    # Tap / analysis
    fft_size: int = 2048

    # Capture
    capture_timeslice_ms: int = 100
    # Tried in order; the first type the host encoder supports wins.
    capture_mime_types: list[str] = [
        "audio/webm;codecs=opus",
        "audio/ogg;codecs=opus",
    ]
    capture_stop_timeout: float | None = None  # seconds, None waits forever

    # Full-pattern capture
    settle_seconds: float = 0.5

    # Offline host
    offline_sample_rate: int = 48000  # a rate opus can encode

    log_level: str = "INFO"

    model_config = {"env_prefix": "STRUDELTAP_"}


settings = Settings()
