"""Data models for spectral features."""

from dataclasses import dataclass


@dataclass
class BandEnergies:
    """Mean bin magnitude per band, rounded to integers (0-255)."""
    bass: int
    low_mid: int
    mid: int
    high_mid: int
    treble: int


@dataclass
class FeatureVector:
    """Snapshot of one byte spectrum. Recomputed on every request."""
    average: float
    peak: int
    peak_frequency_hz: int
    spectral_centroid: float  # in bins, not Hz
    band_energies: BandEnergies
    is_playing: bool
    is_silent: bool
    bass_to_treble_ratio: str  # "N/A" when treble is empty
    brightness_label: str  # "bright" | "balanced" | "dark"
