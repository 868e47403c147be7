"""Spectral features from a byte magnitude spectrum."""

from __future__ import annotations

import logging
from collections.abc import Callable

import numpy as np

from strudeltap.analysis.models import BandEnergies, FeatureVector
from strudeltap.graph.tap import TapState
from strudeltap.rounding import round_half_up
from strudeltap.schemas import (
    AnalysisResponse,
    BandEnergiesResponse,
    ConnectionStatusResponse,
    FeaturesResponse,
    error_result,
)

logger = logging.getLogger(__name__)

# Bin ranges [start, end) per band. Bins from 512 upwards belong to no band.
BANDS: dict[str, tuple[int, int]] = {
    "bass": (0, 8),
    "low_mid": (8, 32),
    "mid": (32, 128),
    "high_mid": (128, 256),
    "treble": (256, 512),
}

# Peak bins are mapped onto 0-22050 Hz whatever the context's sample rate.
NOMINAL_NYQUIST_HZ = 22050

PLAYING_THRESHOLD = 5
SILENT_THRESHOLD = 1
BRIGHT_CENTROID = 500
BALANCED_CENTROID = 200


def _band_mean(data: np.ndarray, start: int, end: int) -> float:
    # Divide by the nominal width so a short spectrum reads as quieter.
    return float(data[start:end].sum()) / (end - start)


def brightness_label(centroid: float) -> str:
    if centroid > BRIGHT_CENTROID:
        return "bright"
    if centroid > BALANCED_CENTROID:
        return "balanced"
    return "dark"


def compute_features(spectrum: np.ndarray) -> FeatureVector:
    """Compute the feature vector of a byte spectrum (values 0-255).

    Parameters
    ----------
    spectrum:
        Magnitude per frequency bin, usually the 1024 bins of a 2048-point
        transform.
    """
    data = np.asarray(spectrum, dtype=np.float64)
    n_bins = len(data)
    if n_bins == 0:
        raise ValueError("Cannot compute features of an empty spectrum")

    average = float(data.mean())
    bands = {name: _band_mean(data, start, end) for name, (start, end) in BANDS.items()}

    peak_index = int(np.argmax(data))
    peak = int(data[peak_index])
    peak_frequency = (peak_index / n_bins) * NOMINAL_NYQUIST_HZ

    total = float(data.sum())
    if total > 0:
        centroid = float(np.dot(np.arange(n_bins), data)) / total
    else:
        centroid = 0.0

    treble = bands["treble"]
    ratio = f"{bands['bass'] / treble:.2f}" if treble > 0 else "N/A"

    return FeatureVector(
        average=round_half_up(average, 1),
        peak=peak,
        peak_frequency_hz=int(round_half_up(peak_frequency)),
        spectral_centroid=round_half_up(centroid, 1),
        band_energies=BandEnergies(**{name: int(round_half_up(v)) for name, v in bands.items()}),
        is_playing=average > PLAYING_THRESHOLD,
        is_silent=average < SILENT_THRESHOLD,
        bass_to_treble_ratio=ratio,
        brightness_label=brightness_label(centroid),
    )


def features_to_response(features: FeatureVector) -> FeaturesResponse:
    bands = features.band_energies
    return FeaturesResponse(
        average=features.average,
        peak=features.peak,
        peak_frequency_hz=features.peak_frequency_hz,
        spectral_centroid=features.spectral_centroid,
        band_energies=BandEnergiesResponse(
            bass=bands.bass,
            low_mid=bands.low_mid,
            mid=bands.mid,
            high_mid=bands.high_mid,
            treble=bands.treble,
        ),
        is_playing=features.is_playing,
        is_silent=features.is_silent,
        bass_to_treble_ratio=features.bass_to_treble_ratio,
        brightness_label=features.brightness_label,
    )


class SpectralAnalyzer:
    """Pull-model reader over the tap's analyser. Never mutates the tap state."""

    def __init__(self, tap_state: TapState, clock: Callable[[], int]):
        self.tap_state = tap_state
        self.clock = clock

    def analyze(self) -> dict:
        state = self.tap_state
        if not state.connected or state.analysis_node is None:
            return error_result("Analyzer not connected", success=None, connected=False)

        buffer = state.frequency_buffer
        state.analysis_node.get_byte_frequency_data(buffer)
        features = compute_features(buffer)

        now = self.clock()
        return AnalysisResponse(
            connection_status=ConnectionStatusResponse(
                has_data=buffer is not None and len(buffer) > 0,
                age_ms=now - state.connected_at_ms,
            ),
            timestamp=now,
            features=features_to_response(features),
        ).to_dict()
