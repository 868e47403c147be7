"""Spectral analysis subpackage."""

from strudeltap.analysis.models import BandEnergies, FeatureVector
from strudeltap.analysis.spectral import SpectralAnalyzer, compute_features

__all__ = [
    "BandEnergies",
    "FeatureVector",
    "SpectralAnalyzer",
    "compute_features",
]
