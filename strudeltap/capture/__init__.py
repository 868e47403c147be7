"""Capture subpackage."""

from strudeltap.capture.session import CaptureSession, CaptureState, container_format

__all__ = ["CaptureSession", "CaptureState", "container_format"]
