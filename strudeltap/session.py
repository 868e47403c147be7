"""Session wiring: one tap, one analyzer, one capture per host.

:class:`IntrospectionSession` owns all mutable state and is the host-facing
boundary. Every public operation returns a plain JSON-serialisable dict;
unexpected exceptions are logged and turned into ``{"error": ...}`` results
so a failing primitive never takes the host session down with it.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path

from strudeltap.analysis.spectral import SpectralAnalyzer
from strudeltap.capture.session import CaptureSession, CaptureState
from strudeltap.config import Settings, settings
from strudeltap.graph.host import AudioHost
from strudeltap.graph.tap import GraphTap, TapState
from strudeltap.pattern.duration import estimate_duration
from strudeltap.schemas import DurationResponse, PatternInfoResponse, error_result
from strudeltap.transport import PatternTransport

logger = logging.getLogger(__name__)


class IntrospectionSession:
    """Analysis and capture bound to one :class:`AudioHost`.

    Use :meth:`initialize` / :meth:`close`, or ``async with``.
    """

    def __init__(self, host: AudioHost, config: Settings | None = None):
        self.host = host
        self.config = config or settings
        self.tap_state = TapState()
        self.capture_state = CaptureState()
        self.tap = GraphTap(host, self.tap_state, fft_size=self.config.fft_size)
        self.analyzer = SpectralAnalyzer(self.tap_state, clock=host.now_ms)
        self.capture = CaptureSession(host, self.tap_state, self.capture_state, config=self.config)

    @property
    def initialized(self) -> bool:
        return self.tap.installed

    def initialize(self) -> str:
        """Install the tap. Raises ``InterceptionUnsupported`` on hosts that forbid it."""
        if self.tap.installed:
            return "Already initialized"
        self.tap.install()
        return "Session initialized"

    def close(self) -> None:
        """Abort any capture and remove every node the session added."""
        self.capture.abort()
        self.tap.uninstall()

    async def __aenter__(self) -> "IntrospectionSession":
        self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Host-facing operations
    # ------------------------------------------------------------------

    def analyze(self) -> dict:
        if not self.initialized:
            return error_result("Analyzer not initialized", success=None)
        try:
            return self.analyzer.analyze()
        except Exception as e:
            logger.exception("Spectral analysis failed")
            return error_result(str(e), success=None, connected=False)

    def start_recording(self) -> dict:
        try:
            return self.capture.start()
        except Exception as e:
            logger.exception("Failed to start recording")
            return error_result(str(e))

    async def stop_recording(self) -> dict:
        try:
            return await self.capture.stop()
        except Exception as e:
            logger.exception("Failed to stop recording")
            self.capture.abort()
            return error_result(str(e))

    def estimate_duration(self, source_text: str) -> dict:
        try:
            estimate = estimate_duration(source_text)
        except Exception as e:
            logger.exception("Duration estimate failed")
            return error_result(str(e))
        return DurationResponse(
            cycles_per_minute=estimate.cycles_per_minute,
            cycle_count=estimate.cycle_count,
            seconds=estimate.seconds,
            formatted=estimate.formatted,
        ).to_dict()

    async def record_timed(self, seconds: float) -> dict:
        """Record for a fixed wall-clock duration."""
        started = self.start_recording()
        if not started.get("success"):
            return started
        await asyncio.sleep(seconds)
        return await self.stop_recording()

    async def record_full_pattern(self, transport: PatternTransport) -> dict:
        """Restart playback and record one estimated loop of the pattern."""
        try:
            info = self.estimate_duration(await transport.get_pattern())
            if not info.get("success"):
                return error_result(f"Failed to calculate pattern duration: {info['error']}")

            await transport.stop()
            await transport.play()
            await asyncio.sleep(self.config.settle_seconds)

            logger.info(f"Recording full pattern: {info['formatted']} "
                        f"({info['cycleCount']} cycles at {info['cyclesPerMinute']} cpm)")
            result = await self.record_timed(info["seconds"])
        except Exception as e:
            logger.exception("Full-pattern recording failed")
            self.capture.abort()
            return error_result(str(e))

        if result.get("success"):
            result["patternInfo"] = PatternInfoResponse(
                cpm=info["cyclesPerMinute"],
                cycles=info["cycleCount"],
                expected_duration=info["seconds"],
                duration_formatted=info["formatted"],
            ).to_dict()
        return result

    @staticmethod
    def save_recording(result: dict, path: str | Path) -> Path:
        """Write the audio of a successful recording result to *path*."""
        if not result.get("success") or "audioData" not in result:
            raise ValueError(f"Not a successful recording result: {result.get('error', result)}")
        path = Path(path)
        path.write_bytes(base64.b64decode(result["audioData"]))
        return path
