"""Recording of the tapped source into an encoded audio asset.

The capture path is a second fan-out from the source node the tap observed,
so the monitored path through the analyser is never touched. States are
``Idle -> Recording -> Idle``; there is no pause.
"""

from __future__ import annotations

import asyncio
import base64
import functools
import logging
from dataclasses import dataclass, field
from typing import Any

from strudeltap.config import Settings, settings
from strudeltap.errors import CaptureUnsupported, InvalidAccessError
from strudeltap.graph.host import AudioHost, Encoder
from strudeltap.graph.tap import TapState
from strudeltap.rounding import round_half_up
from strudeltap.schemas import RecordingResponse, RecordingStartedResponse, error_result

logger = logging.getLogger(__name__)


@dataclass
class CaptureState:
    """``recording`` is True exactly when ``recorder`` is set."""
    recording: bool = False
    recorder: Encoder | None = None
    chunks: list[bytes] = field(default_factory=list)
    started_at_ms: int = 0
    capture_destination: Any = None
    source_node: Any = None
    mime_type: str | None = None
    pending_stop: asyncio.Future | None = None


def container_format(mime_type: str) -> str:
    """``"audio/webm;codecs=opus"`` -> ``"webm"``."""
    return mime_type.split(";", 1)[0].split("/")[-1].strip()


class CaptureSession:
    """One capture at a time; a second ``start()`` is rejected, never queued."""

    def __init__(
        self,
        host: AudioHost,
        tap_state: TapState,
        state: CaptureState | None = None,
        config: Settings | None = None,
    ):
        self.host = host
        self.tap_state = tap_state
        self.state = state if state is not None else CaptureState()
        self.config = config or settings

    @property
    def recording(self) -> bool:
        return self.state.recording

    def start(self) -> dict:
        state = self.state
        if state.recording:
            return error_result("Already recording")
        if self.tap_state.analysis_node is None:
            return error_result("Analyzer not connected - play pattern first")
        source = self.tap_state.observed_source_node
        if source is None:
            return error_result("Source node not available - play pattern first")

        try:
            mime_type = self._pick_mime_type()
            destination = self.host.create_stream_destination(source.context)
        except CaptureUnsupported as e:
            logger.warning(f"Capture unavailable: {e}")
            return error_result(f"Capture not supported: {e}")

        self.host.raw_connect(source, destination)
        try:
            encoder = self.host.create_encoder(destination.stream, mime_type)
            encoder.on_data_available = self._on_data_available
            encoder.start(self.config.capture_timeslice_ms)
        except CaptureUnsupported as e:
            self._detach(source, destination)
            logger.warning(f"Capture unavailable: {e}")
            return error_result(f"Capture not supported: {e}")
        except Exception:
            self._detach(source, destination)
            raise

        state.recording = True
        state.recorder = encoder
        state.chunks = []
        state.capture_destination = destination
        state.source_node = source
        state.mime_type = mime_type
        state.started_at_ms = self.host.now_ms()
        logger.info(f"Recording started ({mime_type}, timeslice={self.config.capture_timeslice_ms}ms)")
        return RecordingStartedResponse(mime_type=mime_type).to_dict()

    async def stop(self) -> dict:
        """Finalise the capture and return the encoded asset as base64.

        Resolves only once the encoder reports that it has flushed. Waits
        forever unless ``capture_stop_timeout`` is configured.
        """
        state = self.state
        if not state.recording:
            return error_result("Not currently recording")
        if state.pending_stop is not None:
            return error_result("Stop already in progress")

        finished = asyncio.get_running_loop().create_future()
        state.pending_stop = finished
        encoder = state.recorder
        encoder.on_stop = functools.partial(self._on_encoder_stop, finished)
        encoder.stop()

        timeout = self.config.capture_stop_timeout
        if timeout is None:
            return await finished
        try:
            return await asyncio.wait_for(finished, timeout)
        except asyncio.TimeoutError:
            logger.error(f"Encoder did not finalize within {timeout}s; discarding capture")
            self._teardown()
            return error_result("Timed out waiting for encoder to finalize")

    def abort(self) -> bool:
        """Drop an active capture without producing a result."""
        state = self.state
        if not state.recording:
            return False
        encoder = state.recorder
        encoder.on_data_available = None
        encoder.on_stop = None
        if encoder.state != "inactive":
            encoder.stop()
        if state.pending_stop is not None and not state.pending_stop.done():
            state.pending_stop.cancel()
        self._teardown()
        logger.info("Recording aborted")
        return True

    # ------------------------------------------------------------------
    # Encoder callbacks
    # ------------------------------------------------------------------

    def _on_data_available(self, data: bytes) -> None:
        if data:
            self.state.chunks.append(bytes(data))

    def _on_encoder_stop(self, finished: asyncio.Future) -> None:
        if finished.done():
            logger.debug("Ignoring finalize event with no pending stop")
            return
        try:
            result = self._finalize()
        except Exception as e:
            finished.set_exception(e)
            return
        finished.set_result(result)

    def _finalize(self) -> dict:
        state = self.state
        blob = b"".join(state.chunks)
        duration = round_half_up((self.host.now_ms() - state.started_at_ms) / 1000, 1)
        mime_type = state.mime_type
        n_chunks = len(state.chunks)
        self._teardown()

        logger.info(f"Recording finished: {duration}s, {len(blob)} bytes in {n_chunks} chunks")
        return RecordingResponse(
            duration=duration,
            size_bytes=len(blob),
            format=container_format(mime_type),
            mime_type=mime_type,
            audio_data=base64.b64encode(blob).decode("ascii"),
        ).to_dict()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _pick_mime_type(self) -> str:
        for mime_type in self.config.capture_mime_types:
            if self.host.is_type_supported(mime_type):
                return mime_type
        raise CaptureUnsupported(
            f"none of {', '.join(self.config.capture_mime_types)} can be encoded by this host"
        )

    def _teardown(self) -> None:
        state = self.state
        source, destination = state.source_node, state.capture_destination
        state.recording = False
        state.recorder = None
        state.chunks = []
        state.capture_destination = None
        state.source_node = None
        state.mime_type = None
        state.pending_stop = None
        self._detach(source, destination)

    def _detach(self, source, destination) -> None:
        if source is None or destination is None:
            return
        if source.context is not destination.context:
            logger.info("Source and capture destination are in different contexts; skipping disconnect")
            return
        try:
            self.host.disconnect(source, destination)
        except InvalidAccessError:
            logger.debug("Source already detached from capture destination")
