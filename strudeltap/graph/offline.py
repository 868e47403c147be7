"""In-process reference host rendered with numpy.

Rendering is pull based: a node's output for a frame range is the sum of its
inputs over the same range, so any node can be rendered at any time without
a running audio thread. Frames are counted from the context's creation on the
host clock.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from collections.abc import Callable, Sequence

import numpy as np
import soundfile as sf

from strudeltap.config import settings
from strudeltap.errors import CaptureUnsupported, InvalidAccessError
from strudeltap.graph.host import AudioHost, Encoder
from strudeltap.graph.nodes import AudioNode, NodeKind
from strudeltap.transport import PatternTransport

logger = logging.getLogger(__name__)

# mime type -> (soundfile format, subtype)
ENCODINGS: dict[str, tuple[str, str]] = {
    "audio/ogg;codecs=opus": ("OGG", "OPUS"),
    "audio/ogg;codecs=vorbis": ("OGG", "VORBIS"),
    "audio/flac": ("FLAC", "PCM_16"),
    "audio/wav": ("WAV", "PCM_16"),
}

_CHUNK_BYTES = 16 * 1024


class OfflineContext:
    """An execution context: one clock origin, one terminal destination."""

    def __init__(self, sample_rate: int | None = None, clock: Callable[[], float] = time.time):
        self.sample_rate = sample_rate or settings.offline_sample_rate
        self._clock = clock
        self._origin = clock()
        self.destination = DestinationNode(self)

    @property
    def current_time(self) -> float:
        return self._clock() - self._origin

    @property
    def current_frame(self) -> int:
        return int(self.current_time * self.sample_rate)

    def __repr__(self) -> str:
        return f"<OfflineContext sr={self.sample_rate}>"


class OfflineNode(AudioNode):
    def __init__(self, context: OfflineContext):
        super().__init__(context)
        self.inputs: list[OfflineNode] = []
        self.outputs: list[OfflineNode] = []

    def render(self, start: int, frames: int) -> np.ndarray:
        out = np.zeros(frames, dtype=np.float32)
        for node in self.inputs:
            out += node.render(start, frames)
        return out


class OscillatorNode(OfflineNode):
    kind = NodeKind.SOURCE
    WAVEFORMS = ("sine", "square", "sawtooth", "triangle")

    def __init__(self, context, frequency: float = 440.0, waveform: str = "sine", amplitude: float = 0.5):
        if waveform not in self.WAVEFORMS:
            raise ValueError(f"Unknown waveform {waveform!r}")
        super().__init__(context)
        self.frequency = frequency
        self.waveform = waveform
        self.amplitude = amplitude

    def render(self, start: int, frames: int) -> np.ndarray:
        t = np.arange(start, start + frames, dtype=np.float64) / self.context.sample_rate
        phase = (self.frequency * t) % 1.0
        if self.waveform == "sine":
            wave = np.sin(2 * np.pi * phase)
        elif self.waveform == "square":
            wave = np.where(phase < 0.5, 1.0, -1.0)
        elif self.waveform == "sawtooth":
            wave = 2.0 * phase - 1.0
        else:
            wave = 4.0 * np.abs(phase - 0.5) - 1.0
        return (self.amplitude * wave).astype(np.float32)


class GainNode(OfflineNode):
    kind = NodeKind.PROCESSOR

    def __init__(self, context, gain: float = 1.0):
        super().__init__(context)
        self.gain = gain

    def render(self, start: int, frames: int) -> np.ndarray:
        return super().render(start, frames) * np.float32(self.gain)


class AnalyserNode(OfflineNode):
    """Byte spectrum analyser following the Web Audio AnalyserNode algorithm."""

    kind = NodeKind.ANALYSER

    def __init__(
        self,
        context,
        fft_size: int = 2048,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        super().__init__(context)
        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self._window = np.blackman(fft_size)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def get_byte_frequency_data(self, array: np.ndarray) -> None:
        """Fill *array* with the current spectrum scaled to 0-255."""
        end = self.context.current_frame
        frames = self.render(end - self.fft_size, self.fft_size).astype(np.float64)

        spectrum = np.abs(np.fft.rfft(frames * self._window))[:self.frequency_bin_count] / self.fft_size
        tau = self.smoothing_time_constant
        self._smoothed = tau * self._smoothed + (1.0 - tau) * spectrum

        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(self._smoothed)
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.nan_to_num(scale * (db - self.min_decibels), neginf=0.0)
        byte_data = np.clip(np.floor(scaled), 0, 255).astype(np.uint8)

        n = min(len(array), self.frequency_bin_count)
        array[:n] = byte_data[:n]


class DestinationNode(OfflineNode):
    kind = NodeKind.DESTINATION


class OfflineStream:
    """Capturable stream exposed by a :class:`MediaStreamDestinationNode`."""

    def __init__(self, node: "MediaStreamDestinationNode"):
        self.node = node

    @property
    def context(self) -> OfflineContext:
        return self.node.context


class MediaStreamDestinationNode(OfflineNode):
    kind = NodeKind.STREAM_DESTINATION

    def __init__(self, context):
        super().__init__(context)
        self.stream = OfflineStream(self)


class OfflineEncoder(Encoder):
    """Encodes a stream with soundfile once recording stops.

    Audio is pulled from the stream every timeslice on the running event loop.
    On stop, the collected audio is encoded in one pass and delivered through
    ``on_data_available`` in fixed-size chunks before ``on_stop`` fires.
    """

    def __init__(self, stream: OfflineStream, mime_type: str):
        super().__init__(stream, mime_type)
        self._format, self._subtype = ENCODINGS[mime_type]
        self._blocks: list[np.ndarray] = []
        self._cursor = 0
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def start(self, timeslice_ms: int) -> None:
        if self.state == "recording":
            raise RuntimeError("Encoder already started")
        self._loop = asyncio.get_running_loop()
        self.state = "recording"
        self._blocks = []
        self._cursor = self.stream.context.current_frame
        self._task = self._loop.create_task(self._pump(timeslice_ms / 1000))

    def stop(self) -> None:
        if self.state != "recording":
            return
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._pull()
        self.state = "stopping"
        if self._loop.is_closed():
            self._flush()
        else:
            self._loop.call_soon(self._flush)

    async def _pump(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self._pull()

    def _pull(self) -> None:
        end = self.stream.context.current_frame
        if end > self._cursor:
            self._blocks.append(self.stream.node.render(self._cursor, end - self._cursor))
            self._cursor = end

    def _flush(self) -> None:
        audio = np.concatenate(self._blocks) if self._blocks else np.zeros(0, dtype=np.float32)
        buf = io.BytesIO()
        sf.write(buf, audio, self.stream.context.sample_rate, format=self._format, subtype=self._subtype)
        data = buf.getvalue()
        logger.debug(f"Encoded {len(audio)} frames to {len(data)} bytes ({self.mime_type})")
        for offset in range(0, len(data), _CHUNK_BYTES):
            self._emit(data[offset:offset + _CHUNK_BYTES])
        self._blocks = []
        self._finish()


class OfflineHost(AudioHost):
    """Reference host. ``context`` is the default context; more can be created."""

    def __init__(self, sample_rate: int | None = None, clock: Callable[[], float] = time.time):
        super().__init__()
        self._clock = clock
        self.context = OfflineContext(sample_rate, clock)

    def create_context(self, sample_rate: int | None = None) -> OfflineContext:
        return OfflineContext(sample_rate or self.context.sample_rate, self._clock)

    # Node factories -----------------------------------------------------

    def create_oscillator(self, frequency: float = 440.0, waveform: str = "sine",
                          amplitude: float = 0.5, context: OfflineContext | None = None) -> OscillatorNode:
        return OscillatorNode(context or self.context, frequency, waveform, amplitude)

    def create_gain(self, gain: float = 1.0, context: OfflineContext | None = None) -> GainNode:
        return GainNode(context or self.context, gain)

    def create_analyser(self, context, fft_size: int) -> AnalyserNode:
        return AnalyserNode(context, fft_size)

    def create_stream_destination(self, context) -> MediaStreamDestinationNode:
        if not isinstance(context, OfflineContext):
            raise CaptureUnsupported(f"{context!r} cannot create stream destinations")
        return MediaStreamDestinationNode(context)

    def is_type_supported(self, mime_type: str) -> bool:
        return mime_type in ENCODINGS

    def create_encoder(self, stream, mime_type: str) -> OfflineEncoder:
        if not self.is_type_supported(mime_type):
            raise CaptureUnsupported(f"{mime_type} is not supported offline")
        return OfflineEncoder(stream, mime_type)

    # Wiring --------------------------------------------------------------

    def raw_connect(self, source, destination, output: int = 0, input_index: int = 0):
        if source.context is not destination.context:
            raise InvalidAccessError("Cannot connect nodes from different contexts")
        if source not in destination.inputs:
            destination.inputs.append(source)
            source.outputs.append(destination)
        return destination

    def disconnect(self, source, destination=None) -> None:
        if destination is None:
            for node in list(source.outputs):
                node.inputs.remove(source)
            source.outputs.clear()
            return
        if source.context is not destination.context:
            raise InvalidAccessError("Cannot disconnect nodes from different contexts")
        if destination not in source.outputs:
            raise InvalidAccessError(f"{source!r} is not connected to {destination!r}")
        source.outputs.remove(destination)
        destination.inputs.remove(source)

    def now_ms(self) -> int:
        return int(self._clock() * 1000)


class OfflineTransport(PatternTransport):
    """Plays a set of voices through a bus into the terminal destination.

    The bus is the single node that connects to the destination, the same
    way a live synthesis engine funnels its voices into one output gain.
    """

    def __init__(self, host: OfflineHost, voices: Sequence[OfflineNode], pattern: str = "",
                 gain: float = 1.0):
        self.host = host
        self.pattern = pattern
        self.bus = host.create_gain(gain)
        for voice in voices:
            host.connect(voice, self.bus)
        self.playing = False

    async def get_pattern(self) -> str:
        return self.pattern

    async def play(self) -> None:
        if self.playing:
            return
        self.host.connect(self.bus, self.host.context.destination)
        self.playing = True

    async def stop(self) -> None:
        if not self.playing:
            return
        self.host.disconnect(self.bus)
        self.playing = False
