"""Shared fixtures: a scriptable in-memory host and synthetic spectra."""

import asyncio

import numpy as np
import pytest

from strudeltap.config import Settings
from strudeltap.errors import CaptureUnsupported, InvalidAccessError
from strudeltap.graph.host import AudioHost, Encoder
from strudeltap.graph.nodes import AudioNode, NodeKind


class FakeContext:
    def __init__(self, name="ctx"):
        self.name = name
        self.destination = FakeNode(self, NodeKind.DESTINATION)

    def __repr__(self):
        return f"<FakeContext {self.name}>"


class FakeNode(AudioNode):
    def __init__(self, context, kind=NodeKind.SOURCE):
        super().__init__(context)
        self.kind = kind


class FakeAnalyser(FakeNode):
    def __init__(self, context, fft_size):
        super().__init__(context, NodeKind.ANALYSER)
        self.fft_size = fft_size
        self.frequency_bin_count = fft_size // 2
        self.spectrum = np.zeros(self.frequency_bin_count, dtype=np.uint8)
        self.reads = 0

    def get_byte_frequency_data(self, array):
        self.reads += 1
        array[:] = self.spectrum[:len(array)]


class FakeStreamDestination(FakeNode):
    def __init__(self, context):
        super().__init__(context, NodeKind.STREAM_DESTINATION)
        self.stream = object()


class FakeEncoder(Encoder):
    """Emits nothing by itself; tests push chunks and finalize explicitly.

    With ``auto_finish`` the stop callback is scheduled on the loop, the way
    a real encoder reports completion after ``stop()`` has returned.
    """

    def __init__(self, stream, mime_type, auto_finish=True):
        super().__init__(stream, mime_type)
        self.auto_finish = auto_finish
        self.timeslice_ms = None
        self.stop_calls = 0

    def start(self, timeslice_ms):
        self.timeslice_ms = timeslice_ms
        self.state = "recording"

    def stop(self):
        self.stop_calls += 1
        if self.auto_finish:
            asyncio.get_running_loop().call_soon(self._finish)

    def emit(self, data):
        self._emit(data)

    def finish(self):
        self._finish()


class FakeHost(AudioHost):
    """Records every real connection; the clock only moves when told to."""

    def __init__(self, supported=("audio/webm;codecs=opus",)):
        super().__init__()
        self.context = FakeContext()
        self.now = 1_000_000
        self.supported = set(supported)
        self.connections = []
        self.disconnections = []
        self.analysers = []
        self.encoders = []
        self.capture_context = None  # force stream destinations into another context
        self.capture_supported = True
        self.auto_finish = True

    def source(self, context=None):
        return FakeNode(context or self.context, NodeKind.SOURCE)

    def raw_connect(self, source, destination, *args, **kwargs):
        self.connections.append((source, destination, args, kwargs))
        return destination

    def disconnect(self, source, destination=None):
        if destination is not None and source.context is not destination.context:
            raise InvalidAccessError("cross-context disconnect")
        self.disconnections.append((source, destination))

    def create_analyser(self, context, fft_size):
        analyser = FakeAnalyser(context, fft_size)
        self.analysers.append(analyser)
        return analyser

    def create_stream_destination(self, context):
        if not self.capture_supported:
            raise CaptureUnsupported("no MediaStream support")
        return FakeStreamDestination(self.capture_context or context)

    def is_type_supported(self, mime_type):
        return mime_type in self.supported

    def create_encoder(self, stream, mime_type):
        encoder = FakeEncoder(stream, mime_type, auto_finish=self.auto_finish)
        self.encoders.append(encoder)
        return encoder

    def now_ms(self):
        return self.now


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def config():
    return Settings(capture_mime_types=["audio/webm;codecs=opus", "audio/ogg;codecs=opus"])


def make_spectrum(n_bins=1024, **bands):
    """Byte spectrum with constant values over the given bin ranges.

    ``make_spectrum(bass=(0, 8, 200))`` sets bins 0-7 to 200.
    """
    data = np.zeros(n_bins, dtype=np.uint8)
    for start, end, value in bands.values():
        data[start:end] = value
    return data
