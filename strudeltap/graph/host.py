"""Host environment abstraction.

A host owns a live audio graph the tap can observe. Instead of patching the
host's connection primitive at runtime, the host exposes a single hook slot:
``install_connect_hook`` registers a callable that receives every
``connect(source, destination, *args)`` call made through :meth:`AudioHost.connect`.
The unwrapped primitive stays reachable as :meth:`AudioHost.raw_connect`.

Hosts also provide the primitives the capture path needs: a capturable stream
destination and an encoder bound to that stream.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from strudeltap.errors import InterceptionUnsupported

logger = logging.getLogger(__name__)

ConnectHook = Callable[..., object]


class Encoder(ABC):
    """Chunked audio encoder bound to a capturable stream.

    ``on_data_available`` is called with each encoded chunk (possibly empty),
    ``on_stop`` once after the final chunk has been delivered.
    """

    def __init__(self, stream, mime_type: str):
        self.stream = stream
        self.mime_type = mime_type
        self.state = "inactive"  # "inactive" | "recording"
        self.on_data_available: Callable[[bytes], None] | None = None
        self.on_stop: Callable[[], None] | None = None

    @abstractmethod
    def start(self, timeslice_ms: int) -> None:
        """Begin encoding, emitting a chunk every *timeslice_ms*."""

    @abstractmethod
    def stop(self) -> None:
        """Request finalisation. ``on_stop`` fires asynchronously afterwards."""

    def _emit(self, data: bytes) -> None:
        if self.on_data_available is not None:
            self.on_data_available(data)

    def _finish(self) -> None:
        self.state = "inactive"
        if self.on_stop is not None:
            self.on_stop()


class AudioHost(ABC):
    """An execution environment that owns audio graphs."""

    # Hosts whose connect primitive cannot be wrapped set this to False.
    supports_interception = True

    def __init__(self):
        self._connect_hook: ConnectHook | None = None

    # ------------------------------------------------------------------
    # Connection primitive
    # ------------------------------------------------------------------

    def connect(self, source, *args, **kwargs):
        """Connect *source* to ``args[0]``, routed through the hook if any."""
        hook = self._connect_hook
        if hook is None:
            return self.raw_connect(source, *args, **kwargs)
        return hook(source, *args, **kwargs)

    @abstractmethod
    def raw_connect(self, source, destination, *args, **kwargs):
        """The host's unwrapped connection primitive."""

    @abstractmethod
    def disconnect(self, source, destination=None) -> None:
        """Disconnect *source* from *destination*, or from everything."""

    @property
    def connect_hook(self) -> ConnectHook | None:
        return self._connect_hook

    def install_connect_hook(self, hook: ConnectHook) -> None:
        """Register *hook* for every connection made through :meth:`connect`.

        There is one slot: a new hook replaces the previous one rather than
        wrapping it.
        """
        if not self.supports_interception:
            raise InterceptionUnsupported(
                f"{type(self).__name__} does not allow its connect primitive to be intercepted"
            )
        if self._connect_hook is not None and self._connect_hook != hook:
            logger.warning(f"Replacing existing connect hook {self._connect_hook!r}")
        self._connect_hook = hook

    def remove_connect_hook(self, hook: ConnectHook) -> None:
        if self._connect_hook is not None and self._connect_hook == hook:
            self._connect_hook = None

    # ------------------------------------------------------------------
    # Node factories
    # ------------------------------------------------------------------

    @abstractmethod
    def create_analyser(self, context, fft_size: int):
        """Create a frequency-analysis node in *context*.

        The node exposes ``frequency_bin_count`` and
        ``get_byte_frequency_data(buffer)``.
        """

    @abstractmethod
    def create_stream_destination(self, context):
        """Create a capture destination in *context* exposing ``.stream``.

        Raises :class:`~strudeltap.errors.CaptureUnsupported` when the
        context cannot capture.
        """

    @abstractmethod
    def is_type_supported(self, mime_type: str) -> bool:
        """Whether :meth:`create_encoder` can produce *mime_type*."""

    @abstractmethod
    def create_encoder(self, stream, mime_type: str) -> Encoder:
        """Create an encoder for *stream*."""

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    @abstractmethod
    def now_ms(self) -> int:
        """Wall-clock time in milliseconds."""
