"""Transparent analysis tap on a host's terminal output."""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from typing import Any

import numpy as np

from strudeltap.config import settings
from strudeltap.errors import InvalidAccessError
from strudeltap.graph.host import AudioHost
from strudeltap.graph.nodes import ConnectionEvent

logger = logging.getLogger(__name__)


@dataclass
class TapState:
    """Shared tap state. Written by the interception hook, read elsewhere.

    ``connected`` implies ``analysis_node`` and ``frequency_buffer`` are set.
    """
    analysis_node: Any = None
    frequency_buffer: np.ndarray | None = None
    connected: bool = False
    connected_at_ms: int = 0
    observed_source_node: Any = None


@dataclass
class _Splice:
    analyser: Any
    destination: Any


class GraphTap:
    """Splices an analyser between any node and the terminal output.

    Connections to anything other than the terminal destination are passed
    through untouched, so the audible graph is unchanged.
    """

    def __init__(self, host: AudioHost, state: TapState | None = None, fft_size: int | None = None):
        self.host = host
        self.state = state if state is not None else TapState()
        self.fft_size = fft_size or settings.fft_size
        self._installed = False
        # source -> splice; entries go away with their source node
        self._splices: weakref.WeakKeyDictionary[Any, _Splice] = weakref.WeakKeyDictionary()

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def active_splices(self) -> int:
        """Number of live sources routed through an analyser."""
        return len(self._splices)

    def install(self):
        """Register the interception hook and return the wrapped connect.

        Raises :class:`~strudeltap.errors.InterceptionUnsupported` if the host
        cannot be intercepted. Installing twice is a no-op.
        """
        if self._installed:
            logger.debug("Tap already installed; keeping existing hook")
            return self.host.connect
        self.host.install_connect_hook(self._intercept)
        self._installed = True
        logger.info(f"Tap installed on {type(self.host).__name__} (fft_size={self.fft_size})")
        return self.host.connect

    def uninstall(self) -> None:
        """Remove the hook, restore spliced paths and detach every analyser."""
        if not self._installed:
            return
        self.host.remove_connect_hook(self._intercept)
        self._installed = False

        splices = list(self._splices.items())
        analysers = []
        for _, splice in splices:
            if not any(a is splice.analyser for a in analysers):
                analysers.append(splice.analyser)
        if self.state.analysis_node is not None and not any(a is self.state.analysis_node for a in analysers):
            analysers.append(self.state.analysis_node)

        for source, splice in splices:
            try:
                self.host.disconnect(source, splice.analyser)
            except InvalidAccessError:
                # The source was disconnected by the host since; nothing to restore.
                logger.debug(f"{source!r} no longer feeds the analyser")
                continue
            self.host.raw_connect(source, splice.destination)
        for analyser in analysers:
            self.host.disconnect(analyser)
        self._splices.clear()

        self.state.connected = False
        self.state.analysis_node = None
        self.state.frequency_buffer = None
        self.state.observed_source_node = None
        logger.info("Tap removed")

    # ------------------------------------------------------------------
    # Interception
    # ------------------------------------------------------------------

    def _intercept(self, source, *args, **kwargs):
        destination = args[0] if args else None
        event = ConnectionEvent.observe(source, destination)
        logger.debug(
            f"Connection: from={event.source_kind.value} to={event.destination_kind.value} "
            f"terminal={event.is_final_output}"
        )

        if not event.is_final_output or source is self.state.analysis_node:
            return self.host.raw_connect(source, *args, **kwargs)

        analyser = self._analyser_for(source.context)
        result = self.host.raw_connect(source, analyser)
        self.host.raw_connect(analyser, destination)
        self._splices[source] = _Splice(analyser, destination)

        state = self.state
        state.connected = True
        state.connected_at_ms = self.host.now_ms()
        state.observed_source_node = source
        logger.debug(f"Inserted analyser: {source!r} -> analyser -> {destination!r}")
        return result

    def _analyser_for(self, context):
        state = self.state
        if state.analysis_node is not None and state.analysis_node.context is context:
            return state.analysis_node
        analyser = self.host.create_analyser(context, self.fft_size)
        state.frequency_buffer = np.zeros(analyser.frequency_bin_count, dtype=np.uint8)
        state.analysis_node = analyser
        logger.info(f"Created analyser ({analyser.frequency_bin_count} bins) in context {context!r}")
        return analyser
