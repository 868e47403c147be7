"""Tests for the output tap."""

import logging

import numpy as np
import pytest

from strudeltap.errors import InterceptionUnsupported
from strudeltap.graph.nodes import ConnectionEvent, NodeKind
from strudeltap.graph.tap import GraphTap
from conftest import FakeContext, FakeHost, FakeNode


def test_splices_analyser_before_destination(host):
    tap = GraphTap(host)
    tap.install()
    source = host.source()
    destination = host.context.destination

    result = host.connect(source, destination)

    analyser = host.analysers[0]
    assert result is analyser
    assert [(c[0], c[1]) for c in host.connections] == [(source, analyser), (analyser, destination)]
    assert tap.state.connected
    assert tap.state.connected_at_ms == host.now
    assert tap.state.observed_source_node is source


def test_analyser_sizing(host):
    tap = GraphTap(host)
    tap.install()
    host.connect(host.source(), host.context.destination)

    assert host.analysers[0].fft_size == 2048
    buffer = tap.state.frequency_buffer
    assert buffer.dtype == np.uint8
    assert len(buffer) == 1024


def test_non_output_connections_pass_through(host):
    tap = GraphTap(host)
    tap.install()
    source = host.source()
    gain = FakeNode(host.context, NodeKind.PROCESSOR)

    host.connect(source, gain, 0, 1, extra="x")

    assert host.connections == [(source, gain, (0, 1), {"extra": "x"})]
    assert host.analysers == []
    assert not tap.state.connected
    assert tap.state.observed_source_node is None


def test_connect_without_destination_passes_through():
    class PermissiveHost(FakeHost):
        def raw_connect(self, source, *args, **kwargs):
            self.connections.append((source, None, args, kwargs))

    host = PermissiveHost()
    GraphTap(host).install()
    source = host.source()
    host.connect(source)

    assert host.connections == [(source, None, (), {})]


def test_reinstall_reuses_one_analyser(host):
    tap = GraphTap(host)
    first = tap.install()
    second = tap.install()
    assert first == second

    host.connect(host.source(), host.context.destination)
    host.connect(host.source(), host.context.destination)

    assert len(host.analysers) == 1
    # The analyser itself is never fed back into itself.
    analyser = host.analysers[0]
    assert all(c[0] is not analyser or c[1] is not analyser for c in host.connections)


def test_analyser_to_destination_is_not_respliced(host):
    tap = GraphTap(host)
    tap.install()
    host.connect(host.source(), host.context.destination)
    analyser = host.analysers[0]
    host.connections.clear()

    host.connect(analyser, host.context.destination)

    assert [(c[0], c[1]) for c in host.connections] == [(analyser, host.context.destination)]


def test_new_context_gets_new_analyser(host):
    tap = GraphTap(host)
    tap.install()
    other = FakeContext("other")

    host.connect(host.source(), host.context.destination)
    host.connect(host.source(other), other.destination)

    assert len(host.analysers) == 2
    assert tap.state.analysis_node.context is other


def test_install_fails_fast_without_interception():
    host = FakeHost()
    host.supports_interception = False

    with pytest.raises(InterceptionUnsupported):
        GraphTap(host).install()


def test_uninstall_restores_direct_wiring(host):
    tap = GraphTap(host)
    tap.install()
    source = host.source()
    destination = host.context.destination
    host.connect(source, destination)
    analyser = host.analysers[0]

    tap.uninstall()

    assert host.connect_hook is None
    assert (source, analyser) in host.disconnections
    assert (analyser, None) in host.disconnections
    assert (host.connections[-1][0], host.connections[-1][1]) == (source, destination)
    assert not tap.state.connected
    assert tap.state.analysis_node is None


def test_logs_each_decision(host, caplog):
    tap = GraphTap(host)
    tap.install()
    with caplog.at_level(logging.DEBUG, logger="strudeltap.graph.tap"):
        host.connect(host.source(), FakeNode(host.context, NodeKind.PROCESSOR))
        host.connect(host.source(), host.context.destination)

    assert "from=source to=processor terminal=False" in caplog.text
    assert "from=source to=destination terminal=True" in caplog.text


def test_connection_event_for_untagged_nodes():
    event = ConnectionEvent.observe(object(), None)
    assert event == ConnectionEvent(NodeKind.OTHER, NodeKind.OTHER, is_final_output=False)
