"""Audio graph subpackage: host abstraction, reference host and the tap."""

from strudeltap.graph.host import AudioHost, Encoder
from strudeltap.graph.nodes import AudioNode, ConnectionEvent, NodeKind, node_kind
from strudeltap.graph.tap import GraphTap, TapState

__all__ = [
    "AudioHost",
    "Encoder",
    "AudioNode",
    "ConnectionEvent",
    "NodeKind",
    "node_kind",
    "GraphTap",
    "TapState",
]
