"""Node kinds and connection events for audio graphs."""

from dataclasses import dataclass
from enum import Enum


class NodeKind(Enum):
    """Kinds of audio node a host can report."""
    SOURCE = "source"
    PROCESSOR = "processor"
    ANALYSER = "analyser"
    DESTINATION = "destination"  # terminal output of a context
    STREAM_DESTINATION = "stream_destination"
    OTHER = "other"

    @property
    def is_terminal(self) -> bool:
        return self is NodeKind.DESTINATION


class AudioNode:
    """Base class for host nodes. Every node belongs to one execution context."""

    kind = NodeKind.OTHER

    def __init__(self, context):
        self.context = context

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind.value}>"


def node_kind(node) -> NodeKind:
    """Return the kind of *node*, ``OTHER`` for anything the host does not tag."""
    if isinstance(node, AudioNode):
        return node.kind
    return NodeKind.OTHER


@dataclass(frozen=True)
class ConnectionEvent:
    """One observed connection attempt."""
    source_kind: NodeKind
    destination_kind: NodeKind
    is_final_output: bool

    @classmethod
    def observe(cls, source, destination) -> "ConnectionEvent":
        destination_kind = node_kind(destination)
        return cls(
            source_kind=node_kind(source),
            destination_kind=destination_kind,
            is_final_output=destination_kind.is_terminal,
        )
