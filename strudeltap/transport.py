"""Playback controls provided by the external editor session."""

from abc import ABC, abstractmethod


class PatternTransport(ABC):
    """Pattern text plus play/stop of whatever drives the audio graph."""

    @abstractmethod
    async def get_pattern(self) -> str:
        ...

    @abstractmethod
    async def play(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...
