from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol

Listener = Callable[[], None]
FaultListener = Callable[[str], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class StreamConstraints:
    ideal_width: int = 640
    ideal_height: int = 480
    facing_mode: str = "user"
    audio: bool = False


DEFAULT_CONSTRAINTS = StreamConstraints()


class StreamRejected(Exception):
    """Raised by a provider when the platform refuses a stream request.

    ``reason`` carries the platform's error name (``NotAllowedError``,
    ``NotFoundError``, ...).
    """

    def __init__(self, reason: str, detail: str | None = None):
        super().__init__(detail or reason)
        self.reason = reason
        self.detail = detail


class StreamHandle(Protocol):
    @property
    def active(self) -> bool:
        ...

    def stop(self) -> None:
        ...


class VideoSink(Protocol):
    @property
    def current_width(self) -> int:
        ...

    @property
    def current_height(self) -> int:
        ...

    def attach(self, handle: StreamHandle) -> None:
        ...

    def detach(self) -> None:
        ...

    def on_metadata_ready(self, listener: Listener) -> Unsubscribe:
        ...

    def on_first_frame(self, listener: Listener) -> Unsubscribe:
        ...

    def on_fault(self, listener: FaultListener) -> Unsubscribe:
        ...

    def current_frame(self) -> Any | None:
        ...


class CapabilityProvider(Protocol):
    name: str

    def is_supported(self) -> bool:
        ...

    async def request_video_stream(self, constraints: StreamConstraints) -> StreamHandle:
        ...

    def create_sink(self) -> VideoSink:
        ...


class ListenerSet:
    """Listeners for one sink event, each removable through the returned callable."""

    def __init__(self) -> None:
        self._listeners: list[Callable[..., None]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def add(self, listener: Callable[..., None]) -> Unsubscribe:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def fire(self, *args: Any) -> None:
        for listener in list(self._listeners):
            listener(*args)

