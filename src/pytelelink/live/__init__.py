"""Real-time broker messaging."""

from pytelelink.live.device import LiveDevice
from pytelelink.live.dispatch import Dispatcher
from pytelelink.live.publisher import Publisher
from pytelelink.live.session import Frame, LiveSession, SessionState

__all__ = [
    "Dispatcher",
    "Frame",
    "LiveDevice",
    "LiveSession",
    "Publisher",
    "SessionState",
]
