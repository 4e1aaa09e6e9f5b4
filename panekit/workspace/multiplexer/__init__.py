"""Terminal multiplexer backends."""

from panekit.workspace.multiplexer.base import Multiplexer, SessionHandle, SessionInfo
from panekit.workspace.multiplexer.tmux import TmuxMultiplexer

__all__ = ["Multiplexer", "SessionHandle", "SessionInfo", "TmuxMultiplexer"]
