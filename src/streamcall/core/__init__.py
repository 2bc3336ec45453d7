"""Core session machinery: guard, controller, manager and sinks."""

from streamcall.core.controller import ContinuationController
from streamcall.core.manager import SessionManager
from streamcall.core.session import Session, SessionGuard
from streamcall.core.sink import CollectingSink, NullSink, OutputSink

__all__ = [
    "CollectingSink",
    "ContinuationController",
    "NullSink",
    "OutputSink",
    "Session",
    "SessionGuard",
    "SessionManager",
]
