"""Session lifecycle: init, navigation, tabs, proxy rotation and close."""

from tabwright.session.factory import build_session
from tabwright.session.session import AgentSession, Ownership, SessionState

__all__ = ["AgentSession", "Ownership", "SessionState", "build_session"]
