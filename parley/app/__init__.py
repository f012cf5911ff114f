"""Session orchestration."""

from parley.app.lifecycle import SessionChannel, SessionLifecycle

__all__ = ["SessionChannel", "SessionLifecycle"]
