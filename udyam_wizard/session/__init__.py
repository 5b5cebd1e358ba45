"""
session/ - authoritative wizard state persisted across restarts.
"""
from udyam_wizard.session.schemas import SessionInfo, SessionRecord
from udyam_wizard.session.store import SessionStore

__all__ = ["SessionInfo", "SessionRecord", "SessionStore"]
