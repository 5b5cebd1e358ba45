"""
recovery/ - sanitized drafts of in-flight form state, independent of the session.
"""
from udyam_wizard.recovery.schemas import RecoveryPrompt, RecoverySnapshot
from udyam_wizard.recovery.service import AutoSaveHandle, RecoveryService

__all__ = ["AutoSaveHandle", "RecoveryPrompt", "RecoverySnapshot", "RecoveryService"]
