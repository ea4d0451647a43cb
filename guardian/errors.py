"""
Salvium Guardian - Errors

Every failure a guardian operation can report. Each error knows the HTTP
status it maps to and the extra fields the caller needs (hints, remaining
blocks) so the transport layer never has to inspect messages.
"""

from typing import Any, Dict, Optional


class GuardianError(Exception):
    """Base class for guardian operation failures."""

    status_code = 500

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra: Dict[str, Any] = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Error body as returned to callers."""
        body: Dict[str, Any] = {"error": self.message}
        body.update(self.extra)
        return body


class NotInitialized(GuardianError):
    """Engine or state not loaded yet - every operation fails fast."""
    status_code = 503

    def __init__(self, message: str = "Guardian not initialized"):
        super().__init__(message)


class ValidationError(GuardianError):
    """Missing or malformed request field."""
    status_code = 400


class Conflict(GuardianError):
    """Escrow id already finalized."""
    status_code = 409


class NotFound(GuardianError):
    """No pending session or bounty record for the escrow id."""
    status_code = 404


class DeadlineNotReached(GuardianError):
    """Refund requested before the escrow's deadline block."""
    status_code = 403

    def __init__(self, current_block: int, deadline_block: int):
        self.current_block = current_block
        self.deadline_block = deadline_block
        self.blocks_remaining = deadline_block - current_block
        super().__init__(
            "Deadline not reached",
            current_block=current_block,
            deadline_block=deadline_block,
            blocks_remaining=self.blocks_remaining,
        )


class WalletNotResident(GuardianError):
    """The bounty wallet is not held in this process (needs seed recovery)."""
    status_code = 400

    def __init__(self, escrow_id: str):
        self.escrow_id = escrow_id
        super().__init__(
            "Wallet not in memory. Use CLI for manual recovery.",
            hint=f"salvium-guardian export-bounty-seed {escrow_id}",
        )


class CryptoEngineFailure(GuardianError):
    """The signing engine rejected an operation; reason passed through."""
    status_code = 500

    def __init__(self, operation: str, reason: Optional[str] = None):
        self.operation = operation
        self.reason = reason or "unknown error"
        super().__init__(f"Failed to {operation}: {self.reason}")
