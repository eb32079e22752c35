"""
Client-side voting core.

Session collaborators (identity, durable storage, geolocation, vote store
client) and the vote submission protocol that ties them together.
"""

from .protocol import (
    EligibilityResult,
    EligibilityStatus,
    SessionContext,
    SubmissionOutcome,
    SubmissionStatus,
    VoteSubmissionProtocol,
)

__all__ = [
    'EligibilityResult',
    'EligibilityStatus',
    'SessionContext',
    'SubmissionOutcome',
    'SubmissionStatus',
    'VoteSubmissionProtocol',
]
