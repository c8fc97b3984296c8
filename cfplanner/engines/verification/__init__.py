"""Solve verification against the judge."""

from cfplanner.engines.verification.verifier import (
    SubmissionVerifier,
    SyncResult,
    VerificationOutcome,
)

__all__ = ["SubmissionVerifier", "SyncResult", "VerificationOutcome"]
