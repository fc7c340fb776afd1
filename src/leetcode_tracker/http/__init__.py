"""HTTP collaborators."""

from leetcode_tracker.http.api_client import (
    Submission,
    SubmissionApiClient,
    SubmissionBatch,
    UserProfile,
)

__all__ = ["Submission", "SubmissionApiClient", "SubmissionBatch", "UserProfile"]
