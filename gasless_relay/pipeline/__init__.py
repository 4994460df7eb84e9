"""
Submission pipeline — broadcast, confirm, and (optionally) notify.
"""

from gasless_relay.pipeline.notifier import WebhookNotifier  # noqa: F401
from gasless_relay.pipeline.submission import (  # noqa: F401
    SubmissionOutcome,
    SubmissionPipeline,
    SubmissionState,
)

__all__ = ["SubmissionOutcome", "SubmissionPipeline", "SubmissionState", "WebhookNotifier"]
