"""Batch notification collaborators."""

from leetcode_tracker.notify.base import CategorizedBatch, Notifier, render_body, render_subject
from leetcode_tracker.notify.smtp import SmtpNotifier

__all__ = ["CategorizedBatch", "Notifier", "SmtpNotifier", "render_body", "render_subject"]
