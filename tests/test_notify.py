from __future__ import annotations

import asyncio
import smtplib

import allure
import pytest

from leetcode_tracker.curriculum import WorkItem
from leetcode_tracker.errors import NotificationError
from leetcode_tracker.notify.base import CategorizedBatch, render_body, render_subject
from leetcode_tracker.notify.smtp import SmtpNotifier

pytestmark = [
    allure.epic("Daily Run"),
    allure.feature("Notifications"),
]

TWO_SUM = WorkItem("two-sum", "Two Sum", "Easy", "Arrays & Hashing")
ANAGRAM = WorkItem("valid-anagram", "Valid Anagram", "Easy", "Arrays & Hashing")
ISLANDS = WorkItem("number-of-islands", "Number of Islands", "Medium", "")


@pytest.mark.parametrize(
    ("batch", "subject"),
    [
        (CategorizedBatch(unfinished=[TWO_SUM], fresh=[ANAGRAM, ISLANDS]), "Today's LeetCode Mix - 1 reminder + 2 new"),
        (CategorizedBatch(unfinished=[TWO_SUM]), "Reminder - 1 unfinished problem"),
        (CategorizedBatch(unfinished=[TWO_SUM, ANAGRAM]), "Reminder - 2 unfinished problems"),
        (CategorizedBatch(fresh=[ISLANDS]), "Today's LeetCode - Number of Islands"),
        (CategorizedBatch(fresh=[TWO_SUM, ISLANDS]), "Today's LeetCode - 2 problems"),
    ],
)
def test_render_subject(batch: CategorizedBatch, subject: str) -> None:
    assert render_subject(batch) == subject


def test_render_body_lists_reminders_before_new_items() -> None:
    body = render_body(CategorizedBatch(unfinished=[TWO_SUM], fresh=[ISLANDS]))

    assert body.index("Still waiting for you:") < body.index("New today:")
    assert "- Two Sum (Easy) [Arrays & Hashing]" in body
    assert "- Number of Islands (Medium)\n" in body
    assert "https://leetcode.com/problems/number-of-islands/" in body
    assert body.endswith("2 problems in total. Good luck!")


def test_batch_items_keep_category_order() -> None:
    batch = CategorizedBatch(unfinished=[ANAGRAM], fresh=[TWO_SUM])

    assert [item.slug for item in batch.items] == ["valid-anagram", "two-sum"]
    assert len(batch) == 2


def test_smtp_notifier_builds_plain_text_message() -> None:
    notifier = SmtpNotifier(
        host="smtp.example.com",
        port=587,
        sender="tracker@example.com",
        recipient="me@example.com",
    )

    message = notifier.build_message(CategorizedBatch(fresh=[TWO_SUM]))

    assert message["Subject"] == "Today's LeetCode - Two Sum"
    assert message["From"] == "tracker@example.com"
    assert message["To"] == "me@example.com"
    assert "https://leetcode.com/problems/two-sum/" in message.get_content()


def test_smtp_failure_becomes_notification_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _refuse(*args: object, **kwargs: object) -> None:
        raise smtplib.SMTPConnectError(421, b"service not available")

    monkeypatch.setattr(smtplib, "SMTP", _refuse)
    notifier = SmtpNotifier(
        host="smtp.example.com",
        port=587,
        sender="tracker@example.com",
        recipient="me@example.com",
    )

    with pytest.raises(NotificationError, match="Failed to send notification"):
        asyncio.run(notifier.send_batch(CategorizedBatch(fresh=[TWO_SUM])))


def test_smtp_notifier_uses_tls_and_login(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    class FakeSmtp:
        def __init__(self, host: str, port: int, timeout: float) -> None:
            calls.append(f"connect {host}:{port}")

        def __enter__(self) -> FakeSmtp:
            return self

        def __exit__(self, *exc_info: object) -> None:
            calls.append("quit")

        def starttls(self) -> None:
            calls.append("starttls")

        def login(self, username: str, password: str) -> None:
            calls.append(f"login {username}")

        def send_message(self, message: object) -> None:
            calls.append("send")

    monkeypatch.setattr(smtplib, "SMTP", FakeSmtp)
    notifier = SmtpNotifier(
        host="smtp.example.com",
        port=2525,
        sender="tracker@example.com",
        recipient="me@example.com",
        username="tracker",
        password="secret",
    )

    asyncio.run(notifier.send_batch(CategorizedBatch(fresh=[TWO_SUM])))

    assert calls == ["connect smtp.example.com:2525", "starttls", "login tracker", "send", "quit"]
