"""Payment report emails.

The job reads a snapshot of the group's transactions, groups the unpaid
shares by debtor and mails every debtor a summary of what they owe. Sends
run concurrently and independently: one failure never stops the others,
and the caller gets one outcome per person back.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Sequence

from .aggregator import aggregate_pending
from .mailer import text_to_html
from .models import PendingDetail

logger = logging.getLogger(__name__)

REPORT_SUBJECT = "Your Payment Report"

SENT = "sent"
FAILED = "failed"
SKIPPED = "skipped"
TIMEOUT = "timeout"


class MailSender(Protocol):
    def send(self, to: str, subject: str, text_body: str, html_body: Optional[str] = None) -> None:
        ...


@dataclass
class ReportMessage:
    subject: str
    text_body: str
    html_body: str


@dataclass
class SendOutcome:
    person: str
    email: Optional[str]
    status: str
    error: Optional[str] = None


@dataclass
class DispatchResult:
    outcomes: List[SendOutcome] = field(default_factory=list)

    def _with(self, status: str) -> List[SendOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]

    @property
    def sent(self) -> List[SendOutcome]:
        return self._with(SENT)

    @property
    def failed(self) -> List[SendOutcome]:
        return self._with(FAILED) + self._with(TIMEOUT)

    @property
    def skipped(self) -> List[SendOutcome]:
        return self._with(SKIPPED)

    def summary(self) -> str:
        return (
            f"{len(self.sent)} sent, {len(self.failed)} failed, "
            f"{len(self.skipped)} skipped"
        )


def build_report_message(person: str, details: Sequence[PendingDetail]) -> Optional[ReportMessage]:
    """Render the reminder for one debtor, or None if they owe nothing."""
    if not details:
        return None

    lines = [f"Hello {person},", "", "Here is a summary of what you owe:", ""]
    for detail in details:
        lines.append(f'- You owe ${detail.amount:.2f} for "{detail.description}" to {detail.owes_to}.')
    lines.extend(["", "Please settle your dues!"])
    text = "\n".join(lines)
    return ReportMessage(subject=REPORT_SUBJECT, text_body=text, html_body=text_to_html(text))


def dispatch_reports(
    pending_map: Mapping[str, Sequence[PendingDetail]],
    email_lookup: Callable[[str], Optional[str]],
    mailer: MailSender,
    max_workers: int = 8,
    batch_timeout: Optional[float] = None,
) -> DispatchResult:
    """Mail every debtor in ``pending_map`` concurrently.

    Returns once every send has finished or ``batch_timeout`` seconds have
    passed. Sends still running at the deadline are reported as timed out;
    they are not interrupted.
    """
    result = DispatchResult()
    jobs: List[tuple] = []

    for person, details in pending_map.items():
        message = build_report_message(person, details)
        if message is None:
            continue
        email = email_lookup(person)
        if not email:
            logger.info("No email found for %s. Skipping report email.", person)
            result.outcomes.append(SendOutcome(person=person, email=None, status=SKIPPED))
            continue
        jobs.append((person, email, message))

    if not jobs:
        return result

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(jobs))))
    futures: Dict[Future, tuple] = {}
    try:
        for person, email, message in jobs:
            future = executor.submit(mailer.send, email, message.subject, message.text_body, message.html_body)
            futures[future] = (person, email)

        deadline = None if batch_timeout is None else time.monotonic() + batch_timeout
        not_done = set(futures)
        while not_done:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            done, not_done = wait(not_done, timeout=remaining, return_when=FIRST_COMPLETED)
            for future in done:
                person, email = futures[future]
                error = future.exception()
                if error is None:
                    result.outcomes.append(SendOutcome(person=person, email=email, status=SENT))
                else:
                    logger.error("Failed to send report to %s <%s>: %s", person, email, error)
                    result.outcomes.append(
                        SendOutcome(person=person, email=email, status=FAILED, error=str(error))
                    )
            if not done and remaining == 0.0:
                break

        for future in not_done:
            person, email = futures[future]
            future.cancel()
            logger.error("Report to %s <%s> did not finish before the batch deadline", person, email)
            result.outcomes.append(
                SendOutcome(person=person, email=email, status=TIMEOUT, error="batch deadline exceeded")
            )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return result


def send_report_emails(store, mailer: MailSender, settings) -> DispatchResult:
    """Aggregate the current transactions and mail every debtor."""
    records = store.list_expenses()
    emails = store.member_emails()
    result = dispatch_reports(
        aggregate_pending(records),
        emails.get,
        mailer,
        max_workers=settings.REPORT_MAX_WORKERS,
        batch_timeout=settings.REPORT_BATCH_TIMEOUT,
    )
    logger.info("Report emails finished: %s", result.summary())
    return result


def send_test_email(mailer: MailSender, recipient: str) -> None:
    mailer.send(recipient, "Test Email", "Test email sent successfully!")
