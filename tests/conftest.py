import threading
from typing import Dict, List, Optional

import pytest

from payfriends.app import create_app
from payfriends.config import Config
from payfriends.errors import ExpenseNotFound, StorageError
from payfriends.models import ExpenseRecord

GROUP = "no groupcest"
REPORT_TOKEN = "report-secret"


class FakeStore:
    def __init__(self, records=(), emails=None, groups=None):
        self.records: Dict[str, ExpenseRecord] = {}
        self.emails: Dict[str, str] = dict(emails or {})
        self.groups: Dict[str, str] = dict(groups or {})
        self.broken = False
        self._next_id = 1
        for record in records:
            self.add_expense(record)

    def _check(self):
        if self.broken:
            raise StorageError("firestore unavailable")

    def list_expenses(self) -> List[ExpenseRecord]:
        self._check()
        return list(self.records.values())

    def get_expense(self, expense_id: str) -> ExpenseRecord:
        self._check()
        if expense_id not in self.records:
            raise ExpenseNotFound()
        return self.records[expense_id]

    def add_expense(self, record: ExpenseRecord) -> ExpenseRecord:
        record = record.model_copy(update={"id": record.id or f"t{self._next_id}"})
        self._next_id += 1
        self.records[record.id] = record
        return record

    def update_expense(self, record: ExpenseRecord) -> None:
        self.records[record.id] = record

    def update_payment_status(self, record: ExpenseRecord) -> None:
        current = self.records[record.id]
        self.records[record.id] = current.model_copy(update={"paid": record.paid, "pending": record.pending})

    def delete_expense(self, expense_id: str) -> None:
        del self.records[expense_id]

    def member_emails(self) -> Dict[str, str]:
        self._check()
        return dict(self.emails)

    def member_names(self) -> List[str]:
        return list(self.emails)

    def group_for_email(self, email: str) -> Optional[str]:
        return self.groups.get(email)


class FakeMailer:
    def __init__(self, failing=(), blocking=()):
        self.sent: List[dict] = []
        self.failing = set(failing)
        self.blocking = set(blocking)
        self.release = threading.Event()
        self._lock = threading.Lock()

    def send(self, to, subject, text_body, html_body=None):
        if to in self.blocking:
            self.release.wait(5)
        if to in self.failing:
            raise ConnectionError(f"mail provider rejected {to}")
        with self._lock:
            self.sent.append({"to": to, "subject": subject, "text": text_body, "html": html_body})

    @property
    def recipients(self):
        return sorted(message["to"] for message in self.sent)


def expense(fronter, amount, involved, paid=None, description="Dinner", when="2024-05-01", **extra):
    data = {
        "user": fronter,
        "amount": amount,
        "involved": involved,
        "paid": paid if paid is not None else [fronter],
        "transaction": description,
        "date": when,
    }
    data.update(extra)
    return ExpenseRecord.model_validate(data)


@pytest.fixture
def settings(monkeypatch):
    for name in ("SCHEDULER_ENABLED", "REPORT_TOKEN", "GROUP_NAME", "FIREBASE_SERVICE_ACCOUNT"):
        monkeypatch.delenv(name, raising=False)
    settings = Config()
    settings.REPORT_TOKEN = REPORT_TOKEN
    settings.GROUP_NAME = GROUP
    settings.MAIL_DEFAULT_SENDER = "reports@example.com"
    settings.TEST_EMAIL_RECIPIENT = "reports@example.com"
    settings.REPORT_BATCH_TIMEOUT = 5
    settings.SCHEDULER_ENABLED = False
    return settings


@pytest.fixture
def store():
    return FakeStore(
        emails={"Alice": "alice@example.com", "Bob": "bob@example.com", "Carol": "carol@example.com"},
        groups={"alice@example.com": GROUP, "bob@example.com": GROUP, "carol@example.com": GROUP},
    )


@pytest.fixture
def mailer():
    return FakeMailer()


def fake_verifier(token):
    claims = {
        "alice-token": {"email": "alice@example.com", "name": "Alice A"},
        "bob-token": {"email": "bob@example.com", "name": "Bob B"},
        "mallory-token": {"email": "mallory@example.com", "name": "Mallory"},
    }
    if token not in claims:
        raise ValueError("invalid token")
    return claims[token]


@pytest.fixture
def app(settings, store, mailer):
    app = create_app(settings=settings, store=store, mailer=mailer, verify_token=fake_verifier)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
