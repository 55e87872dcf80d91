import logging
from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from pydantic import ValidationError as SchemaError

from .config import Config
from .errors import ExpenseNotFound, StorageError
from .models import ExpenseRecord

logger = logging.getLogger(__name__)


def init_firebase(settings: Config) -> firebase_admin.App:
    """Initialize the default Firebase app once per process."""
    if firebase_admin._apps:
        return firebase_admin.get_app()
    cred = credentials.Certificate(settings.firebase_credentials())
    return firebase_admin.initialize_app(cred)


class Database:
    """Expense and member documents for one group.

    Layout::

        groups/{group}/transactions/{id}   expense records
        groups/{group}/users/{name}        {"email": ...}
        users/{email}                      {"group": ...}
    """

    def __init__(self, client: Any, group: str) -> None:
        self.client = client
        self.group = group

    @classmethod
    def from_config(cls, settings: Config) -> "Database":
        app = init_firebase(settings)
        return cls(firestore.client(app), settings.GROUP_NAME)

    def _group(self):
        return self.client.collection("groups").document(self.group)

    def _transactions(self):
        return self._group().collection("transactions")

    def list_expenses(self) -> List[ExpenseRecord]:
        try:
            snapshots = list(self._transactions().stream())
        except Exception as exc:
            raise StorageError(f"Could not read transactions: {exc}") from exc

        records: List[ExpenseRecord] = []
        for snapshot in snapshots:
            try:
                records.append(ExpenseRecord.from_document(snapshot.id, snapshot.to_dict() or {}))
            except SchemaError as exc:
                logger.warning("Skipping malformed transaction %s: %s", snapshot.id, exc)
        return records

    def get_expense(self, expense_id: str) -> ExpenseRecord:
        snapshot = self._transactions().document(expense_id).get()
        if not snapshot.exists:
            raise ExpenseNotFound()
        try:
            return ExpenseRecord.from_document(snapshot.id, snapshot.to_dict() or {})
        except SchemaError as exc:
            logger.warning("Malformed transaction %s: %s", snapshot.id, exc)
            raise ExpenseNotFound() from exc

    def add_expense(self, record: ExpenseRecord) -> ExpenseRecord:
        _, ref = self._transactions().add(record.to_document())
        logger.info("Transaction %s added by %s", ref.id, record.fronted_by)
        return record.model_copy(update={"id": ref.id})

    def update_expense(self, record: ExpenseRecord) -> None:
        self._transactions().document(record.id).update(record.to_document())

    def update_payment_status(self, record: ExpenseRecord) -> None:
        # one update so paid and pending never disagree
        self._transactions().document(record.id).update(
            {"paid": list(record.paid), "pending": list(record.pending)}
        )
        logger.info("Updated payment status in transaction %s", record.id)

    def delete_expense(self, expense_id: str) -> None:
        self._transactions().document(expense_id).delete()
        logger.info("Transaction %s deleted", expense_id)

    def member_emails(self) -> Dict[str, str]:
        try:
            snapshots = list(self._group().collection("users").stream())
        except Exception as exc:
            raise StorageError(f"Could not read members: {exc}") from exc

        emails: Dict[str, str] = {}
        for snapshot in snapshots:
            email = (snapshot.to_dict() or {}).get("email")
            if email:
                emails[snapshot.id] = email
        return emails

    def member_names(self) -> List[str]:
        snapshots = self._group().collection("users").stream()
        return [snapshot.id for snapshot in snapshots]

    def group_for_email(self, email: str) -> Optional[str]:
        snapshot = self.client.collection("users").document(email).get()
        if not snapshot.exists:
            return None
        return (snapshot.to_dict() or {}).get("group")
