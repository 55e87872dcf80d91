"""Lifecycle rules for expense records.

Records are created by the person who fronted the money, changed only by
that person, and removed by that person once everybody has paid. Functions
here never touch storage: they validate and return the new record, and the
caller persists it.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from .errors import OutstandingBalance, PermissionDenied, ValidationError
from .models import ZERO, ExpenseRecord, parse_money, split_share, unique_names


def _require_amount(value: Any) -> Decimal:
    try:
        amount = parse_money(value)
    except ValueError:
        raise ValidationError("invalid_amount") from None
    if amount < ZERO:
        raise ValidationError("invalid_amount")
    return amount


def _require_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError("invalid_date")


def _require_text(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("missing_fields")
    return value.strip()


def _require_fronter(record: ExpenseRecord, actor: str) -> None:
    if record.fronted_by != actor:
        raise PermissionDenied("forbidden_only_fronter")


def new_expense(
    fronted_by: str,
    expense_date: Any,
    description: str,
    amount: Any,
    friends: Iterable[str] = (),
) -> ExpenseRecord:
    if not isinstance(fronted_by, str) or not fronted_by.strip():
        raise ValidationError("missing_fronter")
    fronted_by = fronted_by.strip()
    description = _require_text(description)

    total = _require_amount(amount)
    others: List[str] = [name for name in unique_names(friends) if name != fronted_by]
    involved = [fronted_by] + others

    return ExpenseRecord(
        date=_require_date(expense_date),
        description=description,
        fronted_by=fronted_by,
        total_amount=total,
        per_person_share=split_share(total, len(involved)),
        involved=involved,
        paid=[fronted_by],
        pending=others,
    )


def toggle_payment(record: ExpenseRecord, person: str, actor: str) -> ExpenseRecord:
    """Move ``person`` between ``paid`` and ``pending``."""
    _require_fronter(record, actor)
    if person not in record.involved:
        raise ValidationError("person_not_involved")
    if person == record.fronted_by:
        raise ValidationError("fronter_always_paid")

    if person in record.paid:
        paid = [name for name in record.paid if name != person]
        pending = record.pending + [person]
    else:
        paid = record.paid + [person]
        pending = [name for name in record.pending if name != person]
    return record.model_copy(update={"paid": paid, "pending": pending})


def edit_expense(
    record: ExpenseRecord,
    actor: str,
    expense_date: Optional[Any] = None,
    description: Optional[str] = None,
    amount: Optional[Any] = None,
) -> ExpenseRecord:
    _require_fronter(record, actor)
    changes = {}
    if expense_date is not None:
        changes["date"] = _require_date(expense_date)
    if description is not None:
        changes["description"] = _require_text(description)
    if amount is not None:
        total = _require_amount(amount)
        changes["total_amount"] = total
        changes["per_person_share"] = split_share(total, len(record.involved))
    if not changes:
        raise ValidationError("nothing_to_update")
    return record.model_copy(update=changes)


def ensure_deletable(record: ExpenseRecord, actor: str) -> None:
    _require_fronter(record, actor)
    if not record.fully_paid:
        raise OutstandingBalance("expense_not_settled")
