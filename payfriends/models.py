from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# upper bound for any single amount
MAX_AMOUNT = Decimal("1e12")
UNNAMED_TRANSACTION = "Unnamed Transaction"


def parse_money(value: Any) -> Decimal:
    """Strict conversion used for user input. Raises ValueError."""
    if isinstance(value, bool):
        raise ValueError("Cannot convert value to Decimal")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip().lstrip("$"))
        except InvalidOperation:
            raise ValueError(f"Cannot convert {value!r} to Decimal") from None
    else:
        raise ValueError("Cannot convert value to Decimal")
    if not amount.is_finite():
        raise ValueError("Amount must be finite")
    if abs(amount) >= MAX_AMOUNT:
        raise ValueError("Amount is too large")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value: Any) -> Decimal:
    """Lenient conversion for stored documents: anything unparseable is zero."""
    try:
        return parse_money(value)
    except ValueError:
        return ZERO


def split_share(total: Decimal, count: int) -> Decimal:
    if count <= 0:
        return ZERO
    return (total / count).quantize(CENT, rounding=ROUND_HALF_UP)


def unique_names(names: Iterable[Any]) -> List[str]:
    seen = set()
    result: List[str] = []
    for name in names:
        if not isinstance(name, str):
            continue
        name = name.strip()
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


def _pick(data: Dict[str, Any], name: str, alias: str) -> Any:
    return data[name] if name in data else data.get(alias)


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return []


class ExpenseRecord(BaseModel):
    """One shared expense as stored in the group's ``transactions`` collection.

    Field aliases are the document keys. Malformed documents are normalized
    here once so the aggregation code can trust every field:

    * unparseable or negative amounts become zero,
    * the fronter is always involved and always paid,
    * ``pending`` is whatever is involved but not paid,
    * a missing share is ``total / len(involved)``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = ""
    date: Optional[dt.date] = None
    description: str = Field(default=UNNAMED_TRANSACTION, alias="transaction")
    fronted_by: str = Field(alias="user")
    total_amount: Decimal = Field(default=ZERO, alias="amount")
    per_person_share: Decimal = Field(default=ZERO, alias="individualAmount")
    involved: List[str] = Field(default_factory=list)
    paid: List[str] = Field(default_factory=list)
    pending: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        fronter = _pick(data, "fronted_by", "user")
        if isinstance(fronter, str):
            fronter = fronter.strip()
        involved = unique_names([fronter] + _as_list(data.get("involved")))
        paid = [name for name in unique_names([fronter] + _as_list(data.get("paid"))) if name in involved]

        total = max(to_money(_pick(data, "total_amount", "amount")), ZERO)
        raw_share = _pick(data, "per_person_share", "individualAmount")
        try:
            share = max(parse_money(raw_share), ZERO)
        except ValueError:
            share = split_share(total, len(involved))

        for alias in ("amount", "individualAmount", "user"):
            data.pop(alias, None)
        data.update(
            fronted_by=fronter,
            total_amount=total,
            per_person_share=share,
            involved=involved,
            paid=paid,
            pending=[name for name in involved if name not in paid],
        )
        return data

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> Optional[dt.date]:
        if isinstance(value, dt.datetime):
            return value.date()
        if isinstance(value, dt.date):
            return value
        if isinstance(value, str) and value.strip():
            try:
                return dt.date.fromisoformat(value.strip()[:10])
            except ValueError:
                return None
        return None

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return UNNAMED_TRANSACTION
        return value.strip()

    @field_validator("fronted_by", mode="before")
    @classmethod
    def _require_fronter(cls, value: Any) -> str:
        if not isinstance(value, str) or not value:
            raise ValueError("fronted_by is required")
        return value

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "ExpenseRecord":
        return cls.model_validate({**data, "id": doc_id})

    @property
    def fully_paid(self) -> bool:
        return all(name in self.paid for name in self.involved)

    def to_document(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat() if self.date else "",
            "transaction": self.description,
            "user": self.fronted_by,
            "amount": f"{self.total_amount:.2f}",
            "individualAmount": f"{self.per_person_share:.2f}",
            "involved": list(self.involved),
            "paid": list(self.paid),
            "pending": list(self.pending),
        }

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat() if self.date else None,
            "description": self.description,
            "fronted_by": self.fronted_by,
            "total_amount": float(self.total_amount),
            "per_person_share": float(self.per_person_share),
            "involved": list(self.involved),
            "paid": list(self.paid),
            "pending": list(self.pending),
        }


@dataclass
class FrontedTotal:
    total_fronted: Decimal = ZERO
    count: int = 0


@dataclass
class PendingDetail:
    owes_to: str
    description: str
    amount: Decimal

    def to_json(self) -> Dict[str, Any]:
        data = asdict(self)
        data["amount"] = float(self.amount)
        return data


@dataclass
class Leader:
    """Winner of a ranking. ``person`` is empty when nobody qualifies."""

    person: str = ""
    amount: Decimal = ZERO


@dataclass
class AnalyticsSummary:
    fronted: Dict[str, FrontedTotal] = field(default_factory=dict)
    incomplete: Dict[str, int] = field(default_factory=dict)
    total_incomplete: int = 0
    best_fronter: Leader = field(default_factory=Leader)
    worst_ower: Leader = field(default_factory=Leader)
    biggest_spender: Leader = field(default_factory=Leader)
    monthly_total: Decimal = ZERO

    def to_json(self) -> Dict[str, Any]:
        def leader(item: Leader) -> Dict[str, Any]:
            return {"person": item.person, "amount": float(item.amount)}

        return {
            "fronted": {
                name: {"total_fronted": float(total.total_fronted), "count": total.count}
                for name, total in self.fronted.items()
            },
            "incomplete": dict(self.incomplete),
            "total_incomplete": self.total_incomplete,
            "best_fronter": leader(self.best_fronter),
            "worst_ower": leader(self.worst_ower),
            "biggest_spender": leader(self.biggest_spender),
            "monthly_total": float(self.monthly_total),
        }
