import json
import math
import os
import secrets
import string
import warnings
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd
from openpyxl import Workbook

# Currencies whose quantity and realized P&L are both within this band are
# hidden from the dashboard.
DISPLAY_EPSILON = 0.001

EXCEL_HEADERS = ["ID", "DATE", "CURRENCY", "TYPE", "RATE", "AMOUNT"]

_ID_ALPHABET = string.digits + string.ascii_lowercase


class TransactionType(Enum):
    """Enumeration of supported cash events."""

    BUY = "BUY"
    SELL = "SELL"
    INTEREST = "INTEREST"


class InvalidTransactionError(ValueError):
    """Raised when a transaction carries a value that cannot be valued or saved."""

    def __init__(self, transaction_id: str | None, field_name: str, message: str):
        self.transaction_id = transaction_id
        self.field_name = field_name
        super().__init__(f"Transaction {transaction_id!r}: invalid {field_name}: {message}")


def generate_transaction_id() -> str:
    """Return a random 9 character base-36 identifier."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))


@dataclass(frozen=True)
class Transaction:
    """A single recorded cash event in one currency.

    ``realized_pl`` is written only by ``calculate_portfolio``; whatever a
    caller puts there is overwritten on the enriched copy.
    """

    id: str
    date: date
    currency: str
    rate: float
    amount: float
    type: TransactionType
    realized_pl: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON record layout used by the stores."""
        record: dict[str, Any] = {
            "id": self.id,
            "date": self.date.isoformat(),
            "currency": self.currency,
            "rate": self.rate,
            "amount": self.amount,
            "type": self.type.value,
        }
        if self.realized_pl is not None:
            record["realizedPL"] = self.realized_pl
        return record

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "Transaction":
        """Build a Transaction from a stored JSON record.

        Records without an ``id`` get a freshly generated one.

        Args:
            record: Mapping with ``id``, ``date``, ``currency``, ``rate``,
                ``amount``, ``type`` and optionally ``realizedPL``.

        Returns:
            The parsed Transaction.

        Raises:
            InvalidTransactionError: If a field is missing or cannot be parsed.
        """
        transaction_id = str(record.get("id") or generate_transaction_id())

        try:
            transaction_date = _parse_date(record["date"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidTransactionError(transaction_id, "date", str(e)) from e

        try:
            transaction_type = TransactionType(str(record["type"]).upper())
        except (KeyError, ValueError) as e:
            raise InvalidTransactionError(transaction_id, "type", str(e)) from e

        values: dict[str, float] = {}
        for name in ("rate", "amount"):
            raw = record.get(name, 0 if name == "rate" else None)
            if name == "rate" and transaction_type == TransactionType.INTEREST and raw in (None, ""):
                raw = 0
            try:
                values[name] = float(raw)  # type: ignore[arg-type]
            except (TypeError, ValueError) as e:
                raise InvalidTransactionError(transaction_id, name, f"{raw!r} is not a number") from e

        realized = record.get("realizedPL")

        return cls(
            id=transaction_id,
            date=transaction_date,
            currency=str(record.get("currency", "")).strip().upper(),
            rate=values["rate"],
            amount=values["amount"],
            type=transaction_type,
            realized_pl=float(realized) if realized is not None else None,
        )


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    # Stored dates may carry a time part, only the calendar day is kept.
    return date.fromisoformat(text[:10])


@dataclass
class PortfolioSummary:
    """Derived position of a single currency."""

    currency: str
    total_quantity: float = 0.0
    avg_cost: float = 0.0
    current_rate: float = 0.0
    unrealized_pl: float = 0.0
    realized_pl: float = 0.0


@dataclass
class DashboardStats:
    """Aggregate output of a valuation run."""

    total_unrealized_pl: float
    total_realized_pl: float
    items: list[PortfolioSummary] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    return math.isfinite(value)


def _is_acquisition(txn: Transaction) -> bool:
    return txn.type in (TransactionType.BUY, TransactionType.INTEREST)


def _check_transaction(txn: Transaction) -> None:
    """Reject values that would poison the fold with NaN or a TypeError."""
    if not isinstance(txn.type, TransactionType):
        raise InvalidTransactionError(txn.id, "type", f"{txn.type!r} is not a transaction type")
    if not _is_number(txn.amount):
        raise InvalidTransactionError(txn.id, "amount", f"{txn.amount!r} is not a finite number")
    # Interest is valued at zero cost, its rate is never read.
    if txn.type != TransactionType.INTEREST and not _is_number(txn.rate):
        raise InvalidTransactionError(txn.id, "rate", f"{txn.rate!r} is not a finite number")


def _fold_transactions(
    transactions: Iterable[Transaction],
    error_out_negative_quantity: bool = False,
) -> tuple[dict[str, PortfolioSummary], list[Transaction], float]:
    """Fold transactions chronologically into per-currency summaries.

    Returns:
        A tuple of (summaries keyed by currency, enriched copies in fold
        order, grand total realized P&L).
    """
    # sorted() is stable, so same-day events keep their input order
    sorted_transactions = sorted(transactions, key=lambda t: t.date)

    summaries: dict[str, PortfolioSummary] = {}
    enriched: list[Transaction] = []
    total_realized_pl = 0.0

    for txn in sorted_transactions:
        _check_transaction(txn)

        summary = summaries.get(txn.currency)
        if summary is None:
            summary = PortfolioSummary(currency=txn.currency)
            summaries[txn.currency] = summary

        amount = float(txn.amount)

        if _is_acquisition(txn):
            cost = 0.0 if txn.type == TransactionType.INTEREST else float(txn.rate)
            total_cost = summary.total_quantity * summary.avg_cost + amount * cost
            summary.total_quantity += amount
            summary.avg_cost = total_cost / summary.total_quantity if summary.total_quantity > 0 else 0.0
            enriched.append(replace(txn, realized_pl=None))

        else:
            # Realized against the average cost before this disposal; avg_cost stays put.
            pnl = (float(txn.rate) - summary.avg_cost) * amount
            summary.realized_pl += pnl
            total_realized_pl += pnl
            summary.total_quantity -= amount
            enriched.append(replace(txn, realized_pl=pnl))

            if error_out_negative_quantity and summary.total_quantity < -DISPLAY_EPSILON:
                raise ValueError(
                    f"Negative quantity detected: {txn.currency} = {summary.total_quantity} "
                    f"after transaction: {txn}"
                )

    return summaries, enriched, total_realized_pl


def calculate_portfolio(
    transactions: Sequence[Transaction],
    current_rates: Mapping[str, float],
    error_out_negative_quantity: bool = False,
) -> tuple[DashboardStats, list[Transaction]]:
    """
    Value a set of transactions against the current market rates.

    Transactions are folded in date order (ties keep input order). BUY and
    INTEREST update the weighted-average cost, INTEREST at zero cost. SELL
    realizes ``(rate - avg_cost) * amount`` against the average cost before
    the sale and leaves the average cost unchanged.

    Args:
        transactions: All recorded transactions, in any order. Not modified.
        current_rates: Mapping of currency code to market rate. Missing
            currencies are valued at 0.
        error_out_negative_quantity: If True, raise ValueError when a sale
            takes a currency's holdings below zero.

    Returns:
        A tuple of (DashboardStats, enriched transactions). The enriched list
        holds copies of the input, most recent date first, with
        ``realized_pl`` set on every SELL and cleared on every other type.

    Raises:
        InvalidTransactionError: If a transaction has a non-finite rate or
            amount, or an unknown type.
        ValueError: If error_out_negative_quantity is True and any holding
            goes negative.
    """
    summaries, enriched, total_realized_pl = _fold_transactions(
        transactions, error_out_negative_quantity=error_out_negative_quantity
    )

    items: list[PortfolioSummary] = []
    for summary in summaries.values():
        current_rate = float(current_rates.get(summary.currency) or 0.0)
        items.append(replace(
            summary,
            current_rate=current_rate,
            unrealized_pl=(current_rate - summary.avg_cost) * summary.total_quantity,
        ))

    total_unrealized_pl = sum((item.unrealized_pl for item in items), 0.0)

    stats = DashboardStats(
        total_unrealized_pl=total_unrealized_pl,
        total_realized_pl=total_realized_pl,
        items=[
            item for item in items
            if abs(item.total_quantity) > DISPLAY_EPSILON or abs(item.realized_pl) > DISPLAY_EPSILON
        ],
    )

    enriched.reverse()
    return stats, enriched


def get_available_quantity(
    transactions: Sequence[Transaction],
    currency: str,
    editing: Transaction | None = None,
) -> float:
    """
    Get the quantity of a currency that can still be sold.

    Args:
        transactions: All recorded transactions.
        currency: Currency code to look up.
        editing: The transaction being edited, if any. It is left out of the
            holdings so that its replacement is checked on its own.

    Returns:
        The net held quantity of ``currency`` (0 if never held).
    """
    if editing is not None:
        transactions = [t for t in transactions if t.id != editing.id]
    summaries, _, _ = _fold_transactions(transactions)
    summary = summaries.get(currency)
    return summary.total_quantity if summary else 0.0


def normalize_transaction(transaction: Transaction) -> Transaction:
    """Return the transaction with input conventions applied (INTEREST has rate 0)."""
    currency = transaction.currency.strip().upper()
    rate = 0.0 if transaction.type == TransactionType.INTEREST else transaction.rate
    if currency == transaction.currency and rate == transaction.rate:
        return transaction
    return replace(transaction, currency=currency, rate=rate)


def validate_transaction(
    transaction: Transaction,
    transactions: Sequence[Transaction],
    editing: Transaction | None = None,
) -> None:
    """
    Check a new or edited transaction before it is recorded.

    Args:
        transaction: The transaction to record.
        transactions: The currently recorded transactions.
        editing: The recorded transaction that ``transaction`` replaces, if any.

    Raises:
        InvalidTransactionError: If the rate or amount is not a finite number,
            the amount is not positive, or a SELL exceeds the available
            quantity of its currency.
    """
    if not isinstance(transaction.type, TransactionType):
        raise InvalidTransactionError(transaction.id, "type", f"{transaction.type!r} is not a transaction type")
    if transaction.type != TransactionType.INTEREST and not _is_number(transaction.rate):
        raise InvalidTransactionError(transaction.id, "rate", f"{transaction.rate!r} is not a finite number")
    if not _is_number(transaction.amount):
        raise InvalidTransactionError(transaction.id, "amount", f"{transaction.amount!r} is not a finite number")
    if transaction.amount <= 0:
        raise InvalidTransactionError(transaction.id, "amount", "must be greater than 0")

    if transaction.type == TransactionType.SELL:
        available = get_available_quantity(transactions, transaction.currency, editing)
        if transaction.amount > available:
            raise InvalidTransactionError(
                transaction.id,
                "amount",
                f"insufficient balance, at most {available:,} {transaction.currency} can be sold",
            )


def add_transaction(transactions: Sequence[Transaction], transaction: Transaction) -> list[Transaction]:
    """Return a new list with ``transaction`` appended."""
    return [*transactions, transaction]


def update_transaction(transactions: Sequence[Transaction], transaction: Transaction) -> list[Transaction]:
    """
    Return a new list with the transaction sharing ``transaction.id`` replaced.

    Raises:
        KeyError: If no transaction has that id.
    """
    if not any(t.id == transaction.id for t in transactions):
        raise KeyError(transaction.id)
    return [transaction if t.id == transaction.id else t for t in transactions]


def delete_transaction(transactions: Sequence[Transaction], transaction_id: str) -> list[Transaction]:
    """
    Return a new list without the transaction with ``transaction_id``.

    Raises:
        KeyError: If no transaction has that id.
    """
    remaining = [t for t in transactions if t.id != transaction_id]
    if len(remaining) == len(transactions):
        raise KeyError(transaction_id)
    return remaining


def find_transaction(transactions: Sequence[Transaction], transaction_id: str) -> Transaction:
    """Look up a transaction by id, raising KeyError if absent."""
    for txn in transactions:
        if txn.id == transaction_id:
            return txn
    raise KeyError(transaction_id)


def check_unique_ids(transactions: list[Transaction]) -> list[Transaction]:
    """Return ``transactions`` unchanged, raising InvalidTransactionError on a repeated id."""
    seen: set[str] = set()
    for txn in transactions:
        if txn.id in seen:
            raise InvalidTransactionError(txn.id, "id", "appears more than once")
        seen.add(txn.id)
    return transactions


def load_transactions_from_json(file_path: str) -> list[Transaction]:
    """
    Load transactions from a JSON file.

    Args:
        file_path: Path to a JSON file holding a list of transaction records.

    Returns:
        The parsed transactions, in file order.

    Expected JSON structure:
        [
            {
                "id": "k3j9x0a1b",
                "date": "2024-01-15",
                "currency": "USD",
                "rate": 31.5,
                "amount": 1000,
                "type": "BUY"
            },
            ...
        ]
    """
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError("JSON file must contain a list of transactions")

    return check_unique_ids([Transaction.from_dict(item) for item in data])


def save_transactions_to_json(transactions: Sequence[Transaction], file_path: str) -> None:
    """Save transactions to a JSON file as a list of records."""
    with open(file_path, "w", encoding="utf-8") as f:
        json.dump([txn.to_dict() for txn in transactions], f, indent=2, ensure_ascii=False)


def load_transactions_from_excel(file_path: str) -> list[Transaction]:
    """
    Load transactions from an Excel file.

    Args:
        file_path: Path to the Excel file.

    Returns:
        The parsed transactions, in row order. Rows with an empty ID get a
        generated one.

    Expected Excel columns (order independent):
        - ID: Transaction identifier
        - DATE: Transaction date
        - CURRENCY: Currency code (e.g., USD, JPY)
        - TYPE: BUY, SELL or INTEREST
        - RATE: Exchange rate applied
        - AMOUNT: Quantity of currency moved
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Transaction file not found: {file_path}")

    df = pd.read_excel(file_path, dtype={"ID": str, "CURRENCY": str, "TYPE": str})

    if df.empty:
        return []

    missing_columns = set(EXCEL_HEADERS) - set(df.columns)
    if missing_columns:
        raise ValueError(f"Missing required columns: {missing_columns}")

    transactions: list[Transaction] = []
    any_missing_id = False

    for _, row in df.iterrows():
        transaction_id = row["ID"] if pd.notna(row["ID"]) else None
        any_missing_id = any_missing_id or transaction_id is None
        rate = row["RATE"] if pd.notna(row["RATE"]) else 0
        transactions.append(Transaction.from_dict({
            "id": transaction_id,
            "date": pd.to_datetime(row["DATE"]).date(),
            "currency": row["CURRENCY"],
            "type": row["TYPE"],
            "rate": rate,
            "amount": row["AMOUNT"],
        }))

    if any_missing_id:
        warnings.warn(
            f"Some transactions in '{file_path}' had no ID. New IDs were generated for them.",
            UserWarning
        )

    return check_unique_ids(transactions)


def save_transactions_to_excel(transactions: Sequence[Transaction], file_path: str) -> None:
    """Save transactions to an Excel file with the EXCEL_HEADERS columns."""
    wb = Workbook()
    ws = wb.active
    assert ws is not None

    for col, header in enumerate(EXCEL_HEADERS, start=1):
        ws.cell(row=1, column=col, value=header)

    for row, txn in enumerate(transactions, start=2):
        ws.cell(row=row, column=1, value=txn.id)
        ws.cell(row=row, column=2, value=txn.date.isoformat())
        ws.cell(row=row, column=3, value=txn.currency)
        ws.cell(row=row, column=4, value=txn.type.value)
        ws.cell(row=row, column=5, value=float(txn.rate))
        ws.cell(row=row, column=6, value=float(txn.amount))

    wb.save(file_path)
