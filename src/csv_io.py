import csv
import logging
import re
from decimal import Decimal
from typing import Iterable, Iterator, List, Mapping, Optional, TextIO

from account import ClientAccount
from models import LEDGER_CONTEXT, ProcessingStats, Transaction, TransactionParseError, TransactionType

logger = logging.getLogger(__name__)

OUTPUT_HEADER = ["client", "available", "held", "total", "locked"]
OUTPUT_SCALE = Decimal("0.0001")

ID_PATTERN = re.compile(r"[0-9]+")
AMOUNT_PATTERN = re.compile(r"-?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


def read_transactions(
    filepath: str,
    skip_malformed: bool = True,
    stats: Optional[ProcessingStats] = None,
) -> Iterator[Transaction]:
    """
    Stream transactions from a CSV file in input order.

    Cells are whitespace-trimmed and rows may have more or fewer cells than the
    header. Malformed rows are logged and skipped, or raise
    TransactionParseError when skip_malformed is False.
    """
    with open(filepath, "r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f)
        header: Optional[List[str]] = None

        for cells in reader:
            cells = [cell.strip() for cell in cells]
            if not any(cells):
                continue

            if header is None:
                header = [name.lower() for name in cells]
                continue

            row = dict(zip(header, cells))
            try:
                yield parse_row(row)
            except TransactionParseError as e:
                if not skip_malformed:
                    raise TransactionParseError(f"line {reader.line_num}: {e}") from e
                logger.warning(f"Skipping malformed row at line {reader.line_num} {cells}: {e}")
                if stats is not None:
                    stats.record_skipped()


def parse_row(row: Mapping[str, str]) -> Transaction:
    """
    Parse a header-keyed CSV row into a Transaction.

    Ids must be plain ASCII digits and amounts plain decimals (no sign other
    than '-', no exponent, no digit separators). The amount cell of a dispute,
    resolve or chargeback row is not read at all.
    """
    try:
        transaction_type = TransactionType(row.get("type", "").lower())
    except ValueError:
        raise TransactionParseError(f"unknown transaction type {row.get('type')!r}") from None

    client_id = _parse_int(row, "client")
    transaction_id = _parse_int(row, "tx")

    amount = None
    amount_str = row.get("amount", "")
    if transaction_type.moves_funds and amount_str:
        if not AMOUNT_PATTERN.fullmatch(amount_str):
            raise TransactionParseError(f"invalid amount {amount_str!r}")
        amount = Decimal(amount_str)

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )


def _parse_int(row: Mapping[str, str], column: str) -> int:
    value = row.get(column, "")
    if not ID_PATTERN.fullmatch(value):
        raise TransactionParseError(f"invalid {column} {value!r}")
    return int(value)


def format_amount(value: Decimal) -> str:
    """Format a balance with exactly 4 decimal places."""
    return f"{value.quantize(OUTPUT_SCALE, context=LEDGER_CONTEXT):f}"


def write_accounts(accounts: Iterable[ClientAccount], stream: TextIO) -> None:
    """Write account snapshots as CSV, ordered by client id."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_HEADER)
    for account in sorted(accounts, key=lambda a: a.client_id):
        snapshot = account.snapshot()
        writer.writerow([
            snapshot.client,
            format_amount(snapshot.available),
            format_amount(snapshot.held),
            format_amount(snapshot.total),
            str(snapshot.locked).lower(),
        ])
