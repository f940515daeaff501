"""
csv_import.py - CSV import adapter

Column order is not fixed: each row is scanned left to right for the first
positive amount, an optional ISO date and the first text field worth using as
details. Every parsed row is taken as a VAT base amount and committed at once;
there is no review step for CSV files.
"""

from dataclasses import dataclass
from typing import List, Optional, Union
import csv
import datetime
import io
import logging
import re

from taxtrack.models import VAT, Transaction
from taxtrack.tax import calculate_vat

logger = logging.getLogger(__name__)

DEFAULT_DETAILS = "CSV Import"

ENCODINGS = ("utf-8-sig", "utf-8")

# currency symbols/codes and thousands separators stripped before parsing
_AMOUNT_NOISE = re.compile(r"(?i)ngn|[₦$,\s]|^n(?=[\d.])")


@dataclass
class CsvRow:
    amount: float
    details: str = DEFAULT_DETAILS
    date: Optional[str] = None


def decode(content: Union[str, bytes]) -> str:
    if isinstance(content, str):
        return content
    for encoding in ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode("latin-1")


def _parse_number(field: str) -> Optional[float]:
    cleaned = _AMOUNT_NOISE.sub("", field)
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


def _parse_date(field: str) -> Optional[str]:
    try:
        return datetime.date.fromisoformat(field).isoformat()
    except ValueError:
        return None


def parse_row(fields: List[str]) -> Optional[CsvRow]:
    amount: Optional[float] = None
    details: Optional[str] = None
    date: Optional[str] = None
    for raw in fields:
        field = raw.strip().strip('"').strip("'").strip()
        if not field:
            continue
        number = _parse_number(field)
        if number is not None:
            if amount is None and number > 0:
                amount = number
            continue
        if date is None:
            date = _parse_date(field)
            if date is not None:
                continue
        if details is None and len(field) > 2:
            details = field
    if amount is None:
        return None
    return CsvRow(amount=round(amount, 2), details=details or DEFAULT_DETAILS, date=date)


def parse_csv(content: Union[str, bytes]) -> List[CsvRow]:
    """
    Parse CSV text into rows. A first line mentioning "date" or "amount" is a
    header. Rows without a positive amount are skipped silently.
    """
    lines = [ln for ln in decode(content).splitlines() if ln.strip()]
    if lines and ("date" in lines[0].lower() or "amount" in lines[0].lower()):
        lines = lines[1:]
    rows: List[CsvRow] = []
    for line in lines:
        try:
            fields = next(csv.reader([line], skipinitialspace=True), [])
        except csv.Error as exc:
            # NUL bytes, oversized fields
            logger.debug("Skipping unreadable CSV line: %s", exc)
            continue
        row = parse_row(fields)
        if row is not None:
            rows.append(row)
    return rows


def import_csv(content: Union[str, bytes], ledger) -> List[Transaction]:
    """Commit each parsed row to the ledger as the VAT due on its amount."""
    committed = []
    for row in parse_csv(content):
        committed.append(ledger.add(VAT, calculate_vat(row.amount), row.details, date=row.date))
    logger.info("Imported %d VAT transactions from CSV", len(committed))
    return committed
