"""
extraction.py - receipt text to candidate transactions

extract_candidates() turns the raw OCR text of one receipt into CandidateLine
objects. It is a line-by-line heuristic: every money-looking number in a
plausible range becomes a candidate, classified VAT when its line mentions a
tax keyword and Consumption otherwise.

ReceiptReview holds the editable preview for one upload batch. Nothing reaches
the ledger until confirm() is called, and confirm() always empties the
preview.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import itertools
import logging
import os
import re

from taxtrack.errors import RecognitionError
from taxtrack.models import CONSUMPTION, VAT, CandidateLine, Transaction, validate_amount, validate_type
from taxtrack.recognition import RecognitionEngine
from taxtrack.tax import calculate_vat, format_naira

logger = logging.getLogger(__name__)

# 12000, 12,000, 1,500.00, 250.50; a comma group must be exactly 3 digits
MONEY_PATTERN = re.compile(r"(?<![\d.])(?:\d{1,3}(?:,\d{3})+(?!\d)|\d+)(?:\.\d{2}(?!\d))?")

MIN_AMOUNT = 100
MAX_AMOUNT = 10_000_000

VAT_KEYWORDS = ("vat", "tax", "excise", "levy")

DETAILS_PLACEHOLDER = "Receipt Entry"
DETAILS_MAX_LEN = 50

NO_AMOUNTS_MESSAGE = "No amounts detected"
REVIEW_MESSAGE = 'Edit lines if needed, then click "Add Selected Transactions".'
CONFIRMED_MESSAGE = "Selected transactions added successfully."


def classify_line(line: str) -> str:
    lowered = line.lower()
    if any(k in lowered for k in VAT_KEYWORDS):
        return VAT
    return CONSUMPTION


def clean_details(line: str, token: str) -> str:
    text = line.replace(token, "", 1)
    text = re.sub(r"[^0-9A-Za-z\s]", "", text)
    text = re.sub(r"\s+", " ", text).strip()[:DETAILS_MAX_LEN].strip()
    if len(text) < 3:
        return DETAILS_PLACEHOLDER
    return text


def parse_amount(token: str) -> Optional[float]:
    try:
        return float(token.replace(",", ""))
    except ValueError:
        return None


def extract_candidates(
    text: str,
    id_factory: Callable[[], str],
    source: str = "",
) -> List[CandidateLine]:
    """
    Scan OCR text and return one CandidateLine per plausible amount.

    Amounts outside [MIN_AMOUNT, MAX_AMOUNT] are treated as quantities, dates
    or OCR noise and dropped. All amounts on a line share the line's type.
    """
    out: List[CandidateLine] = []
    for line in (text or "").splitlines():
        tokens = MONEY_PATTERN.findall(line)
        if not tokens:
            continue
        line_type = classify_line(line)
        for token in tokens:
            amount = parse_amount(token)
            if amount is None or not (MIN_AMOUNT <= amount <= MAX_AMOUNT):
                continue
            out.append(
                CandidateLine(
                    id=id_factory(),
                    type=line_type,
                    amount=round(amount, 2),
                    details=clean_details(line, token),
                    source=source,
                )
            )
    return out


@dataclass
class FileResult:
    name: str
    candidates: List[CandidateLine] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _unpack(item: Any) -> Tuple[str, Any]:
    """Accept (name, content) tuples, file paths or uploaded-file objects."""
    if isinstance(item, tuple):
        name, content = item
        return str(name), content
    if isinstance(item, (str, os.PathLike)):
        return os.path.basename(os.fspath(item)), item
    return str(getattr(item, "name", "receipt")), item


class ReceiptReview:
    """
    Editable preview of candidate lines, keyed by candidate id.

    Lifecycle: process_files() replaces the preview, edit()/select_all()
    change it, confirm() commits the selected lines and clears it.
    """

    def __init__(self, engine: RecognitionEngine, lang: str = "eng"):
        self.engine = engine
        self.lang = lang
        self._lines: Dict[str, CandidateLine] = {}
        self._ids = itertools.count(1)
        self.results: List[FileResult] = []
        self.status_text = ""

    def _next_id(self) -> str:
        return f"line-{next(self._ids)}"

    @property
    def candidates(self) -> List[CandidateLine]:
        return list(self._lines.values())

    @property
    def can_confirm(self) -> bool:
        return bool(self._lines)

    def get(self, line_id: str) -> CandidateLine:
        return self._lines[line_id]

    def clear(self):
        self._lines.clear()
        self.results = []

    async def process_files(
        self,
        files: Iterable[Any],
        on_progress: Optional[Callable[[str, Dict[str, Any]], None]] = None,
    ) -> List[FileResult]:
        """
        Recognize each image in order, one at a time, and build the preview.

        A failing file is reported in its FileResult and the batch moves on.
        CSV files are skipped; they go through csv_import instead.
        """
        self.clear()
        results: List[FileResult] = []
        for item in files:
            name, payload = _unpack(item)
            if name.lower().endswith(".csv"):
                logger.info("Skipping %s in receipt batch (CSV file)", name)
                continue

            self.status_text = f"Analyzing {name}..."

            def progress(update: Dict[str, Any], _name: str = name):
                pct = int(round(float(update.get("progress", 0.0)) * 100))
                self.status_text = f"{_name}: {update.get('status', '')} ({pct}%)"
                if on_progress is not None:
                    on_progress(_name, update)

            try:
                text = await self.engine.recognize(payload, lang=self.lang, progress=progress)
            except RecognitionError as exc:
                logger.warning("Recognition failed for %s: %s", name, exc)
                results.append(FileResult(name=name, error=str(exc)))
                continue
            except Exception as exc:
                logger.exception("Unexpected OCR failure for %s", name)
                results.append(FileResult(name=name, error=f"Unexpected error: {exc}"))
                continue

            found = extract_candidates(text, self._next_id, source=name)
            logger.info("Found %d candidate amounts in %s", len(found), name)
            for line in found:
                self._lines[line.id] = line
            results.append(FileResult(name=name, candidates=found))

        self.results = results
        self.status_text = REVIEW_MESSAGE if self._lines else NO_AMOUNTS_MESSAGE
        return results

    def edit(
        self,
        line_id: str,
        tx_type: Optional[str] = None,
        amount: Optional[float] = None,
        details: Optional[str] = None,
        selected: Optional[bool] = None,
    ) -> CandidateLine:
        """
        Change fields of one candidate. Raises KeyError for an unknown id and
        ValueError for an unknown type or a negative amount; nothing is
        changed when validation fails.
        """
        line = self._lines[line_id]
        new_type = validate_type(tx_type) if tx_type is not None else line.type
        new_amount = validate_amount(amount) if amount is not None else line.amount
        line.type = new_type
        line.amount = new_amount
        if details is not None:
            line.details = details.strip()
        if selected is not None:
            line.selected = bool(selected)
        return line

    def select_all(self, selected: bool = True):
        for line in self._lines.values():
            line.selected = selected

    def confirm(self, ledger, date: Optional[str] = None) -> List[Transaction]:
        """
        Commit every selected line as exactly one Transaction.

        VAT lines are committed as the VAT due on the (edited) base amount,
        with the base noted in the details. The preview is cleared afterwards
        whatever happens.
        """
        if not self.can_confirm:
            self.status_text = NO_AMOUNTS_MESSAGE
            return []
        committed: List[Transaction] = []
        try:
            for line in self.candidates:
                if not line.selected:
                    continue
                if line.type == VAT:
                    amount = calculate_vat(line.amount)
                    details = f"{line.details or DETAILS_PLACEHOLDER} (VAT on {format_naira(line.amount)})"
                else:
                    amount = line.amount
                    details = line.details
                committed.append(ledger.add(line.type, amount, details, date=date))
        finally:
            self.clear()
        self.status_text = CONFIRMED_MESSAGE
        logger.info("Committed %d receipt lines", len(committed))
        return committed
