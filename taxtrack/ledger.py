"""
ledger.py - transaction ledger and persistence

Responsibilities:
 - keep an in-memory, insertion-ordered list of Transaction objects
 - persist to the local slot store (Ledger) or to the REST backend (RemoteLedger)
 - provide helper APIs consumed by the UI and the import pipelines:
     add, list, by_type, summary, delete

Persistence failures never undo the in-memory change: they are logged and kept
in ``last_error`` so the UI can show a notice.
"""

from typing import Dict, List, Optional
import logging
import secrets
import string
import threading
import time

from taxtrack.api_client import TaxTrackApiClient
from taxtrack.errors import PersistenceError, RemoteStoreError
from taxtrack.models import CONSUMPTION, PAYE, VAT, Transaction, validate_type
from taxtrack.storage import STORAGE_KEYS, LocalStore

# ensure the package logger is available
_pkg_logger = logging.getLogger("taxtrack")
if not _pkg_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    _pkg_logger.addHandler(handler)
    _pkg_logger.setLevel(logging.INFO)
logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _base36(n: int) -> str:
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = _ID_ALPHABET[r] + out
    return out or "0"


def generate_id() -> str:
    """Millisecond timestamp in base 36 followed by a random suffix."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))
    return _base36(int(time.time() * 1000)) + suffix


class BaseLedger:
    variant = "memory"

    def __init__(self):
        self.transactions: List[Transaction] = []
        self.last_error: Optional[str] = None
        self._lock = threading.Lock()

    def _new_id(self) -> str:
        taken = {t.id for t in self.transactions}
        tx_id = generate_id()
        while tx_id in taken:
            tx_id = generate_id()
        return tx_id

    def _build(self, tx_type: str, amount: float, details: str = "", date: Optional[str] = None) -> Transaction:
        return Transaction(
            id=self._new_id(),
            type=validate_type(tx_type),
            amount=amount,
            details=details,
            date=date or "",
        )

    def list(self) -> List[Transaction]:
        """Return a copy of the transactions in insertion order."""
        return list(self.transactions)

    def by_type(self, tx_type: str) -> List[Transaction]:
        validate_type(tx_type)
        return [t for t in self.list() if t.type == tx_type]

    def summary(self) -> Dict[str, float]:
        """
        Sum amounts by type over the whole ledger.

        Returns:
            {"paye", "vat", "consumption", "total", "count"}
        """
        totals = {PAYE: 0.0, VAT: 0.0, CONSUMPTION: 0.0}
        txs = self.list()
        for t in txs:
            totals[t.type] += t.amount
        paye = round(totals[PAYE], 2)
        vat = round(totals[VAT], 2)
        consumption = round(totals[CONSUMPTION], 2)
        return {
            "paye": paye,
            "vat": vat,
            "consumption": consumption,
            "total": round(paye + vat + consumption, 2),
            "count": len(txs),
        }


class Ledger(BaseLedger):
    """
    Local ledger: the in-memory list is mirrored to the transactions slot of a
    LocalStore synchronously on every mutation.

    Several ledgers (one per browser session) may share a store file. Each
    mutation re-reads the slot under the store's path lock before writing, so
    one session never overwrites another's transactions with a stale list.
    """

    variant = "local"

    def __init__(self, store: LocalStore):
        super().__init__()
        self.store = store
        self._lock = store.lock
        self.load()

    def load(self):
        """
        Load transactions from the store. Records that fail validation are
        skipped with a warning rather than aborting the load.
        """
        rows = self.store.get_json(STORAGE_KEYS["TRANSACTIONS"], []) or []
        if not isinstance(rows, list):
            logger.warning("Transactions slot is not a list, starting empty")
            rows = []
        loaded: List[Transaction] = []
        seen = set()
        for row in rows:
            try:
                tx = Transaction.from_dict(row)
            except (AttributeError, ValueError) as exc:
                logger.warning("Skipping invalid stored transaction %r: %s", row, exc)
                continue
            if not tx.id or tx.id in seen:
                tx.id = self._new_id_against(seen)
            seen.add(tx.id)
            loaded.append(tx)
        with self._lock:
            self.transactions = loaded

    def _sync(self):
        # after a failed save the in-memory list is the working state
        if self.last_error is None:
            self.load()

    @staticmethod
    def _new_id_against(taken) -> str:
        tx_id = generate_id()
        while tx_id in taken:
            tx_id = generate_id()
        return tx_id

    def save(self) -> bool:
        """Write the whole list to the store; returns False if the write failed."""
        try:
            logger.info("Saving %d transactions to %s", len(self.transactions), self.store.path)
            self.store.set_json(STORAGE_KEYS["TRANSACTIONS"], [t.to_dict() for t in self.transactions])
        except PersistenceError as exc:
            logger.exception("Failed to persist transactions")
            self.last_error = str(exc)
            return False
        self.last_error = None
        return True

    def add(self, tx_type: str, amount: float, details: str = "", date: Optional[str] = None) -> Transaction:
        """
        Create a Transaction, append it to the in-memory list and persist.
        date: ISO string "YYYY-MM-DD"; defaults to today.
        """
        with self._lock:
            self._sync()
            tx = self._build(tx_type, amount, details, date)
            self.transactions.append(tx)
            self.save()
        return tx

    def delete(self, tx_id: str) -> bool:
        """Remove a transaction by id. Returns True if deleted, False if not found."""
        with self._lock:
            self._sync()
            for i, t in enumerate(self.transactions):
                if t.id == tx_id:
                    removed = self.transactions.pop(i)
                    self.save()
                    logger.info("Deleted transaction id=%s (type=%s, amount=%s)", tx_id, removed.type, removed.amount)
                    return True
        logger.info("Transaction id=%s not found", tx_id)
        return False


class RemoteLedger(BaseLedger):
    """
    Thin cache over the REST backend. The backend is authoritative; the
    in-memory list is filled by refresh() and dropped by invalidate().
    """

    variant = "remote"

    def __init__(self, client: TaxTrackApiClient):
        super().__init__()
        self.client = client
        self.loaded = False

    def refresh(self) -> bool:
        try:
            rows = self.client.list_transactions()
        except RemoteStoreError as exc:
            logger.warning("Could not load transactions from backend: %s", exc)
            self.last_error = str(exc)
            return False
        loaded: List[Transaction] = []
        for row in rows:
            try:
                loaded.append(Transaction.from_dict(row))
            except (AttributeError, ValueError) as exc:
                logger.warning("Skipping invalid backend transaction %r: %s", row, exc)
        with self._lock:
            self.transactions = loaded
            self.loaded = True
        self.last_error = None
        return True

    def invalidate(self):
        with self._lock:
            self.transactions = []
            self.loaded = False

    def list(self) -> List[Transaction]:
        if not self.loaded and self.client.authenticated:
            self.refresh()
        return super().list()

    def add(self, tx_type: str, amount: float, details: str = "", date: Optional[str] = None) -> Transaction:
        """
        POST the transaction and cache the stored record. When the backend
        fails the locally built record is cached anyway.
        """
        with self._lock:
            tx = self._build(tx_type, amount, details, date)
            payload = {"date": tx.date, "type": tx.type, "amount": tx.amount, "details": tx.details}
            try:
                stored = self.client.create_transaction(payload) or {}
                merged = {**tx.to_dict(), **stored}
                if stored.get("_id") and not stored.get("id"):
                    merged["id"] = stored["_id"]
                tx = Transaction.from_dict(merged)
                self.last_error = None
            except RemoteStoreError as exc:
                logger.warning("Backend rejected transaction, keeping it in the local cache: %s", exc)
                self.last_error = str(exc)
            except ValueError as exc:
                logger.warning("Backend returned an invalid transaction (%s); caching the local record", exc)
            self.transactions.append(tx)
        return tx

    def upload_receipt(self, filename: str, content: bytes, tx_type: str = VAT) -> List[Transaction]:
        """
        Let the backend read a receipt itself and cache the transactions it
        created. Returns an empty list when the upload fails.
        """
        validate_type(tx_type)
        try:
            rows = self.client.upload_receipt(filename, content, tx_type)
        except RemoteStoreError as exc:
            logger.warning("Receipt upload failed for %s: %s", filename, exc)
            self.last_error = str(exc)
            return []
        added: List[Transaction] = []
        for row in rows:
            try:
                added.append(Transaction.from_dict(row))
            except (AttributeError, ValueError) as exc:
                logger.warning("Skipping invalid backend transaction %r: %s", row, exc)
        with self._lock:
            self.transactions.extend(added)
        self.last_error = None
        return added
