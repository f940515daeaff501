"""
service.py - application object shared by the UI

TaxTrackService is built once from an AppConfig and handed to whichever
component needs the ledger, the OCR engine or the signed-in user. It picks the
ledger variant: RemoteLedger when TAXTRACK_API_URL is set, otherwise a local
Ledger on the slot store.
"""

from typing import Any, Dict, List, Optional, Tuple
import datetime
import logging

from taxtrack.api_client import TaxTrackApiClient
from taxtrack.config import AppConfig
from taxtrack.csv_import import import_csv
from taxtrack.errors import PersistenceError, RemoteStoreError
from taxtrack.extraction import ReceiptReview
from taxtrack.ledger import Ledger, RemoteLedger
from taxtrack.models import CONSUMPTION, PAYE, VAT, Transaction, validate_type
from taxtrack.recognition import RecognitionEngine, TesseractEngine
from taxtrack.storage import STORAGE_KEYS, LocalStore
from taxtrack.tax import PayeResult, calculate_paye, calculate_vat

logger = logging.getLogger(__name__)

DEFAULT_USER = {
    "firstName": "",
    "lastName": "",
    "email": "",
    "phone": "",
    "employment": "salary",
    "company": "",
    "taxId": "",
    "taxOffice": "",
    "createdAt": None,
}


class TaxTrackService:
    def __init__(
        self,
        config: Optional[AppConfig] = None,
        store: Optional[LocalStore] = None,
        engine: Optional[RecognitionEngine] = None,
        client: Optional[TaxTrackApiClient] = None,
    ):
        self.config = config or AppConfig.from_env()
        self.store = store or LocalStore(self.config.data_file)
        self.engine = engine or TesseractEngine(self.config.tesseract_cmd)
        if client is None and self.config.uses_backend:
            client = TaxTrackApiClient(self.config.api_url, timeout=self.config.api_timeout)
        self.client = client
        if self.client is not None:
            self.ledger = RemoteLedger(self.client)
        else:
            self.ledger = Ledger(self.store)
        self.user: Optional[Dict[str, Any]] = None
        if self.client is None:
            self.user = self.store.get_json(STORAGE_KEYS["USER_DATA"], None)

    def reload(self):
        """Pick up transactions other sessions wrote to the shared local store."""
        if isinstance(self.ledger, Ledger) and self.ledger.last_error is None:
            self.ledger.load()

    def storage_status(self) -> Tuple[str, str]:
        """Return current storage backend and a short diagnostic message for the UI."""
        if isinstance(self.ledger, RemoteLedger):
            return "remote", f"Transactions are stored on {self.client.base_url}."
        return "local", f"Transactions are stored locally in {self.store.path}."

    # -----------------------
    # Session
    # -----------------------
    def is_logged_in(self) -> bool:
        if self.client is not None:
            return self.client.authenticated and self.user is not None
        return self.store.get_item(STORAGE_KEYS["USER_LOGGED_IN"]) == "true" and self.user is not None

    def _save_local_user(self, user: Dict[str, Any]) -> bool:
        self.user = user
        try:
            self.store.set_json(STORAGE_KEYS["USER_DATA"], user)
            self.store.set_item(STORAGE_KEYS["USER_LOGGED_IN"], "true")
        except PersistenceError:
            logger.exception("Failed to save user profile")
            return False
        return True

    def login(self, email: str, password: str) -> Tuple[bool, str]:
        """
        Backend variant: authenticate and load the ledger. Local variant: a demo
        login that creates the profile on first use.
        """
        email = (email or "").strip()
        if not email:
            return False, "Email is required."
        if self.client is not None:
            try:
                session = self.client.login(email, password)
            except RemoteStoreError as exc:
                return False, exc.detail or exc.message
            self.user = session.user
            self.ledger.refresh()
            return True, "Login successful!"

        if self.user and self.user.get("email") == email:
            self._save_local_user(self.user)
            return True, "Login successful!"
        user = dict(DEFAULT_USER)
        user.update(
            email=email,
            firstName=email.split("@")[0],
            lastName="User",
            createdAt=datetime.datetime.now(datetime.timezone.utc).isoformat(),
        )
        self._save_local_user(user)
        return True, "Welcome! Account created."

    def register(self, **fields) -> Tuple[bool, str]:
        email = (fields.get("email") or "").strip()
        if not email:
            return False, "Email is required."
        if self.client is not None:
            try:
                session = self.client.register(**fields)
            except RemoteStoreError as exc:
                return False, exc.detail or exc.message
            self.user = session.user
            self.ledger.refresh()
            return True, "Account created successfully!"

        if self.user and self.user.get("email") == email:
            return False, "An account with this email already exists."
        user = dict(DEFAULT_USER)
        user.update({k: v for k, v in fields.items() if k != "password"})
        user["createdAt"] = datetime.datetime.now(datetime.timezone.utc).isoformat()
        self._save_local_user(user)
        return True, "Account created successfully!"

    def logout(self):
        if self.client is not None:
            self.client.logout()
            self.ledger.invalidate()
            self.user = None
            return
        try:
            self.store.remove_item(STORAGE_KEYS["USER_LOGGED_IN"])
        except PersistenceError:
            logger.exception("Failed to clear login flag")

    # -----------------------
    # Recording helpers
    # -----------------------
    def record_paye(self, gross_income: Any, reliefs: Optional[Dict[str, Any]] = None) -> Tuple[PayeResult, Transaction]:
        result = calculate_paye(gross_income, reliefs)
        tx = self.ledger.add(PAYE, result["annual_tax"], "Salary Tax Calculation")
        return result, tx

    def record_manual(self, amount: float, details: str = "", tx_type: str = VAT, date: Optional[str] = None) -> Transaction:
        """
        Add a hand-entered line. A VAT entry is a base amount, so the VAT due
        on it is what gets recorded.
        """
        validate_type(tx_type)
        if float(amount) <= 0:
            raise ValueError("Amount must be greater than 0.")
        value = calculate_vat(amount) if tx_type == VAT else float(amount)
        return self.ledger.add(tx_type, value, details or "Manual Entry", date=date)

    def import_csv(self, content) -> List[Transaction]:
        return import_csv(content, self.ledger)

    def can_upload_receipts(self) -> bool:
        return isinstance(self.ledger, RemoteLedger)

    def upload_receipt(self, filename: str, content: bytes, tx_type: str = VAT) -> List[Transaction]:
        """Backend variant only: the backend reads the receipt and stores what it finds."""
        if not isinstance(self.ledger, RemoteLedger):
            raise RuntimeError("Receipt upload needs the TaxTrack backend (set TAXTRACK_API_URL)")
        return self.ledger.upload_receipt(filename, content, tx_type)

    def new_review(self) -> ReceiptReview:
        return ReceiptReview(self.engine, lang=self.config.ocr_lang)

    def summary(self) -> Dict[str, float]:
        return self.ledger.summary()

    def manual_entry_types(self) -> Tuple[str, ...]:
        return (VAT, CONSUMPTION)
