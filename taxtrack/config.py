"""
config.py - runtime configuration from environment variables

app.py copies Streamlit secrets with the same names into os.environ before
the dashboard is imported, so local runs and Streamlit Cloud read the same
keys.
"""

from dataclasses import dataclass
from typing import Optional
import logging
import os

logger = logging.getLogger(__name__)

_default_data_file = os.path.join(os.path.dirname(__file__), "..", "data", "taxtrack_storage.json")

CONFIG_ENV_KEYS = (
    "TAXTRACK_DATA_FILE",
    "TAXTRACK_API_URL",
    "TAXTRACK_API_TIMEOUT",
    "TAXTRACK_OCR_LANG",
    "TESSERACT_CMD",
)


@dataclass
class AppConfig:
    data_file: str = _default_data_file
    api_url: Optional[str] = None
    api_timeout: float = 30.0
    ocr_lang: str = "eng"
    tesseract_cmd: Optional[str] = None

    @property
    def uses_backend(self) -> bool:
        return bool(self.api_url)

    @classmethod
    def from_env(cls) -> "AppConfig":
        timeout_raw = (os.getenv("TAXTRACK_API_TIMEOUT") or "").strip()
        try:
            timeout = float(timeout_raw) if timeout_raw else 30.0
        except ValueError:
            logger.warning("Ignoring invalid TAXTRACK_API_TIMEOUT=%r", timeout_raw)
            timeout = 30.0
        return cls(
            data_file=(os.getenv("TAXTRACK_DATA_FILE") or "").strip() or _default_data_file,
            api_url=(os.getenv("TAXTRACK_API_URL") or "").strip() or None,
            api_timeout=timeout,
            ocr_lang=(os.getenv("TAXTRACK_OCR_LANG") or "").strip() or "eng",
            tesseract_cmd=(os.getenv("TESSERACT_CMD") or "").strip() or None,
        )
