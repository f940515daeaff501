"""
recognition.py - OCR engine handle

Wraps pytesseract behind an async ``recognize`` call that reports progress as
{"status": str, "progress": float}. The tesseract binary is located lazily on
first use and the handle is memoized for the life of the process; if it
cannot be found every call raises RecognitionUnavailable with the cause.
"""

from typing import Any, Callable, Dict, Optional, Protocol, Union
import asyncio
import functools
import io
import logging
import os

import pytesseract
from PIL import Image, UnidentifiedImageError

from taxtrack.errors import RecognitionError, RecognitionUnavailable

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], None]
ImageSource = Union[bytes, str, os.PathLike, io.IOBase, Any]


class RecognitionEngine(Protocol):
    async def recognize(
        self,
        image: ImageSource,
        lang: str = "eng",
        progress: Optional[ProgressCallback] = None,
    ) -> str:
        ...


def _report(progress: Optional[ProgressCallback], status: str, fraction: float):
    if progress is not None:
        progress({"status": status, "progress": max(0.0, min(1.0, fraction))})


@functools.lru_cache(maxsize=None)
def load_tesseract(tesseract_cmd: Optional[str] = None):
    """
    Point pytesseract at the binary and check that it runs. Successful
    lookups are cached; failures are not, so a later call can retry.
    """
    if tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
    try:
        version = pytesseract.get_tesseract_version()
    except (pytesseract.TesseractNotFoundError, OSError) as exc:
        raise RecognitionUnavailable("Tesseract OCR engine is not available", detail=str(exc)) from exc
    logger.info("Loaded tesseract %s", version)
    return pytesseract


def _open_image(image: ImageSource) -> Image.Image:
    if isinstance(image, (bytes, bytearray)):
        img = Image.open(io.BytesIO(image))
    elif hasattr(image, "getvalue"):
        img = Image.open(io.BytesIO(image.getvalue()))
    else:
        img = Image.open(image)

    # Flatten transparency onto white before greyscale conversion
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        img = background
    if img.mode != "L":
        img = img.convert("L")
    return img


class TesseractEngine:
    def __init__(self, tesseract_cmd: Optional[str] = None, config: str = "--oem 3 --psm 6"):
        self.tesseract_cmd = tesseract_cmd
        self.config = config

    def _handle(self):
        return load_tesseract(self.tesseract_cmd)

    def _recognize_sync(self, image: ImageSource, lang: str) -> str:
        engine = self._handle()
        try:
            img = _open_image(image)
            return engine.image_to_string(img, lang=lang, config=self.config) or ""
        except (UnidentifiedImageError, pytesseract.TesseractError, OSError, ValueError) as exc:
            raise RecognitionError("Could not read text from image", detail=str(exc)) from exc

    async def recognize(
        self,
        image: ImageSource,
        lang: str = "eng",
        progress: Optional[ProgressCallback] = None,
    ) -> str:
        _report(progress, "loading tesseract core", 0.0)
        await asyncio.to_thread(self._handle)
        _report(progress, "recognizing text", 0.1)
        text = await asyncio.to_thread(self._recognize_sync, image, lang)
        _report(progress, "recognizing text", 1.0)
        return text
