from __future__ import annotations

import hashlib
import io
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional, TypeVar

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from .segmentation import FontRole


logger = logging.getLogger(__name__)

FONT_STANDARD_NAME = 'Helvetica'
FONT_STANDARD_BOLD_NAME = 'Helvetica-Bold'
FONT_LATIN_PREFIX = 'AR-Latin'
FONT_CJK_PREFIX = 'AR-CJK'

T = TypeVar('T')
S = TypeVar('S')


@dataclass(frozen=True)
class FontBytes:
    latin: bytes | None
    cjk: bytes | None
    latin_source: Path | None = None
    cjk_source: Path | None = None

    @property
    def cjk_shares_latin(self) -> bool:
        return self.cjk is not None and self.cjk is self.latin


@dataclass(frozen=True)
class EmbeddedFontSet:
    latin: str
    cjk: str
    bold: str = FONT_STANDARD_BOLD_NAME

    def for_role(self, role: FontRole) -> str:
        if role == FontRole.cjk:
            return self.cjk
        return self.latin


STANDARD_FONTS = EmbeddedFontSet(latin=FONT_STANDARD_NAME, cjk=FONT_STANDARD_NAME)


def first_success(candidates: Iterable[S], loader: Callable[[S], Optional[T]]) -> tuple[S, T] | None:
    """Return the first candidate whose loader yields a value, with that value."""
    for candidate in candidates:
        result = loader(candidate)
        if result is not None:
            return candidate, result
    return None


def _safe_file(path: Path | None) -> Path | None:
    if path is None:
        return None
    if path.exists() and path.is_file():
        return path
    return None


def read_font_file(path: Path) -> bytes | None:
    resolved = _safe_file(path)
    if resolved is None:
        return None
    try:
        data = resolved.read_bytes()
    except OSError as exc:
        logger.warning('Failed to read PDF font from %s: %s', resolved, exc)
        return None
    if not data:
        logger.warning('Skipped empty PDF font file %s', resolved)
        return None
    logger.info('Loaded PDF font from %s (%.2f MB)', resolved, len(data) / 1024 / 1024)
    return data


def parses_as_truetype(data: bytes, source: Path | None = None) -> bool:
    """True when reportlab can build a TrueType font from ``data``; CFF outlines fail here."""
    try:
        TTFont(_font_name('AR-Check', data), io.BytesIO(data))
    except Exception as exc:
        logger.warning('Skipped PDF font %s: %s', source, exc)
        return False
    return True


class FontProvider:
    """Finds the Latin/Thai and CJK font files once and keeps their bytes for every render."""

    def __init__(
        self,
        latin_candidates: Iterable[Path],
        cjk_candidates: Iterable[Path],
        *,
        reader: Callable[[Path], bytes | None] = read_font_file,
        accept: Callable[[bytes, Path], bool] = parses_as_truetype,
    ) -> None:
        self._latin_candidates = tuple(latin_candidates)
        self._cjk_candidates = tuple(cjk_candidates)
        self._reader = reader
        self._accept = accept
        self._lock = threading.Lock()
        self._cached: FontBytes | None = None

    @classmethod
    def from_settings(cls, settings) -> 'FontProvider':
        return cls(settings.latin_font_candidates(), settings.cjk_font_candidates())

    @property
    def loaded(self) -> bool:
        return self._cached is not None

    def load_font_bytes(self) -> FontBytes:
        cached = self._cached
        if cached is not None:
            return cached
        with self._lock:
            if self._cached is None:
                self._cached = self._load()
            return self._cached

    def _load_candidate(self, path: Path) -> bytes | None:
        data = self._reader(path)
        if data is None or not self._accept(data, path):
            return None
        return data

    def _load(self) -> FontBytes:
        latin_hit = first_success(self._latin_candidates, self._load_candidate)
        latin_source, latin = latin_hit if latin_hit else (None, None)
        if latin is None:
            logger.warning('No Latin/Thai PDF font found; using built-in %s', FONT_STANDARD_NAME)

        cjk_hit = first_success(self._cjk_candidates, self._load_candidate)
        cjk_source, cjk = cjk_hit if cjk_hit else (None, None)
        if cjk is None:
            logger.warning('No CJK PDF font found; CJK text will use the Latin font')
            cjk_source, cjk = latin_source, latin

        return FontBytes(latin=latin, cjk=cjk, latin_source=latin_source, cjk_source=cjk_source)


def _font_name(prefix: str, data: bytes) -> str:
    return f'{prefix}-{hashlib.sha1(data).hexdigest()[:12]}'


def _register_ttf_bytes(prefix: str, data: bytes, source: Path | None) -> str | None:
    font_name = _font_name(prefix, data)
    if font_name in pdfmetrics.getRegisteredFontNames():
        return font_name
    try:
        pdfmetrics.registerFont(TTFont(font_name, io.BytesIO(data)))
        return font_name
    except Exception as exc:
        logger.warning('Failed to register PDF font %s from %s: %s', font_name, source, exc)
        return None


def embed_fonts(font_bytes: FontBytes) -> EmbeddedFontSet:
    """Bind loaded font bytes to reportlab font names for one document.

    Each canvas embeds its own subset of every registered font it draws with, so
    registration only parses the bytes; it is skipped for bytes seen before.
    """
    latin = FONT_STANDARD_NAME
    if font_bytes.latin is not None:
        latin = _register_ttf_bytes(FONT_LATIN_PREFIX, font_bytes.latin, font_bytes.latin_source) or latin

    cjk = latin
    if font_bytes.cjk is not None and not font_bytes.cjk_shares_latin:
        cjk = _register_ttf_bytes(FONT_CJK_PREFIX, font_bytes.cjk, font_bytes.cjk_source) or latin

    return EmbeddedFontSet(latin=latin, cjk=cjk, bold=FONT_STANDARD_BOLD_NAME)
