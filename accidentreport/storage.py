from __future__ import annotations

import logging
import re
from pathlib import Path

from .config import get_settings


logger = logging.getLogger(__name__)

PDF_NAME_PREFIX = 'accident-report'
_FINGERPRINT_RE = re.compile(r'^[0-9a-f]{8,64}$')


def pdfs_root() -> Path:
    root = get_settings().data_dir / 'pdfs'
    root.mkdir(parents=True, exist_ok=True)
    return root


def _safe_token(value: int | str, what: str) -> str:
    token = str(value if value is not None else '').strip()
    if not token or not re.fullmatch(r'[0-9A-Za-z_-]+', token):
        raise ValueError(f'invalid {what}: {value!r}')
    return token


def user_pdf_dir(user_id: int | str) -> Path:
    path = pdfs_root() / f'user_{_safe_token(user_id, "user_id")}'
    path.mkdir(parents=True, exist_ok=True)
    return path


def pdf_filename(report_id: int | str, content_fingerprint: str) -> str:
    if not _FINGERPRINT_RE.match(content_fingerprint or ''):
        raise ValueError(f'invalid content fingerprint: {content_fingerprint!r}')
    return f'{PDF_NAME_PREFIX}-{_safe_token(report_id, "report_id")}-{content_fingerprint}.pdf'


def pdf_path(user_id: int | str, report_id: int | str, content_fingerprint: str) -> Path:
    return user_pdf_dir(user_id) / pdf_filename(report_id, content_fingerprint)


def find_existing_pdf(user_id: int | str, report_id: int | str, content_fingerprint: str) -> Path | None:
    path = pdf_path(user_id, report_id, content_fingerprint)
    if path.is_file() and path.stat().st_size > 0:
        return path
    return None


def write_bytes_atomic(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    tmp.write_bytes(content)
    tmp.replace(path)


def store_pdf(user_id: int | str, report_id: int | str, content_fingerprint: str, content: bytes) -> Path:
    path = pdf_path(user_id, report_id, content_fingerprint)
    write_bytes_atomic(path, content)
    return path


def report_pdf_prefix(report_id: int | str) -> str:
    return f'{PDF_NAME_PREFIX}-{_safe_token(report_id, "report_id")}-'


def _report_pdfs(user_id: int | str, report_id: int | str) -> list[Path]:
    prefix = report_pdf_prefix(report_id)
    return [
        child
        for child in user_pdf_dir(user_id).iterdir()
        if child.is_file() and child.name.startswith(prefix) and child.suffix == '.pdf'
    ]


def remove_stale_pdfs(user_id: int | str, report_id: int | str, *, keep: Path) -> list[Path]:
    """Delete older PDFs of one report, keeping ``keep``. Failures are logged, not raised."""
    removed: list[Path] = []
    for child in _report_pdfs(user_id, report_id):
        if child.name == keep.name:
            continue
        try:
            child.unlink()
            removed.append(child)
        except OSError as exc:
            logger.warning('Failed to remove stale report PDF %s: %s', child, exc)
    return removed


def remove_report_pdfs(user_id: int | str, report_id: int | str) -> list[Path]:
    removed: list[Path] = []
    for child in _report_pdfs(user_id, report_id):
        try:
            child.unlink()
            removed.append(child)
        except OSError as exc:
            logger.warning('Failed to remove report PDF %s: %s', child, exc)
    return removed
