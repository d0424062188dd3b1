from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from .report.fingerprint import fingerprint
from .report.renderer import BilingualReportRenderer, get_default_renderer
from .storage import (
    find_existing_pdf,
    remove_report_pdfs,
    remove_stale_pdfs,
    report_pdf_prefix,
    store_pdf,
    user_pdf_dir,
)
from .types import PhotoDescriptor, ReportRecord, coerce_photos, coerce_report, order_photos


logger = logging.getLogger(__name__)

PDF_GENERATION_FAILED = 'PDF_GENERATION_FAILED'
PDF_REGENERATION_FAILED = 'PDF_REGENERATION_FAILED'
INVALID_REPORT = 'INVALID_REPORT'


class ReportPdfError(RuntimeError):
    def __init__(self, message: str, *, code: str) -> None:
        super().__init__(message)
        self.code = code


class PdfArtifact(BaseModel):
    report_id: str
    content_fingerprint: str
    filename: str
    path: str
    is_new: bool
    size_bytes: int


class ReportPdfService:
    """Keeps at most one stored PDF per report content version."""

    def __init__(self, renderer: BilingualReportRenderer | None = None) -> None:
        self.renderer = renderer or get_default_renderer()

    def generate(
        self,
        report: ReportRecord | dict[str, Any],
        photos: Iterable[PhotoDescriptor | dict[str, Any]] | None = None,
        *,
        user_id: int | str,
        stored_fingerprint: str | None = None,
        generated_at: datetime | None = None,
    ) -> PdfArtifact:
        """Return the stored PDF when its fingerprint still matches, otherwise render a new one."""
        record, ordered = self._prepare(report, photos, user_id)
        content_fingerprint = fingerprint(record, ordered)
        report_id = str(record.id)

        existing = find_existing_pdf(user_id, report_id, content_fingerprint)
        if existing is not None and stored_fingerprint == content_fingerprint:
            logger.info('Report %s unchanged (%s); reusing %s', report_id, content_fingerprint, existing.name)
            return self._artifact(report_id, content_fingerprint, existing, is_new=False)

        try:
            path = self._render_and_store(record, ordered, user_id, content_fingerprint, generated_at)
        except Exception as exc:
            logger.exception('PDF generation failed for report %s', report_id)
            raise ReportPdfError(f'PDF generation failed for report {report_id}', code=PDF_GENERATION_FAILED) from exc

        remove_stale_pdfs(user_id, report_id, keep=path)
        return self._artifact(report_id, content_fingerprint, path, is_new=True)

    def regenerate(
        self,
        report: ReportRecord | dict[str, Any],
        photos: Iterable[PhotoDescriptor | dict[str, Any]] | None = None,
        *,
        user_id: int | str,
        generated_at: datetime | None = None,
    ) -> PdfArtifact:
        """Drop every stored PDF of the report and render it again."""
        record, ordered = self._prepare(report, photos, user_id)
        content_fingerprint = fingerprint(record, ordered)
        report_id = str(record.id)

        removed = remove_report_pdfs(user_id, report_id)
        logger.info('Regenerating report %s (%s); removed %s old PDF(s)', report_id, content_fingerprint, len(removed))
        try:
            path = self._render_and_store(record, ordered, user_id, content_fingerprint, generated_at)
        except Exception as exc:
            logger.exception('PDF regeneration failed for report %s', report_id)
            raise ReportPdfError(
                f'PDF regeneration failed for report {report_id}',
                code=PDF_REGENERATION_FAILED,
            ) from exc
        return self._artifact(report_id, content_fingerprint, path, is_new=True)

    def _prepare(
        self,
        report: ReportRecord | dict[str, Any],
        photos: Iterable[PhotoDescriptor | dict[str, Any]] | None,
        user_id: int | str,
    ) -> tuple[ReportRecord, list[PhotoDescriptor]]:
        try:
            record = coerce_report(report)
            ordered = order_photos(coerce_photos(photos))
        except ValidationError as exc:
            raise ReportPdfError(f'Invalid report payload: {exc}', code=INVALID_REPORT) from exc
        if record.id is None:
            raise ReportPdfError('Report id is required to store a PDF', code=INVALID_REPORT)
        try:
            user_pdf_dir(user_id)
            report_pdf_prefix(record.id)
        except ValueError as exc:
            raise ReportPdfError(str(exc), code=INVALID_REPORT) from exc
        return record, ordered

    def _render_and_store(
        self,
        record: ReportRecord,
        photos: list[PhotoDescriptor],
        user_id: int | str,
        content_fingerprint: str,
        generated_at: datetime | None,
    ) -> Path:
        content = self.renderer.render(record, photos, generated_at=generated_at)
        path = store_pdf(user_id, record.id, content_fingerprint, content)
        logger.info('Stored report %s PDF at %s (%s bytes)', record.id, path, len(content))
        return path

    @staticmethod
    def _artifact(report_id: str, content_fingerprint: str, path: Path, *, is_new: bool) -> PdfArtifact:
        return PdfArtifact(
            report_id=report_id,
            content_fingerprint=content_fingerprint,
            filename=path.name,
            path=str(path),
            is_new=is_new,
            size_bytes=path.stat().st_size,
        )
