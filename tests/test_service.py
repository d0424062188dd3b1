"""
Tests for PDF artifact reuse, regeneration and error codes.
"""

import pytest

from accidentreport.config import get_settings
from accidentreport.report.fingerprint import fingerprint
from accidentreport.service import (
    INVALID_REPORT,
    PDF_GENERATION_FAILED,
    PDF_REGENERATION_FAILED,
    ReportPdfError,
    ReportPdfService,
)

from conftest import GENERATED_AT


class FailingRenderer:

    def render(self, report, photos=None, *, generated_at=None):
        raise RuntimeError("canvas exploded")


def _stored(user_id):
    return sorted(p.name for p in (get_settings().data_dir / "pdfs" / f"user_{user_id}").glob("*.pdf"))


@pytest.fixture
def service(renderer):
    return ReportPdfService(renderer)


class TestGenerate:
    """Test fingerprint-keyed reuse of stored PDFs."""

    def test_first_render_stores_pdf(self, service, scenario_report):
        artifact = service.generate(scenario_report, [], user_id=7, generated_at=GENERATED_AT)

        assert artifact.is_new
        assert artifact.report_id == "42"
        assert artifact.content_fingerprint == fingerprint(scenario_report, [])
        assert artifact.filename == f"accident-report-42-{artifact.content_fingerprint}.pdf"
        assert artifact.size_bytes > 0
        assert _stored(7) == [artifact.filename]

    def test_matching_stored_fingerprint_reuses_file(self, service, scenario_report):
        first = service.generate(scenario_report, user_id=7, generated_at=GENERATED_AT)
        second = service.generate(
            scenario_report,
            user_id=7,
            stored_fingerprint=first.content_fingerprint,
        )
        assert not second.is_new
        assert second.path == first.path

    def test_unknown_stored_fingerprint_renders_again(self, service, scenario_report):
        first = service.generate(scenario_report, user_id=7)
        second = service.generate(scenario_report, user_id=7, stored_fingerprint=None)
        assert second.is_new
        assert second.filename == first.filename
        assert _stored(7) == [first.filename]

    def test_content_change_replaces_old_pdf(self, service, scenario_report):
        first = service.generate(scenario_report, user_id=7)
        scenario_report["status"] = "archived"
        second = service.generate(scenario_report, user_id=7, stored_fingerprint=first.content_fingerprint)

        assert second.is_new
        assert second.content_fingerprint != first.content_fingerprint
        assert _stored(7) == [second.filename]

    def test_other_reports_are_untouched(self, service, scenario_report):
        other = dict(scenario_report, id=43)
        kept = service.generate(other, user_id=7)
        service.generate(scenario_report, user_id=7)
        scenario_report["status"] = "archived"
        service.generate(scenario_report, user_id=7)
        assert kept.filename in _stored(7)

    def test_photo_order_is_normalised(self, service, scenario_report):
        photos = [
            {"imageUrl": "b.jpg", "sortOrder": 2},
            {"imageUrl": "a.jpg", "sortOrder": 1},
        ]
        artifact = service.generate(scenario_report, photos, user_id=7)
        assert artifact.content_fingerprint == fingerprint(scenario_report, list(reversed(photos)))


class TestRegenerate:

    def test_removes_all_and_renders(self, service, scenario_report):
        first = service.generate(scenario_report, user_id=7)
        again = service.regenerate(scenario_report, user_id=7)
        assert again.is_new
        assert again.content_fingerprint == first.content_fingerprint
        assert _stored(7) == [again.filename]


class TestErrors:

    def test_render_failure(self, scenario_report):
        service = ReportPdfService(FailingRenderer())
        with pytest.raises(ReportPdfError) as exc_info:
            service.generate(scenario_report, user_id=7)
        assert exc_info.value.code == PDF_GENERATION_FAILED
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert _stored(7) == []

    def test_regenerate_failure(self, scenario_report):
        service = ReportPdfService(FailingRenderer())
        with pytest.raises(ReportPdfError) as exc_info:
            service.regenerate(scenario_report, user_id=7)
        assert exc_info.value.code == PDF_REGENERATION_FAILED

    @pytest.mark.parametrize(
        "report,user_id",
        [
            ({"status": "draft"}, 7),
            ({"id": 1, "latitude": "north"}, 7),
            ({"id": "1/../2"}, 7),
            ({"id": 1}, "../other"),
        ],
    )
    def test_invalid_input(self, service, report, user_id):
        with pytest.raises(ReportPdfError) as exc_info:
            service.generate(report, user_id=user_id)
        assert exc_info.value.code == INVALID_REPORT
