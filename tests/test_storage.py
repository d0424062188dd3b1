"""
Unit tests for settings and the on-disk PDF store.
"""

from pathlib import Path

import pytest

from accidentreport.config import Settings, get_settings, repo_root
from accidentreport.storage import (
    find_existing_pdf,
    pdf_filename,
    remove_report_pdfs,
    remove_stale_pdfs,
    store_pdf,
    user_pdf_dir,
)


FP_OLD = "0" * 32
FP_NEW = "f" * 32


class TestSettings:

    def test_font_paths_from_env(self, monkeypatch):
        monkeypatch.setenv("PDF_LATIN_FONT_PATHS", "/fonts/a.ttf, assets/b.ttf ,,C:/Windows/Fonts/c.ttf")
        settings = Settings()
        assert settings.latin_font_candidates() == [
            Path("/fonts/a.ttf"),
            repo_root() / "assets/b.ttf",
            Path("C:/Windows/Fonts/c.ttf"),
        ]

    def test_upload_path_alias(self, monkeypatch, tmp_path):
        monkeypatch.delenv("UPLOAD_ROOT")
        monkeypatch.setenv("UPLOAD_PATH", str(tmp_path / "legacy"))
        assert Settings().upload_root == tmp_path / "legacy"

    def test_get_settings_creates_dirs(self):
        settings = get_settings()
        assert (settings.data_dir / "pdfs").is_dir()
        assert get_settings() is settings


class TestPdfStore:

    def test_filename(self):
        assert pdf_filename(5, FP_OLD) == f"accident-report-5-{FP_OLD}.pdf"

    @pytest.mark.parametrize("fp", ["", "XYZ", "../" + FP_OLD])
    def test_rejects_bad_fingerprint(self, fp):
        with pytest.raises(ValueError):
            pdf_filename(5, fp)

    def test_rejects_path_tokens(self):
        with pytest.raises(ValueError):
            user_pdf_dir("../x")
        with pytest.raises(ValueError):
            pdf_filename("5/6", FP_OLD)

    def test_store_and_find(self):
        assert find_existing_pdf(1, 5, FP_OLD) is None
        path = store_pdf(1, 5, FP_OLD, b"%PDF-1.4")
        assert find_existing_pdf(1, 5, FP_OLD) == path
        assert path.read_bytes() == b"%PDF-1.4"

    def test_empty_file_is_not_reused(self):
        store_pdf(1, 5, FP_OLD, b"")
        assert find_existing_pdf(1, 5, FP_OLD) is None

    def test_remove_stale_keeps_current_and_other_reports(self):
        old = store_pdf(1, 5, FP_OLD, b"old")
        new = store_pdf(1, 5, FP_NEW, b"new")
        other = store_pdf(1, 50, FP_OLD, b"other")

        removed = remove_stale_pdfs(1, 5, keep=new)

        assert removed == [old]
        assert new.exists()
        assert other.exists()

    def test_remove_report_pdfs(self):
        store_pdf(1, 5, FP_OLD, b"old")
        store_pdf(1, 5, FP_NEW, b"new")
        assert len(remove_report_pdfs(1, 5)) == 2
        assert list(user_pdf_dir(1).iterdir()) == []
