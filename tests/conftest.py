"""
Shared fixtures for the accident report tests.
"""

import io
from datetime import datetime

import pytest
from PIL import Image
from pypdf import PdfReader

from accidentreport import config
from accidentreport.report import renderer as renderer_module
from accidentreport.report.fonts import FontProvider
from accidentreport.report.photos import PhotoLocator
from accidentreport.report.renderer import BilingualReportRenderer


GENERATED_AT = datetime(2024, 3, 5, 14, 30, 0)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point settings at a temp data dir and drop cached singletons around each test."""
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("UPLOAD_ROOT", str(tmp_path / "uploads"))
    config.get_settings.cache_clear()
    renderer_module.get_default_renderer.cache_clear()
    yield
    config.get_settings.cache_clear()
    renderer_module.get_default_renderer.cache_clear()


@pytest.fixture
def upload_root(tmp_path):
    root = tmp_path / "uploads"
    (root / "accidents").mkdir(parents=True)
    return root


@pytest.fixture
def standard_fonts():
    """A provider with no candidates, so every render uses the built-in fonts."""
    return FontProvider([], [])


@pytest.fixture
def renderer(standard_fonts, upload_root):
    return BilingualReportRenderer(
        standard_fonts,
        photo_locator=PhotoLocator(upload_root=upload_root),
    )


@pytest.fixture
def scenario_report():
    return {
        "id": 42,
        "status": "submitted",
        "partyAName": "Li Wei",
        "partyBName": None,
        "responsibility": "equal",
        "latitude": 13.75,
        "longitude": 100.5,
    }


def make_image(path, size=(800, 400), fmt="PNG", color=(200, 30, 30)):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format=fmt)
    return path


def image_bytes(size=(40, 20), fmt="PNG"):
    buffer = io.BytesIO()
    Image.new("RGB", size, (10, 120, 200)).save(buffer, format=fmt)
    return buffer.getvalue()


def read_pdf(pdf_bytes):
    return PdfReader(io.BytesIO(pdf_bytes))


def page_texts(pdf_bytes):
    return [page.extract_text() or "" for page in read_pdf(pdf_bytes).pages]
