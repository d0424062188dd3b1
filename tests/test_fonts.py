"""
Unit tests for font provisioning and per-document font binding.
"""

import threading
from pathlib import Path

import pytest

from accidentreport.report.fonts import (
    FONT_STANDARD_BOLD_NAME,
    FONT_STANDARD_NAME,
    STANDARD_FONTS,
    FontBytes,
    FontProvider,
    embed_fonts,
    first_success,
    parses_as_truetype,
    read_font_file,
)
from accidentreport.report.segmentation import FontRole


DEJAVU = Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf")


def _accept_all(data, path):
    return True


def _cff_stub(path):
    # OpenType header with CFF outlines, which reportlab cannot embed
    path.write_bytes(b"OTTO" + b"\x00" * 252)
    return path


class TestFirstSuccess:

    def test_returns_first_non_none(self):
        calls = []

        def loader(value):
            calls.append(value)
            return None if value < 2 else value * 10

        assert first_success([1, 2, 3], loader) == (2, 20)
        assert calls == [1, 2]

    def test_returns_none_when_all_fail(self):
        assert first_success(["a", "b"], lambda _: None) is None
        assert first_success([], lambda _: "x") is None


class TestReadFontFile:

    def test_missing_file(self, tmp_path):
        assert read_font_file(tmp_path / "nope.ttf") is None

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.ttf"
        path.write_bytes(b"")
        assert read_font_file(path) is None

    def test_directory_is_skipped(self, tmp_path):
        assert read_font_file(tmp_path) is None

    def test_reads_bytes(self, tmp_path):
        path = tmp_path / "font.ttf"
        path.write_bytes(b"font-bytes")
        assert read_font_file(path) == b"font-bytes"


class TestFontProvider:
    """Test candidate fallback and the load-once cache."""

    def test_first_existing_candidate_wins(self, tmp_path):
        second = tmp_path / "second.ttf"
        third = tmp_path / "third.ttf"
        second.write_bytes(b"second")
        third.write_bytes(b"third")
        cjk = tmp_path / "cjk.ttf"
        cjk.write_bytes(b"cjk")

        provider = FontProvider([tmp_path / "missing.ttf", second, third], [cjk], accept=_accept_all)
        result = provider.load_font_bytes()

        assert result.latin == b"second"
        assert result.latin_source == second
        assert result.cjk == b"cjk"
        assert not result.cjk_shares_latin

    def test_missing_cjk_reuses_latin(self, tmp_path):
        latin = tmp_path / "latin.ttf"
        latin.write_bytes(b"latin")

        result = FontProvider([latin], [tmp_path / "missing.ttf"], accept=_accept_all).load_font_bytes()

        assert result.cjk is result.latin
        assert result.cjk_shares_latin
        assert result.cjk_source == latin

    def test_unusable_candidate_is_skipped(self, tmp_path):
        cff = _cff_stub(tmp_path / "cff.ttc")
        good = tmp_path / "good.ttf"
        good.write_bytes(b"good")

        result = FontProvider(
            [cff, good],
            [cff],
            accept=lambda data, path: not data.startswith(b"OTTO"),
        ).load_font_bytes()

        assert result.latin_source == good
        assert result.cjk_source == good
        assert result.cjk_shares_latin

    def test_cff_font_is_rejected(self, tmp_path):
        assert not parses_as_truetype(_cff_stub(tmp_path / "cff.otf").read_bytes())

    @pytest.mark.skipif(not DEJAVU.is_file(), reason="DejaVuSans not installed")
    def test_falls_through_to_real_font(self, tmp_path):
        cff = _cff_stub(tmp_path / "NotoSansCJK-Regular.ttc")

        result = FontProvider([cff, DEJAVU], [cff]).load_font_bytes()
        fonts = embed_fonts(result)

        assert result.latin_source == DEJAVU
        assert fonts.latin.startswith("AR-Latin-")
        assert fonts.cjk == fonts.latin

    def test_nothing_found(self):
        result = FontProvider([], []).load_font_bytes()
        assert result.latin is None
        assert result.cjk is None

    def test_loads_once(self, tmp_path):
        latin = tmp_path / "latin.ttf"
        latin.write_bytes(b"latin")
        calls = []

        def reader(path):
            calls.append(path)
            return read_font_file(path)

        provider = FontProvider([latin], [], reader=reader, accept=_accept_all)
        assert not provider.loaded
        first = provider.load_font_bytes()
        second = provider.load_font_bytes()

        assert first is second
        assert provider.loaded
        assert calls == [latin]

    def test_concurrent_first_calls_load_once(self, tmp_path):
        latin = tmp_path / "latin.ttf"
        latin.write_bytes(b"latin")
        calls = []
        start = threading.Barrier(8)

        def reader(path):
            calls.append(path)
            return read_font_file(path)

        provider = FontProvider([latin], [], reader=reader, accept=_accept_all)
        results = []

        def worker():
            start.wait()
            results.append(provider.load_font_bytes())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert all(result is results[0] for result in results)


class TestEmbedFonts:

    def test_no_bytes_uses_standard_fonts(self):
        fonts = embed_fonts(FontBytes(latin=None, cjk=None))
        assert fonts == STANDARD_FONTS
        assert fonts.bold == FONT_STANDARD_BOLD_NAME

    def test_unparseable_bytes_fall_back_to_standard(self):
        garbage = b"not a truetype font"
        fonts = embed_fonts(FontBytes(latin=garbage, cjk=garbage))
        assert fonts.latin == FONT_STANDARD_NAME
        assert fonts.cjk == FONT_STANDARD_NAME

    def test_role_lookup(self):
        assert STANDARD_FONTS.for_role(FontRole.latin) == FONT_STANDARD_NAME
        assert STANDARD_FONTS.for_role(FontRole.cjk) == FONT_STANDARD_NAME

    @pytest.mark.skipif(not DEJAVU.is_file(), reason="DejaVuSans not installed")
    def test_registers_truetype_font(self):
        data = DEJAVU.read_bytes()
        fonts = embed_fonts(FontBytes(latin=data, cjk=data, latin_source=DEJAVU, cjk_source=DEJAVU))
        assert fonts.latin.startswith("AR-Latin-")
        assert fonts.cjk == fonts.latin
        assert fonts.bold == FONT_STANDARD_BOLD_NAME

        again = embed_fonts(FontBytes(latin=data, cjk=data))
        assert again.latin == fonts.latin
