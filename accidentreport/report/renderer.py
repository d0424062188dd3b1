from __future__ import annotations

import io
import logging
import math
from datetime import datetime
from functools import lru_cache
from typing import Any, Iterable

from reportlab.pdfgen.canvas import Canvas

from accidentreport.config import Settings, get_settings
from accidentreport.types import (
    PhotoDescriptor,
    ReportRecord,
    coerce_photos,
    coerce_report,
)

from .fonts import FontProvider, embed_fonts
from .layout import (
    DARK_GREY,
    GREY,
    LEFT_MARGIN,
    PAGE_SIZE,
    LayoutCursor,
    format_thai_datetime,
    format_us_datetime,
)
from .photos import EmbeddedPhoto, PhotoLocator, load_photos
from .segmentation import is_mixed_script, segment


logger = logging.getLogger(__name__)

NOT_PROVIDED = 'Not provided'
NOT_DETERMINED = 'Not determined'
SIGNATURE_PROVIDED = 'Digital signature provided / มีลายเซ็นดิจิทัล'

LABEL_X = 70
VALUE_X = 250
LABEL_PITCH = 14
ENTRY_PITCH = 16
FIELD_HEIGHT = LABEL_PITCH + ENTRY_PITCH
SECTION_TITLE_HEIGHT = 40
SECTION_GAP = 12
PHOTO_CAPTION_PITCH = 25
PHOTO_SPACING = 10

STATUS_TEXT = {
    'draft': 'Draft',
    'submitted': 'Submitted',
    'archived': 'Archived',
}

RESPONSIBILITY_TEXT = {
    'partyA_full': 'Party A Full Responsibility',
    'partyB_full': 'Party B Full Responsibility',
    'equal': 'Equal Responsibility',
    'partyA_main': 'Party A Main Responsibility',
    'partyB_main': 'Party B Main Responsibility',
    'no_responsibility': 'No Responsibility Determined',
}

PHOTO_TYPE_TEXT = {
    'scene': 'Scene Photo',
    'front': 'Front View',
    'frontView': 'Front View',
    'side': 'Side View',
    'rear': 'Rear View',
    'rearView': 'Rear View',
    'detail': 'Detail',
    'damageDetail': 'Damage Detail',
    'scenePanorama': 'Scene Panorama',
    'driverLicense': 'Driver License',
    'vehicleLicense': 'Vehicle License',
    'other': 'Other',
}

# (field, English label, Thai label)
PARTY_LABELS = (
    ('name', 'Name', 'ชื่อ'),
    ('phone', 'Phone', 'เบอร์โทรศัพท์'),
    ('id_card', 'ID Card', 'เลขบัตรประชาชน'),
    ('license_number', 'License Number', 'เลขใบขับขี่'),
    ('vehicle_number', 'Vehicle Number', 'ทะเบียนรถ'),
    ('insurance_company', 'Insurance Company', 'บริษัทประกัน'),
)


def status_text(status: str | None) -> str | None:
    if status is None:
        return None
    return STATUS_TEXT.get(status, status)


def responsibility_text(responsibility: str | None) -> str:
    return RESPONSIBILITY_TEXT.get(str(responsibility or ''), NOT_DETERMINED)


def photo_type_text(photo_type: str | None) -> str:
    return PHOTO_TYPE_TEXT.get(str(photo_type or ''), 'Other')


def _format_datetime(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return format_us_datetime(dt)


def _format_coordinate(value: float) -> str:
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return repr(value)


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class BilingualReportRenderer:
    """Lays out an accident report as an English/Thai A4 PDF.

    One instance can serve any number of concurrent renders: the font provider
    is the only shared state and it is read-only after its first load.
    """

    def __init__(
        self,
        font_provider: FontProvider,
        *,
        photo_locator: PhotoLocator,
        brand_name: str = 'DriveEasy Pass',
        max_photos: int = 6,
        photo_max_width: float = 400,
        photo_max_height: float = 150,
        photo_read_workers: int = 4,
    ) -> None:
        self.font_provider = font_provider
        self.photo_locator = photo_locator
        self.brand_name = brand_name
        self.max_photos = max(0, int(max_photos))
        self.photo_max_width = float(photo_max_width)
        self.photo_max_height = float(photo_max_height)
        self.photo_read_workers = max(1, int(photo_read_workers))

    @classmethod
    def from_settings(cls, settings: Settings, font_provider: FontProvider | None = None) -> 'BilingualReportRenderer':
        return cls(
            font_provider or FontProvider.from_settings(settings),
            photo_locator=PhotoLocator.from_settings(settings),
            brand_name=settings.pdf_brand_name,
            max_photos=settings.pdf_max_photos,
            photo_max_width=settings.pdf_photo_max_width,
            photo_max_height=settings.pdf_photo_max_height,
            photo_read_workers=settings.pdf_photo_read_workers,
        )

    def render(
        self,
        report: ReportRecord | dict[str, Any],
        photos: Iterable[PhotoDescriptor | dict[str, Any]] | None = None,
        *,
        generated_at: datetime | None = None,
    ) -> bytes:
        record = coerce_report(report)
        photo_items = coerce_photos(photos)
        generated_at = generated_at or datetime.now()
        report_id = '-' if record.id is None else str(record.id)

        fonts = embed_fonts(self.font_provider.load_font_bytes())
        buffer = io.BytesIO()
        canvas = Canvas(buffer, pagesize=PAGE_SIZE)
        cursor = LayoutCursor(
            canvas,
            fonts,
            report_id=report_id,
            brand_name=self.brand_name,
            generated_at=generated_at,
        )

        self._draw_title_block(cursor, report_id, generated_at)
        self._draw_basic_information(cursor, record)
        for party in ('a', 'b'):
            if record.has_party(party):
                self._draw_party(cursor, record, party)
        if _clean(record.responsibility):
            self._draw_responsibility(cursor, record)
        if _clean(record.party_a_signature) or _clean(record.party_b_signature):
            self._draw_signatures(cursor, record)
        if _clean(record.other_party_info):
            self._draw_other_party_info(cursor, record.other_party_info or '')
        if photo_items:
            self._draw_photos(cursor, photo_items)

        cursor.finish()
        canvas.setTitle(f'Accident Report {report_id}')
        canvas.setAuthor(self.brand_name)
        canvas.setSubject('Traffic Accident Report')
        canvas.setKeywords('accident, report, traffic, bilingual')
        canvas.setCreator(f'{self.brand_name} - Bilingual PDF Generator')
        canvas.save()

        logger.info(
            'Rendered accident report %s: %s page(s), %s photo(s)',
            report_id,
            cursor.page_number,
            len(photo_items),
        )
        return buffer.getvalue()

    def _draw_title_block(self, cursor: LayoutCursor, report_id: str, generated_at: datetime) -> None:
        fonts = cursor.fonts
        cursor.draw_text('ACCIDENT REPORT', x=LEFT_MARGIN, size=24, font=fonts.bold)
        cursor.move_down(28)
        cursor.draw_text('รายงานอุบัติเหตุ', x=LEFT_MARGIN, size=20, font=fonts.latin, color=DARK_GREY)
        cursor.move_down(32)
        cursor.draw_mixed(f'Report ID: {report_id}', x=LEFT_MARGIN, size=12, color=GREY)
        cursor.move_down(14)
        cursor.draw_mixed(f'รหัสรายงาน: {report_id}', x=LEFT_MARGIN, size=10, color=GREY)
        cursor.move_down(18)
        cursor.draw_text(f'Generated: {format_us_datetime(generated_at)}', x=LEFT_MARGIN, size=10, color=GREY)
        cursor.move_down(14)
        cursor.draw_text(
            f'สร้างเมื่อ: {format_thai_datetime(generated_at)}',
            x=LEFT_MARGIN,
            size=9,
            font=fonts.latin,
            color=GREY,
        )
        cursor.move_down(26)

    def _draw_section_title(self, cursor: LayoutCursor, title: str, title_thai: str) -> None:
        cursor.ensure_space(SECTION_TITLE_HEIGHT + FIELD_HEIGHT)
        cursor.draw_text(title, x=LEFT_MARGIN, size=16, font=cursor.fonts.bold)
        cursor.move_down(18)
        cursor.draw_text(title_thai, x=LEFT_MARGIN, size=14, font=cursor.fonts.latin, color=DARK_GREY)
        cursor.move_down(SECTION_TITLE_HEIGHT - 18)

    def _draw_field(self, cursor: LayoutCursor, label: str, label_thai: str, value: Any) -> None:
        cursor.ensure_space(FIELD_HEIGHT)
        display = _clean(value) or NOT_PROVIDED
        cursor.draw_text(f'{label}:', x=LABEL_X, size=12)
        cursor.draw_mixed(display, x=VALUE_X, size=12)
        cursor.move_down(LABEL_PITCH)
        cursor.draw_text(label_thai, x=LABEL_X, size=10, color=GREY)
        cursor.move_down(ENTRY_PITCH)

    def _draw_basic_information(self, cursor: LayoutCursor, record: ReportRecord) -> None:
        self._draw_section_title(cursor, 'BASIC INFORMATION', 'ข้อมูลพื้นฐาน')
        self._draw_field(cursor, 'Report Status', 'สถานะรายงาน', status_text(_clean(record.status)))
        self._draw_field(cursor, 'Accident Time', 'เวลาเกิดอุบัติเหตุ', _format_datetime(record.accident_time))
        self._draw_field(cursor, 'Created Time', 'เวลาสร้างรายงาน', _format_datetime(record.created_at))
        if record.latitude is not None and record.longitude is not None:
            coordinates = f'{_format_coordinate(record.latitude)}, {_format_coordinate(record.longitude)}'
            self._draw_field(cursor, 'Location Coordinates', 'พิกัดที่เกิดเหตุ', coordinates)
        cursor.move_down(SECTION_GAP)

    def _draw_party(self, cursor: LayoutCursor, record: ReportRecord, party: str) -> None:
        letter = party.upper()
        self._draw_section_title(cursor, f'PARTY {letter} INFORMATION', f'ข้อมูลฝ่าย {letter}')
        values = record.party_values(party)
        for field, label, label_thai in PARTY_LABELS:
            self._draw_field(cursor, label, label_thai, values[field])
        cursor.move_down(SECTION_GAP)

    def _draw_responsibility(self, cursor: LayoutCursor, record: ReportRecord) -> None:
        self._draw_section_title(cursor, 'RESPONSIBILITY DETERMINATION', 'การกำหนดความรับผิดชอบ')
        self._draw_field(
            cursor,
            'Responsibility',
            'ความรับผิดชอบ',
            responsibility_text(_clean(record.responsibility)),
        )
        cursor.move_down(SECTION_GAP)

    def _draw_signatures(self, cursor: LayoutCursor, record: ReportRecord) -> None:
        has_a = _clean(record.party_a_signature) is not None
        has_b = _clean(record.party_b_signature) is not None
        self._draw_section_title(cursor, 'DIGITAL SIGNATURES', 'ลายเซ็นดิจิทัล')
        self._draw_field(cursor, 'Party A Signature', 'ลายเซ็นฝ่าย A', SIGNATURE_PROVIDED if has_a else None)
        self._draw_field(cursor, 'Party B Signature', 'ลายเซ็นฝ่าย B', SIGNATURE_PROVIDED if has_b else None)
        if has_a and has_b:
            self._draw_field(
                cursor,
                'Agreement Generated',
                'เวลาสร้างข้อตกลง',
                _format_datetime(record.agreement_generated_at),
            )
        cursor.move_down(SECTION_GAP)

    def _draw_other_party_info(self, cursor: LayoutCursor, text: str) -> None:
        self._draw_section_title(cursor, 'ADDITIONAL INFORMATION', 'ข้อมูลเพิ่มเติม')
        max_width = cursor.width - 120
        if is_mixed_script(text):
            for run in segment(text):
                if not run.text.strip():
                    continue
                cursor.draw_wrapped(
                    run.text.strip(),
                    x=LABEL_X,
                    max_width=max_width,
                    size=12,
                    font=cursor.fonts.for_role(run.font_role),
                )
        else:
            runs = segment(text)
            font = cursor.fonts.for_role(runs[0].font_role) if runs else cursor.fonts.latin
            cursor.draw_wrapped(text.strip(), x=LABEL_X, max_width=max_width, size=12, font=font)
        cursor.move_down(SECTION_GAP)

    def _draw_photos(self, cursor: LayoutCursor, photos: list[PhotoDescriptor]) -> None:
        self._draw_section_title(cursor, 'SCENE PHOTOS', 'ภาพถ่ายที่เกิดเหตุ')

        shown = photos[: self.max_photos]
        results = load_photos(
            [photo.image_url for photo in shown],
            self.photo_locator,
            max_width=self.photo_max_width,
            max_height=self.photo_max_height,
            workers=self.photo_read_workers,
        )

        for index, (photo, result) in enumerate(zip(shown, results), start=1):
            cursor.ensure_space(200)
            caption = f'{index}. {photo_type_text(photo.kind.value)}'
            if _clean(photo.caption):
                caption += f' - {_clean(photo.caption)}'
            cursor.draw_mixed(caption, x=LABEL_X, size=12)
            cursor.move_down(PHOTO_CAPTION_PITCH)

            if isinstance(result, EmbeddedPhoto):
                cursor.draw_image(result.image, x=LABEL_X, width=result.width, height=result.height)
                cursor.move_down(result.height + 20)
            else:
                cursor.draw_text(result.message, x=LABEL_X, size=10, color=GREY)
                cursor.move_down(20)
            cursor.move_down(PHOTO_SPACING)

        hidden = len(photos) - len(shown)
        if hidden > 0:
            cursor.ensure_space(20)
            cursor.draw_text(f'...and {hidden} more photos', x=LABEL_X, size=10, color=GREY)
            cursor.move_down(20)


@lru_cache(maxsize=1)
def get_default_renderer() -> BilingualReportRenderer:
    return BilingualReportRenderer.from_settings(get_settings())


def build_accident_report_pdf(
    report: ReportRecord | dict[str, Any],
    photos: Iterable[PhotoDescriptor | dict[str, Any]] | None = None,
    *,
    generated_at: datetime | None = None,
) -> bytes:
    return get_default_renderer().render(report, photos, generated_at=generated_at)
