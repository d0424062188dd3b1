from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable

from accidentreport.types import PhotoDescriptor, ReportRecord, coerce_photos, coerce_report


# Order is part of the fingerprint. Fields outside these lists never affect it.
FINGERPRINT_REPORT_FIELDS: tuple[tuple[str, str], ...] = (
    ('accidentTime', 'accident_time'),
    ('otherPartyInfo', 'other_party_info'),
    ('status', 'status'),
    ('partyAName', 'party_a_name'),
    ('partyAPhone', 'party_a_phone'),
    ('partyAIdCard', 'party_a_id_card'),
    ('partyALicenseNumber', 'party_a_license_number'),
    ('partyAVehicleNumber', 'party_a_vehicle_number'),
    ('partyAInsuranceCompany', 'party_a_insurance_company'),
    ('partyBName', 'party_b_name'),
    ('partyBPhone', 'party_b_phone'),
    ('partyBIdCard', 'party_b_id_card'),
    ('partyBLicenseNumber', 'party_b_license_number'),
    ('partyBVehicleNumber', 'party_b_vehicle_number'),
    ('partyBInsuranceCompany', 'party_b_insurance_company'),
    ('responsibility', 'responsibility'),
    ('partyASignature', 'party_a_signature'),
    ('partyBSignature', 'party_b_signature'),
    ('latitude', 'latitude'),
    ('longitude', 'longitude'),
)
FINGERPRINT_PHOTO_FIELDS: tuple[tuple[str, str], ...] = (
    ('photoType', 'photo_type'),
    ('caption', 'caption'),
    ('imageUrl', 'image_url'),
)


def canonical_content(
    report: ReportRecord | dict[str, Any],
    photos: Iterable[PhotoDescriptor | dict[str, Any]] | None = None,
) -> dict[str, Any]:
    record = coerce_report(report).model_dump(mode='json')
    content: dict[str, Any] = {key: record.get(attr) for key, attr in FINGERPRINT_REPORT_FIELDS}
    content['photos'] = [
        {key: getattr(photo, attr) for key, attr in FINGERPRINT_PHOTO_FIELDS}
        for photo in coerce_photos(photos)
    ]
    return content


def fingerprint(
    report: ReportRecord | dict[str, Any],
    photos: Iterable[PhotoDescriptor | dict[str, Any]] | None = None,
) -> str:
    """Stable MD5 hex digest of the report content that shows up in the rendered PDF."""
    payload = json.dumps(
        canonical_content(report, photos),
        ensure_ascii=False,
        separators=(',', ':'),
    )
    return hashlib.md5(payload.encode('utf-8'), usedforsecurity=False).hexdigest()
