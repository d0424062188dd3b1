from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ReportStatus(str, Enum):
    draft = 'draft'
    submitted = 'submitted'
    archived = 'archived'


class Responsibility(str, Enum):
    party_a_full = 'partyA_full'
    party_b_full = 'partyB_full'
    equal = 'equal'
    party_a_main = 'partyA_main'
    party_b_main = 'partyB_main'
    no_responsibility = 'no_responsibility'


class PhotoType(str, Enum):
    scene = 'scene'
    front = 'front'
    front_view = 'frontView'
    side = 'side'
    rear = 'rear'
    rear_view = 'rearView'
    detail = 'detail'
    damage_detail = 'damageDetail'
    scene_panorama = 'scenePanorama'
    driver_license = 'driverLicense'
    vehicle_license = 'vehicleLicense'
    other = 'other'


PARTY_FIELDS = (
    'name',
    'phone',
    'id_card',
    'license_number',
    'vehicle_number',
    'insurance_company',
)


class _CallerModel(BaseModel):
    # Callers hand over database rows aliased to camelCase; snake_case works too.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='allow',
    )


class ReportRecord(_CallerModel):
    id: int | str | None = None
    status: str | None = None

    accident_time: datetime | None = None
    created_at: datetime | None = None
    agreement_generated_at: datetime | None = None

    party_a_name: str | None = None
    party_a_phone: str | None = None
    party_a_id_card: str | None = None
    party_a_license_number: str | None = None
    party_a_vehicle_number: str | None = None
    party_a_insurance_company: str | None = None

    party_b_name: str | None = None
    party_b_phone: str | None = None
    party_b_id_card: str | None = None
    party_b_license_number: str | None = None
    party_b_vehicle_number: str | None = None
    party_b_insurance_company: str | None = None

    responsibility: str | None = None
    party_a_signature: str | None = None
    party_b_signature: str | None = None
    other_party_info: str | None = None

    latitude: float | None = None
    longitude: float | None = None

    def party_values(self, party: str) -> dict[str, str | None]:
        """Return the six fields of party ``'a'`` or ``'b'`` keyed by their short name."""
        prefix = f'party_{party.lower()}_'
        return {name: getattr(self, prefix + name) for name in PARTY_FIELDS}

    def has_party(self, party: str) -> bool:
        return any(_present(value) for value in self.party_values(party).values())


class PhotoDescriptor(_CallerModel):
    image_url: str | None = None
    # Caller's tag as sent; ``kind`` maps it onto PhotoType.
    photo_type: str | None = PhotoType.other.value
    caption: str | None = None
    sort_order: int | None = None
    uploaded_at: datetime | None = None

    @field_validator('photo_type', mode='before')
    @classmethod
    def _tag_as_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value).strip()

    @property
    def kind(self) -> PhotoType:
        """The photo type, with unknown or missing tags treated as ``other``."""
        token = self.photo_type or ''
        if token in PhotoType._value2member_map_:
            return PhotoType(token)
        return PhotoType.other


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def coerce_report(report: ReportRecord | dict[str, Any]) -> ReportRecord:
    if isinstance(report, ReportRecord):
        return report
    return ReportRecord.model_validate(report)


def coerce_photos(photos: Iterable[PhotoDescriptor | dict[str, Any]] | None) -> list[PhotoDescriptor]:
    items: list[PhotoDescriptor] = []
    for photo in photos or []:
        if isinstance(photo, PhotoDescriptor):
            items.append(photo)
        else:
            items.append(PhotoDescriptor.model_validate(photo))
    return items


def order_photos(photos: Iterable[PhotoDescriptor]) -> list[PhotoDescriptor]:
    """Sort by sort order, then upload time. Missing values sort last; ties keep input order."""

    def _key(photo: PhotoDescriptor) -> tuple[int, int, float]:
        order = photo.sort_order
        uploaded = photo.uploaded_at
        return (
            0 if order is not None else 1,
            order if order is not None else 0,
            uploaded.timestamp() if uploaded is not None else float('inf'),
        )

    return sorted(photos, key=_key)
