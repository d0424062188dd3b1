from __future__ import annotations

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Sequence, Union
from urllib.parse import unquote, urlparse

from PIL import Image as PILImage
from reportlab.lib.utils import ImageReader


logger = logging.getLogger(__name__)

JPEG = 'jpeg'
PNG = 'png'

JPEG_MAGIC = b'\xff\xd8'
PNG_MAGIC = b'\x89PNG'

_EXTENSION_FORMATS = {
    '.jpg': JPEG,
    '.jpeg': JPEG,
    '.png': PNG,
}
_PIL_FORMATS = {
    JPEG: 'JPEG',
    PNG: 'PNG',
}

PLACEHOLDER_NOT_FOUND = '[Photo file not found]'
PLACEHOLDER_NOT_AVAILABLE = '[Photo not available]'
PLACEHOLDER_ERROR = '[Photo loading error]'


@dataclass(frozen=True)
class EmbeddedPhoto:
    image: ImageReader
    width: float
    height: float
    source: Path | None


@dataclass(frozen=True)
class PhotoFailure:
    message: str
    reason: str


PhotoResult = Union[EmbeddedPhoto, PhotoFailure]


@dataclass(frozen=True)
class PhotoLocator:
    upload_root: Path
    url_prefix: str = '/uploads/'
    default_subdir: str = 'accidents'

    @classmethod
    def from_settings(cls, settings) -> 'PhotoLocator':
        return cls(
            upload_root=Path(settings.upload_root),
            url_prefix=settings.upload_url_prefix,
            default_subdir=settings.default_photo_subdir,
        )

    def resolve(self, image_ref: str | None) -> Path | None:
        """Map a stored image reference to a local file path.

        URLs contribute their path component and always stay inside ``upload_root``.
        Paths under the upload prefix map into ``upload_root``; other absolute
        caller paths are used as given; bare names live in ``default_subdir``.
        Never raises.
        """
        ref = str(image_ref or '').strip()
        if not ref:
            return None
        try:
            from_url = ref.startswith(('http://', 'https://'))
            if from_url:
                ref = unquote(urlparse(ref).path)
                if not ref:
                    return None

            prefix = '/' + self.url_prefix.strip('/') + '/'
            bare_prefix = prefix.lstrip('/')
            if ref.startswith(prefix):
                return self._inside_root(ref[len(prefix):])
            if ref.startswith(bare_prefix):
                return self._inside_root(ref[len(bare_prefix):])
            if from_url:
                return self._inside_root(ref.lstrip('/'))
            if ref.startswith('/'):
                return Path(ref)
            return self._inside_root(str(PurePosixPath(self.default_subdir) / ref))
        except (ValueError, OSError, RuntimeError) as exc:
            logger.warning('Unresolvable photo reference %r: %s', image_ref, exc)
            return None

    def _inside_root(self, relative: str) -> Path | None:
        root = self.upload_root.resolve()
        candidate = (root / relative).resolve()
        if candidate != root and root not in candidate.parents:
            logger.warning('Photo reference escapes upload root: %s', relative)
            return None
        return candidate


def detect_image_format(name: str | None, data: bytes) -> str:
    suffix = PurePosixPath(str(name or '')).suffix.lower()
    by_extension = _EXTENSION_FORMATS.get(suffix)
    if by_extension is not None:
        return by_extension
    if data.startswith(JPEG_MAGIC):
        return JPEG
    if data.startswith(PNG_MAGIC):
        return PNG
    return JPEG


def _decode_as(data: bytes, image_format: str) -> PILImage.Image | None:
    try:
        image = PILImage.open(io.BytesIO(data), formats=[_PIL_FORMATS[image_format]])
        image.load()
    except Exception as exc:
        logger.info('Photo is not decodable as %s: %s', image_format, exc)
        return None
    if image.mode not in ('RGB', 'RGBA', 'L'):
        image = image.convert('RGBA' if 'transparency' in image.info else 'RGB')
    return image


def decode_image(data: bytes, image_format: str) -> PILImage.Image | None:
    """Decode with the detected format, then once with the other one."""
    image = _decode_as(data, image_format)
    if image is not None:
        return image
    alternate = PNG if image_format == JPEG else JPEG
    return _decode_as(data, alternate)


def scale_to_box(width: float, height: float, max_width: float, max_height: float) -> tuple[float, float]:
    if width <= 0 or height <= 0:
        raise ValueError(f'invalid image size {width}x{height}')
    scaled_width = max_width
    scaled_height = height * max_width / width
    if scaled_height > max_height:
        scaled_height = max_height
        scaled_width = width * max_height / height
    return scaled_width, scaled_height


def read_photo_bytes(path: Path | None) -> bytes | PhotoFailure:
    if path is None:
        return PhotoFailure(PLACEHOLDER_NOT_FOUND, 'missing')
    try:
        if not path.is_file():
            return PhotoFailure(PLACEHOLDER_NOT_FOUND, 'missing')
        return path.read_bytes()
    except OSError as exc:
        logger.warning('Failed to read photo %s: %s', path, exc)
        return PhotoFailure(PLACEHOLDER_ERROR, 'unreadable')


def embed_photo(
    image_ref: str | None,
    path: Path | None,
    data: bytes | PhotoFailure,
    *,
    max_width: float,
    max_height: float,
) -> PhotoResult:
    if isinstance(data, PhotoFailure):
        logger.warning('Photo %r unavailable: %s', image_ref, data.reason)
        return data
    try:
        name = path.name if path is not None else image_ref
        image = decode_image(data, detect_image_format(name, data))
        if image is None:
            logger.warning('Photo %r could not be decoded as JPEG or PNG', image_ref)
            return PhotoFailure(PLACEHOLDER_NOT_AVAILABLE, 'undecodable')
        width, height = scale_to_box(image.width, image.height, max_width, max_height)
        return EmbeddedPhoto(image=ImageReader(image), width=width, height=height, source=path)
    except Exception as exc:
        logger.warning('Failed to embed photo %r: %s', image_ref, exc)
        return PhotoFailure(PLACEHOLDER_ERROR, 'error')


def load_photos(
    image_refs: Sequence[str | None],
    locator: PhotoLocator,
    *,
    max_width: float,
    max_height: float,
    workers: int = 4,
) -> list[PhotoResult]:
    """Resolve, read and decode photos; results keep the order of ``image_refs``."""
    paths = [locator.resolve(ref) for ref in image_refs]
    if workers > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=min(workers, len(paths))) as pool:
            payloads = list(pool.map(read_photo_bytes, paths))
    else:
        payloads = [read_photo_bytes(path) for path in paths]

    return [
        embed_photo(ref, path, data, max_width=max_width, max_height=max_height)
        for ref, path, data in zip(image_refs, paths, payloads)
    ]
