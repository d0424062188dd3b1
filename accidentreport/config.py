from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    app_name: str = 'DriveEasy Pass Accident Reports'
    log_level: str = 'INFO'

    data_dir: Path = Field(default=Path('./data'))

    # Photo reference mapping
    upload_root: Path = Field(
        default=Path('./uploads'),
        validation_alias=AliasChoices('UPLOAD_ROOT', 'UPLOAD_PATH'),
    )
    upload_url_prefix: str = '/uploads/'
    default_photo_subdir: str = 'accidents'

    # Comma-separated, highest priority first. Relative entries resolve against the repo root.
    pdf_latin_font_paths: str = (
        'C:/Windows/Fonts/tahoma.ttf,'
        'C:/Windows/Fonts/arial.ttf,'
        '/usr/share/fonts/truetype/tlwg/Garuda.ttf,'
        '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf,'
        'assets/fonts/NotoSans-Regular.ttf'
    )
    pdf_cjk_font_paths: str = (
        'C:/Windows/Fonts/simhei.ttf,'
        '/usr/share/fonts/truetype/wqy/wqy-microhei.ttc,'
        '/usr/share/fonts/truetype/droid/DroidSansFallbackFull.ttf,'
        '/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc,'
        'assets/fonts/NotoSansSC-Regular.ttf'
    )

    # PDF layout
    pdf_brand_name: str = 'DriveEasy Pass'
    pdf_max_photos: int = 6
    pdf_photo_max_width: float = 400
    pdf_photo_max_height: float = 150
    pdf_photo_read_workers: int = 4

    def latin_font_candidates(self) -> list[Path]:
        return _split_paths(self.pdf_latin_font_paths)

    def cjk_font_candidates(self) -> list[Path]:
        return _split_paths(self.pdf_cjk_font_paths)


_WINDOWS_DRIVE = re.compile(r'^[A-Za-z]:[\\/]')


def repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _split_paths(raw: str) -> list[Path]:
    paths: list[Path] = []
    for item in raw.split(','):
        normalized = item.strip()
        if not normalized:
            continue
        path = Path(normalized)
        if not path.is_absolute() and not _WINDOWS_DRIVE.match(normalized):
            path = repo_root() / path
        paths.append(path)
    return paths


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    (settings.data_dir / 'pdfs').mkdir(parents=True, exist_ok=True)
    return settings
