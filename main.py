from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from accidentreport.config import get_settings
from accidentreport.report.fingerprint import fingerprint
from accidentreport.report.fonts import embed_fonts
from accidentreport.report.renderer import get_default_renderer
from accidentreport.service import INVALID_REPORT, ReportPdfError, ReportPdfService
from accidentreport.types import coerce_photos, coerce_report, order_photos


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _load_input(path_arg: str) -> tuple[dict[str, Any], list[Any]]:
    path = Path(path_arg).expanduser().resolve()
    if not path.is_file():
        raise FileNotFoundError(f'Input not found: {path}')
    payload = json.loads(path.read_text(encoding='utf-8'))
    if not isinstance(payload, dict) or not isinstance(payload.get('report'), dict):
        raise ValueError('Input must be a JSON object with a "report" object and an optional "photos" list')
    photos = payload.get('photos') or []
    if not isinstance(photos, list):
        raise ValueError('"photos" must be a list')
    return payload['report'], photos


def cmd_render(args: argparse.Namespace) -> int:
    try:
        report, photos = _load_input(args.input)
    except (OSError, ValueError) as exc:
        _print_json({'status': 'error', 'code': INVALID_REPORT, 'message': str(exc)})
        return 2

    service = ReportPdfService()
    try:
        if args.force:
            artifact = service.regenerate(report, photos, user_id=args.user_id)
        else:
            artifact = service.generate(
                report,
                photos,
                user_id=args.user_id,
                stored_fingerprint=args.stored_fingerprint,
            )
    except ReportPdfError as exc:
        _print_json({'status': 'error', 'code': exc.code, 'message': str(exc)})
        return 2

    _print_json({'status': 'ok', **artifact.model_dump(mode='json')})
    return 0


def cmd_fingerprint(args: argparse.Namespace) -> int:
    try:
        report, photos = _load_input(args.input)
        record = coerce_report(report)
        ordered = order_photos(coerce_photos(photos))
    except (OSError, ValueError, ValidationError) as exc:
        _print_json({'status': 'error', 'code': INVALID_REPORT, 'message': str(exc)})
        return 2

    _print_json(
        {
            'report_id': None if record.id is None else str(record.id),
            'content_fingerprint': fingerprint(record, ordered),
            'photo_count': len(ordered),
        }
    )
    return 0


def cmd_fonts(args: argparse.Namespace) -> int:
    provider = get_default_renderer().font_provider
    font_bytes = provider.load_font_bytes()
    fonts = embed_fonts(font_bytes)
    _print_json(
        {
            'latin_source': str(font_bytes.latin_source) if font_bytes.latin_source else None,
            'cjk_source': str(font_bytes.cjk_source) if font_bytes.cjk_source else None,
            'cjk_shares_latin': font_bytes.cjk_shares_latin,
            'latin_font': fonts.latin,
            'cjk_font': fonts.cjk,
            'bold_font': fonts.bold,
        }
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Bilingual accident report PDF CLI')
    sub = parser.add_subparsers(dest='command', required=True)

    render = sub.add_parser('render', help='Render (or reuse) the PDF for a report')
    render.add_argument('--input', required=True, help='JSON file with "report" and "photos"')
    render.add_argument('--user-id', required=True, help='Owner of the report')
    render.add_argument('--stored-fingerprint', required=False, help='Fingerprint recorded for the last stored PDF')
    render.add_argument('--force', action='store_true', help='Remove stored PDFs and render again')
    render.set_defaults(func=cmd_render)

    fp = sub.add_parser('fingerprint', help='Print the content fingerprint of a report')
    fp.add_argument('--input', required=True, help='JSON file with "report" and "photos"')
    fp.set_defaults(func=cmd_fingerprint)

    fonts = sub.add_parser('fonts', help='Show which font files the renderer resolved')
    fonts.set_defaults(func=cmd_fonts)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(get_settings().log_level).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())
