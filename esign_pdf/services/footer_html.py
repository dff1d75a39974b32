from datetime import date
from html import escape
from typing import Iterable, Optional

from ..config import settings
from ..utils.dates import format_signed_at, format_vietnamese_date

_PAGE = """<!DOCTYPE html>
<html lang="vi">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Chữ ký - {title}</title>
    <style>
        @page {{ margin: 15mm; }}
        body {{
            font-family: 'Times New Roman', 'Tinos', serif;
            font-size: 12pt;
            line-height: 1.6;
            color: #000;
            max-width: 210mm;
            margin: 0 auto;
            padding: 20px;
        }}
        .date-location {{ text-align: right; margin-bottom: 30px; font-size: 11pt; color: #333; }}
        .signatures {{ margin-top: 30px; }}
        .signature-item {{ margin: 20px 0; padding: 15px 0; border-bottom: 1px solid #eee; }}
        .signature-image {{ max-width: 250px; max-height: 100px; margin-bottom: 10px; }}
        .signature-typed {{ font-size: 24px; font-weight: bold; padding: 10px 0; }}
        .signature-info {{ margin-top: 10px; font-size: 11pt; color: #666; }}
    </style>
</head>
<body>
    <div class="date-location">{location}, {date}</div>
    <div class="signatures">
        <h2 style="font-size: 14pt; margin-bottom: 20px; border-bottom: 1px solid #ccc; padding-bottom: 10px;">Chữ ký các bên</h2>
        {items}
    </div>
</body>
</html>
"""


def _signature_item(sig) -> str:
    if sig.image_data:
        visual = f'<img class="signature-image" src="{escape(sig.image_data, quote=True)}" alt="">'
    elif sig.typed_text:
        visual = f'<div class="signature-typed" style="font-family: {escape(sig.font_family or "Times New Roman, serif", quote=True)};">{escape(sig.typed_text)}</div>'
    else:
        visual = f'<div class="signature-typed" style="font-size: 18px; border-bottom: 2px solid #ccc;">{escape(sig.signer_name or "")}</div>'
    email = f"<div><strong>Email:</strong> {escape(sig.signer_email)}</div>" if sig.signer_email else ""
    return (
        '<div class="signature-item">'
        f"<div>{visual}</div>"
        '<div class="signature-info">'
        f"<div><strong>{escape(sig.signer_role)}:</strong> {escape(sig.signer_name or '')}</div>"
        f"{email}"
        f"<div><strong>Ngày ký:</strong> {format_signed_at(sig.signed_at)}</div>"
        "</div></div>"
    )


def build_footer_html(
    signatures: Iterable,
    title: Optional[str] = None,
    location: Optional[str] = None,
    document_date: Optional[date] = None,
) -> str:
    """Signature summary page: one entry per signature, oldest first."""
    ordered = sorted(signatures, key=lambda s: s.signed_at)
    return _PAGE.format(
        title=escape(title or "Tài liệu"),
        location=escape(location or settings.footer_location),
        date=format_vietnamese_date(document_date or date.today()),
        items="\n        ".join(_signature_item(s) for s in ordered),
    )
