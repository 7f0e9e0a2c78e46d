"""
Export service: tabular CSV / TSV / Excel files and the factory review
HTML report.

Rows are dicts whose keys are the column headers, in display order.
"""

import csv
import html
import re
from datetime import date, datetime
from io import BytesIO, StringIO
from typing import Iterable, Optional, Union

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
import structlog

from exceptions import NoExportDataError, UnsupportedExportTypeError

logger = structlog.get_logger(__name__)


EXPORT_TYPES = ["csv", "tsv", "excel"]


def validate_export_type(export_type: Optional[str]) -> str:
    """Raise UnsupportedExportTypeError unless csv, tsv or excel."""
    if export_type not in EXPORT_TYPES:
        raise UnsupportedExportTypeError(export_type)
    return export_type


def format_money(value) -> str:
    """1234.5 -> '1,234.50'"""
    return f"{float(value or 0):,.2f}"


def _display_rows(rows: list[dict], money_columns: Iterable[str]) -> tuple[list[str], list[list]]:
    """Headers plus rows with money columns formatted."""
    money = set(money_columns)
    headers = list(rows[0].keys())
    body = []
    for row in rows:
        body.append([
            format_money(row.get(h)) if h in money else ("" if row.get(h) is None else row.get(h))
            for h in headers
        ])
    return headers, body


def to_csv(rows: list[dict], money_columns: Iterable[str] = ()) -> str:
    """
    Render rows as CSV.

    Fields containing commas, quotes or newlines are quoted and embedded
    quotes doubled, so '1,234.50' and 'Acme "West"' survive a round trip.
    """
    headers, body = _display_rows(rows, money_columns)

    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(body)
    return output.getvalue()


def to_tsv(rows: list[dict], money_columns: Iterable[str] = ()) -> str:
    """Render rows as tab-separated values. Tabs and newlines in values become spaces."""
    headers, body = _display_rows(rows, money_columns)

    def clean(value) -> str:
        return re.sub(r"[\t\r\n]+", " ", str(value))

    lines = ["\t".join(clean(h) for h in headers)]
    lines.extend("\t".join(clean(v) for v in row) for row in body)
    return "\n".join(lines) + "\n"


def to_xlsx(rows: list[dict], money_columns: Iterable[str] = (), sheet_title: str = "Export") -> bytes:
    """Render rows as an .xlsx workbook with a bold header row."""
    money = set(money_columns)
    headers = list(rows[0].keys())

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]

    header_font = Font(bold=True)
    header_fill = PatternFill(start_color="E0E8FF", end_color="E0E8FF", fill_type="solid")

    for col, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill

    for row_idx, row in enumerate(rows, start=2):
        for col, header in enumerate(headers, start=1):
            value = row.get(header)
            if header in money:
                cell = ws.cell(row=row_idx, column=col, value=float(value or 0))
                cell.number_format = "#,##0.00"
            elif isinstance(value, (dict, list)):
                ws.cell(row=row_idx, column=col, value=str(value))
            else:
                ws.cell(row=row_idx, column=col, value=value)

    for col, header in enumerate(headers, start=1):
        width = max([len(str(header))] + [len(str(r.get(header) or "")) for r in rows])
        ws.column_dimensions[get_column_letter(col)].width = min(width + 2, 50)

    ws.freeze_panes = "A2"

    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def render_table(
    rows: list[dict],
    export_type: str,
    money_columns: Iterable[str] = (),
    sheet_title: str = "Export"
) -> Union[str, bytes]:
    """
    Render rows in the requested format.

    Raises:
        UnsupportedExportTypeError: Unknown export type
        NoExportDataError: No rows
    """
    validate_export_type(export_type)
    if not rows:
        raise NoExportDataError("No data matches the current filters")

    logger.info("rendering_export", export_type=export_type, rows=len(rows))

    if export_type == "csv":
        return to_csv(rows, money_columns)
    if export_type == "tsv":
        return to_tsv(rows, money_columns)
    return to_xlsx(rows, money_columns, sheet_title)


# ===================
# FACTORY REVIEW REPORT
# ===================

def sanitize_filename_part(name: str) -> str:
    """Every character outside [A-Za-z0-9] becomes '-'."""
    return re.sub(r"[^a-zA-Z0-9]", "-", name or "")


def factory_review_filename(session_name: str, on: Optional[date] = None) -> str:
    on = on or date.today()
    return f"factory-review-{sanitize_filename_part(session_name)}-{on.isoformat()}.html"


STATUS_BADGE_STYLES = {
    "scheduled": "background-color: #dbeafe; color: #1e40af;",
    "in_progress": "background-color: #fef3c7; color: #d97706;",
    "completed": "background-color: #dcfce7; color: #16a34a;",
    "on_hold": "background-color: #f3f4f6; color: #6b7280;",
}

NOTE_STATUS_STYLES = {
    "approved": "color: #16a34a;",
    "cant_complete": "color: #dc2626;",
    "updated_on_drawing": "color: #d97706;",
    "in_progress": "color: #6b7280;",
}

REPORT_CSS = """
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
           margin: 0; padding: 40px; background-color: #f9fafb; color: #111827; }
    .container { max-width: 800px; margin: 0 auto; background: white; padding: 40px;
                 border-radius: 8px; box-shadow: 0 1px 3px rgba(0,0,0,0.1); }
    .header { border-bottom: 2px solid #e5e7eb; padding-bottom: 20px; margin-bottom: 30px; }
    .title { font-size: 28px; font-weight: bold; margin-bottom: 10px; }
    .meta-item { font-size: 14px; color: #6b7280; margin-right: 20px; }
    .section { margin-bottom: 40px; }
    .section-title { font-size: 20px; font-weight: 600; margin-bottom: 15px; color: #374151; }
    .stats-grid { display: grid; grid-template-columns: repeat(4, 1fr); gap: 20px; }
    .stat-card { background: #f9fafb; padding: 20px; border-radius: 8px; text-align: center; }
    .stat-number { font-size: 24px; font-weight: bold; }
    .stat-label { font-size: 12px; color: #6b7280; text-transform: uppercase; }
    .item { border: 1px solid #e5e7eb; border-radius: 8px; padding: 15px; margin-bottom: 10px; }
    .item-meta { font-size: 12px; color: #6b7280; }
    .badge { padding: 4px 8px; border-radius: 6px; font-size: 12px; font-weight: 500; }
"""


def _e(value) -> str:
    """HTML-escape any value, None as empty."""
    return html.escape("" if value is None else str(value))


def _format_timestamp(value) -> str:
    if not value:
        return ""
    try:
        parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        return parsed.strftime("%B %d, %Y %I:%M %p")
    except ValueError:
        return str(value)


def _status_badge(status: Optional[str]) -> str:
    status = status or "on_hold"
    style = STATUS_BADGE_STYLES.get(status, STATUS_BADGE_STYLES["on_hold"])
    label = status.replace("_", " ").upper()
    return f'<span class="badge" style="{style}">{_e(label)}</span>'


def render_factory_review_html(session: dict) -> str:
    """
    Render a session with its participants, notes and shop drawings.

    Every value taken from the session is HTML-escaped.
    """
    participants = session.get("factory_review_participants") or []
    notes = session.get("factory_review_notes") or []
    drawings = session.get("shop_drawing_files") or []

    stats = [
        ("Prototypes", session.get("prototype_count") or 0),
        ("Reviewed", session.get("reviewed_count") or 0),
        ("Approved", session.get("approved_count") or 0),
        ("Rejected", session.get("rejected_count") or 0),
    ]
    stats_html = "".join(
        f'<div class="stat-card"><div class="stat-number">{_e(value)}</div>'
        f'<div class="stat-label">{label}</div></div>'
        for label, value in stats
    )

    participants_html = "".join(
        '<div class="item">'
        f"<strong>{_e(p.get('name'))}</strong> {_e(p.get('role'))}"
        f"{' &middot; ' + _e(p.get('company')) if p.get('company') else ''}"
        f"{' &middot; can approve' if p.get('can_approve') else ''}"
        "</div>"
        for p in participants
    ) or "<p>No participants recorded.</p>"

    notes_html = "".join(
        '<div class="item">'
        f'<div class="item-meta">{_e(n.get("created_by_name") or "Unknown User")} &middot; '
        f'{_e(_format_timestamp(n.get("created_at")))} &middot; '
        f'<span style="{NOTE_STATUS_STYLES.get(n.get("status"), "")}">{_e(n.get("status"))}</span></div>'
        f"<p>{_e(n.get('content'))}</p>"
        f"{'<p><em>' + _e(n.get('status_reason')) + '</em></p>' if n.get('status_reason') else ''}"
        "</div>"
        for n in notes
    ) or "<p>No review notes recorded.</p>"

    drawings_html = "".join(
        '<div class="item">'
        f"<strong>{_e(d.get('file_name'))}</strong> v{_e(d.get('version'))}"
        f"{' (current)' if d.get('is_current') else ''}"
        f'<div class="item-meta">{_e(d.get("created_by_name"))} &middot; {_e(_format_timestamp(d.get("created_at")))}</div>'
        f"{'<p>' + _e(d.get('notes')) + '</p>' if d.get('notes') else ''}"
        "</div>"
        for d in drawings
    ) or "<p>No shop drawings attached.</p>"

    session_notes = (
        f'<div class="section"><div class="section-title">Session Notes</div>'
        f"<p>{_e(session.get('session_notes'))}</p></div>"
        if session.get("session_notes") else ""
    )

    name = _e(session.get("session_name"))

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Factory Review Report - {name}</title>
  <style>{REPORT_CSS}</style>
</head>
<body>
  <div class="container">
    <div class="header">
      <div class="title">{name}</div>
      <div>
        <span class="meta-item">Factory: {_e(session.get("factory_name"))}</span>
        <span class="meta-item">Scheduled: {_e(_format_timestamp(session.get("scheduled_date")))}</span>
        {_status_badge(session.get("status"))}
      </div>
    </div>
    <div class="section">
      <div class="section-title">Summary</div>
      <div class="stats-grid">{stats_html}</div>
    </div>
    {session_notes}
    <div class="section">
      <div class="section-title">Participants</div>
      {participants_html}
    </div>
    <div class="section">
      <div class="section-title">Review Notes</div>
      {notes_html}
    </div>
    <div class="section">
      <div class="section-title">Shop Drawings</div>
      {drawings_html}
    </div>
    <div class="item-meta">Generated {_e(datetime.utcnow().strftime("%Y-%m-%d %H:%M UTC"))}</div>
  </div>
</body>
</html>
"""
