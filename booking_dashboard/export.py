import io
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

import pandas as pd

from .config import EXPORT_HEADERS, FALSE_LITERAL, TRUE_LITERAL
from .formatters import (
    format_change,
    format_currency,
    format_date,
    format_datetime,
    format_decimal,
    format_percentage,
)
from .models import COUNT_COLUMNS, FRAME_COLUMNS, MONEY_COLUMNS, GroupStats, extra_columns

logger = logging.getLogger(__name__)

KEY_HEADERS = {
    "accommodation": "Unterkunft",
    "city": "Stadt",
    "month": "Monat",
    "year_month": "Monat",
}

# Subset of the CSV columns (same relative order) that fits a portrait page
PDF_BOOKING_COLUMNS = (
    "booking_code",
    "booking_date",
    "arrival_date",
    "departure_date",
    "service_name",
    "service_city",
    "total_price",
    "commission",
    "cancelled",
)

HEADER_BLUE = (59 / 255, 130 / 255, 246 / 255)


def _require_reportlab():
    try:
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import A4, landscape
        from reportlab.lib.styles import getSampleStyleSheet
        from reportlab.lib.units import mm
        from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
        return colors, A4, landscape, getSampleStyleSheet, mm, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
    except ModuleNotFoundError as e:
        raise RuntimeError(
            "PDF export requires `reportlab`. Install it with `pip install reportlab`."
        ) from e


# --- bookings ---


def _booking_cell(column: str, value) -> str:
    if column == "booking_date":
        return format_datetime(value)
    if column in ("arrival_date", "departure_date", "cancellation_date"):
        return format_date(value)
    if column in MONEY_COLUMNS:
        return format_decimal(value, 2)
    if column in COUNT_COLUMNS:
        return str(int(value)) if pd.notna(value) else "0"
    if column == "cancelled":
        return TRUE_LITERAL if bool(value) else FALSE_LITERAL
    return "" if value is None or pd.isna(value) else str(value)


def _formatted_bookings(
    df: pd.DataFrame, columns: Sequence[str], headers: Dict[str, str]
) -> pd.DataFrame:
    table = pd.DataFrame(index=df.index)
    for col in columns:
        source = df[col] if col in df.columns else pd.Series(None, index=df.index, dtype=object)
        table[headers.get(col, col)] = [_booking_cell(col, v) for v in source]
    return table


def bookings_to_csv(df: pd.DataFrame, source_headers: Optional[Dict[str, str]] = None) -> str:
    """
    Bookings as a ';'-separated export under the same headers the importer reads,
    so the file can be dropped back into the dashboard.

    Pass-through columns are written after the known ones, under their header
    text from `source_headers` (ImportResult.source_headers) when given.
    """
    if df is None:
        raise ValueError("DataFrame is None")
    headers = {**(source_headers or {}), **EXPORT_HEADERS}
    table = _formatted_bookings(df, FRAME_COLUMNS + extra_columns(df), headers)
    if table.empty:
        return ";".join(table.columns) + "\n"
    return table.to_csv(sep=";", index=False, lineterminator="\n")


# --- aggregate groups ---

Column = Tuple[str, Callable[[GroupStats], object]]


def _group_columns(by: str, with_comparison: bool, money: Callable[[float], str]) -> List[Column]:
    columns: List[Column] = [(KEY_HEADERS.get(by, "Schlüssel"), lambda g: g.key)]
    if by == "accommodation":
        columns.append(("Stadt", lambda g: g.city or ""))
    columns += [
        ("Umsatz", lambda g: money(g.revenue)),
        ("Buchungen", lambda g: g.bookings),
        ("Provision", lambda g: money(g.commission)),
        ("Nächte", lambda g: g.nights),
        ("Storniert", lambda g: g.cancelled_bookings),
        ("Stornoquote", lambda g: format_percentage(g.cancellation_rate)),
    ]
    if with_comparison:
        columns += [
            ("Umsatz Vergleich", lambda g: money(g.comparison_revenue) if g.has_comparison else ""),
            ("Buchungen Vergleich", lambda g: g.comparison_bookings if g.has_comparison else ""),
            ("Provision Vergleich", lambda g: money(g.comparison_commission) if g.has_comparison else ""),
            ("Nächte Vergleich", lambda g: g.comparison_nights if g.has_comparison else ""),
            ("Umsatz Δ", lambda g: format_change(g.revenue_change)),
            ("Buchungen Δ", lambda g: format_change(g.bookings_change)),
            ("Provision Δ", lambda g: format_change(g.commission_change)),
            ("Nächte Δ", lambda g: format_change(g.nights_change)),
            ("Stornoquote Δ", lambda g: format_change(g.cancellation_rate_change)),
        ]
    return columns


def _group_rows(groups: Sequence[GroupStats], columns: List[Column]) -> List[List[str]]:
    rows = []
    for rank, group in enumerate(groups, start=1):
        rows.append([str(rank)] + [str(getter(group)) for _, getter in columns])
    return rows


def groups_to_csv(groups: Sequence[GroupStats], by: str = "accommodation", with_comparison: bool = False) -> str:
    """Ranked aggregate table as ';'-separated text, in the order given."""
    columns = _group_columns(by, with_comparison, money=lambda v: format_decimal(v, 2))
    header = ["Rang"] + [name for name, _ in columns]
    table = pd.DataFrame(_group_rows(groups, columns), columns=header)
    if table.empty:
        return ";".join(header) + "\n"
    return table.to_csv(sep=";", index=False, lineterminator="\n")


# --- PDF ---


def _build_pdf(title: str, header: List[str], rows: List[List[str]], landscape_page: bool) -> bytes:
    (colors, A4, landscape, getSampleStyleSheet, mm,
     Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle) = _require_reportlab()

    buf = io.BytesIO()
    pagesize = landscape(A4) if landscape_page else A4
    doc = SimpleDocTemplate(
        buf,
        pagesize=pagesize,
        leftMargin=12 * mm, rightMargin=12 * mm,
        topMargin=15 * mm, bottomMargin=15 * mm,
        title=title,
    )
    styles = getSampleStyleSheet()
    cell_style = styles["BodyText"].clone("cell", fontSize=7, leading=9)
    head_style = styles["BodyText"].clone("head", fontSize=7, leading=9, textColor=colors.white, fontName="Helvetica-Bold")

    flow = [
        Paragraph(escape(title), styles["Title"]),
        Paragraph(f"Erstellt am {format_datetime(datetime.now())}", styles["Normal"]),
        Spacer(1, 6 * mm),
    ]

    data = [[Paragraph(escape(h), head_style) for h in header]]
    data += [[Paragraph(escape(cell), cell_style) for cell in row] for row in rows]
    table = Table(data, repeatRows=1, hAlign="LEFT")
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.Color(*HEADER_BLUE)),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f3f6fb")]),
    ]))
    flow.append(table)

    doc.build(flow)
    buf.seek(0)
    logger.info("Built PDF '%s' with %d rows", title, len(rows))
    return buf.read()


def bookings_to_pdf(df: pd.DataFrame, title: str = "Buchungen") -> bytes:
    if df is None:
        raise ValueError("DataFrame is None")
    header = [EXPORT_HEADERS[c] for c in PDF_BOOKING_COLUMNS]
    rows = []
    for record in df.to_dict(orient="records"):
        cells = []
        for col in PDF_BOOKING_COLUMNS:
            value = record.get(col)
            cells.append(format_currency(value) if col in MONEY_COLUMNS else _booking_cell(col, value))
        rows.append(cells)
    return _build_pdf(title, header, rows, landscape_page=False)


def groups_to_pdf(
    groups: Sequence[GroupStats],
    by: str = "accommodation",
    title: Optional[str] = None,
    with_comparison: bool = False,
) -> bytes:
    columns = _group_columns(by, with_comparison, money=format_currency)
    header = ["Rang"] + [name for name, _ in columns]
    title = title or f"Top {len(groups)} nach {KEY_HEADERS.get(by, by)}"
    return _build_pdf(title, header, _group_rows(groups, columns), landscape_page=True)
