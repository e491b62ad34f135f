import logging
from datetime import date, datetime

import pandas as pd
import streamlit as st

from booking_dashboard.aggregation import cancellation_severity
from booking_dashboard.charts import (
    THEMES,
    arrivals_chart,
    booking_trends_chart,
    cancellation_rate_chart,
    monthly_commission_chart,
    top_accommodations_chart,
)
from booking_dashboard.config import DEFAULT_CONFIG
from booking_dashboard.errors import FileReadError
from booking_dashboard.export import bookings_to_csv, bookings_to_pdf, groups_to_csv, groups_to_pdf
from booking_dashboard.filters import available_cities, available_regions, available_years, date_bounds
from booking_dashboard.formatters import (
    format_change,
    format_currency,
    format_date,
    format_datetime,
    format_number,
    format_percentage,
)
from booking_dashboard.session import SessionState, build_dashboard, clear, load_csv, with_filters
from booking_dashboard.tables import display_groups, paginate, search_bookings, sort_bookings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

LANGUAGE_NAMES = {"de": "Deutsch", "en": "English"}

TEXT = {
    "de": {
        "app_title": "Buchungs-Dashboard",
        "app_caption": "Laden Sie den CSV-Export Ihrer Buchungen hoch (Trennzeichen ';'). Umsatz, Provision, Stornos und Top-Unterkünfte werden direkt ausgewertet.",
        "settings": "Einstellungen",
        "theme": "Theme",
        "debug": "Debug-Protokoll anzeigen",
        "upload_csv": "CSV-Datei hochladen",
        "drag_drop_title": "Drag-&-Drop-Upload",
        "drag_drop_caption": "Datei hier ablegen; ein neuer Import ersetzt die bisherigen Daten vollständig.",
        "loaded_message": "**{name}**: {imported} Zeilen importiert, {rejected} abgelehnt",
        "rejected_rows": "Abgelehnte Zeilen",
        "import_notes": "Hinweise zum Import",
        "load_error": "Datei konnte nicht gelesen werden: {error}",
        "empty_dataset": "Die Datei enthält keine verwertbaren Buchungen.",
        "filters": "Filter",
        "year_comparison": "Jahresvergleich",
        "year1": "Jahr",
        "year2": "Vergleichsjahr",
        "date_range": "Anreisezeitraum",
        "region": "Region",
        "all": "Alle",
        "excluded_rows": "{count} Buchungen ohne Anreisedatum wurden ausgeblendet.",
        "kpi_title": "Kennzahlen",
        "kpi_revenue": "Umsatz",
        "kpi_commission": "Provision",
        "kpi_bookings": "Buchungen",
        "kpi_average_commission": "Ø Provision",
        "kpi_cancellations": "Stornierungen",
        "kpi_cancellation_rate": "Stornoquote",
        "cancellation_overview": "Storno-Übersicht",
        "cancelled_commission": "Entgangene Provision",
        "commission_loss_rate": "Provisionsverlust",
        "severity_high": "Hohe Stornoquote",
        "severity_medium": "Erhöhte Stornoquote",
        "severity_low": "Stornoquote unauffällig",
        "charts": "Diagramme",
        "top_metric": "Kennzahl Top-Unterkünfte",
        "metric_revenue": "Umsatz",
        "metric_bookings": "Buchungen",
        "metric_average": "Ø Buchungswert",
        "accommodations": "Top Unterkünfte",
        "accommodations_caption": "{shown} von {total} Unterkünften, sortiert nach Umsatz",
        "city_filter": "Stadt",
        "cities": "Top Städte",
        "monthly_comparison": "Monatsvergleich {year1} / {year2}",
        "bookings": "Buchungen",
        "search": "Suche",
        "sort_by": "Sortieren nach",
        "descending": "Absteigend",
        "page": "Seite",
        "page_of": "Seite {page} von {pages}",
        "download_csv": "CSV herunterladen",
        "download_pdf": "PDF herunterladen",
        "build_pdf_fail": "PDF konnte nicht erstellt werden: {error}",
        "pipeline_debug": "Debug-Protokoll",
        "upload_prompt": "Laden Sie eine CSV-Datei hoch, um zu starten.",
        "reset": "Daten entfernen",
    },
    "en": {
        "app_title": "Booking Dashboard",
        "app_caption": "Upload the semicolon-separated booking export. Revenue, commission, cancellations and top accommodations are evaluated right away.",
        "settings": "Settings",
        "theme": "Theme",
        "debug": "Show debug log",
        "upload_csv": "Upload CSV file",
        "drag_drop_title": "Drag & Drop Upload",
        "drag_drop_caption": "Drop a file here; a new import fully replaces the previous data.",
        "loaded_message": "**{name}**: {imported} rows imported, {rejected} rejected",
        "rejected_rows": "Rejected rows",
        "import_notes": "Import notes",
        "load_error": "Failed to read file: {error}",
        "empty_dataset": "The file contains no usable bookings.",
        "filters": "Filters",
        "year_comparison": "Year comparison",
        "year1": "Year",
        "year2": "Comparison year",
        "date_range": "Arrival period",
        "region": "Region",
        "all": "All",
        "excluded_rows": "{count} bookings without arrival date are hidden.",
        "kpi_title": "Key figures",
        "kpi_revenue": "Revenue",
        "kpi_commission": "Commission",
        "kpi_bookings": "Bookings",
        "kpi_average_commission": "Avg. commission",
        "kpi_cancellations": "Cancellations",
        "kpi_cancellation_rate": "Cancellation rate",
        "cancellation_overview": "Cancellation overview",
        "cancelled_commission": "Lost commission",
        "commission_loss_rate": "Commission loss",
        "severity_high": "High cancellation rate",
        "severity_medium": "Elevated cancellation rate",
        "severity_low": "Cancellation rate normal",
        "charts": "Charts",
        "top_metric": "Top accommodations metric",
        "metric_revenue": "Revenue",
        "metric_bookings": "Bookings",
        "metric_average": "Avg. booking value",
        "accommodations": "Top accommodations",
        "accommodations_caption": "{shown} of {total} accommodations, sorted by revenue",
        "city_filter": "City",
        "cities": "Top cities",
        "monthly_comparison": "Monthly comparison {year1} / {year2}",
        "bookings": "Bookings",
        "search": "Search",
        "sort_by": "Sort by",
        "descending": "Descending",
        "page": "Page",
        "page_of": "Page {page} of {pages}",
        "download_csv": "Download CSV",
        "download_pdf": "Download PDF",
        "build_pdf_fail": "Failed to build PDF: {error}",
        "pipeline_debug": "Debug log",
        "upload_prompt": "Upload a CSV file to begin.",
        "reset": "Remove data",
    },
}

BOOKING_TABLE_COLUMNS = {
    "booking_code": "BookingCode",
    "booking_date": "Buchungsdatum",
    "arrival_date": "Anreise",
    "departure_date": "Abreise",
    "service_name": "Unterkunft",
    "service_city": "Stadt",
    "region": "Region",
    "persons": "Personen",
    "total_price": "Gesamtpreis",
    "commission": "Provision",
    "cancelled": "Storniert",
}


def translate(key: str, lang: str, **kwargs) -> str:
    catalog = TEXT.get(lang, TEXT["de"])
    template = catalog.get(key) or TEXT["de"].get(key) or key
    return template.format(**kwargs)


def get_state() -> SessionState:
    if "dashboard_state" not in st.session_state:
        st.session_state["dashboard_state"] = SessionState()
    return st.session_state["dashboard_state"]


def set_state(state: SessionState) -> None:
    st.session_state["dashboard_state"] = state


def render_kpi_cards(view, translate_fn):
    """
    Render the headline KPIs as metric cards; deltas only in year-comparison mode.
    """
    kpis, changes = view.kpis, view.kpi_changes
    cards = [
        (translate_fn("kpi_revenue"), format_currency(kpis.total_revenue), changes["total_revenue"], "normal"),
        (translate_fn("kpi_commission"), format_currency(kpis.total_commission), changes["total_commission"], "normal"),
        (translate_fn("kpi_bookings"), format_number(kpis.total_bookings), changes["total_bookings"], "normal"),
        (translate_fn("kpi_average_commission"), format_currency(kpis.average_commission), changes["average_commission"], "normal"),
        (translate_fn("kpi_cancellations"), format_number(kpis.cancelled_bookings), changes["cancelled_bookings"], "inverse"),
        (translate_fn("kpi_cancellation_rate"), format_percentage(kpis.cancellation_rate / 100), changes["cancellation_rate"], "inverse"),
    ]
    # Two rows of three cards
    for chunk_start in range(0, len(cards), 3):
        chunk = cards[chunk_start : chunk_start + 3]
        cols = st.columns(len(chunk))
        for col, (label, value, change, delta_color) in zip(cols, chunk):
            with col:
                st.metric(label=label, value=value, delta=format_change(change) or None, delta_color=delta_color)


def render_cancellation_overview(view, translate_fn):
    kpis = view.kpis
    severity = cancellation_severity(kpis.cancellation_rate / 100, DEFAULT_CONFIG)
    message = translate_fn(f"severity_{severity}")
    if severity == "high":
        st.error(message)
    elif severity == "medium":
        st.warning(message)
    else:
        st.success(message)
    cols = st.columns(3)
    cols[0].metric(translate_fn("kpi_cancellations"), format_number(kpis.cancelled_bookings))
    cols[1].metric(translate_fn("cancelled_commission"), format_currency(kpis.cancelled_commission))
    loss = kpis.commission_loss_rate
    cols[2].metric(translate_fn("commission_loss_rate"), format_percentage(loss / 100) if loss is not None else "-")


def render_group_downloads(groups, by: str, title: str, file_stem: str, with_comparison: bool, translate_fn):
    """CSV and PDF buttons for one group table; both carry the same columns."""
    stamp = datetime.now().strftime("%Y%m%d")
    c1, c2 = st.columns(2)
    c1.download_button(
        translate_fn("download_csv"),
        data=groups_to_csv(groups, by, with_comparison=with_comparison).encode("utf-8"),
        file_name=f"{file_stem}_{stamp}.csv",
        mime="text/csv",
        key=f"download_{file_stem}_csv",
    )
    try:
        c2.download_button(
            translate_fn("download_pdf"),
            data=groups_to_pdf(groups, by, title, with_comparison=with_comparison),
            file_name=f"{file_stem}_{stamp}.pdf",
            mime="application/pdf",
            key=f"download_{file_stem}_pdf",
        )
    except RuntimeError as e:
        c2.error(translate_fn("build_pdf_fail", error=e))


def display_bookings(df: pd.DataFrame) -> pd.DataFrame:
    table = df[list(BOOKING_TABLE_COLUMNS)].copy()
    table["booking_date"] = table["booking_date"].map(format_datetime)
    table["arrival_date"] = table["arrival_date"].map(format_date)
    table["departure_date"] = table["departure_date"].map(format_date)
    table["total_price"] = table["total_price"].map(format_currency)
    table["commission"] = table["commission"].map(format_currency)
    table["cancelled"] = table["cancelled"].map(lambda v: "✓" if v else "")
    return table.rename(columns=BOOKING_TABLE_COLUMNS)


st.set_page_config(
    page_title="Buchungs-Dashboard | Booking Dashboard",
    page_icon="🏨",
    layout="wide",
)

if "ui_language" not in st.session_state:
    st.session_state["ui_language"] = "de"

ui_language = st.sidebar.selectbox(
    "Sprache / Language",
    options=list(TEXT.keys()),
    format_func=lambda code: LANGUAGE_NAMES.get(code, code),
    key="ui_language",
)


def t(key: str, **kwargs) -> str:
    return translate(key, ui_language, **kwargs)


theme_options = list(THEMES.keys())

st.title(t("app_title"))
st.caption(t("app_caption"))

with st.sidebar:
    st.header(f"⚙️ {t('settings')}")
    if "theme_choice" not in st.session_state:
        st.session_state["theme_choice"] = DEFAULT_CONFIG.theme
    theme = st.selectbox(t("theme"), options=theme_options, key="theme_choice")
    debug = st.toggle(t("debug"), value=False)

with st.container(border=True):
    st.subheader(t("drag_drop_title"))
    st.caption(t("drag_drop_caption"))
    uploaded = st.file_uploader(t("upload_csv"), type=["csv"], key="main_upload")

state = get_state()

# Import once per uploaded file; reruns reuse the session state
if uploaded is not None and st.session_state.get("loaded_upload_id") != uploaded.file_id:
    st.session_state["loaded_upload_id"] = uploaded.file_id
    try:
        state = load_csv(state, uploaded, source_name=uploaded.name)
    except FileReadError as e:
        state = clear(state)
        st.error(t("load_error", error=e.reason))
    set_state(state)

dataset = state.dataset

if dataset is None:
    st.info(t("upload_prompt"))
    st.stop()

st.success(t("loaded_message", name=dataset.source_name, imported=dataset.rows_imported, rejected=dataset.rows_rejected))
if dataset.errors:
    with st.expander(f"{t('rejected_rows')} ({dataset.rows_rejected})", expanded=False):
        for error in dataset.errors[:50]:
            st.write(f"- {error}")
if dataset.warnings:
    with st.expander(f"{t('import_notes')} ({len(dataset.warnings)})", expanded=False):
        for note in dataset.warnings[:50]:
            st.write(f"- {note}")
if dataset.is_empty:
    st.warning(t("empty_dataset"))
if st.sidebar.button(t("reset")):
    set_state(clear(state))
    st.session_state.pop("loaded_upload_id", None)
    st.rerun()

frame = dataset.frame

# Filters
with st.sidebar:
    st.divider()
    st.markdown(f"**{t('filters')}**")
    years = available_years(frame)
    year_mode = st.toggle(t("year_comparison"), value=state.filters.is_year_comparison, disabled=not years)
    changes = {"mode": "year_comparison" if year_mode and years else "range"}
    if year_mode and years:
        default_year1 = state.filters.year1 if state.filters.year1 in years else years[-1]
        default_year2 = state.filters.year2 if state.filters.year2 in years else years[max(0, len(years) - 2)]
        changes["year1"] = st.selectbox(t("year1"), years, index=years.index(default_year1))
        changes["year2"] = st.selectbox(t("year2"), years, index=years.index(default_year2))
    else:
        bounds = date_bounds(frame)
        if bounds:
            picked = st.date_input(t("date_range"), value=bounds, min_value=bounds[0], max_value=bounds[1], format="DD.MM.YYYY")
            if isinstance(picked, (tuple, list)) and len(picked) == 2:
                changes["start"], changes["end"] = picked
            else:
                changes["start"], changes["end"] = None, None
    regions = [""] + available_regions(frame)
    current_region = state.filters.region if state.filters.region in regions else ""
    changes["region"] = st.selectbox(
        t("region"),
        regions,
        index=regions.index(current_region),
        format_func=lambda r: r or t("all"),
    ) or None

state = with_filters(state, **changes)
set_state(state)

view = build_dashboard(state, DEFAULT_CONFIG, debug=debug)
year1, year2 = state.filters.year1, state.filters.year2

if view.filtered.excluded_rows:
    st.caption(t("excluded_rows", count=view.filtered.excluded_rows))

st.subheader(t("kpi_title"))
render_kpi_cards(view, t)

with st.expander(t("cancellation_overview"), expanded=False):
    render_cancellation_overview(view, t)

# Charts
st.subheader(t("charts"))
col_left, col_right = st.columns(2)
with col_left:
    st.plotly_chart(monthly_commission_chart(view.monthly_series, theme=theme), use_container_width=True)
    st.plotly_chart(cancellation_rate_chart(view.monthly_series, theme=theme), use_container_width=True)
with col_right:
    st.plotly_chart(arrivals_chart(view.monthly_series, theme=theme), use_container_width=True)
    metric = st.radio(
        t("top_metric"),
        ["revenue", "bookings", "average"],
        format_func=lambda m: t(f"metric_{m}"),
        horizontal=True,
    )
    st.plotly_chart(top_accommodations_chart(view.all_accommodations, metric=metric, theme=theme), use_container_width=True)
st.plotly_chart(booking_trends_chart(view.daily, theme=theme), use_container_width=True)

stamp = datetime.now().strftime("%Y%m%d")

# Accommodation table (city filter narrows this table only)
with st.container(border=True):
    st.subheader(t("accommodations"))
    cities = [""] + available_cities(view.filtered.current)
    current_city = state.filters.city if state.filters.city in cities else ""
    city = st.selectbox(t("city_filter"), cities, index=cities.index(current_city), format_func=lambda c: c or t("all"))
    if (city or None) != state.filters.city:
        state = with_filters(state, city=city or None)
        set_state(state)
        view = build_dashboard(state, DEFAULT_CONFIG, debug=debug)
    st.caption(t("accommodations_caption", shown=len(view.accommodations), total=len(view.all_accommodations)))
    st.dataframe(display_groups(view.accommodations, "accommodation", view.has_comparison), use_container_width=True, hide_index=True)
    render_group_downloads(
        view.accommodations,
        "accommodation",
        f"Top {len(view.accommodations)} Unterkünfte",
        "unterkuenfte",
        view.has_comparison,
        t,
    )

with st.container(border=True):
    st.subheader(t("cities"))
    st.dataframe(display_groups(view.cities, "city", view.has_comparison), use_container_width=True, hide_index=True)
    render_group_downloads(view.cities, "city", f"Top {len(view.cities)} Städte", "staedte", view.has_comparison, t)

if view.monthly is not None:
    with st.container(border=True):
        st.subheader(t("monthly_comparison", year1=year1, year2=year2))
        st.dataframe(display_groups(view.monthly, "month", True), use_container_width=True, hide_index=True)

# Bookings table
with st.container(border=True):
    st.subheader(t("bookings"))
    s1, s2, s3 = st.columns([3, 2, 1])
    term = s1.text_input(t("search"), key="booking_search")
    sort_column = s2.selectbox(
        t("sort_by"),
        list(BOOKING_TABLE_COLUMNS),
        format_func=lambda c: BOOKING_TABLE_COLUMNS[c],
        key="booking_sort",
    )
    descending = s3.checkbox(t("descending"), value=True, key="booking_desc")
    bookings = sort_bookings(search_bookings(view.filtered.current, term), sort_column, descending)
    page = st.number_input(t("page"), min_value=1, value=1, step=1, key="booking_page")
    page_rows, pages = paginate(bookings, int(page), DEFAULT_CONFIG.page_size)
    st.caption(t("page_of", page=min(int(page), pages), pages=pages))
    st.dataframe(display_bookings(page_rows), use_container_width=True, hide_index=True)
    c1, c2 = st.columns(2)
    c1.download_button(
        t("download_csv"),
        data=bookings_to_csv(bookings, dataset.source_headers).encode("utf-8"),
        file_name=f"buchungen_{stamp}.csv",
        mime="text/csv",
        key="download_bookings_csv",
    )
    try:
        c2.download_button(
            t("download_pdf"),
            data=bookings_to_pdf(bookings, f"Buchungen ({format_date(date.today())})"),
            file_name=f"buchungen_{stamp}.pdf",
            mime="application/pdf",
            key="download_bookings_pdf",
        )
    except RuntimeError as e:
        c2.error(t("build_pdf_fail", error=e))

if debug:
    with st.expander(t("pipeline_debug"), expanded=True):
        for line in view.logs:
            st.write(line)
