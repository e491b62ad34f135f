from typing import Dict, Literal, Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .config import TOP_CHART_N
from .models import GroupStats
from .tables import top_n

BOOKING_BLUE = ["#3b82f6", "#2563eb", "#60a5fa", "#1d4ed8", "#93c5fd", "#1e40af"]
BOOKING_BLUE_DARK = ["#60a5fa", "#3b82f6", "#93c5fd", "#2563eb", "#bfdbfe"]
CANCEL_RED = "#ef4444"
DEFAULT_THEME = "Default"

THEMES: Dict[str, Dict] = {
    "Default": {"template": "plotly", "color_discrete_sequence": BOOKING_BLUE},
    "Dark": {"template": "plotly_dark", "color_discrete_sequence": BOOKING_BLUE_DARK},
}

THEME_STYLES: Dict[str, Dict] = {
    "Default": {
        "paper_bgcolor": "#ffffff",
        "plot_bgcolor": "#ffffff",
        "font_color": "#111827",
        "gridcolor": "#e5e7eb",
    },
    "Dark": {
        "paper_bgcolor": "#0f1115",
        "plot_bgcolor": "#0f1115",
        "font_color": "#e5e7eb",
        "gridcolor": "#1f2a37",
    },
}

Metric = Literal["revenue", "bookings", "average"]

METRIC_LABELS = {
    "revenue": "Umsatz (€)",
    "bookings": "Buchungen",
    "average": "Ø Buchungswert (€)",
}


def _theme(theme: str) -> Dict:
    return THEMES.get(theme) or THEMES[DEFAULT_THEME]


def _finish(fig: go.Figure, theme: str, title: str, height: int = 420) -> go.Figure:
    seq = _theme(theme)["color_discrete_sequence"]
    layout_style = THEME_STYLES.get(theme, THEME_STYLES[DEFAULT_THEME])
    fig.update_layout(
        title=title,
        height=height,
        margin=dict(l=20, r=20, t=50, b=20),
        autosize=False,
        colorway=seq,
        paper_bgcolor=layout_style["paper_bgcolor"],
        plot_bgcolor=layout_style["plot_bgcolor"],
        font=dict(color=layout_style["font_color"]),
        xaxis=dict(gridcolor=layout_style["gridcolor"]),
        yaxis=dict(gridcolor=layout_style["gridcolor"]),
    )
    return fig


def monthly_commission_chart(monthly: pd.DataFrame, theme: str = DEFAULT_THEME) -> go.Figure:
    """Bar per arrival month; expects monthly_series() output."""
    cfg = _theme(theme)
    fig = px.bar(
        monthly,
        x="label",
        y="commission",
        template=cfg["template"],
        color_discrete_sequence=cfg["color_discrete_sequence"],
        labels={"label": "Monat", "commission": "Provision (€)"},
    )
    return _finish(fig, theme, "Provision pro Monat")


def arrivals_chart(monthly: pd.DataFrame, theme: str = DEFAULT_THEME) -> go.Figure:
    cfg = _theme(theme)
    fig = px.bar(
        monthly,
        x="label",
        y="arrivals",
        template=cfg["template"],
        color_discrete_sequence=cfg["color_discrete_sequence"],
        labels={"label": "Monat", "arrivals": "Anreisen"},
    )
    return _finish(fig, theme, "Anreisen pro Monat")


def cancellation_rate_chart(monthly: pd.DataFrame, theme: str = DEFAULT_THEME) -> go.Figure:
    cfg = _theme(theme)
    fig = px.line(
        monthly,
        x="label",
        y="cancellation_rate",
        markers=True,
        template=cfg["template"],
        labels={"label": "Monat", "cancellation_rate": "Stornoquote (%)"},
    )
    for tr in fig.data:
        tr.line.color = CANCEL_RED
    fig = _finish(fig, theme, "Stornoquote pro Monat")
    fig.update_yaxes(ticksuffix=" %", rangemode="tozero")
    return fig


def _metric_value(group: GroupStats, metric: str) -> float:
    if metric == "revenue":
        return group.revenue
    if metric == "bookings":
        return group.bookings
    if metric == "average":
        return group.average_booking_value
    raise ValueError(f"unknown metric {metric!r}")


def top_accommodations_chart(
    groups: Sequence[GroupStats],
    metric: Metric = "revenue",
    n: int = TOP_CHART_N,
    theme: str = DEFAULT_THEME,
) -> go.Figure:
    """
    Horizontal bar of the n best accommodations by the chosen metric.
    The best one is drawn on top.
    """
    sort_key = {"revenue": "revenue", "bookings": "bookings"}.get(metric)
    if sort_key is None:
        ranked = sorted(groups, key=lambda g: _metric_value(g, metric), reverse=True)[:n]
    else:
        ranked = top_n(groups, n=n, key=sort_key)

    data = pd.DataFrame(
        {
            "name": [g.key for g in ranked],
            "value": [_metric_value(g, metric) for g in ranked],
        }
    ).iloc[::-1]
    cfg = _theme(theme)
    fig = px.bar(
        data,
        x="value",
        y="name",
        orientation="h",
        template=cfg["template"],
        color_discrete_sequence=cfg["color_discrete_sequence"],
        labels={"name": "", "value": METRIC_LABELS.get(metric, metric)},
    )
    return _finish(fig, theme, f"Top {n} Unterkünfte", height=max(420, 40 * len(ranked)))


def booking_trends_chart(daily: pd.DataFrame, theme: str = DEFAULT_THEME) -> go.Figure:
    """Daily revenue line with bookings on a secondary axis; expects daily_trends() output."""
    cfg = _theme(theme)
    seq = cfg["color_discrete_sequence"]
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=daily["day"], y=daily["revenue"], name="Umsatz (€)", mode="lines", line=dict(color=seq[0])))
    fig.add_trace(
        go.Scatter(x=daily["day"], y=daily["bookings"], name="Buchungen", mode="lines", line=dict(color=seq[2]), yaxis="y2")
    )
    fig.update_layout(template=cfg["template"])
    fig = _finish(fig, theme, "Buchungstrend")
    fig.update_layout(yaxis2=dict(overlaying="y", side="right", showgrid=False, rangemode="tozero"))
    return fig
