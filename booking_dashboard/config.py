from typing import Dict, Tuple

from pydantic import BaseModel, Field

# Source export headers mapped to canonical record fields
HEADER_MAP: Dict[str, str] = {
    "BookingCode": "booking_code",
    "Buchungsdatum": "booking_date",
    "Anreise": "arrival_date",
    "Abreise": "departure_date",
    "ServiceCity": "service_city",
    "Service Name (SolR)": "service_name",
    "Region": "region",
    "Gesamtpreis": "total_price",
    "Erw.": "adults",
    "Kinder": "children",
    "Personen": "persons",
    "Land": "country",
    "PLZ": "postal_code",
    "Stadt": "city",
    "ServiceCountry": "service_country",
    "Storniert": "cancelled",
    "Stornodatum": "cancellation_date",
    "Vertriebsprovision Netto": "commission",
}

# Reverse lookup used by the CSV export so exported files re-import cleanly
EXPORT_HEADERS: Dict[str, str] = {field: header for header, field in HEADER_MAP.items()}

REQUIRED_FIELDS: Tuple[str, ...] = ("booking_code", "arrival_date")

TRUE_LITERAL = "WAHR"
FALSE_LITERAL = "FALSCH"

DATE_FORMAT = "%d.%m.%Y"
DATETIME_FORMAT = "%d.%m.%Y %H:%M"
ISO_DATE_FORMAT = "%Y-%m-%d"

TOP_N = 30
TOP_CHART_N = 10
HIGH_CANCELLATION_RATE = 0.20
MEDIUM_CANCELLATION_RATE = 0.10

GERMAN_MONTHS = (
    "Januar", "Februar", "März", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Dezember",
)


class DashboardConfig(BaseModel):
    """Tunables for import and display. Defaults match the booking export."""

    delimiter: str = ";"
    encoding: str = "utf-8-sig"
    top_n: int = Field(default=TOP_N, ge=1)
    page_size: int = Field(default=50, ge=1)
    theme: str = "Default"
    high_cancellation: float = HIGH_CANCELLATION_RATE
    medium_cancellation: float = MEDIUM_CANCELLATION_RATE


DEFAULT_CONFIG = DashboardConfig()
