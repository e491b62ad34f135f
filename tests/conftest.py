import pytest

from booking_dashboard.config import HEADER_MAP

HEADERS = list(HEADER_MAP)

DEFAULT_ROW = {
    "BookingCode": "BK1",
    "Buchungsdatum": "01.01.2024 10:00",
    "Anreise": "05.01.2024",
    "Abreise": "07.01.2024",
    "ServiceCity": "Berlin",
    "Service Name (SolR)": "Hotel A",
    "Region": "Nord",
    "Gesamtpreis": "100,50",
    "Erw.": "2",
    "Kinder": "0",
    "Personen": "2",
    "Land": "DE",
    "PLZ": "10115",
    "Stadt": "Berlin",
    "ServiceCountry": "DE",
    "Storniert": "FALSCH",
    "Stornodatum": "",
    "Vertriebsprovision Netto": "10,05",
}


def build_csv(*rows, headers=None):
    headers = headers or HEADERS
    lines = [";".join(headers)]
    for overrides in rows:
        row = {**DEFAULT_ROW, **overrides}
        lines.append(";".join(row.get(h, "") for h in headers))
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_csv():
    """Build booking export text; each argument is a dict of header -> cell overrides."""
    return build_csv


@pytest.fixture
def sample_csv():
    return build_csv(
        {"BookingCode": "BK1"},
        {
            "BookingCode": "BK2",
            "Service Name (SolR)": "Hotel B",
            "ServiceCity": "Hamburg",
            "Anreise": "10.02.2024",
            "Abreise": "15.02.2024",
            "Gesamtpreis": "1.200,00",
            "Vertriebsprovision Netto": "120,00",
        },
        {
            "BookingCode": "BK3",
            "Anreise": "20.01.2024",
            "Abreise": "21.01.2024",
            "Gesamtpreis": "300,00",
            "Vertriebsprovision Netto": "30,00",
            "Storniert": "WAHR",
            "Stornodatum": "02.01.2024",
        },
        {
            "BookingCode": "BK4",
            "Service Name (SolR)": "Hotel C",
            "ServiceCity": "München",
            "Region": "Süd",
            "Buchungsdatum": "03.01.2024 08:30",
            "Anreise": "12.03.2023",
            "Abreise": "14.03.2023",
            "Gesamtpreis": "80,00",
            "Vertriebsprovision Netto": "8,00",
        },
    )
