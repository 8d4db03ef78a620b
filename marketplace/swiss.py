"""Swiss business rules: company UID, cantons, CHF and TVA."""

import re
from decimal import ROUND_HALF_UP, Decimal

from core.config import settings

UID_PATTERN = re.compile(r"^CHE-\d{3}\.\d{3}\.\d{3}$")

SWISS_CANTONS = {
    "AG": "Argovie",
    "AI": "Appenzell Rhodes-Intérieures",
    "AR": "Appenzell Rhodes-Extérieures",
    "BE": "Berne",
    "BL": "Bâle-Campagne",
    "BS": "Bâle-Ville",
    "FR": "Fribourg",
    "GE": "Genève",
    "GL": "Glaris",
    "GR": "Grisons",
    "JU": "Jura",
    "LU": "Lucerne",
    "NE": "Neuchâtel",
    "NW": "Nidwald",
    "OW": "Obwald",
    "SG": "Saint-Gall",
    "SH": "Schaffhouse",
    "SO": "Soleure",
    "SZ": "Schwytz",
    "TG": "Thurgovie",
    "TI": "Tessin",
    "UR": "Uri",
    "VD": "Vaud",
    "VS": "Valais",
    "ZG": "Zoug",
    "ZH": "Zurich",
}

_CENT = Decimal("0.01")


def is_valid_swiss_uid(uid: str) -> bool:
    return bool(UID_PATTERN.match(uid or ""))


def format_swiss_uid(value: str) -> str:
    """Normalize 9 digits into CHE-xxx.xxx.xxx; other input is returned unchanged."""
    digits = re.sub(r"\D", "", value or "")
    if len(digits) != 9:
        return value
    return f"CHE-{digits[0:3]}.{digits[3:6]}.{digits[6:9]}"


def is_valid_canton(code: str | None) -> bool:
    return code is None or code in SWISS_CANTONS


def tva_rate() -> Decimal:
    return Decimal(str(settings.tva_rate_percent)) / 100


def quantize_chf(amount: Decimal) -> Decimal:
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def calculate_tva(amount: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    """Add TVA to a net amount: returns (net, tva, gross)."""
    net = quantize_chf(Decimal(amount))
    tva = quantize_chf(net * tva_rate())
    return net, tva, net + tva


def extract_tva(gross: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    """Split a TVA-inclusive amount: returns (net, tva, gross)."""
    gross = quantize_chf(Decimal(gross))
    net = quantize_chf(gross / (1 + tva_rate()))
    return net, gross - net, gross


def format_chf(amount: Decimal | float | int) -> str:
    """Format as CHF with Swiss thousands separators, e.g. CHF 1'250.00."""
    value = quantize_chf(Decimal(str(amount)))
    return f"CHF {value:,.2f}".replace(",", "'")
