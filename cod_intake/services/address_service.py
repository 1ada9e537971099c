# cod_intake/services/address_service.py
import re

from cod_intake.schemas.address import AddressParseResult, RegionDefaults

# Abbreviations and names mapped to canonical state names.
# Order matters: the first alias found in the address wins.
PROVINCE_ALIASES: list[tuple[str, str]] = [
    ("mh", "Maharashtra"),
    ("maharashtra", "Maharashtra"),
    ("dl", "Delhi"),
    ("delhi", "Delhi"),
    ("ka", "Karnataka"),
    ("karnataka", "Karnataka"),
    ("tn", "Tamil Nadu"),
    ("tamil nadu", "Tamil Nadu"),
    ("up", "Uttar Pradesh"),
    ("uttar pradesh", "Uttar Pradesh"),
    ("gj", "Gujarat"),
    ("gujarat", "Gujarat"),
    ("rj", "Rajasthan"),
    ("rajasthan", "Rajasthan"),
    ("wb", "West Bengal"),
    ("west bengal", "West Bengal"),
    ("tg", "Telangana"),
    ("telangana", "Telangana"),
    ("ap", "Andhra Pradesh"),
    ("andhra pradesh", "Andhra Pradesh"),
    ("kl", "Kerala"),
    ("kerala", "Kerala"),
    ("pb", "Punjab"),
    ("punjab", "Punjab"),
    ("hr", "Haryana"),
    ("haryana", "Haryana"),
    ("br", "Bihar"),
    ("bihar", "Bihar"),
    ("mp", "Madhya Pradesh"),
    ("madhya pradesh", "Madhya Pradesh"),
]

_ALIAS_PATTERNS = [
    (re.compile(rf"\b{re.escape(alias)}\b"), province)
    for alias, province in PROVINCE_ALIASES
]


def _find_postal_code(full_address: str, defaults: RegionDefaults) -> str:
    pattern = rf"(?<!\d)\d{{{defaults.postal_code_length}}}(?!\d)"
    match = re.search(pattern, full_address)
    return match.group(0) if match else defaults.postal_code


def _find_province(full_address: str, defaults: RegionDefaults) -> str:
    lowered = full_address.lower()
    for pattern, province in _ALIAS_PATTERNS:
        if pattern.search(lowered):
            return province
    return defaults.province


def parse_address(full_address: str, defaults: RegionDefaults) -> AddressParseResult:
    """
    Split a free-text delivery address into address1 / city / province /
    postal code.

    Best effort only: anything that cannot be inferred comes from the
    region defaults, and this never raises.

      "12 Lane St, Mumbai, MH 400001"
        -> ("12 Lane St", "Mumbai", "Maharashtra", "400001")

    A single segment is returned verbatim as address1. Segments after the
    second are not consulted.
    """
    full_address = (full_address or "").strip()
    parts = [part.strip() for part in full_address.split(",")]

    if len(parts) == 1:
        return AddressParseResult(
            address1=full_address,
            city=defaults.city,
            province=defaults.province,
            postal_code=defaults.postal_code,
        )

    return AddressParseResult(
        address1=parts[0],
        city=parts[1] or defaults.city,
        province=_find_province(full_address, defaults),
        postal_code=_find_postal_code(full_address, defaults),
    )
