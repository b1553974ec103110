"""
Shipping zone matching
Maps a destination (state, pincode) onto a store's configured zones
"""

from typing import Iterable, List, Optional

from storeforge.schemas.settings import ShippingZone

# State name to code mapping for zone matching
STATE_NAME_TO_CODE = {
    "andaman and nicobar islands": "AN",
    "andhra pradesh": "AP",
    "arunachal pradesh": "AR",
    "assam": "AS",
    "bihar": "BR",
    "chhattisgarh": "CG",
    "chandigarh": "CH",
    "dadra and nagar haveli": "DD",
    "daman and diu": "DD",
    "delhi": "DL",
    "new delhi": "DL",
    "goa": "GA",
    "gujarat": "GJ",
    "himachal pradesh": "HP",
    "haryana": "HR",
    "jharkhand": "JH",
    "jammu and kashmir": "JK",
    "karnataka": "KA",
    "kerala": "KL",
    "ladakh": "LA",
    "lakshadweep": "LD",
    "maharashtra": "MH",
    "meghalaya": "ML",
    "manipur": "MN",
    "madhya pradesh": "MP",
    "mizoram": "MZ",
    "nagaland": "NL",
    "odisha": "OR",
    "orissa": "OR",
    "punjab": "PB",
    "puducherry": "PY",
    "pondicherry": "PY",
    "rajasthan": "RJ",
    "sikkim": "SK",
    "tamil nadu": "TN",
    "telangana": "TS",
    "tripura": "TR",
    "uttarakhand": "UK",
    "uttar pradesh": "UP",
    "west bengal": "WB",
}


def get_state_code(state: Optional[str]) -> Optional[str]:
    """Normalize a state name (or code) to its two-letter code"""
    if not state:
        return None
    normalized = state.strip().lower()
    if len(normalized) == 2:
        return normalized.upper()
    return STATE_NAME_TO_CODE.get(normalized)


def matches_pincode(pincode: Optional[str], patterns: Iterable[str]) -> bool:
    """
    Check a pincode against zone patterns

    Supports exact pincodes, inclusive ranges ("110001-110099") and
    prefixes ("110" matches every pincode starting with 110).
    """
    if not pincode:
        return False
    pincode = pincode.strip()

    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue

        if pincode == pattern:
            return True

        if "-" in pattern:
            start, _, end = pattern.partition("-")
            try:
                if int(start) <= int(pincode) <= int(end):
                    return True
            except ValueError:
                pass
            continue

        if pincode.startswith(pattern):
            return True

    return False


def find_matching_zone(
    state: Optional[str],
    pincode: Optional[str],
    zones: List[ShippingZone],
) -> Optional[ShippingZone]:
    """
    Find the zone serving a destination

    Zones are checked in configured order; the first pincode or state match
    wins. Without a match the store's default zone (if any) is returned.
    """
    if not zones:
        return None

    state_code = get_state_code(state)
    default_zone = None

    for zone in zones:
        if zone.is_fallback:
            default_zone = default_zone or zone
            continue

        if zone.type == "pincodes" and zone.pincodes and matches_pincode(pincode, zone.pincodes):
            return zone

        if zone.type == "states" and state_code and state_code in {s.upper() for s in zone.states}:
            return zone

    return default_zone
