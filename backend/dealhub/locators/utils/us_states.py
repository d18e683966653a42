"""US state name/abbreviation normalization."""

from typing import Optional

US_STATES = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho",
    "IL": "Illinois", "IN": "Indiana", "IA": "Iowa", "KS": "Kansas",
    "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota", "MS": "Mississippi",
    "MO": "Missouri", "MT": "Montana", "NE": "Nebraska", "NV": "Nevada",
    "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico", "NY": "New York",
    "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma",
    "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
    "VT": "Vermont", "VA": "Virginia", "WA": "Washington", "WV": "West Virginia",
    "WI": "Wisconsin", "WY": "Wyoming", "DC": "District of Columbia",
}

_NAME_TO_CODE = {name.lower(): code for code, name in US_STATES.items()}
_NAME_TO_CODE["washington dc"] = "DC"
_NAME_TO_CODE["washington, d.c."] = "DC"


def normalize_state(value: Optional[str]) -> Optional[str]:
    """Map a state name or abbreviation to its two-letter USPS code.

    Matching is case-insensitive and ignores surrounding whitespace and
    dots ("N.Y." -> "NY"). Returns None for anything unrecognized.
    """
    if not value:
        return None

    cleaned = value.strip()
    code = cleaned.replace(".", "").upper()
    if code in US_STATES:
        return code

    return _NAME_TO_CODE.get(cleaned.lower())


def is_us_state(value: Optional[str]) -> bool:
    """True when ``value`` normalizes to a US state or DC."""
    return normalize_state(value) is not None


def states_match(candidate: Optional[str], wanted: str) -> bool:
    """Compare a location's state against a filter value.

    Both sides are normalized to USPS codes first, so "NY", "ny" and
    "New York" are equivalent. When either side is not a recognizable US
    state, fall back to case-insensitive equality of the raw strings.
    """
    if not candidate:
        return False

    candidate_code = normalize_state(candidate)
    wanted_code = normalize_state(wanted)
    if candidate_code and wanted_code:
        return candidate_code == wanted_code

    return candidate.strip().lower() == wanted.strip().lower()
