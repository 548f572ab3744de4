"""US state name and abbreviation lookup."""

STATE_ABBR_MAP: dict[str, str] = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
    "california": "CA", "colorado": "CO", "connecticut": "CT", "delaware": "DE",
    "district of columbia": "DC",
    "florida": "FL", "georgia": "GA", "hawaii": "HI", "idaho": "ID",
    "illinois": "IL", "indiana": "IN", "iowa": "IA", "kansas": "KS",
    "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
    "massachusetts": "MA", "michigan": "MI", "minnesota": "MN", "mississippi": "MS",
    "missouri": "MO", "montana": "MT", "nebraska": "NE", "nevada": "NV",
    "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM", "new york": "NY",
    "north carolina": "NC", "north dakota": "ND", "ohio": "OH", "oklahoma": "OK",
    "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI", "south carolina": "SC",
    "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT",
    "vermont": "VT", "virginia": "VA", "washington": "WA", "west virginia": "WV",
    "wisconsin": "WI", "wyoming": "WY",
}

ABBR_TO_STATE: dict[str, str] = {abbr: name for name, abbr in STATE_ABBR_MAP.items()}


def state_abbreviation(state: str) -> str | None:
    """Return the two-letter abbreviation for a state name, if known."""
    if not state:
        return None
    cleaned = state.strip()
    if cleaned.upper() in ABBR_TO_STATE:
        return cleaned.upper()
    return STATE_ABBR_MAP.get(cleaned.lower())


def state_name(abbr: str) -> str | None:
    """Return the title-cased state name for an abbreviation, if known."""
    if not abbr:
        return None
    name = ABBR_TO_STATE.get(abbr.strip().upper())
    if name is None:
        return None
    return " ".join(word.capitalize() for word in name.split(" "))


def resolve_state(state: str = "", state_abbr: str = "") -> tuple[str, str]:
    """
    Fill in whichever of state name / abbreviation is missing.

    Providers sometimes return only one form, or return the abbreviation in
    the name slot. Unresolvable values are passed through unchanged.

    Args:
        state: State name as given by the provider (may be empty).
        state_abbr: State abbreviation as given by the provider (may be empty).

    Returns:
        Tuple of (state name, state abbreviation).
    """
    state = (state or "").strip()
    state_abbr = (state_abbr or "").strip()

    if state and not state_abbr:
        state_abbr = state_abbreviation(state) or state
    if state_abbr and not state:
        state = state_name(state_abbr) or state_abbr

    # A two-letter code in the name slot gets expanded
    if state and len(state) == 2 and state.upper() in ABBR_TO_STATE:
        state = state_name(state) or state

    return state, state_abbr
