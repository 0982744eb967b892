"""Display names for validating carrier codes."""

AIRLINE_NAMES = {
    # US carriers
    "AA": "American Airlines",
    "DL": "Delta Airlines",
    "UA": "United Airlines",
    "WN": "Southwest Airlines",
    "B6": "JetBlue Airways",
    "AS": "Alaska Airlines",
    "NK": "Spirit Airlines",
    "F9": "Frontier Airlines",
    # Europe
    "LH": "Lufthansa",
    "BA": "British Airways",
    "AF": "Air France",
    "KL": "KLM Royal Dutch Airlines",
    "IB": "Iberia",
    "LX": "Swiss International Air Lines",
    "TP": "TAP Air Portugal",
    "AY": "Finnair",
    # Middle East / Asia
    "EK": "Emirates",
    "QR": "Qatar Airways",
    "TK": "Turkish Airlines",
    "SQ": "Singapore Airlines",
    "CX": "Cathay Pacific",
    "NH": "All Nippon Airways",
    # Americas
    "AC": "Air Canada",
    "AM": "Aeromexico",
    "LA": "LATAM Airlines",
}


def airline_name(code: str) -> str:
    """Full airline name, or the raw code when unknown."""
    if not isinstance(code, str) or not code.strip():
        raise ValueError(f"invalid carrier code: {code!r}")
    return AIRLINE_NAMES.get(code.strip().upper(), code)
