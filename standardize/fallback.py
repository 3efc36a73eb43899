# standardize/fallback.py
import re

from matching.similarity import NAME_DUPLICATE_THRESHOLD, similarity

US_STATES = {
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA", "HI", "ID", "IL", "IN", "IA",
    "KS", "KY", "LA", "ME", "MD", "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC", "SD", "TN", "TX", "UT", "VT",
    "VA", "WA", "WV", "WI", "WY",
}

_STATE_RE = re.compile(r"\b(" + "|".join(sorted(US_STATES)) + r")\b", re.IGNORECASE)
_ZIP_RE = re.compile(r"\b\d{5}(?:-\d{4})?\b")
_SUITE_RE = re.compile(r"(?:\b(?:suite|ste|apt|apartment|unit|floor|flr)\b|#)\s*\w+", re.IGNORECASE)

_SUFFIXES = [
    (re.compile(r"\binc\b\.?", re.IGNORECASE), "Inc."),
    (re.compile(r"\bllc\b", re.IGNORECASE), "LLC"),
    (re.compile(r"\bcorp\b\.?", re.IGNORECASE), "Corp."),
    (re.compile(r"\bco\b\.?$", re.IGNORECASE), "Co."),
]


def title_case_name(name) -> str:
    """
    Local stand-in for name standardization:
      'ACME widgets inc' -> 'Acme Widgets Inc.'
      'smith and co'     -> 'Smith And Co.'
    """
    if not isinstance(name, str) or not name.strip():
        return ""
    words = name.strip().lower().split()
    out = " ".join(w[:1].upper() + w[1:] for w in words)
    for pattern, replacement in _SUFFIXES:
        out = pattern.sub(replacement, out)
    return out


def parse_address(address) -> dict:
    """
    Regex split of a one-line US address into components. City is the third
    part from the end when there are more than two comma parts
    ('street, city, ST, zip').
    """
    if not isinstance(address, str) or not address.strip():
        return {
            "address1": "", "address2": None, "city": "", "state": "", "zipCode": "",
            "confidence": 0.1, "issues": ["Invalid address input"],
        }
    parts = [p.strip() for p in address.split(",")]
    zip_match = _ZIP_RE.search(address)
    state_match = _STATE_RE.search(address)
    suite_match = _SUITE_RE.search(address)
    return {
        "address1": parts[0] or address.strip(),
        "address2": suite_match.group(0) if suite_match else None,
        "city": parts[-3] if len(parts) > 2 else "",
        "state": state_match.group(0).upper() if state_match else "",
        "zipCode": zip_match.group(0) if zip_match else "",
        "confidence": 0.6,
        "issues": ["Basic parsing applied - API unavailable"],
    }


def fallback_name_result(name, error: str | None = None) -> dict:
    result = {
        "standardizedName": title_case_name(name),
        "confidence": 0.7,
        "changes": ["Basic standardization applied due to API error"],
        "businessType": "other",
    }
    if error:
        result["error"] = error
    return result


def fallback_address_result(address, error: str | None = None) -> dict:
    result = parse_address(address)
    if error:
        result["error"] = error
    return result


def fallback_comparison(name1: str, name2: str, error: str | None = None) -> dict:
    score = similarity(name1, name2)
    result = {
        "isDuplicate": score > NAME_DUPLICATE_THRESHOLD,
        "confidence": score,
        "reasoning": "Basic string similarity comparison used due to API error",
        "suggestedCanonicalName": name1 if len(name1 or "") > len(name2 or "") else name2,
    }
    if error:
        result["error"] = error
    return result
