from collections import Counter

from matching.models import CustomerRecord
from matching.normalize import normalize


def address_score(record: CustomerRecord) -> int:
    """
    Completeness of a record's address, higher is better:
      +2 each for address1, city, state, zip
      +1 when the source mentions an order file
      -1 when address1 holds a comma (an unsplit one-line address)
    """
    score = 0
    for part in [record.address1, record.city, record.state, record.zip]:
        if (part or "").strip():
            score += 2
    if "order" in (record.source or "").lower():
        score += 1
    if "," in (record.address1 or ""):
        score -= 1
    return score


def choose_best_index(members: list[CustomerRecord]) -> int:
    """Index of the highest address_score; the earliest member wins ties."""
    best_idx, best_score = 0, None
    for i, record in enumerate(members):
        score = address_score(record)
        if best_score is None or score > best_score:
            best_idx, best_score = i, score
    return best_idx


def mark_best(members: list[CustomerRecord]) -> CustomerRecord | None:
    if not members:
        return None
    for record in members:
        record.is_selectable_duplicate = False
    best = members[choose_best_index(members)]
    best.is_selectable_duplicate = True
    return best


def most_common_name(members: list[CustomerRecord]) -> str:
    """Most frequent spelling of a group's customer name (first seen wins ties)."""
    names = [m.customer_name for m in members if m.customer_name]
    if not names:
        return ""
    return Counter(names).most_common(1)[0][0]


def _location_sort_key(record: CustomerRecord) -> str:
    return f"{record.address1} {record.city} {record.state} {record.zip}".lower()


def split_names_and_locations(records: list[CustomerRecord]) -> tuple[list[CustomerRecord], list[CustomerRecord]]:
    """
    Bucket an export selection per company (normalized name):
      'Customer Names'     -> the first address of each company
      'Customer Locations' -> every further address of that company
    Companies keep first-seen order; addresses sort case-insensitively.
    """
    companies: dict[str, list[CustomerRecord]] = {}
    for record in records:
        companies.setdefault(normalize(record.customer_name), []).append(record)

    names: list[CustomerRecord] = []
    locations: list[CustomerRecord] = []
    for group in companies.values():
        ordered = sorted(group, key=_location_sort_key)
        names.append(ordered[0])
        locations.extend(ordered[1:])
    return names, locations
