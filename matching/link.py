# matching/link.py
import logging
import time
from dataclasses import dataclass, field

from matching.models import RawRow, UploadedTable
from matching.normalize import normalize
from matching.similarity import similarity

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = ["Customer", "Customer Name", "Client", "Company Name", "Company", "Account Name"]
ORDER_ID_FIELDS = ["Order ID", "Order Number", "Order #", "ID", "Reference", "Order Reference", "RPM Order"]
ACCOUNT_FIELDS = ["Account", "Account Number", "Account #", "Acct #", "Provider Account #",
                  "Billing Account Number"]

CUSTOMER_THRESHOLD = 0.7
CANDIDATE_MIN_SCORE = 50
AUTO_ACCEPT_SCORE = 85
MAX_CONFLICT_CANDIDATES = 3
# customer rule + id rule, 100 each
MAX_RAW_SCORE = 200


@dataclass(slots=True)
class LinkCandidate:
    commission_index: int
    commission: RawRow
    score: int
    details: list[str] = field(default_factory=list)


@dataclass(slots=True)
class OrderLink:
    order_index: int
    order: RawRow
    commission_index: int
    commission: RawRow
    confidence: int
    method: str


@dataclass(slots=True)
class LinkConflict:
    order_index: int
    order: RawRow
    candidates: list[LinkCandidate]
    issue: str = "multiple_similar_matches"


@dataclass(slots=True)
class LinkResult:
    matches: list[OrderLink] = field(default_factory=list)
    conflicts: list[LinkConflict] = field(default_factory=list)
    unmatched: list[RawRow] = field(default_factory=list)
    total: int = 0

    @property
    def statistics(self) -> dict:
        return {
            "totalRecords": self.total,
            "matches": len(self.matches),
            "needsReview": len(self.conflicts),
            "unmatched": len(self.unmatched),
            "matchRate": _percent(len(self.matches), self.total),
            "reviewRate": _percent(len(self.conflicts), self.total),
            "unmatchedRate": _percent(len(self.unmatched), self.total),
        }


# --------- helpers ---------
def _percent(part: int, whole: int) -> int:
    if not whole:
        return 0
    return _round_half_up(part / whole * 100)

def _round_half_up(x: float) -> int:
    return int(x + 0.5)

def field_value(row: RawRow, patterns: list[str]) -> str:
    """
    First non-empty value for a list of header synonyms:
      exact header, then case-insensitive header, then either side containing the other.
    """
    for pattern in patterns:
        value = (row.get(pattern) or "").strip()
        if value:
            return value
    lowered = {key.lower().strip(): key for key in row if key and key.strip()}
    for pattern in patterns:
        key = lowered.get(pattern.lower())
        if key and (row.get(key) or "").strip():
            return row[key].strip()
    for pattern in patterns:
        p = pattern.lower()
        for low, key in lowered.items():
            if (p in low or low in p) and (row.get(key) or "").strip():
                return row[key].strip()
    return ""

def _ids(row: RawRow) -> list[str]:
    ids = [normalize(field_value(row, ORDER_ID_FIELDS)), normalize(field_value(row, ACCOUNT_FIELDS))]
    return [i for i in ids if i]


def score_pair(order: RawRow, commission: RawRow) -> tuple[int, list[str]]:
    """
    Percentage score of an order/commission pair with the reasons behind it.
      customer similarity >= 0.7 adds round(similarity * 100)
      any equal order/account id adds 100
    out of a possible 200.
    """
    total = 0
    details = []

    order_customer = field_value(order, CUSTOMER_FIELDS)
    commission_customer = field_value(commission, CUSTOMER_FIELDS)
    if order_customer and commission_customer:
        sim = similarity(order_customer, commission_customer)
        if sim >= CUSTOMER_THRESHOLD:
            points = _round_half_up(sim * 100)
            total += points
            details.append(f"Customer match ({points}%)")

    commission_ids = set(_ids(commission))
    if any(i in commission_ids for i in _ids(order)):
        total += 100
        details.append("ID exact match")

    return _round_half_up(total / MAX_RAW_SCORE * 100), details


def link_orders(orders: UploadedTable, commissions: UploadedTable) -> LinkResult:
    """
    Link each order row to at most one commission row.

    Orders are walked in file order; a commission row, once linked, is not
    offered to later orders. Candidates score >= 50. A lone candidate, or a
    best candidate scoring >= 85, is linked; several weaker candidates make a
    conflict carrying the top three; no candidate leaves the order unmatched.
    """
    start = time.time()
    result = LinkResult(total=len(orders.rows))
    claimed: set[int] = set()

    for order_index, order in enumerate(orders.rows):
        candidates = []
        for commission_index, commission in enumerate(commissions.rows):
            if commission_index in claimed:
                continue
            score, details = score_pair(order, commission)
            if score >= CANDIDATE_MIN_SCORE:
                candidates.append(LinkCandidate(commission_index, commission, score, details))
        # stable: equal scores keep commission file order
        candidates.sort(key=lambda c: -c.score)

        if not candidates:
            result.unmatched.append(order)
        elif len(candidates) == 1 or candidates[0].score >= AUTO_ACCEPT_SCORE:
            best = candidates[0]
            claimed.add(best.commission_index)
            result.matches.append(OrderLink(
                order_index=order_index,
                order=order,
                commission_index=best.commission_index,
                commission=best.commission,
                confidence=min(best.score, 100),
                method=", ".join(best.details),
            ))
        else:
            result.conflicts.append(LinkConflict(order_index, order, candidates[:MAX_CONFLICT_CANDIDATES]))

    logger.info(
        "[link_orders] time: %.2fs, orders: %d, matches: %d, conflicts: %d, unmatched: %d",
        time.time() - start, result.total, len(result.matches), len(result.conflicts), len(result.unmatched),
    )
    return result


def resolve_conflict(result: LinkResult, conflict: LinkConflict, choice: int | None) -> OrderLink | None:
    """
    Settle a conflict by picking one of its candidates (by position), or
    None to leave the order unmatched. The conflict leaves result.conflicts.
    """
    result.conflicts.remove(conflict)
    if choice is None:
        result.unmatched.append(conflict.order)
        return None
    picked = conflict.candidates[choice]
    link = OrderLink(
        order_index=conflict.order_index,
        order=conflict.order,
        commission_index=picked.commission_index,
        commission=picked.commission,
        confidence=min(picked.score, 100),
        method=", ".join(picked.details) or "manual selection",
    )
    result.matches.append(link)
    return link
