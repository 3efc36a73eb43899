# matching/cluster.py
import itertools
import locale
import logging
import time

import networkx as nx

from matching.models import CustomerRecord, DedupResult, DuplicateGroup
from matching.normalize import KeyStrategy, grouping_key, loose_key, normalize
from matching.similarity import NAME_DUPLICATE_THRESHOLD, addresses_similar, similarity
from merge.survivorship import mark_best

logger = logging.getLogger(__name__)


# --------- helpers ---------
def _collate(s: str) -> str:
    try:
        return locale.strxfrm(s.casefold())
    except (OSError, ValueError):
        return s.casefold()

def _sort_key(record: CustomerRecord) -> tuple[str, str, str, str]:
    # raw text breaks ties between strings that collate equal
    return (_collate(record.customer_name), record.customer_name,
            _collate(record.address1), record.address1)

def _merge_source(kept: CustomerRecord, incoming: CustomerRecord) -> None:
    if not incoming.source:
        return
    if not kept.source:
        kept.source = incoming.source
    elif incoming.source not in kept.source:
        kept.source = f"{kept.source}, {incoming.source}"

def _mean_pairwise_similarity(members: list[CustomerRecord]) -> float:
    keys = [loose_key(m) for m in members]
    scores = [similarity(a, b) for a, b in itertools.combinations(keys, 2)]
    return sum(scores) / len(scores) if scores else 1.0


# --------- exact duplicates ---------
def deduplicate(records: list[CustomerRecord], key_strategy: KeyStrategy = KeyStrategy.LOOSE) -> DedupResult:
    """
    1) Group by exact normalized key (first record per key is canonical)
    2) Later records under a key are flagged is_duplicate; their source is
       folded into the canonical's source
    3) Per group, the best address_score member becomes is_selectable_duplicate
    4) Non-duplicates with the same name and a near-identical address1 prefix
       are flagged is_similar
    5) Output sorted by (customer_name, address1), locale-aware
    Records with no customer name are dropped; empty input gives an empty result.
    """
    start = time.time()
    strategy = KeyStrategy(key_strategy)

    groups: dict[str, DuplicateGroup] = {}
    kept: list[CustomerRecord] = []
    dropped = 0

    for record in records:
        if not normalize(record.customer_name):
            dropped += 1
            continue
        record.is_duplicate = False
        record.is_similar = False
        record.is_selectable_duplicate = False
        key = grouping_key(record, strategy)
        group = groups.get(key)
        if group is None:
            groups[key] = DuplicateGroup(key=key, canonical=record, members=[record])
        else:
            record.is_duplicate = True
            group.members.append(record)
            _merge_source(group.canonical, record)
        kept.append(record)

    duplicate_groups = [g for g in groups.values() if len(g) > 1]
    for group in duplicate_groups:
        mark_best(group.members)
        group.annotate(
            confidence=_mean_pairwise_similarity(group.members),
            reasoning=f"exact match on {strategy.value} key",
        )

    mark_similar_addresses(kept)
    kept.sort(key=_sort_key)

    if dropped:
        logger.debug("[deduplicate] dropped %d records without a customer name", dropped)
    logger.info(
        "[deduplicate] time: %.2fs, records: %d, groups: %d, strategy: %s",
        time.time() - start, len(kept), len(duplicate_groups), strategy.value,
    )
    return DedupResult(records=kept, groups=duplicate_groups)


# --------- similar addresses ---------
def _similar_pairs(records: list[CustomerRecord]):
    candidates = [r for r in records if not r.is_duplicate and r.address1.strip()]
    for i, left in enumerate(candidates):
        left_name = normalize(left.customer_name)
        for right in candidates[i + 1:]:
            if normalize(right.customer_name) != left_name:
                continue
            if addresses_similar(left.address1, right.address1):
                yield left, right

def mark_similar_addresses(records: list[CustomerRecord]) -> int:
    """Flag both sides of every similar-address pair; returns the pair count."""
    pairs = 0
    for left, right in _similar_pairs(records):
        left.is_similar = True
        right.is_similar = True
        pairs += 1
    return pairs

def similar_address_clusters(records: list[CustomerRecord]) -> list[list[CustomerRecord]]:
    """
    Connected components of the similar-address pairs, for review screens.
    Singletons are left out.
    """
    G = nx.Graph()
    for left, right in _similar_pairs(records):
        G.add_edge(id(left), id(right))
    by_id = {id(r): r for r in records}
    clusters = []
    for comp in nx.connected_components(G):
        members = [by_id[node] for node in comp]
        members.sort(key=lambda r: r.row_index)
        clusters.append(members)
    clusters.sort(key=lambda c: c[0].row_index)
    return clusters


# --------- fuzzy names (local fallback for duplicate finding) ---------
def find_duplicate_names(records: list[CustomerRecord], threshold: float = NAME_DUPLICATE_THRESHOLD,
                         on_progress=None) -> list[DuplicateGroup]:
    """
    Greedy name-similarity grouping:
      each unclaimed record claims every later unclaimed record whose
      similarity(name) > threshold; group confidence is the mean of those
      similarities.
    O(n^2 * L^2); callers chunk large inputs.
    """
    start = time.time()
    claimed: set[int] = set()
    groups: list[DuplicateGroup] = []
    total = len(records) * (len(records) - 1) // 2
    done = 0
    last_pct = -1

    for i, current in enumerate(records):
        if i in claimed:
            continue
        matched: list[tuple[CustomerRecord, float]] = []
        for j in range(i + 1, len(records)):
            if j in claimed:
                continue
            score = similarity(current.customer_name, records[j].customer_name)
            done += 1
            if score > threshold:
                matched.append((records[j], score))
                claimed.add(j)
        if on_progress and total:
            pct = round(done / total * 100)
            if pct > last_pct:
                on_progress(pct)
                last_pct = pct
        if matched:
            claimed.add(i)
            group = DuplicateGroup(
                key=normalize(current.customer_name),
                canonical=current,
                members=[current, *(m for m, _ in matched)],
            )
            group.annotate(
                confidence=sum(s for _, s in matched) / len(matched),
                reasoning="Basic similarity-based duplicate detection",
            )
            groups.append(group)

    if on_progress and last_pct < 100:
        on_progress(100)
    logger.info("[find_duplicate_names] time: %.2fs, groups: %d", time.time() - start, len(groups))
    return groups


