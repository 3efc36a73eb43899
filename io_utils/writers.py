import csv
import os

import pandas as pd

from matching.link import LinkResult
from matching.models import CustomerRecord, DedupResult
from merge.survivorship import split_names_and_locations

EXPORT_HEADERS = ["Customer Name", "Address 1", "Address 2", "City", "State", "Zip Code"]
NAMES_FILE = "Customer Names.csv"
LOCATIONS_FILE = "Customer Locations.csv"


def ensure_outdir(outdir):
    os.makedirs(outdir, exist_ok=True)


def records_frame(records: list[CustomerRecord]) -> pd.DataFrame:
    rows = [[r.customer_name, r.address1, r.address2, r.city, r.state, r.zip] for r in records]
    return pd.DataFrame(rows, columns=EXPORT_HEADERS, dtype=str)


def records_to_csv(records: list[CustomerRecord]) -> str:
    """Every field double-quoted, embedded quotes doubled, comma-delimited."""
    return records_frame(records).to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def export_selection(result: DedupResult, include_incomplete: bool = True,
                     include_duplicates: bool = False) -> list[CustomerRecord]:
    """
    Records to export. By default the default selection: non-duplicates plus
    each group's best record. include_duplicates exports every record;
    include_incomplete=False keeps only full address1/city/state/zip rows.
    """
    selected = result.records if include_duplicates else result.selected
    if not include_incomplete:
        selected = [r for r in selected if r.has_complete_address]
    return selected


def write_export(records: list[CustomerRecord], outdir) -> list[str]:
    """Write 'Customer Names.csv' and, when non-empty, 'Customer Locations.csv'."""
    ensure_outdir(outdir)
    names, locations = split_names_and_locations(records)
    written = []
    for filename, bucket in [(NAMES_FILE, names), (LOCATIONS_FILE, locations)]:
        if filename == LOCATIONS_FILE and not bucket:
            continue
        path = os.path.join(outdir, filename)
        with open(path, "w", encoding="utf-8", newline="") as handle:
            handle.write(records_to_csv(bucket))
        written.append(path)
    return written


LINK_HEADERS = ["Status", "Order Row", "Commission Row", "Score", "Details"]


def link_report_frame(result: LinkResult) -> pd.DataFrame:
    """One row per linked order, per conflict candidate and per unmatched order."""
    rows = []
    for link in result.matches:
        rows.append(["matched", link.order_index, link.commission_index, link.confidence, link.method])
    for conflict in result.conflicts:
        for candidate in conflict.candidates:
            rows.append(["review", conflict.order_index, candidate.commission_index, candidate.score,
                         ", ".join(candidate.details)])
    matched_or_review = {link.order_index for link in result.matches} | {c.order_index for c in result.conflicts}
    for index in range(result.total):
        if index not in matched_or_review:
            rows.append(["unmatched", index, None, 0, ""])
    frame = pd.DataFrame(rows, columns=LINK_HEADERS)
    return frame.sort_values(["Order Row", "Score"], ascending=[True, False], kind="stable").reset_index(drop=True)
