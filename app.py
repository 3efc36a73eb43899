# app.py
"""
Customer Dedupe & Standardize (CLI)
-----------------------------------
Usage example:
 python app.py --files "examples/Order File.csv" "examples/Commission File.xlsx" --out out/
 python app.py --files orders.csv --key-strategy strict --standardize --out out/
"""
import argparse
import logging
import os

from io_utils.readers import load_table
from io_utils.writers import export_selection, link_report_frame, records_frame, write_export
from matching.cluster import deduplicate, find_duplicate_names, similar_address_clusters
from matching.errors import DedupeError
from matching.extract import detect_column_mapping, extract_from_tables, primary_table_index
from matching.link import link_orders
from matching.normalize import KeyStrategy
from standardize.orchestrator import StandardizationOrchestrator


def build_parser():
    parser = argparse.ArgumentParser(description="Customer Dedupe & Standardize")
    parser.add_argument("--files", nargs="+", required=True, help="CSV/Excel files; an 'order' file is treated as primary")
    parser.add_argument("--out", type=str, required=True, help="Output directory for exported files")
    parser.add_argument("--key-strategy", choices=[s.value for s in KeyStrategy], default=KeyStrategy.LOOSE.value,
                        help="loose: name + full address, strict: name + address1 + city")
    parser.add_argument("--require-address", action="store_true", help="Skip rows with no address information")
    parser.add_argument("--standardize", action="store_true", help="Send the export selection to the standardization service")
    parser.add_argument("--find-duplicates", action="store_true", help="Also report fuzzy name duplicates")
    parser.add_argument("--all-records", action="store_true", help="Export duplicates too")
    parser.add_argument("--complete-only", action="store_true", help="Export only rows with address1, city, state and zip")
    parser.add_argument("--link", action="store_true", help="Link order rows to commission rows (needs an order file and one other file)")
    parser.add_argument("--log-level", default="INFO")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# ---- Load & map ----
    tables = [load_table(path) for path in args.files]
    pairs = []
    for table in tables:
        mapping = detect_column_mapping(table.headers)
        if not mapping.is_ready:
            print(f"⚠️ {table.name}: could not detect customer/address columns in {table.headers}, skipped.")
            continue
        pairs.append((table, mapping))
    if not pairs:
        print("No usable files.")
        return 1
    primary = primary_table_index([t for t, _ in pairs])
    records = extract_from_tables(pairs, primary=primary, require_address=args.require_address)

# ---- Dedup ----
    result = deduplicate(records, KeyStrategy(args.key_strategy))
    similar = similar_address_clusters(result.records)
    print(f"✅ {len(result.records)} records, {len(result.unique)} unique, "
          f"{len(result.groups)} duplicate groups, {len(similar)} similar-address clusters.")

    selection = export_selection(result, include_incomplete=not args.complete_only,
                                 include_duplicates=args.all_records)

# ---- Standardize (optional) ----
    orchestrator = None
    if args.standardize or args.find_duplicates:
        try:
            orchestrator = StandardizationOrchestrator.from_settings()
        except DedupeError as exc:
            print(f"⚠️ Standardization service unavailable ({exc}); continuing locally.")

    if args.standardize and orchestrator is not None:
        orchestrator.standardize_records(selection, on_progress=lambda pct: print(f"  standardizing... {pct}%"))
        failed = sum(1 for r in selection if r.standardization and r.standardization.error)
        print(f"✨ Standardized {len(selection)} records ({failed} with local fallback).")

    if args.find_duplicates:
        if orchestrator is not None:
            fuzzy = orchestrator.find_duplicates(selection)
        else:
            fuzzy = find_duplicate_names(selection)
        for group in fuzzy:
            names = " | ".join(m.customer_name for m in group.members)
            print(f"  ~ {names} (confidence {group.confidence:.2f})")
        print(f"🔎 {len(fuzzy)} possible name duplicates.")

# ---- Write ----
    written = write_export(selection, args.out)
    review_path = os.path.join(args.out, "dedup_review.csv")
    review = records_frame(result.records)
    review["Source"] = [r.source for r in result.records]
    review["Duplicate"] = [r.is_duplicate for r in result.records]
    review["Best Of Group"] = [r.is_selectable_duplicate for r in result.records]
    review["Similar Address"] = [r.is_similar for r in result.records]
    review.to_csv(review_path, index=False)
    if args.link:
        if len(tables) != 2:
            print("⚠️ --link needs exactly two files (orders and commissions); skipped.")
        else:
            orders_at = primary_table_index(tables)
            links = link_orders(tables[orders_at], tables[1 - orders_at])
            stats = links.statistics
            print(f"🔗 {stats['matches']} linked ({stats['matchRate']}%), {stats['needsReview']} to review, "
                  f"{stats['unmatched']} unmatched.")
            link_path = os.path.join(args.out, "order_links.csv")
            link_report_frame(links).to_csv(link_path, index=False)
            written.append(link_path)

    for path in written + [review_path]:
        print(f"  → {path}")
    print("🎉 Done.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
