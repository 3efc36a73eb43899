# matching/extract.py
import logging

from matching.models import AddressMode, ColumnMapping, CustomerRecord, RawRow, UploadedTable

logger = logging.getLogger(__name__)

_CUSTOMER_PATTERNS = ["customer", "client", "company"]
_ADDRESS1_PATTERNS = ["address 1", "address1", "address line 1", "line 1"]
_ADDRESS2_PATTERNS = ["address 2", "address2", "address line 2", "line 2"]
_CITY_PATTERNS = ["city"]
_STATE_PATTERNS = ["state"]
_ZIP_PATTERNS = ["zip", "postal"]
_SINGLE_ADDRESS_NAMES = {"address", "full address", "complete address"}


# --------- helpers ---------
def _cell(row: RawRow, column: str | None) -> str:
    if not column:
        return ""
    value = row.get(column)
    return str(value).strip() if value is not None else ""

def _find_header(headers: list[str], patterns: list[str]) -> str | None:
    for header in headers:
        lowered = header.lower()
        if any(p in lowered for p in patterns):
            return header
    return None

def _find_single_address(headers: list[str]) -> str | None:
    for header in headers:
        h = header.lower().strip()
        if h in _SINGLE_ADDRESS_NAMES:
            return header
        if "address" in h and "1" not in h and "2" not in h and "line" not in h:
            return header
    return None


def detect_column_mapping(headers: list[str]) -> ColumnMapping:
    """
    Guess a ColumnMapping from header names by substring match:
      customer/client/company -> customer_name (falls back to a 'name' column)
      'Address 1'/'Line 1', 'Address 2', City, State, Zip/Postal -> components
    A lone 'Address' column with no component columns selects single mode.
    """
    customer = _find_header(headers, _CUSTOMER_PATTERNS) or _find_header(headers, ["name"])
    mapping = ColumnMapping(
        customer_name=customer,
        single_address=_find_single_address(headers),
        address1=_find_header(headers, _ADDRESS1_PATTERNS),
        address2=_find_header(headers, _ADDRESS2_PATTERNS),
        city=_find_header(headers, _CITY_PATTERNS),
        state=_find_header(headers, _STATE_PATTERNS),
        zip=_find_header(headers, _ZIP_PATTERNS),
    )
    has_components = any([mapping.address1, mapping.city, mapping.state, mapping.zip])
    if mapping.single_address and not has_components:
        mapping.address_mode = AddressMode.SINGLE
    return mapping


def extract_record(row: RawRow, mapping: ColumnMapping, source: str = "", row_index: int = 0) -> CustomerRecord | None:
    """
    One RawRow -> CustomerRecord, or None when the row has no customer name.
    In single-address mode the whole address lands in address1.
    """
    name = _cell(row, mapping.customer_name)
    if not name:
        return None

    if mapping.address_mode == AddressMode.SINGLE:
        return CustomerRecord(
            customer_name=name,
            address1=_cell(row, mapping.single_address),
            source=source,
            row_index=row_index,
        )

    return CustomerRecord(
        customer_name=name,
        address1=_cell(row, mapping.address1),
        address2=_cell(row, mapping.address2),
        city=_cell(row, mapping.city),
        state=_cell(row, mapping.state),
        zip=_cell(row, mapping.zip),
        source=source,
        row_index=row_index,
    )


def extract_records(table: UploadedTable, mapping: ColumnMapping, source: str | None = None,
                    require_address: bool = False, start_index: int = 0) -> list[CustomerRecord]:
    """
    Extract every usable row of one table. Rows without a customer name are
    skipped; with require_address, so are rows whose address1/city/state/zip
    are all blank.
    """
    mapping.validate(table.headers)
    label = source if source is not None else table.name
    records: list[CustomerRecord] = []
    skipped = 0
    for offset, row in enumerate(table.rows):
        record = extract_record(row, mapping, source=label, row_index=start_index + offset)
        if record is None:
            skipped += 1
            continue
        if require_address and not any(p.strip() for p in [record.address1, record.city, record.state, record.zip]):
            logger.debug("skipping %r from %s: no address information", record.customer_name, label)
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.info("[extract_records] %s: kept %d rows, skipped %d", label, len(records), skipped)
    return records


def extract_from_tables(tables: list[tuple[UploadedTable, ColumnMapping]], primary: int = 0,
                        require_address: bool = False) -> list[CustomerRecord]:
    """
    Extract several files into one ordered record list, primary file first
    (the order file, when one is named like it). row_index stays unique
    across files so dedup tie-breaks follow this order.
    """
    if not tables:
        return []
    ordered = [tables[primary]] + [t for i, t in enumerate(tables) if i != primary]
    records: list[CustomerRecord] = []
    cursor = 0
    for table, mapping in ordered:
        records.extend(extract_records(table, mapping, require_address=require_address, start_index=cursor))
        cursor += len(table.rows)
    return records


def primary_table_index(tables: list[UploadedTable]) -> int:
    for i, table in enumerate(tables):
        if "order" in table.name.lower():
            return i
    return 0
