# standardize/orchestrator.py
import logging
import math
import time
from collections.abc import Callable, Sequence
from typing import Protocol

from matching.cluster import find_duplicate_names
from matching.models import NO_ADDRESS, CustomerRecord, DuplicateGroup, StandardizationMeta
from matching.normalize import normalize
from standardize.client import StandardizationClient
from standardize.config import StandardizationSettings, get_settings
from standardize.errors import ServiceUnavailable
from standardize.fallback import fallback_address_result, fallback_comparison, fallback_name_result

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

BATCH_OPERATIONS = ("standardizeName", "standardizeAddress")


class StandardizationService(Protocol):
    """What the orchestrator needs from a service client."""

    def process_batch(self, records: list[dict], batch_operation: str) -> list[dict]:
        ...

    def find_duplicates(self, records: list[dict]) -> list[dict]:
        ...

    def compare_names(self, name1: str, name2: str) -> dict:
        ...


class _Progress:
    """Forwards percentages to a callback, never reporting a smaller one."""

    def __init__(self, callback: ProgressCallback | None, low: int = 0, high: int = 100) -> None:
        self._callback = callback
        self._low = low
        self._high = high
        self._last = -1

    def report(self, fraction: float) -> None:
        if self._callback is None:
            return
        pct = round(self._low + min(max(fraction, 0.0), 1.0) * (self._high - self._low))
        if pct > self._last:
            self._last = pct
            self._callback(pct)


def _address_text(record: CustomerRecord) -> str:
    combined = record.combined_address
    return "" if combined == NO_ADDRESS else combined


def _batch_payload(record: CustomerRecord, operation: str) -> dict:
    if operation == "standardizeName":
        return {"name": record.customer_name}
    return {"address": _address_text(record)}


def _fallback(record: CustomerRecord, operation: str, error: str) -> dict:
    if operation == "standardizeName":
        return fallback_name_result(record.customer_name, error)
    return fallback_address_result(_address_text(record), error)


def _result_error(result) -> str:
    if isinstance(result, dict) and result.get("error"):
        return str(result["error"])
    return "Service returned no usable result"


def _confidence(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_list(value) -> list:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _usable(result, operation: str) -> bool:
    if not isinstance(result, dict):
        return False
    if operation == "standardizeName":
        return bool(result.get("standardizedName"))
    return "address1" in result


class StandardizationOrchestrator:
    """
    Sequential, rate-limited batching over a StandardizationService.

    Every request is preceded by settings.request_delay seconds; a failed
    batch is replaced by local fallback results for each of its records.
    should_cancel, when given, is consulted between batches only.
    """

    def __init__(
        self,
        service: StandardizationService,
        settings: StandardizationSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        should_cancel: Callable[[], bool] | None = None,
    ) -> None:
        self.service = service
        self.settings = settings or get_settings()
        self._sleep = sleep
        self._should_cancel = should_cancel or (lambda: False)

    @classmethod
    def from_settings(cls, settings: StandardizationSettings | None = None, **kwargs) -> "StandardizationOrchestrator":
        """Build with an HTTP client; raises ConfigurationError when the service is not configured."""
        settings = settings or get_settings()
        return cls(StandardizationClient(settings), settings=settings, **kwargs)

    def _throttle(self) -> None:
        if self.settings.request_delay > 0:
            self._sleep(self.settings.request_delay)

    def _cancelled(self, done: int, total: int) -> bool:
        if self._should_cancel():
            logger.warning("standardization cancelled after %d of %d records", done, total)
            return True
        return False

    # --------- batches ---------
    def standardize_batch(self, records: Sequence[CustomerRecord], operation: str,
                          on_progress: ProgressCallback | None = None) -> list[dict]:
        """
        One result dict per record, in input order. Results shorter than the
        input only when cancelled.
        """
        if operation not in BATCH_OPERATIONS:
            raise ValueError(f"unsupported batch operation {operation!r}")
        progress = on_progress if isinstance(on_progress, _Progress) else _Progress(on_progress)
        size = self.settings.batch_size
        total = len(records)
        results: list[dict] = []

        for start in range(0, total, size):
            if self._cancelled(start, total):
                break
            batch = list(records[start:start + size])
            self._throttle()
            try:
                batch_results = self.service.process_batch([_batch_payload(r, operation) for r in batch], operation)
            except ServiceUnavailable as exc:
                logger.warning("batch %d-%d (%s) failed, using local fallback: %s",
                               start, start + len(batch) - 1, operation, exc)
                batch_results = [_fallback(r, operation, str(exc)) for r in batch]
            else:
                batch_results = [
                    res if _usable(res, operation)
                    else _fallback(r, operation, _result_error(res))
                    for r, res in zip(batch, batch_results)
                ]
            results.extend(batch_results)
            progress.report((start + len(batch)) / total)
        return results

    def standardize_records(self, records: Sequence[CustomerRecord],
                            on_progress: ProgressCallback | None = None) -> list[CustomerRecord]:
        """
        Standardize names, then addresses, writing results back onto the
        records. Progress: names 0-50, addresses 50-100.
        """
        records = list(records)
        if not records:
            return records
        names = self.standardize_batch(records, "standardizeName", _Progress(on_progress, 0, 50))
        with_address = [r for r in records if _address_text(r)]
        addresses = self.standardize_batch(with_address, "standardizeAddress", _Progress(on_progress, 50, 100))
        if not with_address and on_progress:
            on_progress(100)

        by_record = {id(r): res for r, res in zip(with_address, addresses)}
        for record, name_result in zip(records, names):
            apply_standardization(record, name_result, by_record.get(id(record)))
        return records

    # --------- duplicates ---------
    def find_duplicates(self, records: Sequence[CustomerRecord],
                        on_progress: ProgressCallback | None = None) -> list[DuplicateGroup]:
        """
        Service-side duplicate finding. Up to duplicate_single_call_limit
        records go in one call; larger sets are split into chunks of
        duplicate_chunk_size and the per-chunk groups concatenated. Pairs
        that straddle two chunks are never compared.
        """
        records = list(records)
        progress = _Progress(on_progress)
        if not records:
            progress.report(1.0)
            return []

        if len(records) <= self.settings.duplicate_single_call_limit:
            groups = self._find_chunk(records)
            progress.report(1.0)
            return groups

        size = self.settings.duplicate_chunk_size
        groups: list[DuplicateGroup] = []
        for start in range(0, len(records), size):
            if self._cancelled(start, len(records)):
                break
            groups.extend(self._find_chunk(records[start:start + size]))
            progress.report((start + size) / len(records))
        return groups

    def _find_chunk(self, chunk: list[CustomerRecord]) -> list[DuplicateGroup]:
        payload = [
            {"index": i, "name": r.customer_name, "address": _address_text(r)}
            for i, r in enumerate(chunk)
        ]
        self._throttle()
        try:
            raw_groups = self.service.find_duplicates(payload)
        except ServiceUnavailable as exc:
            logger.warning("duplicate finding for %d records failed, using local similarity: %s", len(chunk), exc)
            return find_duplicate_names(chunk)
        return _groups_from_service(raw_groups, chunk)

    def compare_names(self, name1: str, name2: str) -> dict:
        self._throttle()
        try:
            return self.service.compare_names(name1, name2)
        except ServiceUnavailable as exc:
            logger.warning("name comparison failed, using local similarity: %s", exc)
            return fallback_comparison(name1, name2, str(exc))


def _member(raw, chunk: list[CustomerRecord]) -> CustomerRecord | None:
    if not isinstance(raw, dict):
        return None
    index = raw.get("index")
    if isinstance(index, int) and 0 <= index < len(chunk):
        return chunk[index]
    return None


def _groups_from_service(raw_groups: list[dict], chunk: list[CustomerRecord]) -> list[DuplicateGroup]:
    groups: list[DuplicateGroup] = []
    seen: set[int] = set()
    for raw in raw_groups:
        if not isinstance(raw, dict):
            continue
        canonical = _member(raw.get("canonicalRecord"), chunk)
        if canonical is None or id(canonical) in seen:
            continue
        members = [canonical]
        member_ids = {id(canonical)}
        for dup in raw.get("duplicates") or []:
            record = _member(dup, chunk)
            if record is not None and id(record) not in seen and id(record) not in member_ids:
                members.append(record)
                member_ids.add(id(record))
        if len(members) < 2:
            continue
        seen.update(id(m) for m in members)
        group = DuplicateGroup(key=normalize(canonical.customer_name), canonical=canonical, members=members)
        group.annotate(
            confidence=_confidence(raw.get("confidence")) or 0.0,
            reasoning=str(raw.get("reasoning") or "AI-detected business name similarity"),
        )
        groups.append(group)
    return groups


def apply_standardization(record: CustomerRecord, name_result: dict | None, address_result: dict | None) -> None:
    """
    Overwrite a record's fields with service (or fallback) output. Empty
    values in a result never blank out an existing field.
    """
    if record.original is None:
        record.original = record.snapshot()

    confidences: list[float] = []
    errors: list[str] = []
    meta = StandardizationMeta()

    if name_result:
        if name_result.get("standardizedName"):
            record.customer_name = str(name_result["standardizedName"]).strip()
        meta.changes = _as_list(name_result.get("changes"))
        meta.business_type = name_result.get("businessType")
        confidence = _confidence(name_result.get("confidence"))
        if confidence is not None:
            confidences.append(confidence)
        if name_result.get("error"):
            errors.append(str(name_result["error"]))

    if address_result:
        for field, key in [("address1", "address1"), ("address2", "address2"), ("city", "city"),
                           ("state", "state"), ("zip", "zipCode")]:
            value = address_result.get(key)
            if value:
                setattr(record, field, str(value).strip())
        meta.issues = _as_list(address_result.get("issues"))
        confidence = _confidence(address_result.get("confidence"))
        if confidence is not None:
            confidences.append(confidence)
        if address_result.get("error"):
            errors.append(str(address_result["error"]))

    meta.confidence = sum(confidences) / len(confidences) if confidences else 0.0
    meta.error = "; ".join(dict.fromkeys(errors)) or None
    record.standardization = meta
