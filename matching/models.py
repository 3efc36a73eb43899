# matching/models.py
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from matching.errors import MalformedMapping

NO_ADDRESS = "No address provided"

RawRow = dict[str, str]


class AddressMode(str, Enum):
    COMPONENTS = "components"
    SINGLE = "single"


@dataclass(slots=True)
class UploadedTable:
    """A parsed upload: file label, header order and one RawRow per data row."""

    name: str
    headers: list[str]
    rows: list[RawRow]


@dataclass(slots=True)
class ColumnMapping:
    """Which header feeds each semantic field for one uploaded file."""

    customer_name: str | None = None
    single_address: str | None = None
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    address_mode: AddressMode = AddressMode.COMPONENTS

    def address_columns(self) -> list[str]:
        if self.address_mode == AddressMode.SINGLE:
            return [self.single_address] if self.single_address else []
        cols = [self.address1, self.address2, self.city, self.state, self.zip]
        return [c for c in cols if c]

    @property
    def is_ready(self) -> bool:
        return bool(self.customer_name) and bool(self.address_columns())

    def validate(self, headers: list[str] | None = None) -> None:
        if not self.customer_name:
            raise MalformedMapping("a customer name column must be mapped")
        if not self.address_columns():
            raise MalformedMapping("at least one address column must be mapped")
        if headers is None:
            return
        missing = [c for c in [self.customer_name, *self.address_columns()] if c not in headers]
        if missing:
            raise MalformedMapping(f"mapped columns not found in file: {', '.join(missing)}")


@dataclass(slots=True)
class StandardizationMeta:
    confidence: float = 0.0
    changes: list[str] = field(default_factory=list)
    business_type: str | None = None
    issues: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass(slots=True)
class CustomerRecord:
    """Canonical customer entity: one name plus its address components."""

    customer_name: str
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    source: str = ""
    row_index: int = 0
    is_duplicate: bool = False
    is_similar: bool = False
    is_selectable_duplicate: bool = False
    standardization: StandardizationMeta | None = None
    original: dict[str, str] | None = None

    @property
    def address_parts(self) -> list[str]:
        return [self.address1, self.address2, self.city, self.state, self.zip]

    @property
    def combined_address(self) -> str:
        parts = [p.strip() for p in self.address_parts if p and p.strip()]
        return ", ".join(parts) or NO_ADDRESS

    @property
    def has_complete_address(self) -> bool:
        return all(p.strip() for p in [self.address1, self.city, self.state, self.zip])

    @property
    def is_selected_by_default(self) -> bool:
        return not self.is_duplicate or self.is_selectable_duplicate

    def snapshot(self) -> dict[str, str]:
        return {
            "customer_name": self.customer_name,
            "address1": self.address1,
            "address2": self.address2,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
        }

    def to_row(self) -> dict[str, Any]:
        """Flat dict for DataFrame display (streamlit) and JSON dumps."""
        row = {f.name: getattr(self, f.name) for f in fields(self) if f.name not in ("standardization", "original")}
        row["combined_address"] = self.combined_address
        meta = self.standardization
        row["confidence"] = meta.confidence if meta else None
        row["standardization_error"] = meta.error if meta else None
        return row


@dataclass(slots=True)
class DuplicateGroup:
    """Canonical record plus every member that shares its grouping key."""

    key: str
    canonical: CustomerRecord
    members: list[CustomerRecord] = field(default_factory=list)
    confidence: float | None = None
    reasoning: str | None = None

    def annotate(self, confidence: float, reasoning: str) -> None:
        if self.confidence is not None or self.reasoning is not None:
            raise ValueError(f"duplicate group {self.key!r} is already annotated")
        self.confidence = confidence
        self.reasoning = reasoning

    @property
    def best(self) -> CustomerRecord | None:
        return next((m for m in self.members if m.is_selectable_duplicate), None)

    def __len__(self) -> int:
        return len(self.members)


@dataclass(slots=True)
class DedupResult:
    records: list[CustomerRecord] = field(default_factory=list)
    groups: list[DuplicateGroup] = field(default_factory=list)

    @property
    def unique(self) -> list[CustomerRecord]:
        return [r for r in self.records if not r.is_duplicate]

    @property
    def duplicates(self) -> list[CustomerRecord]:
        return [r for r in self.records if r.is_duplicate]

    @property
    def selected(self) -> list[CustomerRecord]:
        return [r for r in self.records if r.is_selected_by_default]
