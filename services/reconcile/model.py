from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CatalogRow:
    primary_code: str
    secondary_code: str
    asin: str
    jan: str
    lot_unit: int                       # parsed once, 1 when blank or junk
    product_name: str


@dataclass(frozen=True)
class OrderLine:
    item_code: str
    item_sku: str
    quantity: int
    product_name: str
    lot_override_code: str = ""


class ResolutionPath(str, Enum):
    PRIMARY = "primary"
    SECONDARY_FALLBACK = "secondary_fallback"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class ResolvedIdentity:
    asin: str
    jan: str
    product_name: str
    lot_unit: int
    matched: bool
    path: ResolutionPath = ResolutionPath.UNMATCHED

    @property
    def key(self) -> str:
        return identity_key(self.jan, self.asin, self.product_name)


def identity_key(jan: str, asin: str, product_name: str) -> str:
    """First non-empty of JAN, ASIN, product name."""
    return jan or asin or product_name


class AccumulationPolicy(str, Enum):
    SUM = "sum"          # every collapsing line adds to the total
    FIRST = "first"      # the first line for a key wins, later ones are dropped

    @classmethod
    def from_value(cls, value) -> "AccumulationPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "sum").strip().lower())
        except ValueError:
            raise ValueError(f"Unknown aggregation policy: {value!r} (expected 'sum' or 'first')")


@dataclass
class SalesEntry:
    key: str
    product_name: str
    asin: str
    jan: str
    raw_count: int
    single_unit_count: int


@dataclass
class SalesAggregate:
    entries: Dict[str, SalesEntry] = field(default_factory=dict)
    unmatched: List[OrderLine] = field(default_factory=list)
    dropped_collisions: int = 0

    def __contains__(self, key: str) -> bool:
        return key in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, key: str) -> Optional[SalesEntry]:
        return self.entries.get(key)

    @property
    def total_single_units(self) -> int:
        return sum(e.single_unit_count for e in self.entries.values())

    def as_list(self) -> List[SalesEntry]:
        return list(self.entries.values())


@dataclass(frozen=True)
class InventoryRow:
    position: int                       # 0-based index below the header row
    product_name: str
    asin: str
    jan: str
    quantity: int
    cells: Tuple[str, ...]              # padded raw row, ledger region included


@dataclass(frozen=True)
class MergedItem:
    position: int
    product_name: str
    asin: str
    jan: str
    quantity: int
    sales_count: int
    updated_quantity: int

    @property
    def key(self) -> str:
        return identity_key(self.jan, self.asin, self.product_name)

    @property
    def is_oversold(self) -> bool:
        return self.updated_quantity < 0


@dataclass(frozen=True)
class WriteCommand:
    sheet_name: str
    range: str
    values: Tuple[Tuple, ...]
    row_key: Optional[str] = None       # None for the header marker

    def values_list(self) -> List[list]:
        return [list(r) for r in self.values]


@dataclass(frozen=True)
class WriteFailure:
    command: WriteCommand
    error: str


@dataclass
class WriteReport:
    succeeded: List[WriteCommand] = field(default_factory=list)
    failed: List[WriteFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def failed_keys(self) -> List[str]:
        return [f.command.row_key or "<header>" for f in self.failed]

    @property
    def failed_commands(self) -> List[WriteCommand]:
        return [f.command for f in self.failed]

    def to_dict(self) -> dict:
        return {
            "succeeded": self.success_count,
            "failed": self.failure_count,
            "failures": [
                {"key": f.command.row_key or "<header>", "range": f.command.range, "error": f.error}
                for f in self.failed
            ],
        }
