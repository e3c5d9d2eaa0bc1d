from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from .catalog import CatalogIndex
from .model import AccumulationPolicy, OrderLine, SalesAggregate, SalesEntry
from .resolver import resolve_identity

logger = logging.getLogger(__name__)


def aggregate_sales(
    lines: Iterable[OrderLine],
    index: CatalogIndex,
    lot_overrides: Optional[Mapping[str, int]] = None,
    policy: AccumulationPolicy = AccumulationPolicy.SUM,
) -> SalesAggregate:
    """
    Fold order lines into single-unit sales totals keyed by resolved identity.

    Zero-quantity lines are skipped before resolution. The first line for a
    key fixes the entry's name/ASIN/JAN. What later lines for the same key do
    depends on `policy`: SUM adds their counts, FIRST drops them (and logs it).
    """
    policy = AccumulationPolicy.from_value(policy)
    result = SalesAggregate()

    for line in lines:
        if line.quantity <= 0:
            continue

        ident = resolve_identity(line, index, lot_overrides)
        if not ident.matched:
            result.unmatched.append(line)

        single_units = ident.lot_unit * line.quantity
        key = ident.key
        entry = result.entries.get(key)

        if entry is None:
            result.entries[key] = SalesEntry(
                key=key,
                product_name=ident.product_name,
                asin=ident.asin,
                jan=ident.jan,
                raw_count=line.quantity,
                single_unit_count=single_units,
            )
        elif policy is AccumulationPolicy.SUM:
            entry.raw_count += line.quantity
            entry.single_unit_count += single_units
        else:
            result.dropped_collisions += 1
            logger.warning(
                "aggregate: dropped %d unit(s) for %r (first-line-wins policy)", single_units, key
            )

    logger.info(
        "aggregate: %d item(s), %d single unit(s), %d unmatched line(s)",
        len(result), result.total_single_units, len(result.unmatched),
    )
    return result
