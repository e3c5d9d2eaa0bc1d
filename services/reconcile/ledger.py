"""
Append-only ledger writes.

The inventory sheet keeps a trail of past stock updates in fixed-width
column groups (date, time, quantity, manager) to the right of the stock
columns. A new batch always goes into the first group that nobody has
written to yet, so an update never overwrites an older audit entry.
"""
from __future__ import annotations

import logging
from typing import List, Sequence

from services.exceptions import DataProcessingError, NoWriteSlotError, PreconditionError

from .model import InventoryRow, MergedItem, WriteCommand
from .schema import InventoryLayout

logger = logging.getLogger(__name__)


def quote_sheet_name(sheet_name: str) -> str:
    return "'" + sheet_name.replace("'", "''") + "'"


def _is_blank(value) -> bool:
    return value is None or not str(value).strip()


def group_is_clean(rows: Sequence[InventoryRow], offset: int, layout: InventoryLayout) -> bool:
    for row in rows:
        for idx in layout.group_span(offset):
            if idx < len(row.cells) and not _is_blank(row.cells[idx]):
                return False
    return True


def _preview_keys(items: Sequence[MergedItem], limit: int = 8) -> str:
    keys = [m.key for m in items]
    shown = ", ".join(keys[:limit])
    return shown + (f" … (+{len(keys) - limit} more)" if len(keys) > limit else "")


def select_write_slot(
    snapshot_rows: Sequence[InventoryRow],
    to_update: Sequence[MergedItem],
    layout: InventoryLayout,
) -> int:
    """
    Return the offset of the first candidate group that is blank in every
    snapshot row. Rows that are not being updated count too: a group is taken
    as soon as any row has written into it.
    """
    if not to_update:
        raise PreconditionError("Nothing to update: no inventory row has sales in this order file.")

    for offset in layout.candidate_offsets:
        if group_is_clean(snapshot_rows, offset, layout):
            logger.info(
                "ledger: using column group %s-%s (offset %d) for %d row(s)",
                layout.column_letter(offset),
                layout.column_letter(offset + layout.group_width - 1),
                offset,
                len(to_update),
            )
            return offset
        logger.debug("ledger: column group at offset %d already holds data", offset)

    raise NoWriteSlotError(
        f"No available write slot: all {len(layout.candidate_offsets)} column groups already hold data. "
        f"Clear or archive an old group before updating {len(to_update)} item(s): {_preview_keys(to_update)}",
        update_keys=[m.key for m in to_update],
    )


def build_write_batch(
    *,
    sheet_name: str,
    offset: int,
    to_update: Sequence[MergedItem],
    snapshot_rows: Sequence[InventoryRow],
    layout: InventoryLayout,
    date: str,
    time: str,
    manager: str,
) -> List[WriteCommand]:
    """One header date marker plus one (date, time, quantity, manager) row per updated item."""
    sheet = quote_sheet_name(sheet_name)
    first = layout.column_letter(offset)
    last = layout.column_letter(offset + layout.group_width - 1)

    commands: List[WriteCommand] = [
        WriteCommand(
            sheet_name=sheet_name,
            range=f"{sheet}!{first}{layout.header_row}",
            values=((date,),),
            row_key=None,
        )
    ]

    for item in to_update:
        if item.position < 0 or item.position >= len(snapshot_rows):
            raise DataProcessingError(f"Row for {item.key!r} is outside the inventory snapshot.")
        source = snapshot_rows[item.position]
        if source.jan.strip() != item.jan.strip():
            raise DataProcessingError(
                f"Inventory row {layout.row_number(item.position)} no longer matches {item.key!r} "
                f"(found JAN {source.jan!r}). Reload the sheet and try again."
            )
        row_no = layout.row_number(source.position)
        commands.append(WriteCommand(
            sheet_name=sheet_name,
            range=f"{sheet}!{first}{row_no}:{last}{row_no}",
            values=((date, time, item.updated_quantity, manager),),
            row_key=item.key,
        ))

    return commands
