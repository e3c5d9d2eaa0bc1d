from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Protocol, Sequence

from .model import WriteCommand, WriteFailure, WriteReport

logger = logging.getLogger(__name__)


class SheetWriter(Protocol):
    def write(self, command: WriteCommand) -> None: ...


class SheetsWriter:
    """Binds a GoogleSheetsService to one spreadsheet and writes one command per call."""

    def __init__(self, sheets_service, spreadsheet_id: str):
        self._sheets = sheets_service
        self._spreadsheet_id = spreadsheet_id

    def write(self, command: WriteCommand) -> None:
        self._sheets.update_range(self._spreadsheet_id, command.range, command.values_list())


def dispatch_writes(
    writer: SheetWriter,
    commands: Sequence[WriteCommand],
    max_workers: int = 8,
) -> WriteReport:
    """
    Fire every command in parallel and wait for all of them.

    The ranges are disjoint so order does not matter. There is no rollback:
    a failed command is recorded with its row key and the rest still land.
    """
    report = WriteReport()
    if not commands:
        return report

    workers = max(1, min(max_workers, len(commands)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sheet-write") as pool:
        futures = {pool.submit(writer.write, cmd): cmd for cmd in commands}
        for fut in as_completed(futures):
            cmd = futures[fut]
            try:
                fut.result()
            except Exception as e:
                logger.error("Write failed for %s at %s: %s", cmd.row_key or "<header>", cmd.range, e)
                report.failed.append(WriteFailure(command=cmd, error=str(e)))
            else:
                report.succeeded.append(cmd)

    # as_completed order is arbitrary; report in batch order
    order = {cmd: i for i, cmd in enumerate(commands)}
    report.succeeded.sort(key=lambda c: order[c])
    report.failed.sort(key=lambda f: order[f.command])

    logger.info("dispatch: %d/%d write(s) succeeded", report.success_count, len(commands))
    return report
