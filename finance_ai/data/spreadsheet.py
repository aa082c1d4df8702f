"""Spreadsheet fallback source.

Each table maps to a fixed workbook name in a directory. Only the first sheet is read and its first
row is the header. A missing workbook is not an error: the table is simply empty.
"""

from __future__ import annotations

import asyncio
import logging
import zipfile
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from finance_ai.data.records import MAX_ROWS, ResultStatus, TableResult, build_table_from_records
from finance_ai.query.descriptor import QueryDescriptor
from finance_ai.query.engine import PAGE_SIZE_ALL, GridState, run_query
from finance_ai.query.registry import Table, describe
from finance_ai.query.resolve import DEFAULT_POLICY, LenientPolicy

logger = logging.getLogger(__name__)

WORKBOOK_NAMES: dict[Table, str] = {
    Table.clients: "клиенты-ai.xlsx",
    Table.contacts: "контакты-ai.xlsx",
    Table.tenders: "тендеры-ai.xlsx",
}


def _header_keys(header: tuple[Any, ...]) -> list[str]:
    keys: list[str] = []
    for idx, cell in enumerate(header):
        name = str(cell).strip() if cell is not None else ""
        keys.append(name or f"column_{idx + 1}")
    return keys


def _is_empty_row(values: tuple[Any, ...]) -> bool:
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in values)


def read_workbook_records(path: Path) -> list[dict[str, Any]]:
    """Records of the first sheet of a workbook, keyed by the header row."""

    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []

        keys = _header_keys(header)
        records: list[dict[str, Any]] = []
        for values in rows:
            if _is_empty_row(values):
                continue
            records.append({key: (values[i] if i < len(values) else None) for i, key in enumerate(keys)})
        return records
    finally:
        workbook.close()


class SpreadsheetTableSource:
    """Reads tables from workbooks; descriptors are applied in memory by the grid engine."""

    def __init__(
            self,
            directory: str | Path,
            *,
            policy: LenientPolicy = DEFAULT_POLICY,
            max_rows: int = MAX_ROWS,
    ) -> None:
        self.directory = Path(directory)
        self.policy = policy
        self.max_rows = max_rows

    def workbook_path(self, table: Table) -> Path:
        return self.directory / WORKBOOK_NAMES[table]

    def load(self, table: Table) -> TableResult:
        path = self.workbook_path(table)
        if not path.exists():
            logger.warning("workbook not found table=%s path=%s", table, path)
            return TableResult(table=table.value, status=ResultStatus.empty)

        try:
            records = read_workbook_records(path)
        except (InvalidFileException, zipfile.BadZipFile, OSError) as exc:
            logger.warning("workbook unreadable table=%s path=%s error=%s", table, path, exc)
            return TableResult.failed(
                ResultStatus.query_error,
                f"Не удалось прочитать файл {path.name}: {exc}",
                table=table.value,
            )
        return build_table_from_records(records, self.max_rows, table=table)

    async def fetch(self, table: str | Table | None) -> TableResult:
        return await asyncio.to_thread(self.load, self.policy.table_for(table))

    async def fetch_by_descriptor(self, descriptor: QueryDescriptor) -> TableResult:
        table = self.policy.table_for(descriptor.table)
        result = await asyncio.to_thread(self.load, table)
        if result.status != ResultStatus.ok:
            return result

        state = GridState.from_descriptor(descriptor, result.columns, schema=describe(table), policy=self.policy)
        state.page_size = PAGE_SIZE_ALL
        view = run_query(state, result.columns, result.rows, policy=self.policy)
        return result.model_copy(update={"rows": view.rows})
