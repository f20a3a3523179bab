"""Excel (xlsx) file loader."""
import re
import zipfile
from typing import Any

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from job_pipeline_core.ingest.loaders.base import BaseLoader
from job_pipeline_core.ingest.normalize import normalize_record

# xlsx files are zip archives
ZIP_MAGIC = b"PK\x03\x04"

# Number formats such as "00000" that display leading zeros.
ZERO_PAD_FORMAT = re.compile(r"^0+$")


def cell_value(cell) -> Any:
    """A cell's value as displayed, for zero-padded integer formats."""
    value = cell.value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    fmt = cell.number_format or ""
    if ZERO_PAD_FORMAT.match(fmt) and float(value).is_integer():
        return str(int(value)).zfill(len(fmt))
    return value


def _headers(cells) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for i, cell in enumerate(cells):
        name = str(cell.value).strip() if cell.value is not None else f"Unnamed: {i}"
        if name in seen:
            seen[name] += 1
            name = f"{name}.{seen[name]}"
        else:
            seen[name] = 0
        headers.append(name)
    return headers


class ExcelLoader(BaseLoader):
    """Loader for one sheet of an xlsx workbook (the first by default).

    Cells keep their stored types instead of a per-column dtype, so an id
    column with blanks does not turn 1001 into 1001.0.
    """

    name = "xlsx"

    def detect(self, head: bytes, suffix: str) -> bool:
        return suffix in (".xlsx", ".xlsm") and head.startswith(ZIP_MAGIC)

    def load(self, file_path: str, options: dict) -> list[dict[str, Any]]:
        try:
            wb = load_workbook(file_path, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
            raise ValueError(f"Excel parse error: {e}") from e
        try:
            sheet = options.get("sheet", 0)
            try:
                ws = wb.worksheets[sheet] if isinstance(sheet, int) else wb[sheet]
            except (IndexError, KeyError) as e:
                raise ValueError(f"Excel sheet not found: {sheet}") from e
            rows = ws.iter_rows()
            first = next(rows, None)
            if first is None:
                return []
            headers = _headers(first)
            width = len(headers)
            data = []
            for row in rows:
                values = [cell_value(c) for c in row][:width]
                data.append(values + [None] * (width - len(values)))
        finally:
            wb.close()
        df = pd.DataFrame(data, columns=headers, dtype=object).dropna(how="all")
        return [normalize_record(r) for r in df.to_dict("records")]
