"""Cell normalization for tabular rows."""
from datetime import date
from typing import Any

import pandas as pd


def normalize_value(v: Any) -> str | None:
    """Normalize a cell to a stripped string, or None when blank."""
    if v is None:
        return None
    if not isinstance(v, (list, dict)) and pd.isna(v):
        return None
    if isinstance(v, float):
        # Spreadsheet numbers such as enrollment ids come back as 1234.0
        if v.is_integer():
            return str(int(v))
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, date):
        return v.strftime("%Y-%m-%d")
    s = str(v).strip()
    return s or None


def normalize_record(row: dict) -> dict[str, str | None]:
    """Normalize every cell in a row; header names are stripped too."""
    return {str(k).strip(): normalize_value(v) for k, v in row.items()}
