"""Turn stored records into a filtered, grouped and sorted report table."""
from dataclasses import dataclass
from typing import Any

import pandas as pd

from job_pipeline_core.jobs.models import ReportConfig
from job_pipeline_core.reports.definitions import ColumnDef, ReportDefinition


@dataclass
class ReportTable:
    title: str
    columns: list[ColumnDef]
    frame: pd.DataFrame
    group_by: str | None = None

    @property
    def row_count(self) -> int:
        return len(self.frame)

    @property
    def headers(self) -> list[str]:
        return [c.header for c in self.columns]

    def cell_rows(self) -> list[list[str]]:
        """Rows as display strings, blanks for missing values."""
        fields = [c.field for c in self.columns]
        return [
            ["" if pd.isna(v) else str(v) for v in row]
            for row in self.frame[fields].itertuples(index=False, name=None)
        ]

    def groups(self) -> list[dict[str, Any]]:
        if not self.group_by:
            return []
        keys = self.frame[self.group_by].fillna("").astype(str)
        counts = keys.groupby(keys, sort=False).size()
        return [{"key": key, "count": int(n)} for key, n in counts.items()]


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _range_mask(series: pd.Series, bounds: dict[str, Any]) -> pd.Series:
    lo, hi = bounds.get("from"), bounds.get("to")
    given = [b for b in (lo, hi) if b is not None]
    if given and all(_as_number(b) is not None for b in given):
        values = pd.to_numeric(series, errors="coerce")
        lo, hi = _as_number(lo), _as_number(hi)
    else:
        # Dates are stored as YYYY-MM-DD, so string order is date order.
        values = series.where(series.notna(), None)
        lo = None if lo is None else str(lo)
        hi = None if hi is None else str(hi)
    mask = values.notna()
    if lo is not None:
        mask &= values.map(lambda v: v is not None and not pd.isna(v) and v >= lo).astype(bool)
    if hi is not None:
        mask &= values.map(lambda v: v is not None and not pd.isna(v) and v <= hi).astype(bool)
    return mask


def _filter_mask(series: pd.Series, value: Any) -> pd.Series:
    text = series.fillna("").astype(str).str.casefold()
    if value is None:
        return text == ""
    if isinstance(value, dict):
        return _range_mask(series, value)
    if isinstance(value, list):
        return text.isin({str(v).casefold() for v in value})
    return text == str(value).casefold()


def apply_filters(frame: pd.DataFrame, filters: dict[str, Any]) -> pd.DataFrame:
    """Scalar means equality, a list means membership, {from, to} an inclusive range."""
    for key, value in filters.items():
        if key not in frame.columns:
            frame = frame.iloc[0:0]
            continue
        frame = frame[_filter_mask(frame[key], value)]
    return frame


def _sort_key(series: pd.Series) -> pd.Series:
    numeric = pd.to_numeric(series, errors="coerce")
    if series.notna().any() and numeric[series.notna()].notna().all():
        return numeric
    return series.fillna("").astype(str).str.casefold()


def _output_columns(definition: ReportDefinition, config: ReportConfig) -> list[ColumnDef]:
    fields = list(config.columns) or list(definition.fields)
    if config.group_by:
        fields = [config.group_by] + [f for f in fields if f != config.group_by]
    return [definition.column(f) for f in fields]


def assemble_report(
    rows: list[dict[str, Any]], config: ReportConfig, definition: ReportDefinition
) -> ReportTable:
    frame = pd.DataFrame(rows, columns=list(definition.fields), dtype=object)
    frame = apply_filters(frame, config.filters)

    by: list[str] = []
    ascending: list[bool] = []
    if config.group_by:
        by.append(config.group_by)
        ascending.append(True)
    if config.sort_by and config.sort_by not in by:
        by.append(config.sort_by)
        ascending.append(config.sort_order != "desc")
    if by and not frame.empty:
        frame = frame.sort_values(
            by=by, ascending=ascending, key=_sort_key, kind="mergesort", na_position="last"
        )

    columns = _output_columns(definition, config)
    frame = frame[[c.field for c in columns]].reset_index(drop=True)
    return ReportTable(title=definition.title, columns=columns, frame=frame, group_by=config.group_by)
