"""Delimited text loaders (CSV and TSV)."""
import csv
from typing import Any

import pandas as pd

from job_pipeline_core.ingest.loaders.base import BaseLoader
from job_pipeline_core.ingest.normalize import normalize_record


class DelimitedLoader(BaseLoader):
    """Spreadsheet exports saved as delimited text; the first line is the header."""

    suffixes: tuple[str, ...] = ()
    sep = ","

    def detect(self, head: bytes, suffix: str) -> bool:
        if suffix not in self.suffixes:
            return False
        first_line = head.decode("utf-8", errors="replace").split("\n")[0]
        if self.sep != "," and self.sep not in first_line:
            return False
        try:
            list(csv.reader([first_line], delimiter=self.sep))
        except csv.Error:
            return False
        return True

    def load(self, file_path: str, options: dict) -> list[dict[str, Any]]:
        try:
            df = pd.read_csv(
                file_path,
                sep=self.sep,
                dtype=str,
                keep_default_na=False,
                # Excel writes a BOM in front of UTF-8 CSVs
                encoding=options.get("encoding", "utf-8-sig"),
                skip_blank_lines=True,
            )
        except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ValueError(f"{self.name.upper()} parse error: {e}") from e
        return [normalize_record(r) for r in df.to_dict("records")]


class CSVLoader(DelimitedLoader):
    name = "csv"
    suffixes = (".csv",)


class TSVLoader(DelimitedLoader):
    name = "tsv"
    suffixes = (".tsv", ".tab")
    sep = "\t"
