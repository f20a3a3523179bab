"""Serialize a report table to csv, excel, json or pdf bytes."""
import io
import json
import math

from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure

from job_pipeline_core.reports.assemble import ReportTable
from job_pipeline_core.util.errors import ValidationError
from job_pipeline_core.util.time import utc_now_iso

PDF_ROWS_PER_PAGE = 30
# A4 landscape, inches
PDF_PAGE_SIZE = (11.69, 8.27)


def _display_frame(table: ReportTable):
    return table.frame.rename(columns={c.field: c.header for c in table.columns})


def to_csv(table: ReportTable) -> bytes:
    return _display_frame(table).to_csv(index=False).encode("utf-8")


def to_excel(table: ReportTable) -> bytes:
    buf = io.BytesIO()
    _display_frame(table).to_excel(buf, index=False, sheet_name="Report", engine="openpyxl")
    return buf.getvalue()


def to_json(table: ReportTable) -> bytes:
    data = [
        {c.field: value for c, value in zip(table.columns, row)}
        for row in table.frame.astype(object).where(table.frame.notna(), None).itertuples(index=False, name=None)
    ]
    doc = {
        "title": table.title,
        "generatedAt": utc_now_iso(),
        "totalRecords": table.row_count,
        "columns": [{"field": c.field, "header": c.header} for c in table.columns],
        "data": data,
    }
    if table.group_by:
        doc["groupBy"] = table.group_by
        doc["groups"] = table.groups()
    return json.dumps(doc, indent=2).encode("utf-8")


def to_pdf(table: ReportTable) -> bytes:
    # Figures are built without pyplot so worker threads share no global state.
    rows = table.cell_rows()
    pages = max(1, math.ceil(len(rows) / PDF_ROWS_PER_PAGE))
    buf = io.BytesIO()
    with PdfPages(buf) as pdf:
        for page in range(pages):
            chunk = rows[page * PDF_ROWS_PER_PAGE:(page + 1) * PDF_ROWS_PER_PAGE]
            fig = Figure(figsize=PDF_PAGE_SIZE)
            ax = fig.add_subplot(111)
            ax.axis("off")
            ax.set_title(f"{table.title} ({page + 1}/{pages})", fontsize=12)
            if chunk:
                cells = ax.table(cellText=chunk, colLabels=table.headers, loc="upper center", cellLoc="left")
                cells.auto_set_font_size(False)
                cells.set_fontsize(7)
                cells.auto_set_column_width(list(range(len(table.headers))))
            pdf.savefig(fig)
    return buf.getvalue()


EXPORTERS = {
    "csv": to_csv,
    "excel": to_excel,
    "json": to_json,
    "pdf": to_pdf,
}


def export_report(table: ReportTable, export_format: str) -> bytes:
    try:
        exporter = EXPORTERS[export_format]
    except KeyError:
        raise ValidationError(f"Unsupported export format: {export_format}") from None
    return exporter(table)
