"""Blank upload templates for each import job type."""
import io

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from job_pipeline_core.jobs.models import JobType
from job_pipeline_core.util.errors import ValidationError
from job_pipeline_core.validation.schema import CHOICE, INT, get_schema

TEMPLATE_FORMATS = ("xlsx", "csv")

# Excel's text format; typed ids and phones keep their leading zeros.
TEXT_FORMAT = "@"


def _xlsx_template(job_type: JobType) -> bytes:
    schema = get_schema(job_type)
    wb = Workbook()
    ws = wb.active
    ws.title = schema.record_kind
    ws.append(list(schema.template_headers))
    for i, (spec, header) in enumerate(zip(schema.fields, schema.template_headers), start=1):
        ws.cell(row=1, column=i).font = Font(bold=True)
        column = ws.column_dimensions[get_column_letter(i)]
        column.width = max(12, len(header) + 4)
        if spec.kind not in (INT, CHOICE):
            column.number_format = TEXT_FORMAT
    ws.freeze_panes = "A2"
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _csv_template(job_type: JobType) -> bytes:
    headers = get_schema(job_type).template_headers
    return pd.DataFrame(columns=list(headers)).to_csv(index=False).encode("utf-8")


def build_template(job_type: JobType, template_format: str = "xlsx") -> bytes:
    """Header-only upload sheet for an import job type."""
    job_type = JobType(job_type)
    if not job_type.is_import:
        raise ValidationError(f"{job_type.value} does not take a file")
    if template_format == "csv":
        return _csv_template(job_type)
    if template_format == "xlsx":
        return _xlsx_template(job_type)
    raise ValidationError(
        f"Unknown template format: {template_format}. Use one of: {', '.join(TEMPLATE_FORMATS)}"
    )
