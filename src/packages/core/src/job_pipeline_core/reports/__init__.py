from job_pipeline_core.reports.assemble import ReportTable, apply_filters, assemble_report
from job_pipeline_core.reports.definitions import (
    REPORT_DEFINITIONS,
    ColumnDef,
    ReportDefinition,
    get_definition,
    validate_report_config,
)
from job_pipeline_core.reports.export import EXPORTERS, export_report

__all__ = [
    "ColumnDef",
    "EXPORTERS",
    "REPORT_DEFINITIONS",
    "ReportDefinition",
    "ReportTable",
    "apply_filters",
    "assemble_report",
    "export_report",
    "get_definition",
    "validate_report_config",
]
