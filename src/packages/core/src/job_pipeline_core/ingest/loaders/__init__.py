"""File loaders for delimited text, JSON, JSONL and Excel."""
from job_pipeline_core.ingest.loaders.base import BaseLoader
from job_pipeline_core.ingest.loaders.delimited import CSVLoader, DelimitedLoader, TSVLoader
from job_pipeline_core.ingest.loaders.excel import ExcelLoader
from job_pipeline_core.ingest.loaders.json import JSONLoader
from job_pipeline_core.ingest.loaders.jsonl import JSONLLoader

__all__ = ["BaseLoader", "DelimitedLoader", "CSVLoader", "TSVLoader", "JSONLoader", "JSONLLoader", "ExcelLoader"]
