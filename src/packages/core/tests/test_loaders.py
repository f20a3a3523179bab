"""Tests for file loaders."""
import pytest
from openpyxl import Workbook

from job_pipeline_core.ingest import detect_format, load_records, preview_records
from job_pipeline_core.ingest.normalize import normalize_value


def test_detect_csv(tmp_path):
    p = tmp_path / "a.csv"
    p.write_text("Name,Email,Enrollment Number\nAsha,asha@example.com,EN001")
    assert detect_format(str(p)) == "csv"


def test_detect_json(tmp_path):
    p = tmp_path / "a.json"
    p.write_text('[{"email": "asha@example.com"}]')
    assert detect_format(str(p)) == "json"


def test_detect_jsonl(tmp_path):
    p = tmp_path / "a.jsonl"
    p.write_text('{"email": "a@example.com"}\n{"email": "b@example.com"}')
    assert detect_format(str(p)) == "jsonl"


def test_detect_tsv(tmp_path):
    p = tmp_path / "a.tsv"
    p.write_text("Name\tEmail\nAsha\tasha@example.com")
    assert detect_format(str(p)) == "tsv"


def test_detect_xlsx(tmp_path):
    p = tmp_path / "a.xlsx"
    wb = Workbook()
    wb.active.append(["Name", "Email"])
    wb.save(p)
    assert detect_format(str(p)) == "xlsx"


def test_detect_unknown_suffix(tmp_path):
    p = tmp_path / "a.txt"
    p.write_text("hello")
    assert detect_format(str(p)) is None


def test_csv_load_strips_cells_and_blanks(tmp_path):
    p = tmp_path / "a.csv"
    p.write_text("Name,Email,Phone\n  Asha ,asha@example.com,\nRavi,ravi@example.com,9876543210")
    records = load_records(str(p), "csv")
    assert len(records) == 2
    assert records[0] == {"Name": "Asha", "Email": "asha@example.com", "Phone": None}
    assert records[1]["Phone"] == "9876543210"


def test_csv_preview(tmp_path):
    p = tmp_path / "a.csv"
    p.write_text("id,name\n1,a\n2,b\n3,c\n4,d\n5,e")
    assert len(preview_records(str(p), "csv", max_rows=3)) == 3


def test_tsv_load(tmp_path):
    p = tmp_path / "a.tsv"
    p.write_text("Name\tRoll No\nAsha\t17\nRavi\t18")
    records = load_records(str(p), "tsv")
    assert [r["Roll No"] for r in records] == ["17", "18"]


def test_xlsx_load_numbers_and_dates(tmp_path):
    from datetime import datetime

    p = tmp_path / "students.xlsx"
    wb = Workbook()
    ws = wb.active
    ws.append(["Enrollment Number", "Name", "DOB"])
    ws.append([1001, "Asha", datetime(2004, 5, 17)])
    ws.append([1002, "Ravi", None])
    wb.save(p)

    records = load_records(str(p), "xlsx")
    assert len(records) == 2
    assert records[0]["Enrollment Number"] == "1001"
    assert records[0]["DOB"] == "2004-05-17"
    assert records[1]["DOB"] is None


def test_xlsx_keeps_leading_zeros_like_csv(tmp_path):
    xlsx = tmp_path / "students.xlsx"
    wb = Workbook()
    ws = wb.active
    ws.append(["Enrollment Number", "Phone"])
    ws.append([123, "09876543210"])
    ws.append([4567, None])
    ws.append([None, 9876543210])
    ws["A2"].number_format = "00000"
    ws["A3"].number_format = "00000"
    wb.save(xlsx)
    csv_path = tmp_path / "students.csv"
    csv_path.write_text("Enrollment Number,Phone\n00123,09876543210\n04567,\n,9876543210\n")

    from_xlsx = load_records(str(xlsx), "xlsx")
    assert from_xlsx == load_records(str(csv_path), "csv")
    assert from_xlsx[0] == {"Enrollment Number": "00123", "Phone": "09876543210"}
    assert from_xlsx[2]["Phone"] == "9876543210"


def test_xlsx_missing_sheet(tmp_path):
    p = tmp_path / "a.xlsx"
    Workbook().save(p)
    with pytest.raises(ValueError):
        load_records(str(p), "xlsx", {"sheet": "Nope"})


def test_json_load_object_with_array(tmp_path):
    p = tmp_path / "a.json"
    p.write_text('{"students": [{"semester": 3, "name": "x"}, {"semester": 4, "name": "y"}]}')
    records = load_records(str(p), "json")
    assert len(records) == 2
    assert records[0] == {"semester": "3", "name": "x"}


def test_json_load_single_object(tmp_path):
    p = tmp_path / "a.json"
    p.write_text('{"email": "only@example.com"}')
    assert load_records(str(p), "json") == [{"email": "only@example.com"}]


def test_jsonl_load(tmp_path):
    p = tmp_path / "a.jsonl"
    p.write_text('{"email": "a@example.com"}\n\n{"email": "b@example.com"}')
    records = load_records(str(p), "jsonl")
    assert [r["email"] for r in records] == ["a@example.com", "b@example.com"]


def test_json_malformed(tmp_path):
    p = tmp_path / "a.json"
    p.write_text("{ invalid json")
    with pytest.raises(ValueError, match="parse error"):
        load_records(str(p), "json")


def test_jsonl_malformed_line(tmp_path):
    p = tmp_path / "a.jsonl"
    p.write_text('{"ok": true}\n{broken}\n{"ok": false}')
    with pytest.raises(ValueError, match="line 2"):
        load_records(str(p), "jsonl")


def test_unknown_format():
    with pytest.raises(ValueError, match="Unknown format"):
        load_records("/nonexistent", "parquet")


@pytest.mark.parametrize(
    "raw,expected",
    [(None, None), ("  ", None), (" x ", "x"), (12.0, "12"), (12.5, "12.5"), (float("nan"), None), (True, "true")],
)
def test_normalize_value(raw, expected):
    assert normalize_value(raw) == expected
