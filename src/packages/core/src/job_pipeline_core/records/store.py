"""Record store: where import jobs write students, staff and internships.

Stands in for the portal's own tables. Rows are unique per
(scope, kind, identifier), which is the downstream constraint an import
can trip over one record at a time.
"""
import json
import sqlite3
from typing import Any

import structlog

from job_pipeline_core.util.db import get_conn as _get_conn
from job_pipeline_core.util.errors import RecordError
from job_pipeline_core.util.time import utc_now_iso

logger = structlog.get_logger()

SCHEMA = """
CREATE TABLE IF NOT EXISTS portal_records (
    scope_id TEXT NOT NULL,
    kind TEXT NOT NULL,
    identifier TEXT NOT NULL,
    job_id TEXT,
    fields TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (scope_id, kind, identifier)
);
"""

STUDENT = "student"
STAFF = "staff"
SELF_INTERNSHIP = "self_internship"

# Fields by which an internship row may point at a student.
STUDENT_LOOKUP_FIELDS = ("email", "roll_number", "enrollment_number")

CONFLICT_MESSAGES = {
    STUDENT: "Enrollment number already exists in the system",
    STAFF: "Email already exists in the system",
    SELF_INTERNSHIP: "Student already has a self-identified internship in the system",
}


def get_conn():
    return _get_conn(SCHEMA)


def _key(identifier: str) -> str:
    return identifier.strip().casefold()


def insert_record(
    scope_id: str, kind: str, identifier: str, fields: dict[str, Any], job_id: str | None = None
) -> bool:
    """Insert one record. Returns False if it already exists."""
    with get_conn() as conn:
        try:
            conn.execute(
                """
                INSERT INTO portal_records (scope_id, kind, identifier, job_id, fields, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (scope_id, kind, _key(identifier), job_id, json.dumps(fields), utc_now_iso()),
            )
        except sqlite3.IntegrityError:
            return False
    return True


def get_record(scope_id: str, kind: str, identifier: str) -> dict[str, Any] | None:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT * FROM portal_records WHERE scope_id = ? AND kind = ? AND identifier = ?",
            (scope_id, kind, _key(identifier)),
        ).fetchone()
    if row is None:
        return None
    out = dict(row)
    out["fields"] = json.loads(out["fields"])
    return out


def query_records(scope_id: str, kind: str) -> list[dict[str, Any]]:
    """All field dicts of one kind within a scope, oldest first."""
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT fields FROM portal_records WHERE scope_id = ? AND kind = ? ORDER BY created_at, identifier",
            (scope_id, kind),
        ).fetchall()
    return [json.loads(r["fields"]) for r in rows]


class ScopedRecordWriter:
    """The only write path for an import job.

    Bound to the job's scope and id: every write is stamped with that scope,
    and a row that names a different scope is refused.
    """

    def __init__(self, scope_id: str, job_id: str):
        if not scope_id or not scope_id.strip():
            raise ValueError("scope_id is required")
        self.scope_id = scope_id
        self.job_id = job_id
        self._student_keys: set[str] | None = None

    def _check_scope(self, fields: dict[str, Any]) -> None:
        claimed = fields.get("scope_id")
        if claimed and str(claimed) != self.scope_id:
            raise RecordError(f"Record belongs to scope {claimed}, not {self.scope_id}")

    def _student_exists(self, identifier: str) -> bool:
        if self._student_keys is None:
            keys = set()
            for fields in query_records(self.scope_id, STUDENT):
                for name in STUDENT_LOOKUP_FIELDS:
                    if fields.get(name):
                        keys.add(_key(str(fields[name])))
            self._student_keys = keys
        return _key(identifier) in self._student_keys

    def write(self, kind: str, identifier: str, fields: dict[str, Any]) -> None:
        """Write one record or raise RecordError.

        A conflict with a row this same job wrote earlier (a replay after a
        lease was reaped, or a retry) counts as success.
        """
        if not identifier:
            raise RecordError("Record has no identifier")
        self._check_scope(fields)
        if kind == SELF_INTERNSHIP and not self._student_exists(identifier):
            raise RecordError("Student not found in the system")

        stored = {k: v for k, v in fields.items() if k != "scope_id"}
        if insert_record(self.scope_id, kind, identifier, stored, job_id=self.job_id):
            if kind == STUDENT and self._student_keys is not None:
                self._student_keys.update(
                    _key(str(stored[n])) for n in STUDENT_LOOKUP_FIELDS if stored.get(n)
                )
            return
        existing = get_record(self.scope_id, kind, identifier)
        if existing is not None and existing["job_id"] == self.job_id:
            logger.debug("record_replayed", job_id=self.job_id, identifier=identifier)
            return
        raise RecordError(CONFLICT_MESSAGES.get(kind, "Record already exists in the system"))
