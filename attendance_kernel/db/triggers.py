"""
Module: attendance_kernel.db.triggers
Responsibility: Loading, installing, and verifying PostgreSQL immutability
    triggers.  This is the database-level complement to the ORM listeners in
    db/immutability.py and catches raw SQL and bulk statements the ORM never
    sees.
Architecture position: Kernel > DB.  May import from db/ only.

Invariants enforced:
    - AuditEntry rows: no UPDATE, no DELETE.
    - Finalized AttendanceRecord rows: clock data frozen, no DELETE.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on violation (surfaces as a DBAPI error
      wrapped by SQLAlchemy).
    - FileNotFoundError if a SQL file is missing from sql/.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

from attendance_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

SQL_DIR = Path(__file__).parent / "sql"

TRIGGER_FILES = [
    "01_audit_entry.sql",
    "02_attendance_record.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_audit_entry_immutability_update",
    "trg_audit_entry_immutability_delete",
    "trg_attendance_record_immutability_update",
    "trg_attendance_record_immutability_delete",
]


def _load_sql_file(filename: str) -> str:
    return (SQL_DIR / filename).read_text(encoding="utf-8")


def _execute_script(engine: Engine, sql_content: str) -> None:
    with engine.connect() as conn:
        conn.execute(text(sql_content))
        conn.commit()


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers.

    Preconditions: Tables exist and engine is connected to PostgreSQL.
    Postconditions: Every trigger in ALL_TRIGGER_NAMES is installed
        (CREATE OR REPLACE, so repeated calls are safe).
    """
    parts = []
    for filename in TRIGGER_FILES:
        parts.append(f"-- Loading: {filename}")
        parts.append(_load_sql_file(filename))
    _execute_script(engine, "\n".join(parts))
    logger.info("immutability_triggers_installed", extra={"files": TRIGGER_FILES})


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    Only for teardown and migrations; reinstall immediately afterwards.
    """
    _execute_script(engine, _load_sql_file(DROP_FILE))
    logger.warning("immutability_triggers_uninstalled")


def get_installed_triggers(engine: Engine) -> list[str]:
    """Installed immutability trigger names, sorted."""
    with engine.connect() as conn:
        result = conn.execute(
            text("SELECT tgname FROM pg_trigger WHERE tgname = ANY(:names) ORDER BY tgname"),
            {"names": ALL_TRIGGER_NAMES},
        )
        return [row[0] for row in result]


def triggers_installed(engine: Engine) -> bool:
    """True iff every expected immutability trigger is present."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
