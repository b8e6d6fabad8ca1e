"""
ObservabilityLogger - Audit trail of scans in a local SQLite database.

One row per event, grouped by session. A session is one ``aboutyou scan``
invocation; each scanned directory contributes its own events.
"""

import json
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class LogEntry:
    """One audit event as read back from SQLite."""

    id: int
    ts: str
    session: str
    phase: str
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "LogEntry":
        return cls(
            id=row["id"],
            ts=row["ts"],
            session=row["session"],
            phase=row["phase"],
            data=json.loads(row["data"]),
        )


class ObservabilityLogger:
    """Scan audit log.

    Phases:
    - input: Directories a scan was asked to cover
    - extract: Outcome of one exploration run (status, counts, cost)
    - upsert: What one directory's upsert wrote and skipped
    - memory: Memories recorded for a directory
    - skip: A directory that was not scanned, and why
    - complete: Totals for the whole scan
    - error: A directory that failed, and why
    """

    PHASES = [
        "input",
        "extract",
        "upsert",
        "memory",
        "skip",
        "complete",
        "error",
    ]

    def __init__(self, db_path: Path):
        """Open (or create) the audit database.

        Args:
            db_path: SQLite file, usually <data_dir>/logs.db
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        self.session_id = self._new_session()

    def _init_db(self) -> None:
        """Create the events table, its indexes and views."""
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ts TEXT NOT NULL DEFAULT (datetime('now')),
                    session TEXT NOT NULL,
                    phase TEXT NOT NULL,
                    data JSON NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_events_session ON events(session);
                CREATE INDEX IF NOT EXISTS idx_events_phase ON events(phase);

                CREATE VIEW IF NOT EXISTS extractions AS
                SELECT id, ts, session,
                       json_extract(data, '$.directory') as directory,
                       json_extract(data, '$.status') as status,
                       json_extract(data, '$.entities') as entities,
                       json_extract(data, '$.memories') as memories,
                       json_extract(data, '$.cost_usd') as cost_usd
                FROM events WHERE phase = 'extract';
            """)

    def _new_session(self) -> str:
        """Timestamped id with a random suffix."""
        return f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"

    def new_session(self) -> str:
        """Start a new session and return its ID."""
        self.session_id = self._new_session()
        return self.session_id

    def log(self, phase: str, data: Dict[str, Any]) -> None:
        """Append one event to the current session.

        Args:
            phase: One of PHASES
            data: JSON-serializable payload

        Raises:
            ValueError: If phase is unknown
        """
        if phase not in self.PHASES:
            raise ValueError(f"Invalid phase: {phase}. Must be one of {self.PHASES}")

        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO events (session, phase, data) VALUES (?, ?, ?)",
                (self.session_id, phase, json.dumps(data, default=str)),
            )

    # Convenience methods

    def log_input(self, directories: List[str], dry_run: bool = False) -> None:
        self.log("input", {"directories": directories, "count": len(directories), "dry_run": dry_run})

    def log_extract(self, outcome: Dict[str, Any]) -> None:
        """Log one exploration run (an ``ExtractionOutcome.to_dict()``)."""
        self.log("extract", outcome)

    def log_upsert(self, directory: str, stats: Dict[str, Any]) -> None:
        self.log("upsert", {"directory": directory, **stats})

    def log_memory(self, directory: str, count: int) -> None:
        self.log("memory", {"directory": directory, "count": count})

    def log_skip(self, directory: str, reason: str) -> None:
        self.log("skip", {"directory": directory, "reason": reason})

    def log_complete(self, totals: Dict[str, Any]) -> None:
        self.log("complete", totals)

    def log_error(
        self,
        error_type: str,
        directory: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        """Log errors and where they happened.

        Args:
            error_type: Exception class name or short error kind
            directory: Optional directory being scanned
            details: Optional error message
        """
        data: Dict[str, Any] = {"error_type": error_type}
        if directory:
            data["directory"] = directory
        if details:
            data["details"] = details

        self.log("error", data)

    # Query methods

    def get_session(self, session_id: Optional[str] = None) -> List[LogEntry]:
        """Every event of a session in insertion order (defaults to the current one)."""
        session_id = session_id or self.session_id

        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM events WHERE session = ? ORDER BY id",
                (session_id,),
            ).fetchall()
            return [LogEntry.from_row(row) for row in rows]

    def get_errors(self, since: Optional[str] = None, limit: int = 100) -> List[LogEntry]:
        """Error events across all sessions.

        Args:
            since: Optional timestamp (``YYYY-MM-DD HH:MM:SS``) to filter from
            limit: Maximum results

        Returns:
            List of error LogEntry objects, newest first
        """
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row

            if since:
                rows = conn.execute(
                    """
                    SELECT * FROM events
                    WHERE phase = 'error' AND ts >= ?
                    ORDER BY id DESC LIMIT ?
                    """,
                    (since, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM events WHERE phase = 'error' ORDER BY id DESC LIMIT ?",
                    (limit,),
                ).fetchall()

            return [LogEntry.from_row(row) for row in rows]

    def get_last_session(self, completed_only: bool = True) -> Optional[str]:
        """Most recent session id, or None if nothing was logged.

        Args:
            completed_only: Only consider sessions that logged ``complete``
        """
        query = "SELECT session FROM events"
        if completed_only:
            query += " WHERE phase = 'complete'"
        query += " ORDER BY id DESC LIMIT 1"

        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(query).fetchone()
            return row[0] if row else None

    def get_session_summary(self, session_id: Optional[str] = None) -> Dict[str, Any]:
        """Summarize one scan session.

        Args:
            session_id: Session to summarize (defaults to the current one)

        Returns:
            Dictionary with phase counts, extraction status counts and the
            ``complete`` totals when the session finished
        """
        session_id = session_id or self.session_id

        with sqlite3.connect(self.db_path) as conn:
            phase_counts = {}
            for row in conn.execute(
                "SELECT phase, COUNT(*) FROM events WHERE session = ? GROUP BY phase",
                (session_id,),
            ):
                phase_counts[row[0]] = row[1]

            status_counts = {}
            for row in conn.execute(
                """
                SELECT json_extract(data, '$.status') as status, COUNT(*)
                FROM events
                WHERE session = ? AND phase = 'extract'
                GROUP BY json_extract(data, '$.status')
                """,
                (session_id,),
            ):
                if row[0]:
                    status_counts[row[0]] = row[1]

            totals_row = conn.execute(
                """
                SELECT ts, data FROM events
                WHERE session = ? AND phase = 'complete'
                ORDER BY id DESC LIMIT 1
                """,
                (session_id,),
            ).fetchone()

            return {
                "session_id": session_id,
                "phase_counts": phase_counts,
                "status_counts": status_counts,
                "error_count": phase_counts.get("error", 0),
                "total_events": sum(phase_counts.values()),
                "completed_at": totals_row[0] if totals_row else None,
                "totals": json.loads(totals_row[1]) if totals_row else None,
            }
