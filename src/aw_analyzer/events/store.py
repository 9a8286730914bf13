"""Read-only access to the ActivityWatch server database.

The handle is constructed explicitly and passed to whoever needs it
(HTTP app state, CLI, scheduler), opened at process start and closed on
shutdown. Nothing here writes to the database.
"""

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path

from ..config import get_aw_db_path
from ..logging_config import get_logger
from ..types import BucketInfo
from .models import RawEvent

logger = get_logger(__name__, namespace='events')

_EVENT_COLUMNS = '''
    e.id,
    e.bucket_id,
    e.timestamp,
    e.duration,
    e.datastr,
    b.type,
    b.name,
    b.hostname
'''


def safe_to_string(data) -> str | None:
    """Convert a possibly-binary column value to a string.

    Bytes are decoded as UTF-8, falling back to latin-1 when the result
    contains replacement characters.
    """
    if data is None:
        return None
    if isinstance(data, (bytes, bytearray, memoryview)):
        raw = bytes(data)
        text = raw.decode('utf-8', errors='replace')
        if '\ufffd' in text:
            return raw.decode('latin-1')
        return text
    if isinstance(data, str):
        return data
    return str(data)


def safe_parse_datastr(datastr) -> str:
    """Return the payload as valid JSON text.

    Empty payloads become '{}'; text that is not JSON is wrapped as a JSON
    string so downstream parsing never sees garbage.
    """
    text = safe_to_string(datastr)
    if not text:
        return '{}'
    try:
        json.loads(text)
        return text
    except json.JSONDecodeError:
        return json.dumps(text)


def parse_db_timestamp(value) -> datetime:
    """Parse a peewee timestamp column into an aware UTC datetime."""
    text = safe_to_string(value) or ''
    dt = datetime.fromisoformat(text.strip())
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_db_timestamp(dt: datetime) -> str:
    """Format a datetime the way peewee stores it, for range comparisons."""
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt.astimezone(timezone.utc).isoformat(sep=' ')


class ActivityWatchDB:
    """Read-only handle on the ActivityWatch peewee sqlite database."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else get_aw_db_path()
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def open(self) -> 'ActivityWatchDB':
        """Open the database in read-only mode.

        Raises:
            sqlite3.OperationalError: If the file is missing or unreadable
        """
        if self._conn is None:
            uri = f"{self.path.resolve().as_uri()}?mode=ro"
            self._conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            logger.info(f"Connected to ActivityWatch database (read-only): {self.path}")
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("ActivityWatch database connection closed")

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> 'ActivityWatchDB':
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        if self._conn is None:
            self.open()
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def get_buckets(self) -> list[BucketInfo]:
        """Get all buckets, newest first."""
        rows = self._query('''
            SELECT key, id, created, name, type, client, hostname
            FROM bucketmodel
            ORDER BY created DESC
        ''')
        return [
            {
                'key': row['key'],
                'id': safe_to_string(row['id']) or '',
                'created': safe_to_string(row['created']) or '',
                'name': safe_to_string(row['name']),
                'type': safe_to_string(row['type']) or '',
                'client': safe_to_string(row['client']) or '',
                'hostname': safe_to_string(row['hostname']) or '',
            }
            for row in rows
        ]

    def get_events_by_time_range(
        self,
        start: datetime,
        end: datetime,
        bucket_id: int | None = None,
    ) -> list[RawEvent]:
        """Get events whose timestamp lies in [start, end).

        Args:
            start: Inclusive lower bound
            end: Exclusive upper bound
            bucket_id: Optional bucket key filter

        Returns:
            Events ordered by timestamp, newest first
        """
        sql = f'''
            SELECT {_EVENT_COLUMNS}
            FROM eventmodel e
            JOIN bucketmodel b ON e.bucket_id = b.key
            WHERE e.timestamp >= ? AND e.timestamp < ?
        '''
        params: list = [format_db_timestamp(start), format_db_timestamp(end)]

        if bucket_id is not None:
            sql += ' AND e.bucket_id = ?'
            params.append(bucket_id)

        sql += ' ORDER BY e.timestamp DESC'

        events = []
        for row in self._query(sql, tuple(params)):
            try:
                events.append(self._row_to_event(row))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping event {row['id']} with unreadable timestamp: {e}")
        return events

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> RawEvent:
        return RawEvent(
            id=row['id'],
            bucket_id=row['bucket_id'],
            timestamp=parse_db_timestamp(row['timestamp']),
            duration=row['duration'],
            datastr=safe_parse_datastr(row['datastr']),
            bucket_type=safe_to_string(row['type']) or 'unknown',
            bucket_name=safe_to_string(row['name']),
            hostname=safe_to_string(row['hostname']),
        )
