"""SQLite store handle for the alarms table.

The handle owns a single connection and hands out readable and writable
sessions over it. Sessions raise raw ``sqlite3.Error``; mapping failures to
gateway errors is left to the provider.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from alarm_gateway.constants import ALARM_COLUMNS, ALARMS_SCHEMA_SQL, ALARMS_TABLE
from alarm_gateway.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_SORT_TERM_RE = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_]*)(\s+(ASC|DESC))?$", re.IGNORECASE)

# Messages sqlite3 uses when the table is gone or the file/schema is unreadable
_CORRUPTION_MARKERS = (
	"database disk image is malformed",
	"file is not a database",
	"malformed database schema",
)

# Suffix for a database file moved aside because it could not be read
CORRUPT_SUFFIX = ".corrupt"


def validate_identifier(name: str) -> None:
	"""Validate a SQL identifier to prevent injection in dynamic statements."""
	if not name or len(name) > 64 or not _IDENTIFIER_RE.match(name):
		raise ValueError(f"Invalid SQL identifier: {name!r}")


def validate_sort_order(sort_order: str) -> str:
	"""Accept ``col [ASC|DESC], col [ASC|DESC] ...`` and return it normalized."""
	terms = []
	for raw in sort_order.split(","):
		term = " ".join(raw.split())
		m = _SORT_TERM_RE.match(term)
		if m is None:
			raise ValueError(f"Invalid sort order: {sort_order!r}")
		validate_identifier(m.group(1))
		terms.append(term)
	return ", ".join(terms)


def is_schema_failure(exc: BaseException, table: str = ALARMS_TABLE) -> bool:
	"""True when ``exc`` means the table is absent or its schema/file is unreadable.

	Locking, I/O and caller syntax errors are not schema failures.
	"""
	if not isinstance(exc, sqlite3.DatabaseError):
		return False
	message = str(exc).lower()
	if message.startswith("no such table:"):
		missing = message.split(":", 1)[1].strip()
		return missing.rsplit(".", 1)[-1] == table.lower()
	if message.startswith("no such column:"):
		missing = message.split(":", 1)[1].strip()
		return missing.rsplit(".", 1)[-1] in ALARM_COLUMNS
	return _is_file_corruption(exc)


def _is_file_corruption(exc: BaseException) -> bool:
	message = str(exc).lower()
	return any(marker in message for marker in _CORRUPTION_MARKERS)


def is_caller_error(exc: BaseException) -> bool:
	"""True when ``exc`` was caused by the caller's filter text or arguments.

	Covers parameter binding mismatches and SQL syntax errors in a filter.
	"""
	if isinstance(exc, sqlite3.ProgrammingError):
		return True
	return isinstance(exc, sqlite3.OperationalError) and "syntax error" in str(exc).lower()


class AlarmStore:
	"""Lifecycle owner for the alarms database connection."""

	def __init__(
		self,
		path: str | Path = ":memory:",
		*,
		busy_timeout_ms: int = 5000,
		wal: bool = True,
	) -> None:
		self.path = str(path)
		self.busy_timeout_ms = busy_timeout_ms
		self.wal = wal
		self.conn: sqlite3.Connection | None = None
		self.read_only = False
		self._lock = threading.RLock()

	@property
	def is_open(self) -> bool:
		return self.conn is not None

	def open(self) -> None:
		"""Open the database, creating the file and table if absent.

		Falls back to a read-only connection when the file cannot be opened
		for writing.
		"""
		with self._lock:
			if self.conn is not None:
				return
			try:
				self.conn = sqlite3.connect(self.path, check_same_thread=False)
				self.read_only = False
			except sqlite3.OperationalError as exc:
				if self.path == ":memory:":
					raise
				logger.warning("Cannot open %s for writing (%s), opening read-only", self.path, exc)
				try:
					self.conn = self._connect_read_only()
				except sqlite3.OperationalError as ro_exc:
					raise StorageUnavailableError(f"Cannot open database {self.path}: {ro_exc}") from ro_exc
				self.read_only = True
			self.conn.row_factory = sqlite3.Row
			logger.debug("Opened database connection: %s", self.path)
			self.conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)}")
			if self.read_only:
				return
			try:
				if self.wal and self.path != ":memory:":
					self.conn.execute("PRAGMA journal_mode=WAL")
					logger.debug("WAL mode activated for %s", self.path)
				self.create_table()
			except sqlite3.DatabaseError as exc:
				if "readonly" in str(exc):
					logger.warning("Database %s is read-only: %s", self.path, exc)
					self.read_only = True
				else:
					# First read through the provider attempts the repair
					logger.error("Could not create %s table in %s: %s", ALARMS_TABLE, self.path, exc)

	def _connect_read_only(self) -> sqlite3.Connection:
		uri = Path(self.path).resolve().as_uri() + "?mode=ro"
		return sqlite3.connect(uri, uri=True, check_same_thread=False)

	def close(self) -> None:
		with self._lock:
			if self.conn is not None:
				self.conn.close()
				self.conn = None
				logger.debug("Closed database connection: %s", self.path)

	def __enter__(self) -> AlarmStore:
		self.open()
		return self

	def __exit__(self, *args: object) -> None:
		self.close()

	def _connection(self) -> sqlite3.Connection:
		if self.conn is None:
			self.open()
		assert self.conn is not None
		return self.conn

	def readable_session(self) -> StoreSession:
		self._connection()
		return StoreSession(self, writable=False)

	def writable_session(self) -> StoreSession:
		self._connection()
		if self.read_only:
			raise StorageUnavailableError(f"Database {self.path} is opened read-only")
		return StoreSession(self, writable=True)

	# -- Schema --

	def create_table(self) -> None:
		with self._lock:
			conn = self._connection()
			conn.executescript(ALARMS_SCHEMA_SQL)
			conn.commit()

	def drop_table_if_exists(self) -> None:
		with self._lock:
			conn = self._connection()
			conn.execute(f"DROP TABLE IF EXISTS {ALARMS_TABLE}")
			conn.commit()

	def recreate_table(self) -> None:
		"""Drop and recreate the alarms table, discarding every row.

		When the file itself is unreadable the table cannot be dropped, so the
		file is moved aside to ``<path>.corrupt`` and a fresh one is created.
		"""
		with self._lock:
			try:
				self.drop_table_if_exists()
				self.create_table()
			except sqlite3.Error as exc:
				if self.path == ":memory:" or not _is_file_corruption(exc):
					self._connection().rollback()
					raise
				self._reset_file(exc)
		logger.warning("Recreated table %s in %s", ALARMS_TABLE, self.path)

	def _reset_file(self, cause: sqlite3.Error) -> None:
		path = Path(self.path)
		aside = path.with_name(path.name + CORRUPT_SUFFIX)
		logger.error("Database %s is unreadable (%s), moving it to %s", path, cause, aside)
		self.close()
		try:
			path.replace(aside)
			for sidecar in ("-wal", "-shm", "-journal"):
				path.with_name(path.name + sidecar).unlink(missing_ok=True)
		except OSError as exc:
			raise StorageUnavailableError(f"Cannot move unreadable database {path} aside: {exc}") from exc
		self.open()
		if self.read_only:
			raise StorageUnavailableError(f"Database {self.path} is opened read-only")
		self.create_table()

	def table_exists(self) -> bool:
		with self._lock:
			row = self._connection().execute(
				"SELECT name FROM sqlite_master WHERE type='table' AND name=?",
				(ALARMS_TABLE,),
			).fetchone()
			return row is not None

	def execute_sql(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
		"""Run raw SQL under the store lock and commit."""
		with self._lock:
			conn = self._connection()
			rows = conn.execute(sql, tuple(params)).fetchall()
			conn.commit()
			return rows


class StoreSession:
	"""Table operations against the store's connection."""

	def __init__(self, store: AlarmStore, *, writable: bool) -> None:
		self._store = store
		self.writable = writable

	def _require_writable(self) -> None:
		if not self.writable:
			raise sqlite3.OperationalError("attempt to write through a readable session")

	def query(
		self,
		table: str,
		columns: Sequence[str] | None,
		predicate_text: str = "",
		predicate_args: Sequence[Any] = (),
		sort_order: str | None = None,
	) -> list[sqlite3.Row]:
		validate_identifier(table)
		if columns:
			for column in columns:
				validate_identifier(column)
			projection = ", ".join(columns)
		else:
			projection = "*"
		sql = f"SELECT {projection} FROM {table}"  # noqa: S608
		if predicate_text:
			sql += f" WHERE {predicate_text}"
		if sort_order:
			sql += f" ORDER BY {validate_sort_order(sort_order)}"
		with self._store._lock:
			return self._store._connection().execute(sql, tuple(predicate_args)).fetchall()

	def insert(self, table: str, values: Mapping[str, Any] | None) -> int:
		self._require_writable()
		validate_identifier(table)
		if values:
			for column in values:
				validate_identifier(column)
			columns = ", ".join(values)
			placeholders = ", ".join("?" for _ in values)
			sql = f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"  # noqa: S608
			params: tuple[Any, ...] = tuple(values.values())
		else:
			sql = f"INSERT INTO {table} DEFAULT VALUES"  # noqa: S608
			params = ()
		with self._store._lock:
			conn = self._store._connection()
			try:
				cursor = conn.execute(sql, params)
				conn.commit()
			except sqlite3.Error:
				conn.rollback()
				raise
			if cursor.lastrowid is None:
				raise sqlite3.DatabaseError(f"Failed to insert row into {table}")
			return cursor.lastrowid

	def update(
		self,
		table: str,
		values: Mapping[str, Any],
		predicate_text: str = "",
		predicate_args: Sequence[Any] = (),
	) -> int:
		self._require_writable()
		validate_identifier(table)
		if not values:
			raise ValueError("Empty values")
		for column in values:
			validate_identifier(column)
		assignments = ", ".join(f"{column}=?" for column in values)
		sql = f"UPDATE {table} SET {assignments}"  # noqa: S608
		if predicate_text:
			sql += f" WHERE {predicate_text}"
		params = tuple(values.values()) + tuple(predicate_args)
		with self._store._lock:
			conn = self._store._connection()
			try:
				cursor = conn.execute(sql, params)
				conn.commit()
			except sqlite3.Error:
				conn.rollback()
				raise
			return cursor.rowcount

	def delete(
		self,
		table: str,
		predicate_text: str = "",
		predicate_args: Sequence[Any] = (),
	) -> int:
		self._require_writable()
		validate_identifier(table)
		sql = f"DELETE FROM {table}"  # noqa: S608
		if predicate_text:
			sql += f" WHERE {predicate_text}"
		with self._store._lock:
			conn = self._store._connection()
			try:
				cursor = conn.execute(sql, tuple(predicate_args))
				conn.commit()
			except sqlite3.Error:
				conn.rollback()
				raise
			return cursor.rowcount
