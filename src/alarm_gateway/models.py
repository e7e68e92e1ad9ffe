"""Data models for alarm records, fetch results and change events."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from alarm_gateway.address import ResourceAddress

if TYPE_CHECKING:
	from alarm_gateway.notifier import SubscriberRegistry, Subscription


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


@dataclass
class Alarm:
	"""Typed view of one row of the alarms table."""

	id: int | None = None
	hour: int = 0
	minutes: int = 0
	daysofweek: int = 0  # bitmask, Monday = bit 0
	alarmtime: int = 0  # epoch millis of the next scheduled fire
	enabled: bool = False
	vibrate: bool = True
	title: str = ""
	alert: str = ""
	prealarm: bool = False
	state: str = ""

	def to_values(self) -> dict[str, Any]:
		"""Column/value pairs for insert or update; ``_id`` is left to the store."""
		return {
			"hour": self.hour,
			"minutes": self.minutes,
			"daysofweek": self.daysofweek,
			"alarmtime": self.alarmtime,
			"enabled": int(self.enabled),
			"vibrate": int(self.vibrate),
			"title": self.title,
			"alert": self.alert,
			"prealarm": int(self.prealarm),
			"state": self.state,
		}

	@staticmethod
	def from_row(row: sqlite3.Row) -> Alarm:
		return Alarm(
			id=row["_id"],
			hour=row["hour"],
			minutes=row["minutes"],
			daysofweek=row["daysofweek"],
			alarmtime=row["alarmtime"],
			enabled=bool(row["enabled"]),
			vibrate=bool(row["vibrate"]),
			title=row["title"],
			alert=row["alert"],
			prealarm=bool(row["prealarm"]),
			state=row["state"],
		)


@dataclass
class RowSet:
	"""Rows returned by a fetch, tagged with the address they were read from."""

	rows: list[sqlite3.Row] = field(default_factory=list)
	notification_address: ResourceAddress | None = None
	healed: bool = False
	_registry: SubscriberRegistry | None = field(default=None, repr=False)

	def __len__(self) -> int:
		return len(self.rows)

	def __iter__(self) -> Iterator[sqlite3.Row]:
		return iter(self.rows)

	def __getitem__(self, index: int) -> sqlite3.Row:
		return self.rows[index]

	@property
	def columns(self) -> tuple[str, ...]:
		if not self.rows:
			return ()
		return tuple(self.rows[0].keys())

	def as_dicts(self) -> list[dict[str, Any]]:
		return [dict(row) for row in self.rows]

	def alarms(self) -> list[Alarm]:
		return [Alarm.from_row(row) for row in self.rows]

	def watch(self, callback: Callable[[ResourceAddress], None]) -> Subscription:
		"""Subscribe ``callback`` to later changes at this result's address."""
		if self._registry is None or self.notification_address is None:
			raise RuntimeError("Row set is not attached to a subscriber registry")
		return self._registry.subscribe(self.notification_address, callback)


class ChangeNotification(BaseModel):
	"""Wire form of a change notification sent to remote subscribers."""

	uri: str
	changed_at: str = Field(default_factory=_now_iso)
