"""Table layout, address conventions and type strings."""

from __future__ import annotations

DEFAULT_AUTHORITY = "com.better.alarm.model"
ADDRESS_SCHEME = "content"

ALARMS_TABLE = "alarms"
ALARMS_PATH = "alarm"
ID_COLUMN = "_id"

# Returned by AlarmProvider.get_type
COLLECTION_TYPE = "vnd.alarm-gateway.dir/alarms"
ITEM_TYPE = "vnd.alarm-gateway.item/alarms"

ALARMS_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS alarms (
	_id INTEGER PRIMARY KEY AUTOINCREMENT,
	hour INTEGER NOT NULL DEFAULT 0,
	minutes INTEGER NOT NULL DEFAULT 0,
	daysofweek INTEGER NOT NULL DEFAULT 0,
	alarmtime INTEGER NOT NULL DEFAULT 0,
	enabled INTEGER NOT NULL DEFAULT 0,
	vibrate INTEGER NOT NULL DEFAULT 1,
	title TEXT NOT NULL DEFAULT '',
	alert TEXT NOT NULL DEFAULT '',
	prealarm INTEGER NOT NULL DEFAULT 0,
	state TEXT NOT NULL DEFAULT ''
);
"""

ALARM_COLUMNS: tuple[str, ...] = (
	ID_COLUMN,
	"hour",
	"minutes",
	"daysofweek",
	"alarmtime",
	"enabled",
	"vibrate",
	"title",
	"alert",
	"prealarm",
	"state",
)
