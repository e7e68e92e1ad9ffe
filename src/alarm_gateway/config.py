"""TOML configuration loader for alarm-gateway."""

from __future__ import annotations

import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from alarm_gateway.constants import DEFAULT_AUTHORITY

DB_PATH_ENV = "ALARM_GATEWAY_DB"


@dataclass
class StoreConfig:
	"""SQLite store settings."""

	path: str = ""
	busy_timeout_ms: int = 5000
	wal: bool = True

	@property
	def resolved_path(self) -> str:
		if not self.path:
			return ":memory:"
		if self.path == ":memory:":
			return self.path
		return str(Path(os.path.expanduser(self.path)))


@dataclass
class ProviderConfig:
	"""Address settings."""

	authority: str = DEFAULT_AUTHORITY


@dataclass
class NotificationsConfig:
	"""Remote change notification settings."""

	webhook_urls: list[str] = field(default_factory=list)
	timeout: float = 10.0
	batch_window: float = 0.5


@dataclass
class TracingConfig:
	"""OpenTelemetry tracing settings."""

	enabled: bool = False
	service_name: str = "alarm-gateway"
	exporter: str = "console"  # console/otlp
	otlp_endpoint: str = "http://localhost:4317"


@dataclass
class LoggingConfig:
	"""Log level applied to the alarm_gateway logger."""

	level: str = "WARNING"


@dataclass
class GatewayConfig:
	"""Top-level alarm-gateway configuration."""

	store: StoreConfig = field(default_factory=StoreConfig)
	provider: ProviderConfig = field(default_factory=ProviderConfig)
	notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
	tracing: TracingConfig = field(default_factory=TracingConfig)
	logging: LoggingConfig = field(default_factory=LoggingConfig)


def _build_store(data: dict[str, Any]) -> StoreConfig:
	sc = StoreConfig()
	if "path" in data:
		sc.path = str(data["path"])
	if "busy_timeout_ms" in data:
		sc.busy_timeout_ms = int(data["busy_timeout_ms"])
	if "wal" in data:
		sc.wal = bool(data["wal"])
	return sc


def _build_provider(data: dict[str, Any]) -> ProviderConfig:
	pc = ProviderConfig()
	if "authority" in data:
		pc.authority = str(data["authority"])
	return pc


def _build_notifications(data: dict[str, Any]) -> NotificationsConfig:
	nc = NotificationsConfig()
	if "webhook_urls" in data:
		nc.webhook_urls = [str(u) for u in data["webhook_urls"]]
	for key in ("timeout", "batch_window"):
		if key in data:
			setattr(nc, key, float(data[key]))
	return nc


def _build_tracing(data: dict[str, Any]) -> TracingConfig:
	tc = TracingConfig()
	if "enabled" in data:
		tc.enabled = bool(data["enabled"])
	if "service_name" in data:
		tc.service_name = str(data["service_name"])
	if "exporter" in data:
		tc.exporter = str(data["exporter"])
	if "otlp_endpoint" in data:
		tc.otlp_endpoint = str(data["otlp_endpoint"])
	return tc


def _build_logging(data: dict[str, Any]) -> LoggingConfig:
	lc = LoggingConfig()
	if "level" in data:
		lc.level = str(data["level"]).upper()
	return lc


def load_config(path: str | Path) -> GatewayConfig:
	"""Load an alarm-gateway.toml config file.

	Args:
		path: Path to the TOML config file.

	Returns:
		Parsed GatewayConfig.

	Raises:
		FileNotFoundError: If config file doesn't exist.
		tomllib.TOMLDecodeError: If config is invalid TOML.
	"""
	config_path = Path(path)
	if not config_path.exists():
		raise FileNotFoundError(f"Config file not found: {config_path}")

	with open(config_path, "rb") as f:
		data = tomllib.load(f)

	gc = GatewayConfig()
	if "store" in data:
		gc.store = _build_store(data["store"])
	if "provider" in data:
		gc.provider = _build_provider(data["provider"])
	if "notifications" in data:
		gc.notifications = _build_notifications(data["notifications"])
	if "tracing" in data:
		gc.tracing = _build_tracing(data["tracing"])
	if "logging" in data:
		gc.logging = _build_logging(data["logging"])
	# Allow env var as fallback for the database location
	if not gc.store.path:
		gc.store.path = os.environ.get(DB_PATH_ENV, "")
	return gc


_AUTHORITY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def validate_config(config: GatewayConfig) -> list[tuple[str, str]]:
	"""Perform semantic validation of a loaded GatewayConfig.

	Returns a list of (level, message) tuples where level is 'error' or 'warning'.
	"""
	issues: list[tuple[str, str]] = []

	if not _AUTHORITY_RE.match(config.provider.authority):
		issues.append(("error", f"provider.authority is not a valid authority: {config.provider.authority!r}"))

	db_path = config.store.resolved_path
	if db_path == ":memory:":
		issues.append(("warning", "store.path not set, alarms will not persist across restarts"))
	else:
		parent = Path(db_path).parent
		if not parent.exists():
			issues.append(("error", f"store.path directory does not exist: {parent}"))
		elif not os.access(parent, os.W_OK):
			issues.append(("warning", f"store.path directory is not writable, store opens read-only: {parent}"))

	if config.store.busy_timeout_ms < 0:
		issues.append(("error", f"store.busy_timeout_ms is negative: {config.store.busy_timeout_ms}"))

	for url in config.notifications.webhook_urls:
		if not url.startswith(("http://", "https://")):
			issues.append(("error", f"webhook url must be http(s): {url}"))
	if config.notifications.timeout <= 0:
		issues.append(("error", f"notifications.timeout must be positive: {config.notifications.timeout}"))
	if config.notifications.batch_window < 0:
		issues.append(("error", f"notifications.batch_window is negative: {config.notifications.batch_window}"))

	if config.tracing.exporter not in ("console", "otlp"):
		issues.append(("warning", f"unknown tracing exporter: {config.tracing.exporter}"))

	if config.logging.level not in _LOG_LEVELS:
		issues.append(("error", f"unknown log level: {config.logging.level}"))

	return issues


def apply_logging(config: LoggingConfig) -> None:
	"""Set the package logger level; handlers are left to the host."""
	level = logging.getLevelName(config.level)
	if isinstance(level, int):
		logging.getLogger("alarm_gateway").setLevel(level)
