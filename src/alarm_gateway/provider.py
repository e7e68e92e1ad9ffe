"""Address-dispatched CRUD over the alarms table.

Each operation classifies its address, composes the filter predicate, runs
against the store and, for mutations, notifies subscribers of the change.
Fetches that fail because the table is missing or unreadable recreate the
table and retry once; writes never do, since recreating the table would
discard the caller's data along with everything else.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping, Sequence
from typing import Any

from alarm_gateway.address import AddressMatch, AddressMatcher, AddressShape, ResourceAddress, coerce_address
from alarm_gateway.config import GatewayConfig, apply_logging
from alarm_gateway.constants import ALARMS_TABLE, COLLECTION_TYPE, ITEM_TYPE
from alarm_gateway.errors import InvalidAddressError, StorageUnavailableError, UnsupportedAddressError
from alarm_gateway.models import RowSet
from alarm_gateway.notifier import ChangeNotifier, CompositeNotifier, SubscriberRegistry, WebhookNotifier
from alarm_gateway.predicate import Predicate, build_predicate, identity_constraint
from alarm_gateway.store import AlarmStore, is_caller_error, is_schema_failure
from alarm_gateway.tracing import GatewayTracer

logger = logging.getLogger(__name__)


class AlarmProvider:
	"""CRUD dispatcher for ``content://<authority>/alarm[/<id>]`` addresses."""

	def __init__(
		self,
		store: AlarmStore,
		matcher: AddressMatcher,
		notifier: ChangeNotifier,
		*,
		subscriptions: SubscriberRegistry | None = None,
		tracer: GatewayTracer | None = None,
	) -> None:
		self.store = store
		self.matcher = matcher
		self.notifier = notifier
		self.subscriptions = subscriptions
		self.tracer = tracer or GatewayTracer()

	def _classify(self, address: ResourceAddress | str) -> tuple[ResourceAddress, AddressMatch]:
		parsed = coerce_address(address)
		if parsed is None:
			raise InvalidAddressError(f"Unknown URL {address}", address)
		match = self.matcher.match(parsed)
		if not match.recognized:
			raise InvalidAddressError(f"Unknown URL {parsed}", parsed)
		return parsed, match

	def _notify_change(self, address: ResourceAddress) -> None:
		logger.debug("notifyChange() url %s", address)
		try:
			self.notifier.notify(address)
		except Exception as exc:
			logger.warning("Change notification for %s failed: %s", address, exc)

	# -- Type classification --

	def get_type(self, address: ResourceAddress | str) -> str:
		_, match = self._classify(address)
		if match.shape is AddressShape.COLLECTION:
			return COLLECTION_TYPE
		return ITEM_TYPE

	# -- Fetch --

	def fetch(
		self,
		address: ResourceAddress | str,
		columns: Sequence[str] | None = None,
		where: str | None = None,
		where_args: Sequence[Any] | None = None,
		sort_order: str | None = None,
	) -> RowSet:
		parsed, match = self._classify(address)
		predicate = build_predicate(match, where, where_args)

		with self.tracer.start_operation_span("fetch", parsed) as span:
			rows, healed = self._query_with_repair(columns, predicate, sort_order)
			span.set_attribute("alarm.healed", healed)
			span.set_attribute("alarm.rows", len(rows))

		return RowSet(
			rows=rows,
			notification_address=parsed.without_query(),
			healed=healed,
			_registry=self.subscriptions,
		)

	def _query(
		self,
		columns: Sequence[str] | None,
		predicate: Predicate,
		sort_order: str | None,
	) -> list[sqlite3.Row]:
		session = self.store.readable_session()
		return session.query(ALARMS_TABLE, columns, predicate.text, predicate.args, sort_order)

	def _query_with_repair(
		self,
		columns: Sequence[str] | None,
		predicate: Predicate,
		sort_order: str | None,
	) -> tuple[list[sqlite3.Row], bool]:
		"""Run the query; on a schema failure recreate the table and retry once."""
		try:
			return self._query(columns, predicate, sort_order), False
		except sqlite3.Error as exc:
			if is_caller_error(exc):
				raise ValueError(f"Invalid query arguments: {exc}") from exc
			if not is_schema_failure(exc):
				raise StorageUnavailableError(f"Query failed: {exc}") from exc
			logger.error("query failed because of %s, recreating table %s", exc, ALARMS_TABLE)
			try:
				self.store.recreate_table()
			except (sqlite3.Error, StorageUnavailableError) as repair_exc:
				raise StorageUnavailableError(f"Could not recreate {ALARMS_TABLE}: {repair_exc}") from repair_exc

		try:
			return self._query(columns, predicate, sort_order), True
		except sqlite3.Error as exc:
			logger.error("query failed again after recreating %s: %s", ALARMS_TABLE, exc)
			raise StorageUnavailableError(f"Query failed after table recreate: {exc}") from exc

	# -- Insert --

	def insert(self, address: ResourceAddress | str, values: Mapping[str, Any] | None = None) -> ResourceAddress:
		parsed, match = self._classify(address)
		if match.shape is not AddressShape.COLLECTION:
			raise InvalidAddressError(f"Cannot insert into URL: {parsed}", parsed)

		with self.tracer.start_operation_span("insert", parsed) as span:
			try:
				row_id = self.store.writable_session().insert(ALARMS_TABLE, values)
			except sqlite3.Error as exc:
				if is_caller_error(exc):
					raise ValueError(f"Invalid arguments for insert into {parsed}: {exc}") from exc
				logger.error("insert into %s failed: %s", parsed, exc)
				raise StorageUnavailableError(f"Failed to insert row into {parsed}: {exc}", parsed) from exc
			span.set_attribute("alarm.id", row_id)

		new_address = parsed.without_query().with_appended_id(row_id)
		self._notify_change(new_address)
		return new_address

	# -- Update --

	def update(
		self,
		address: ResourceAddress | str,
		values: Mapping[str, Any],
		where: str | None = None,
		where_args: Sequence[Any] | None = None,
	) -> int:
		parsed, match = self._classify(address)
		if match.shape is not AddressShape.ITEM or match.item_id is None:
			raise UnsupportedAddressError(f"Cannot update URL: {parsed}", parsed)
		if where:
			logger.debug("update of %s ignores where clause %r", parsed, where)

		with self.tracer.start_operation_span("update", parsed) as span:
			try:
				count = self.store.writable_session().update(
					ALARMS_TABLE, values, identity_constraint(match.item_id), (),
				)
			except sqlite3.Error as exc:
				if is_caller_error(exc):
					raise ValueError(f"Invalid arguments for update of {parsed}: {exc}") from exc
				logger.error("update of %s failed: %s", parsed, exc)
				raise StorageUnavailableError(f"Failed to update {parsed}: {exc}", parsed) from exc
			span.set_attribute("alarm.affected", count)

		self._notify_change(parsed)
		return count

	# -- Delete --

	def delete(
		self,
		address: ResourceAddress | str,
		where: str | None = None,
		where_args: Sequence[Any] | None = None,
	) -> int:
		parsed, match = self._classify(address)
		predicate = build_predicate(match, where, where_args)

		with self.tracer.start_operation_span("delete", parsed) as span:
			try:
				count = self.store.writable_session().delete(ALARMS_TABLE, predicate.text, predicate.args)
			except sqlite3.Error as exc:
				if is_caller_error(exc):
					raise ValueError(f"Invalid arguments for delete from {parsed}: {exc}") from exc
				logger.error("delete from %s failed: %s", parsed, exc)
				raise StorageUnavailableError(f"Failed to delete from {parsed}: {exc}", parsed) from exc
			span.set_attribute("alarm.affected", count)

		self._notify_change(parsed)
		return count

	def close(self) -> None:
		close = getattr(self.notifier, "close", None)
		if close is not None:
			close()
		if self.subscriptions is not None and self.subscriptions is not self.notifier:
			self.subscriptions.close()
		self.store.close()


def create_provider(config: GatewayConfig | None = None) -> AlarmProvider:
	"""Wire a provider from config: store, matcher, subscribers, webhooks, tracing."""
	config = config or GatewayConfig()
	apply_logging(config.logging)

	store = AlarmStore(
		config.store.resolved_path,
		busy_timeout_ms=config.store.busy_timeout_ms,
		wal=config.store.wal,
	)
	store.open()

	subscriptions = SubscriberRegistry()
	notifier: ChangeNotifier = subscriptions
	if config.notifications.webhook_urls:
		webhooks = WebhookNotifier(
			config.notifications.webhook_urls,
			timeout=config.notifications.timeout,
			batch_window=config.notifications.batch_window,
		)
		notifier = CompositeNotifier([subscriptions, webhooks])

	return AlarmProvider(
		store,
		AddressMatcher.for_authority(config.provider.authority),
		notifier,
		subscriptions=subscriptions,
		tracer=GatewayTracer(config.tracing),
	)
