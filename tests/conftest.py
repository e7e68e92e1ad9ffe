"""Shared pytest fixtures for alarm-gateway tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from helpers import RecordingNotifier

from alarm_gateway.address import AddressMatcher
from alarm_gateway.constants import DEFAULT_AUTHORITY
from alarm_gateway.notifier import SubscriberRegistry
from alarm_gateway.provider import AlarmProvider
from alarm_gateway.store import AlarmStore


@pytest.fixture()
def store() -> Iterator[AlarmStore]:
	"""In-memory AlarmStore with the alarms table created."""
	s = AlarmStore(":memory:")
	s.open()
	yield s
	s.close()


@pytest.fixture()
def recorder() -> RecordingNotifier:
	return RecordingNotifier()


@pytest.fixture()
def registry() -> Iterator[SubscriberRegistry]:
	r = SubscriberRegistry()
	yield r
	r.close()


@pytest.fixture()
def provider(store: AlarmStore, recorder: RecordingNotifier, registry: SubscriberRegistry) -> AlarmProvider:
	return AlarmProvider(
		store,
		AddressMatcher.for_authority(DEFAULT_AUTHORITY),
		recorder,
		subscriptions=registry,
	)
