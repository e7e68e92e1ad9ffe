"""Factory functions and test doubles shared across alarm-gateway tests."""

from __future__ import annotations

from typing import Any

from alarm_gateway.address import ResourceAddress
from alarm_gateway.constants import DEFAULT_AUTHORITY
from alarm_gateway.models import Alarm

COLLECTION = ResourceAddress.collection(DEFAULT_AUTHORITY)


def item(item_id: int) -> ResourceAddress:
	return COLLECTION.with_appended_id(item_id)


class RecordingNotifier:
	"""Collects every notified address in order."""

	def __init__(self) -> None:
		self.addresses: list[ResourceAddress] = []

	def notify(self, address: ResourceAddress) -> None:
		self.addresses.append(address)


def make_alarm(**overrides: Any) -> Alarm:
	"""Create an Alarm with sensible defaults, overridable via kwargs."""
	defaults: dict[str, Any] = {
		"hour": 7,
		"minutes": 30,
		"enabled": True,
		"title": "Wake",
	}
	defaults.update(overrides)
	return Alarm(**defaults)
