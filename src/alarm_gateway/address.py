"""Resource addresses and the matcher that classifies them.

An address names either the whole alarm collection
(``content://<authority>/alarm``) or one record
(``content://<authority>/alarm/<id>``). The matcher is built once from an
immutable route table and never mutated afterwards.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

from alarm_gateway.constants import ADDRESS_SCHEME, ALARMS_PATH

_NUMBER_RE = re.compile(r"^[0-9]+$")
_WILDCARD_NUMBER = "#"


@dataclass(frozen=True)
class ResourceAddress:
	"""Immutable authority + path + optional query."""

	authority: str
	segments: tuple[str, ...] = ()
	query: str = ""
	scheme: str = ADDRESS_SCHEME

	@classmethod
	def parse(cls, text: str) -> ResourceAddress:
		"""Parse ``scheme://authority/seg/seg?query``.

		Empty path segments are dropped. Raises ValueError when the scheme or
		authority is missing.
		"""
		parts = urlsplit(text)
		if not parts.scheme or not parts.netloc:
			raise ValueError(f"Not a resource address: {text!r}")
		segments = tuple(s for s in parts.path.split("/") if s)
		return cls(
			authority=parts.netloc,
			segments=segments,
			query=parts.query,
			scheme=parts.scheme,
		)

	@classmethod
	def collection(cls, authority: str) -> ResourceAddress:
		return cls(authority=authority, segments=(ALARMS_PATH,))

	def with_appended_id(self, item_id: int) -> ResourceAddress:
		"""Return this address with ``item_id`` appended as the last segment."""
		if item_id < 0:
			raise ValueError(f"Item id must be non-negative: {item_id}")
		return ResourceAddress(
			authority=self.authority,
			segments=self.segments + (str(item_id),),
			scheme=self.scheme,
		)

	def is_ancestor_of(self, other: ResourceAddress) -> bool:
		"""True when ``other`` lies strictly below this address."""
		return (
			self.scheme == other.scheme
			and self.authority == other.authority
			and len(other.segments) > len(self.segments)
			and other.segments[:len(self.segments)] == self.segments
		)

	def without_query(self) -> ResourceAddress:
		if not self.query:
			return self
		return ResourceAddress(authority=self.authority, segments=self.segments, scheme=self.scheme)

	def __str__(self) -> str:
		text = f"{self.scheme}://{self.authority}/" + "/".join(self.segments)
		if self.query:
			text += "?" + self.query
		return text


class AddressShape(Enum):
	COLLECTION = "collection"
	ITEM = "item"
	UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class AddressMatch:
	"""Result of classifying an address. ``item_id`` is set only for ITEM."""

	shape: AddressShape
	item_id: int | None = None

	@property
	def recognized(self) -> bool:
		return self.shape is not AddressShape.UNRECOGNIZED


UNRECOGNIZED = AddressMatch(AddressShape.UNRECOGNIZED)


@dataclass(frozen=True)
class Route:
	"""One entry in the matcher's route table.

	``pattern`` holds literal path segments; ``#`` stands for a decimal
	non-negative integer.
	"""

	authority: str
	pattern: tuple[str, ...]
	shape: AddressShape


class AddressMatcher:
	"""Classifies addresses against a fixed route table."""

	def __init__(self, routes: tuple[Route, ...]) -> None:
		self._routes = tuple(routes)

	@classmethod
	def for_authority(cls, authority: str) -> AddressMatcher:
		return cls((
			Route(authority, (ALARMS_PATH,), AddressShape.COLLECTION),
			Route(authority, (ALARMS_PATH, _WILDCARD_NUMBER), AddressShape.ITEM),
		))

	@property
	def routes(self) -> tuple[Route, ...]:
		return self._routes

	def match(self, address: ResourceAddress | str) -> AddressMatch:
		"""Return the shape of ``address``; never raises."""
		if isinstance(address, str):
			try:
				address = ResourceAddress.parse(address)
			except ValueError:
				return UNRECOGNIZED
		for route in self._routes:
			if route.authority != address.authority:
				continue
			if len(route.pattern) != len(address.segments):
				continue
			matched, item_id = _match_segments(route.pattern, address.segments)
			if not matched:
				continue
			if route.shape is AddressShape.ITEM:
				return AddressMatch(AddressShape.ITEM, item_id)
			return AddressMatch(route.shape)
		return UNRECOGNIZED


def _match_segments(pattern: tuple[str, ...], segments: tuple[str, ...]) -> tuple[bool, int | None]:
	"""Match segment-by-segment, capturing the number under a ``#`` wildcard."""
	captured: int | None = None
	for expected, actual in zip(pattern, segments):
		if expected == _WILDCARD_NUMBER:
			if not _NUMBER_RE.match(actual):
				return False, None
			captured = int(actual)
		elif expected != actual:
			return False, None
	return True, captured


def coerce_address(address: ResourceAddress | str) -> ResourceAddress | None:
	"""Parse text addresses; None when the text is not an address at all."""
	if isinstance(address, ResourceAddress):
		return address
	try:
		return ResourceAddress.parse(address)
	except ValueError:
		return None
