"""Filter predicate composition for matched addresses."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from alarm_gateway.address import AddressMatch, AddressShape
from alarm_gateway.constants import ID_COLUMN
from alarm_gateway.errors import InvalidAddressError


@dataclass(frozen=True)
class Predicate:
	"""SQL boolean expression plus its bound arguments. Empty text matches all rows."""

	text: str = ""
	args: tuple[Any, ...] = field(default_factory=tuple)

	@property
	def is_empty(self) -> bool:
		return not self.text


def identity_constraint(item_id: int) -> str:
	# item_id comes from the matcher, which only accepts ASCII digits
	return f"{ID_COLUMN} = {int(item_id)}"


def build_predicate(
	match: AddressMatch,
	where: str | None = None,
	where_args: Sequence[Any] | None = None,
) -> Predicate:
	"""Combine the identity constraint implied by ``match`` with a caller filter.

	Collection addresses pass the caller filter through unchanged. Item
	addresses yield ``_id = <id>`` alone, or ``(_id = <id>) AND (<where>)``
	when the caller supplies a non-blank filter; caller arguments follow the
	identity constraint, which binds none itself.
	"""
	args = tuple(where_args or ())
	caller_filter = where.strip() if where else ""

	if match.shape is AddressShape.COLLECTION:
		return Predicate(caller_filter, args)

	if match.shape is AddressShape.ITEM and match.item_id is not None:
		identity = identity_constraint(match.item_id)
		if not caller_filter:
			return Predicate(identity, args)
		return Predicate(f"({identity}) AND ({caller_filter})", args)

	raise InvalidAddressError("Cannot build a predicate for an unrecognized address")
