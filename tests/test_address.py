"""Tests for resource addresses and the address matcher."""

from __future__ import annotations

import pytest

from alarm_gateway.address import AddressMatch, AddressMatcher, AddressShape, ResourceAddress, Route
from alarm_gateway.constants import DEFAULT_AUTHORITY

BASE = f"content://{DEFAULT_AUTHORITY}"


@pytest.fixture()
def matcher() -> AddressMatcher:
	return AddressMatcher.for_authority(DEFAULT_AUTHORITY)


class TestResourceAddress:
	def test_parse_collection(self) -> None:
		addr = ResourceAddress.parse(f"{BASE}/alarm")
		assert addr.scheme == "content"
		assert addr.authority == DEFAULT_AUTHORITY
		assert addr.segments == ("alarm",)
		assert addr.query == ""

	def test_parse_item_with_query(self) -> None:
		addr = ResourceAddress.parse(f"{BASE}/alarm/12?limit=1")
		assert addr.segments == ("alarm", "12")
		assert addr.query == "limit=1"
		assert str(addr) == f"{BASE}/alarm/12?limit=1"

	def test_parse_drops_empty_segments(self) -> None:
		addr = ResourceAddress.parse(f"{BASE}//alarm/")
		assert addr.segments == ("alarm",)

	def test_parse_rejects_missing_authority(self) -> None:
		with pytest.raises(ValueError, match="Not a resource address"):
			ResourceAddress.parse("alarm/5")

	def test_str_round_trips_collection(self) -> None:
		assert str(ResourceAddress.collection(DEFAULT_AUTHORITY)) == f"{BASE}/alarm"

	def test_with_appended_id(self) -> None:
		addr = ResourceAddress.collection(DEFAULT_AUTHORITY).with_appended_id(42)
		assert addr.segments == ("alarm", "42")

	def test_with_appended_id_rejects_negative(self) -> None:
		with pytest.raises(ValueError):
			ResourceAddress.collection(DEFAULT_AUTHORITY).with_appended_id(-1)

	def test_is_ancestor_of(self) -> None:
		coll = ResourceAddress.collection(DEFAULT_AUTHORITY)
		assert coll.is_ancestor_of(coll.with_appended_id(3))
		assert not coll.with_appended_id(3).is_ancestor_of(coll)
		assert not coll.is_ancestor_of(coll)

	def test_is_ancestor_of_requires_same_authority(self) -> None:
		coll = ResourceAddress.collection(DEFAULT_AUTHORITY)
		other = ResourceAddress.collection("org.example").with_appended_id(3)
		assert not coll.is_ancestor_of(other)

	def test_addresses_are_hashable_values(self) -> None:
		a = ResourceAddress.parse(f"{BASE}/alarm/1")
		b = ResourceAddress.collection(DEFAULT_AUTHORITY).with_appended_id(1)
		assert a == b
		assert len({a, b}) == 1


class TestAddressMatcher:
	def test_collection(self, matcher: AddressMatcher) -> None:
		assert matcher.match(f"{BASE}/alarm") == AddressMatch(AddressShape.COLLECTION)

	@pytest.mark.parametrize("item_id", [0, 5, 1234567890123])
	def test_item(self, matcher: AddressMatcher, item_id: int) -> None:
		result = matcher.match(f"{BASE}/alarm/{item_id}")
		assert result.shape is AddressShape.ITEM
		assert result.item_id == item_id

	def test_item_keeps_leading_zeros_value(self, matcher: AddressMatcher) -> None:
		assert matcher.match(f"{BASE}/alarm/007").item_id == 7

	def test_accepts_parsed_address(self, matcher: AddressMatcher) -> None:
		addr = ResourceAddress.collection(DEFAULT_AUTHORITY).with_appended_id(9)
		assert matcher.match(addr) == AddressMatch(AddressShape.ITEM, 9)

	def test_query_does_not_affect_shape(self, matcher: AddressMatcher) -> None:
		assert matcher.match(f"{BASE}/alarm?x=1").shape is AddressShape.COLLECTION

	@pytest.mark.parametrize("path", [
		"alarm/abc",
		"alarm/-1",
		"alarm/1.5",
		"alarm/١",  # Arabic-Indic digit one
		"alarm/5/extra",
		"alarms",
		"",
		"other/5",
	])
	def test_unrecognized_paths(self, matcher: AddressMatcher, path: str) -> None:
		result = matcher.match(f"{BASE}/{path}")
		assert result.shape is AddressShape.UNRECOGNIZED
		assert result.item_id is None
		assert not result.recognized

	def test_foreign_authority_unrecognized(self, matcher: AddressMatcher) -> None:
		assert matcher.match("content://org.example/alarm").shape is AddressShape.UNRECOGNIZED

	def test_malformed_text_unrecognized(self, matcher: AddressMatcher) -> None:
		assert matcher.match("not an address").shape is AddressShape.UNRECOGNIZED

	def test_routes_are_immutable_tuple(self, matcher: AddressMatcher) -> None:
		assert isinstance(matcher.routes, tuple)
		assert len(matcher.routes) == 2

	def test_custom_routes(self) -> None:
		m = AddressMatcher((Route("a", ("x", "#"), AddressShape.ITEM),))
		assert m.match("content://a/x/3") == AddressMatch(AddressShape.ITEM, 3)
		assert m.match("content://a/alarm").shape is AddressShape.UNRECOGNIZED
