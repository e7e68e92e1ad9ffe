"""Address-dispatched persistence gateway over a single SQLite alarm table."""

from alarm_gateway.address import AddressMatch, AddressMatcher, AddressShape, ResourceAddress
from alarm_gateway.errors import (
	GatewayError,
	InvalidAddressError,
	StorageUnavailableError,
	UnsupportedAddressError,
)
from alarm_gateway.provider import AlarmProvider, create_provider
from alarm_gateway.store import AlarmStore

__all__ = [
	"AddressMatch",
	"AddressMatcher",
	"AddressShape",
	"AlarmProvider",
	"AlarmStore",
	"GatewayError",
	"InvalidAddressError",
	"ResourceAddress",
	"StorageUnavailableError",
	"UnsupportedAddressError",
	"create_provider",
]
