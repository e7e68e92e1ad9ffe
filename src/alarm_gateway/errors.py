"""Error kinds surfaced by the alarm gateway."""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
	"""Base class for all gateway failures."""

	def __init__(self, message: str, address: Any = None) -> None:
		super().__init__(message)
		self.address = address


class InvalidAddressError(GatewayError):
	"""The address matches no known shape, or an item id is not numeric."""


class UnsupportedAddressError(GatewayError):
	"""The address shape is valid but not permitted for the operation."""


class StorageUnavailableError(GatewayError):
	"""The store could not complete the operation, after any read repair."""
