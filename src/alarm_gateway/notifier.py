"""Change notification delivery.

Notifiers are fire-and-forget: ``notify`` never raises into the caller and
never waits for subscribers to finish their work. Delivery is at-least-once
with no ordering guarantee between addresses.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from alarm_gateway.address import ResourceAddress
from alarm_gateway.models import ChangeNotification

logger = logging.getLogger(__name__)

Observer = Callable[[ResourceAddress], None]

DEFAULT_BATCH_WINDOW = 0.5
DEFAULT_OBSERVER_WORKERS = 4


class ChangeNotifier(Protocol):
	def notify(self, address: ResourceAddress) -> None: ...


@dataclass
class Subscription:
	"""Handle returned by SubscriberRegistry.subscribe."""

	address: ResourceAddress
	callback: Observer
	descendants: bool = True
	key: int = 0
	_registry: SubscriberRegistry | None = field(default=None, repr=False)

	def cancel(self) -> None:
		if self._registry is not None:
			self._registry.unsubscribe(self)
			self._registry = None

	def wants(self, changed: ResourceAddress) -> bool:
		"""True when a change at ``changed`` concerns this subscription."""
		if changed == self.address or (self.descendants and self.address.is_ancestor_of(changed)):
			return True
		return changed.is_ancestor_of(self.address)


class SubscriberRegistry:
	"""In-process observers keyed by address.

	A change at address A reaches observers registered at A, observers at an
	ancestor of A that asked for descendants, and observers below A.
	Callbacks run on the registry's worker threads, so ``notify`` returns
	without waiting for them.
	"""

	def __init__(self, max_workers: int = DEFAULT_OBSERVER_WORKERS) -> None:
		self._lock = threading.RLock()
		self._subscriptions: dict[int, Subscription] = {}
		self._keys = itertools.count(1)
		self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="alarm-observer")
		self._in_flight: set[Future[None]] = set()
		self._closed = False

	def subscribe(self, address: ResourceAddress, callback: Observer, descendants: bool = True) -> Subscription:
		sub = Subscription(
			address=address.without_query(),
			callback=callback,
			descendants=descendants,
			_registry=self,
		)
		with self._lock:
			sub.key = next(self._keys)
			self._subscriptions[sub.key] = sub
		return sub

	def unsubscribe(self, subscription: Subscription) -> None:
		with self._lock:
			self._subscriptions.pop(subscription.key, None)

	def __len__(self) -> int:
		with self._lock:
			return len(self._subscriptions)

	def notify(self, address: ResourceAddress) -> None:
		changed = address.without_query()
		with self._lock:
			if self._closed:
				logger.warning("Subscriber registry closed, dropping change %s", changed)
				return
			targets = [s for s in self._subscriptions.values() if s.wants(changed)]
			logger.debug("notify %s -> %d observer(s)", changed, len(targets))
			for sub in targets:
				future = self._executor.submit(self._deliver, sub, changed)
				self._in_flight.add(future)
				future.add_done_callback(self._forget)

	def _forget(self, future: Future[None]) -> None:
		with self._lock:
			self._in_flight.discard(future)

	@staticmethod
	def _deliver(sub: Subscription, changed: ResourceAddress) -> None:
		try:
			sub.callback(changed)
		except Exception as exc:
			logger.warning("Observer for %s failed on change %s: %s", sub.address, changed, exc)

	def drain(self, timeout: float | None = None) -> bool:
		"""Wait for deliveries queued so far; False if ``timeout`` expired first."""
		with self._lock:
			pending = list(self._in_flight)
		_, not_done = wait(pending, timeout=timeout)
		return not not_done

	def close(self) -> None:
		"""Stop accepting changes and wait for queued deliveries to finish."""
		with self._lock:
			self._closed = True
		self._executor.shutdown(wait=True)


class CompositeNotifier:
	"""Fans a notification out to several notifiers, isolating each."""

	def __init__(self, notifiers: Iterable[ChangeNotifier]) -> None:
		self._notifiers = list(notifiers)

	@property
	def notifiers(self) -> list[ChangeNotifier]:
		return list(self._notifiers)

	def notify(self, address: ResourceAddress) -> None:
		for notifier in self._notifiers:
			try:
				notifier.notify(address)
			except Exception as exc:
				logger.warning("%s failed to deliver %s: %s", type(notifier).__name__, address, exc)

	def close(self) -> None:
		for notifier in self._notifiers:
			close = getattr(notifier, "close", None)
			if close is not None:
				close()


class WebhookNotifier:
	"""POSTs change notifications to HTTP endpoints from a background thread.

	Addresses queued within ``batch_window`` seconds are sent together as a
	single JSON body ``{"changes": [...]}``, with duplicates collapsed.
	"""

	def __init__(
		self,
		urls: Iterable[str],
		*,
		timeout: float = 10.0,
		batch_window: float = DEFAULT_BATCH_WINDOW,
		transport: httpx.BaseTransport | None = None,
	) -> None:
		self._urls = list(urls)
		self._timeout = timeout
		self._batch_window = batch_window
		self._transport = transport
		self._client: httpx.Client | None = None
		self._pending: deque[str] = deque()
		self._cond = threading.Condition()
		self._stop = threading.Event()
		self._thread: threading.Thread | None = None
		self._closed = False

	def _ensure_client(self) -> httpx.Client:
		if self._client is None:
			self._client = httpx.Client(timeout=self._timeout, transport=self._transport)
		return self._client

	def _ensure_worker(self) -> None:
		if self._thread is None or not self._thread.is_alive():
			self._thread = threading.Thread(target=self._run, name="webhook-notifier", daemon=True)
			self._thread.start()

	def notify(self, address: ResourceAddress) -> None:
		with self._cond:
			if self._closed:
				logger.warning("Webhook notifier closed, dropping change %s", address)
				return
			self._pending.append(str(address.without_query()))
			self._ensure_worker()
			self._cond.notify()

	def _run(self) -> None:
		while True:
			with self._cond:
				while not self._pending and not self._closed:
					self._cond.wait()
				if self._closed:
					break
			self._stop.wait(self._batch_window)
			with self._cond:
				batch = list(self._pending)
				self._pending.clear()
			self._flush_batch(batch)
		# The worker owns the client while it runs; whatever close() left behind is sent here
		with self._cond:
			remaining = list(self._pending)
			self._pending.clear()
		self._flush_batch(remaining)
		self._close_client()

	@staticmethod
	def _dedupe(uris: list[str]) -> list[str]:
		return list(dict.fromkeys(uris))

	def _flush_batch(self, uris: list[str]) -> None:
		"""Send one batch to every endpoint; failures are logged, not raised."""
		if not uris or not self._urls:
			return
		body = {
			"changes": [ChangeNotification(uri=uri).model_dump() for uri in self._dedupe(uris)],
		}
		client = self._ensure_client()
		for url in self._urls:
			try:
				response = client.post(url, json=body)
				response.raise_for_status()
			except httpx.HTTPError as exc:
				logger.warning("Webhook delivery to %s failed: %s", url, exc)

	def _close_client(self) -> None:
		if self._client is not None:
			self._client.close()
			self._client = None

	def close(self) -> None:
		"""Stop the worker, flush anything still queued and close the HTTP client.

		If a delivery is still in flight after the join timeout, the worker is
		left to finish it and close the client itself.
		"""
		with self._cond:
			self._closed = True
			self._stop.set()
			self._cond.notify_all()
		thread = self._thread
		if thread is not None:
			thread.join(timeout=self._timeout + self._batch_window)
			if thread.is_alive():
				logger.warning("Webhook worker still delivering after %.1fs, leaving it to finish", self._timeout)
				return
			self._thread = None
		with self._cond:
			remaining = list(self._pending)
			self._pending.clear()
		self._flush_batch(remaining)
		self._close_client()
