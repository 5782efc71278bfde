"""
Broadcast hub - a push feed built from periodic pulls.

Each topic (price, spreads, news, calendar) polls its data source on its
own interval, but only while somebody is listening:

    idle --first subscribe--> active --last unsubscribe--> idle

Every refresh is tagged with a sequence number. Refreshes for one topic
never overlap, and a result is only delivered if it is newer than the last
one delivered and the topic is still in the activation that started it.
"""
import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging

from config import feed_config, cache_config
from core.cache import CacheManager
from .scheduler import PeriodicTask

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], Any]


class ConnectionStatus(str, Enum):
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    DISCONNECTED = 'disconnected'
    ERROR = 'error'


class UnknownTopicError(KeyError):
    """Raised when subscribing to a topic that was never registered."""
    pass


@dataclass
class TopicState:
    """Subscribers, timer and refresh bookkeeping for one topic."""
    name: str
    fetch: Callable[[], Any]
    interval: float
    subscribers: List[Subscriber] = field(default_factory=list)
    timer: Optional[PeriodicTask] = None
    inflight: Optional[asyncio.Task] = None
    epoch: int = 0
    next_seq: int = 0
    delivered_seq: int = -1
    last_value: Any = None
    refreshes: int = 0

    @property
    def is_active(self) -> bool:
        return bool(self.subscribers)


class BroadcastHub:
    """
    Fan out periodically refreshed data to subscriber callbacks.

    Fetch functions may be plain (blocking) callables, which run in a worker
    thread, or coroutine functions. Subscriber callbacks may also be either;
    they are expected to return quickly.
    """

    def __init__(self, cache_manager: Optional[CacheManager] = None,
                 config=None,
                 probe: Optional[Callable[[], Any]] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 cleanup_interval: Optional[float] = None):
        self.cache = cache_manager
        self.config = config or feed_config
        self.probe = probe
        self._sleep = sleep
        self.cleanup_interval = cleanup_interval or cache_config.cleanup_interval
        self._topics: Dict[str, TopicState] = {}
        self._cleanup_task: Optional[PeriodicTask] = None
        self._connecting = False
        self._connection_failed = False
        self._last_fetch_ok: Optional[bool] = None
        self.reconnect_attempts = 0

    # ------------------------------------------------------------------
    # Topics and subscriptions
    # ------------------------------------------------------------------

    def register_topic(self, name: str, fetch: Callable[[], Any],
                       interval: Optional[float] = None) -> None:
        """Declare a topic and the function that produces its data."""
        if interval is None:
            interval = self.config.intervals.get(name)
        if interval is None:
            raise ValueError(f"No refresh interval configured for topic '{name}'")
        if name in self._topics and self._topics[name].is_active:
            raise ValueError(f"Cannot re-register active topic '{name}'")

        self._topics[name] = TopicState(name=name, fetch=fetch, interval=interval)
        logger.debug(f"Registered topic {name} (every {interval}s)")

    @property
    def topics(self) -> List[str]:
        return list(self._topics)

    def _get_topic(self, topic: str) -> TopicState:
        try:
            return self._topics[topic]
        except KeyError:
            raise UnknownTopicError(topic) from None

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for a topic.

        The first subscriber starts the topic's timer, which refreshes once
        right away. Must be called from inside the running event loop.

        Returns:
            A function that removes this subscription
        """
        state = self._get_topic(topic)

        if callback not in state.subscribers:
            state.subscribers.append(callback)

        self._ensure_cleanup()

        if state.timer is None:
            state.epoch += 1
            state.timer = PeriodicTask(f"feed:{topic}", state.interval,
                                       lambda: self.refresh(topic))
            state.timer.start()
            logger.info(f"Topic {topic} active")

        def unsubscribe() -> None:
            self.unsubscribe(topic, callback)

        return unsubscribe

    def unsubscribe(self, topic: str, callback: Subscriber) -> None:
        """Remove a callback; the last one out stops the topic's timer."""
        state = self._get_topic(topic)

        if callback in state.subscribers:
            state.subscribers.remove(callback)

        if not state.subscribers and state.timer is not None:
            state.timer.stop()
            state.timer = None
            # An in-flight refresh finishes, but its result is dropped and
            # it no longer blocks the next activation's first refresh
            state.epoch += 1
            state.inflight = None
            logger.info(f"Topic {topic} idle")

    def is_active(self, topic: str) -> bool:
        return self._get_topic(topic).is_active

    def subscriber_count(self, topic: str) -> int:
        return len(self._get_topic(topic).subscribers)

    def latest(self, topic: str) -> Any:
        """Last value delivered on a topic, or None."""
        return self._get_topic(topic).last_value

    # ------------------------------------------------------------------
    # Refresh path
    # ------------------------------------------------------------------

    def refresh(self, topic: str) -> Optional[asyncio.Task]:
        """
        Start a refresh for a topic unless one is already in flight.

        Returns:
            The refresh task, or None when skipped
        """
        state = self._get_topic(topic)

        if not state.is_active:
            return None

        if state.inflight is not None and not state.inflight.done():
            logger.debug(f"Skipping {topic} tick: previous refresh still running")
            return None

        seq = state.next_seq
        state.next_seq += 1
        state.inflight = asyncio.get_running_loop().create_task(
            self._refresh(state, seq, state.epoch),
            name=f"refresh:{topic}:{seq}",
        )
        return state.inflight

    async def _fetch(self, state: TopicState) -> Any:
        if inspect.iscoroutinefunction(state.fetch):
            return await state.fetch()
        result = await asyncio.to_thread(state.fetch)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _refresh(self, state: TopicState, seq: int, epoch: int) -> None:
        state.refreshes += 1
        try:
            value = await self._fetch(state)
        except Exception as e:
            self._last_fetch_ok = False
            logger.error(f"{state.name} update failed: {e}")
            return

        self._last_fetch_ok = True
        self._connection_failed = False

        if epoch != state.epoch or not state.subscribers:
            logger.debug(f"Dropping {state.name} result #{seq}: topic went idle")
            return

        if seq <= state.delivered_seq:
            logger.debug(f"Dropping stale {state.name} result #{seq}")
            return

        state.delivered_seq = seq
        state.last_value = value
        await self._broadcast(state, value)

    async def _broadcast(self, state: TopicState, value: Any) -> None:
        # Copy: callbacks may unsubscribe themselves
        for callback in list(state.subscribers):
            try:
                result = callback(value)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in {state.name} subscriber callback: {e}")

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _ensure_cleanup(self) -> None:
        """Start the periodic cache sweep if there is a cache and it is not running."""
        if self.cache is None or self._cleanup_task is not None:
            return
        self._cleanup_task = PeriodicTask("cache-cleanup", self.cleanup_interval,
                                          self._sweep_cache, run_immediately=False)
        self._cleanup_task.start()

    def _sweep_cache(self) -> None:
        asyncio.get_running_loop().create_task(self._run_sweep(), name="cache-sweep")

    async def _run_sweep(self) -> None:
        try:
            removed = await asyncio.to_thread(self.cache.cleanup)
        except Exception as e:
            logger.error(f"Cache sweep failed: {e}")
            return
        logger.debug(f"Cache sweep removed {removed} entries")

    async def _probe_once(self) -> bool:
        if self.probe is None:
            return True
        if inspect.iscoroutinefunction(self.probe):
            result = await self.probe()
        else:
            result = await asyncio.to_thread(self.probe)
        return result is not False and result is not None

    async def start(self) -> bool:
        """
        Establish the feed and start the periodic cache sweep.

        The connectivity probe is retried with exponential backoff
        (base delay doubling per attempt) up to the configured attempts.

        Returns:
            True once connected, False when every attempt failed
        """
        self._ensure_cleanup()

        self._connecting = True
        self._connection_failed = False
        self.reconnect_attempts = 0

        try:
            while True:
                try:
                    if await self._probe_once():
                        logger.info("Feed connected")
                        self.reconnect_attempts = 0
                        return True
                    logger.warning("Connectivity probe returned no data")
                except Exception as e:
                    logger.error(f"Feed connection failed: {e}")

                if self.reconnect_attempts >= self.config.max_reconnect_attempts:
                    logger.error("Max reconnection attempts reached")
                    self._connection_failed = True
                    return False

                self.reconnect_attempts += 1
                delay = self.config.reconnect_base_delay * (2 ** (self.reconnect_attempts - 1))
                logger.info(f"Reconnecting in {delay}s (attempt {self.reconnect_attempts}/"
                            f"{self.config.max_reconnect_attempts})")
                await self._sleep(delay)
        finally:
            self._connecting = False

    async def stop(self) -> None:
        """Cancel every timer and drop all subscriptions."""
        for state in self._topics.values():
            state.subscribers.clear()
            if state.timer is not None:
                state.timer.stop()
                state.timer = None
                state.epoch += 1
            state.inflight = None

        if self._cleanup_task is not None:
            self._cleanup_task.stop()
            self._cleanup_task = None

        self.reconnect_attempts = 0
        self._last_fetch_ok = None
        logger.info("Feed stopped")

    def get_connection_status(self) -> ConnectionStatus:
        """
        Derived status of the feed.

        Reflects whether any topic is active and how the latest fetch went.
        """
        if self._connecting:
            return ConnectionStatus.CONNECTING
        if self._connection_failed:
            return ConnectionStatus.ERROR
        if not any(state.is_active for state in self._topics.values()):
            return ConnectionStatus.DISCONNECTED
        if self._last_fetch_ok is None:
            return ConnectionStatus.CONNECTING
        if self._last_fetch_ok:
            return ConnectionStatus.CONNECTED
        return ConnectionStatus.ERROR
