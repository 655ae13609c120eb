"""
Очередь уведомлений о наградах и прогрессе.

Одновременно показывается не больше одного уведомления, остальные ждут в FIFO очереди.
Чем длиннее очередь, тем короче показ:
	- очередь < 3: 100% длительности
	- 3-4: 70%
	- 5-7: 50%
	- 8 и больше: 35%
Длительность не бывает меньше NOTIFICATION_MIN_DURATION_MS. Когда очередь дорастает до 3,
оставшееся время уже показанного уведомления пересчитывается заново.

NotificationQueue - синхронный автомат по дедлайнам (время в миллисекундах передается через clock),
NotificationDispatcher - asyncio цикл, который ждет ближайший дедлайн и вызывает poll().
"""
from collections import deque
from typing import Callable, Deque, Dict, List, Optional
import asyncio
import logging
import time

from rewardhub.core.config import settings
from rewardhub.core.owner import Owner
from rewardhub.schemas.notification import Notification, NotificationKind, NotificationSnapshot

logger = logging.getLogger(__name__)

Listener = Callable[[NotificationSnapshot], None]


def _monotonic_ms() -> float:
	return time.monotonic() * 1000


def duration_multiplier(backlog: int) -> float:
	if backlog >= 8:
		return 0.35
	if backlog >= 5:
		return 0.5
	if backlog >= 3:
		return 0.7
	return 1.0


def pause_after_dismiss(backlog: int) -> int:
	"""Пауза перед показом следующего уведомления, мс"""
	if backlog >= 6:
		return 20
	if backlog >= 3:
		return 50
	return 100


class NotificationQueue:
	def __init__(
		self,
		clock: Optional[Callable[[], float]] = None,
		default_duration: int = settings.NOTIFICATION_DEFAULT_DURATION_MS,
		min_duration: int = settings.NOTIFICATION_MIN_DURATION_MS
	):
		self._clock = clock or _monotonic_ms
		self.default_duration = default_duration
		self.min_duration = min_duration

		self._current: Optional[Notification] = None
		self._shown_at: Optional[float] = None
		self._deadline: Optional[float] = None
		# Момент показа следующего уведомления после паузы
		self._resume_at: Optional[float] = None
		self._backlog: Deque[Notification] = deque()
		self._listeners: List[Listener] = []

	@property
	def current(self) -> Optional[Notification]:
		return self._current

	@property
	def backlog(self) -> int:
		return len(self._backlog)

	@property
	def deadline(self) -> Optional[float]:
		"""Момент автоматического скрытия текущего уведомления"""
		return self._deadline

	def snapshot(self) -> NotificationSnapshot:
		return NotificationSnapshot(
			current=self._current,
			backlog=len(self._backlog),
			queued=list(self._backlog)
		)

	def subscribe(self, listener: Listener) -> Callable[[], None]:
		"""Подписка на изменения. Возвращает функцию отписки."""
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def _notify(self) -> None:
		snapshot = self.snapshot()
		for listener in list(self._listeners):
			try:
				listener(snapshot)
			except Exception as e:
				logger.error(f"Notification listener failed: {e}", exc_info=True)

	def adjusted_duration(self, base: int, backlog: int) -> float:
		return max(self.min_duration, base * duration_multiplier(backlog))

	def _base_duration(self, notification: Notification) -> int:
		return notification.duration if notification.duration is not None else self.default_duration

	def push(self, notification: Notification) -> Notification:
		now = self._clock()
		self._advance(now)

		if self._current is None and self._resume_at is None and not self._backlog:
			self._show(notification, now)
		else:
			self._backlog.append(notification)
			self._accelerate(now)
		self._notify()
		return notification

	def poll(self) -> Optional[float]:
		"""
		Применяет все наступившие дедлайны.

		Returns:
			Сколько миллисекунд ждать до следующего дедлайна, None если ждать нечего
		"""
		now = self._clock()
		if self._advance(now):
			self._notify()
		return self._time_to_next(now)

	def dismiss(self, notification_id: str) -> bool:
		"""Скрывает текущее уведомление или убирает уведомление из очереди."""
		now = self._clock()
		self._advance(now)
		if self._current is not None and self._current.id == notification_id:
			self._hide(now)
			self._notify()
			return True
		for queued in self._backlog:
			if queued.id == notification_id:
				self._backlog.remove(queued)
				self._notify()
				return True
		return False

	def clear(self) -> None:
		self._current = None
		self._shown_at = None
		self._deadline = None
		self._resume_at = None
		self._backlog.clear()
		self._notify()

	def _show(self, notification: Notification, at: float) -> None:
		self._current = notification
		self._shown_at = at
		self._resume_at = None
		self._deadline = at + self.adjusted_duration(self._base_duration(notification), len(self._backlog))

	def _hide(self, at: float) -> None:
		self._current = None
		self._shown_at = None
		self._deadline = None
		self._resume_at = at + pause_after_dismiss(len(self._backlog)) if self._backlog else None

	def _accelerate(self, now: float) -> None:
		backlog = len(self._backlog)
		if self._current is None or backlog < 3:
			return
		target = self.adjusted_duration(self._base_duration(self._current), backlog)
		elapsed = now - self._shown_at
		remaining = max(self.min_duration, target - elapsed)
		self._deadline = now + remaining

	def _advance(self, now: float) -> bool:
		"""Прокручивает автомат до момента now. True если состояние изменилось."""
		changed = False
		while True:
			if self._current is not None and self._deadline <= now:
				self._hide(self._deadline)
				changed = True
			elif self._current is None and self._resume_at is not None and self._resume_at <= now:
				if self._backlog:
					self._show(self._backlog.popleft(), self._resume_at)
				else:
					self._resume_at = None
				changed = True
			else:
				return changed

	def _time_to_next(self, now: float) -> Optional[float]:
		if self._current is not None:
			return max(0.0, self._deadline - now)
		if self._resume_at is not None:
			return max(0.0, self._resume_at - now)
		return None

	# Готовые уведомления

	def show(
		self,
		kind: NotificationKind,
		title: str,
		subtitle: Optional[str] = None,
		amount: Optional[int] = None,
		icon: Optional[str] = None,
		duration: Optional[int] = None
	) -> Notification:
		return self.push(Notification(
			kind=kind,
			title=title,
			subtitle=subtitle,
			amount=amount,
			icon=icon,
			duration=duration
		))

	def show_currency(self, currency: str, amount: int) -> Notification:
		if currency == "vcoin":
			return self.show(NotificationKind.vcoin, f"+{amount} VCoin", amount=amount, icon="cash")
		return self.show(NotificationKind.ruby, f"+{amount} Ruby", amount=amount, icon="diamond")

	def show_xp(self, amount: int) -> Notification:
		return self.show(NotificationKind.xp, f"+{amount} XP", amount=amount, icon="sparkles")

	def show_energy(self, amount: int) -> Notification:
		return self.show(NotificationKind.energy, f"+{amount} Energy", amount=amount, icon="flash")

	def show_relationship(self, amount: int) -> Notification:
		return self.show(NotificationKind.relationship, f"+{amount} Relationship", amount=amount, icon="heart")

	def show_level_up(self, level: int) -> Notification:
		return self.show(NotificationKind.level_up, f"Level {level}!", subtitle="New quests unlocked", amount=level, icon="trophy")

	def show_quest_progress(
		self,
		title: str,
		progress: int,
		target: int,
		completed: bool = False,
		duration: Optional[int] = None
	) -> Notification:
		if duration is None:
			duration = (
				settings.NOTIFICATION_QUEST_COMPLETED_DURATION_MS if completed
				else settings.NOTIFICATION_QUEST_PROGRESS_DURATION_MS
			)
		return self.push(Notification(
			kind=NotificationKind.quest if completed else NotificationKind.quest_progress,
			title=title,
			amount=progress,
			icon="checkmark-circle" if completed else "disc",
			progress=min(progress / target, 1.0) if target else 1.0,
			target=target,
			duration=duration
		))


class NotificationDispatcher:
	"""
	Фоновая задача, которая скрывает и показывает уведомления по дедлайнам.

	Одно ожидание на очередь: любое изменение очереди будит цикл, и он пересчитывает таймаут.
	С idle_timeout задача завершается, когда очередь пуста дольше idle_timeout секунд, и вызывает
	on_idle. Следующее изменение такой очереди вызывает on_wake.
	"""

	def __init__(
		self,
		queue: NotificationQueue,
		idle_timeout: Optional[float] = None,
		on_idle: Optional[Callable[["NotificationDispatcher"], None]] = None,
		on_wake: Optional[Callable[["NotificationDispatcher"], None]] = None
	):
		self.queue = queue
		self.idle_timeout = idle_timeout
		self._on_idle = on_idle
		self._on_wake = on_wake
		self._wakeup = asyncio.Event()
		self._task: Optional[asyncio.Task] = None
		self._released = False
		self._unsubscribe = queue.subscribe(self._on_change)

	@property
	def running(self) -> bool:
		return self._task is not None and not self._task.done()

	def start(self) -> None:
		if not self.running:
			self._released = False
			self._task = asyncio.create_task(self._run())

	def _on_change(self, _snapshot: NotificationSnapshot) -> None:
		self._wakeup.set()
		if self._released:
			self._released = False
			if self._on_wake is not None:
				self._on_wake(self)

	def _queue_idle(self) -> bool:
		return self.queue.current is None and not self.queue.backlog

	async def _run(self) -> None:
		while True:
			self._wakeup.clear()
			try:
				timeout = self.queue.poll()
			except Exception as e:
				logger.error(f"Notification dispatcher poll failed: {e}", exc_info=True)
				timeout = None

			idle = timeout is None and self._queue_idle()
			if timeout is not None:
				wait = timeout / 1000
			elif idle:
				wait = self.idle_timeout
			else:
				wait = None

			try:
				await asyncio.wait_for(self._wakeup.wait(), wait)
			except asyncio.TimeoutError:
				if idle and self._queue_idle():
					break

		self._released = True
		if self._on_idle is not None:
			self._on_idle(self)

	async def stop(self) -> None:
		self._unsubscribe()
		self._released = False
		if self._task is None:
			return
		self._task.cancel()
		try:
			await self._task
		except asyncio.CancelledError:
			pass
		self._task = None


class NotificationCenter:
	"""
	Очереди уведомлений по владельцам (одна очередь и один диспетчер на владельца).

	Очередь без уведомлений дольше idle_timeout секунд освобождается вместе с задачей
	диспетчера и создается заново при следующем queue_for(). Если в освобожденную очередь
	пишет запрос, который получил ее раньше, очередь возвращается на место.
	"""

	def __init__(
		self,
		clock: Optional[Callable[[], float]] = None,
		idle_timeout: Optional[float] = settings.NOTIFICATION_IDLE_TIMEOUT_S
	):
		self._clock = clock
		self.idle_timeout = idle_timeout
		self._queues: Dict[str, NotificationQueue] = {}
		self._dispatchers: Dict[str, NotificationDispatcher] = {}

	def queue_for(self, owner: Owner) -> NotificationQueue:
		key = owner.key
		queue = self._queues.get(key)
		if queue is None:
			queue = NotificationQueue(clock=self._clock)
			self._queues[key] = queue
			self._dispatchers[key] = NotificationDispatcher(
				queue,
				idle_timeout=self.idle_timeout,
				on_idle=lambda dispatcher: self._release(key, dispatcher),
				on_wake=lambda dispatcher: self._restore(key, dispatcher)
			)
		self._ensure_running(self._dispatchers[key])
		return queue

	def _ensure_running(self, dispatcher: NotificationDispatcher) -> None:
		try:
			asyncio.get_running_loop()
		except RuntimeError:
			# Без цикла событий дедлайны применяются при poll()
			return
		dispatcher.start()

	def _release(self, key: str, dispatcher: NotificationDispatcher) -> None:
		if self._dispatchers.get(key) is dispatcher:
			del self._dispatchers[key]
			del self._queues[key]
			logger.debug(f"Released idle notification queue of {key}")

	def _restore(self, key: str, dispatcher: NotificationDispatcher) -> None:
		if key not in self._queues:
			self._queues[key] = dispatcher.queue
			self._dispatchers[key] = dispatcher
			logger.debug(f"Restored notification queue of {key}")
		self._ensure_running(dispatcher)

	async def shutdown(self) -> None:
		for dispatcher in self._dispatchers.values():
			await dispatcher.stop()
		self._dispatchers.clear()
		self._queues.clear()
		logger.info("Notification dispatchers stopped")


notification_center = NotificationCenter()
