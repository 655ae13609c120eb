"""
Исключения движка наград и прогрессии.

Сервисы бросают их при нарушении правил (квест не выполнен, награда уже получена и т.д.),
HTTP слой переводит их в ответы с кодом из HTTP_STATUS.
"""
from typing import Any, Dict, Optional


class RewardError(Exception):
	"""
	Базовое исключение для всех ошибок движка наград.

	Args:
		message: Человекочитаемое описание ошибки
		details: Дополнительные данные для логов и клиента
		is_retryable: Можно ли повторить операцию
		error_code: Стабильный код ошибки (по умолчанию имя класса)
	"""

	DEFAULT_RETRYABLE: bool = False
	HTTP_STATUS: int = 400

	def __init__(
		self,
		message: str,
		details: Optional[Dict[str, Any]] = None,
		is_retryable: Optional[bool] = None,
		error_code: Optional[str] = None,
	) -> None:
		self.message = message
		self.details: Dict[str, Any] = details or {}
		self.is_retryable = is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
		self.error_code = error_code or self.__class__.__name__
		super().__init__(self.message)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"error_code": self.error_code,
			"message": self.message,
			"details": self.details,
			"is_retryable": self.is_retryable,
		}

	def __str__(self) -> str:
		details_str = f" | Details: {self.details}" if self.details else ""
		return f"[{self.error_code}] {self.message}{details_str}"


class NotFound(RewardError):
	"""Экземпляр квеста, запись или веха не найдены у владельца."""
	HTTP_STATUS = 404


class NotCompleted(RewardError):
	"""Квест еще не выполнен, награду забрать нельзя."""
	HTTP_STATUS = 409


class AlreadyClaimed(RewardError):
	"""Награда уже получена."""
	HTTP_STATUS = 409


class NotEligible(RewardError):
	"""Награда еще не доступна (например, ежедневная награда за вход уже получена сегодня)."""
	HTTP_STATUS = 409


class NotReady(RewardError):
	"""Для текущего дня нет шаблона награды."""
	HTTP_STATUS = 422


class Unauthenticated(RewardError):
	"""Не удалось определить владельца (ни user_id, ни client_id)."""
	HTTP_STATUS = 401


class RemoteFailure(RewardError):
	"""Ошибка хранилища или транспорта. Операцию можно повторить."""
	DEFAULT_RETRYABLE = True
	HTTP_STATUS = 503


class ConflictError(RemoteFailure):
	"""Нарушение уникальности при вставке строки."""
	DEFAULT_RETRYABLE = False
	HTTP_STATUS = 409
