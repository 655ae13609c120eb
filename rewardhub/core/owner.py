"""
Владелец записей: авторизованный пользователь или гость.

В таблицах владелец хранится в двух взаимоисключающих колонках user_id / client_id.
Внутри движка используется только Owner, колонки появляются на границе с хранилищем.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from rewardhub.core.exceptions import Unauthenticated


class OwnerKind(str, Enum):
	user = "user"
	guest = "guest"


@dataclass(frozen=True)
class Owner:
	kind: OwnerKind
	id: str

	@classmethod
	def user(cls, user_id: Any) -> "Owner":
		# UUID пользователя нормализуем к нижнему регистру
		return cls(OwnerKind.user, str(user_id).lower())

	@classmethod
	def guest(cls, client_id: str) -> "Owner":
		return cls(OwnerKind.guest, str(client_id))

	@classmethod
	def resolve(cls, user_id: Optional[Any] = None, client_id: Optional[str] = None) -> "Owner":
		"""Авторизованный пользователь имеет приоритет над гостевым client_id."""
		if user_id:
			return cls.user(user_id)
		if client_id:
			return cls.guest(client_id)
		raise Unauthenticated("No user_id or client_id to resolve owner")

	@property
	def is_guest(self) -> bool:
		return self.kind == OwnerKind.guest

	@property
	def key(self) -> str:
		return f"{self.kind.value}:{self.id}"

	def columns(self) -> Dict[str, Optional[str]]:
		"""Значения колонок владельца для новой строки: ровно одна не NULL."""
		if self.kind == OwnerKind.user:
			return {"user_id": self.id, "client_id": None}
		return {"user_id": None, "client_id": self.id}

	def filters(self) -> Dict[str, Optional[str]]:
		"""Фильтр выборки по владельцу (вторая колонка обязана быть NULL)."""
		return self.columns()


def owner_from_row(row: Dict[str, Any]) -> Owner:
	user_id = row.get("user_id")
	client_id = row.get("client_id")
	if isinstance(user_id, UUID):
		user_id = str(user_id)
	return Owner.resolve(user_id=user_id, client_id=client_id)
