from sqlalchemy import CheckConstraint, Column, Index, String, text
from sqlalchemy.orm import declarative_base, declared_attr

Base = declarative_base()


def owner_unique(name: str, *columns: str) -> tuple:
	"""
	Уникальность по владельцу и колонкам.

	Одна из колонок владельца всегда NULL, а обычный UNIQUE в PostgreSQL считает
	NULL различными, поэтому заводим по частичному индексу на каждую колонку владельца.
	"""
	return (
		Index(f"{name}_user", "user_id", *columns, unique=True,
			postgresql_where=text("user_id IS NOT NULL")),
		Index(f"{name}_client", "client_id", *columns, unique=True,
			postgresql_where=text("client_id IS NOT NULL")),
	)


class OwnedMixin:
	"""Колонки владельца: ровно одна из user_id / client_id заполнена."""

	user_id = Column(String, nullable=True, index=True)
	client_id = Column(String, nullable=True, index=True)

	@declared_attr
	def __table_args__(cls):
		return (
			CheckConstraint(
				"(user_id IS NULL) <> (client_id IS NULL)",
				name=f"ck_{cls.__tablename__}_single_owner"
			),
		) + tuple(getattr(cls, "__owner_table_args__", ()))
