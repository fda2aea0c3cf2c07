import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, DateTime, Index, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
	pass


class ExchangeRateDB(Base):
	__tablename__ = 'exchange_rates'

	id: Mapped[str] = mapped_column(
		String(36), primary_key=True, default=lambda: str(uuid.uuid4())
	)
	base_currency: Mapped[str] = mapped_column(String(3), nullable=False)
	target_currency: Mapped[str] = mapped_column(String(3), nullable=False)
	rate: Mapped[Decimal] = mapped_column(DECIMAL(precision=20, scale=10), nullable=False)
	fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
	created_at: Mapped[datetime] = mapped_column(
		DateTime(timezone=True), nullable=False, server_default=func.now()
	)
	updated_at: Mapped[datetime] = mapped_column(
		DateTime(timezone=True), nullable=False, server_default=func.now()
	)
	deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

	__table_args__ = (
		Index('idx_exchange_rates_deleted_at', 'deleted_at'),
		UniqueConstraint('base_currency', 'target_currency', name='uq_base_target_currency'),
	)

	def __repr__(self):
		return f'<ExchangeRateDB({self.base_currency}->{self.target_currency}: {self.rate})>'
