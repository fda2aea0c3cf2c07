import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from domain.exceptions.currency import PersistenceError
from domain.models.currency import ExchangeRate
from infrastructure.persistence.database import Database
from infrastructure.persistence.models.currency import ExchangeRateDB

logger = logging.getLogger(__name__)

BATCH_SIZE = 100

_UPSERT_INSERTS = {
	'sqlite': sqlite.insert,
	'postgresql': postgresql.insert,
}


def _as_utc(value: datetime | None) -> datetime | None:
	# SQLite hands back naive datetimes; everything we write is UTC.
	if value is not None and value.tzinfo is None:
		return value.replace(tzinfo=UTC)
	return value


class ExchangeRateRepository:
	"""Durable store for exchange rates, one live row per (base, target) pair.

	Rows are soft-deleted by ``delete_old_rates`` and revived by the next upsert
	of the same pair. Every read ignores soft-deleted rows.
	"""

	def __init__(self, db: Database):
		self.db = db

	def _live(self):
		return select(ExchangeRateDB).where(ExchangeRateDB.deleted_at.is_(None))

	@staticmethod
	def _to_domain(row: ExchangeRateDB) -> ExchangeRate:
		return ExchangeRate(
			id=row.id,
			base_currency=row.base_currency,
			target_currency=row.target_currency,
			rate=row.rate,
			fetched_at=_as_utc(row.fetched_at),
			created_at=_as_utc(row.created_at),
			updated_at=_as_utc(row.updated_at),
		)

	async def get_rate(self, base_currency: str, target_currency: str) -> ExchangeRate | None:
		stmt = self._live().where(
			ExchangeRateDB.base_currency == base_currency,
			ExchangeRateDB.target_currency == target_currency,
		)
		try:
			async with self.db.session() as session:
				row = (await session.execute(stmt)).scalar_one_or_none()
		except SQLAlchemyError as e:
			raise PersistenceError(
				f'Failed to load rate {base_currency}/{target_currency}: {e}'
			) from e

		return self._to_domain(row) if row else None

	async def get_rates_for_base(self, base_currency: str) -> list[ExchangeRate]:
		stmt = (
			self._live()
			.where(ExchangeRateDB.base_currency == base_currency)
			.order_by(ExchangeRateDB.target_currency.asc())
		)
		try:
			async with self.db.session() as session:
				rows = (await session.execute(stmt)).scalars().all()
		except SQLAlchemyError as e:
			raise PersistenceError(f'Failed to load rates for base {base_currency}: {e}') from e

		return [self._to_domain(r) for r in rows]

	async def get_all_rates(self) -> list[ExchangeRate]:
		stmt = self._live().order_by(
			ExchangeRateDB.base_currency.asc(), ExchangeRateDB.target_currency.asc()
		)
		try:
			async with self.db.session() as session:
				rows = (await session.execute(stmt)).scalars().all()
		except SQLAlchemyError as e:
			raise PersistenceError(f'Failed to load exchange rates: {e}') from e

		return [self._to_domain(r) for r in rows]

	def _upsert_statement(self, rows: list[dict]):
		dialect = self.db.dialect_name
		insert = _UPSERT_INSERTS.get(dialect)
		if insert is None:
			raise PersistenceError(f'Rate upserts are not supported on {dialect}')

		stmt = insert(ExchangeRateDB).values(rows)
		return stmt.on_conflict_do_update(
			index_elements=['base_currency', 'target_currency'],
			set_={
				'rate': stmt.excluded.rate,
				'fetched_at': stmt.excluded.fetched_at,
				'updated_at': stmt.excluded.updated_at,
				'deleted_at': None,
			},
		)

	@staticmethod
	def _to_row(rate: ExchangeRate, now: datetime) -> dict:
		return {
			'id': rate.id or str(uuid.uuid4()),
			'base_currency': rate.base_currency,
			'target_currency': rate.target_currency,
			'rate': rate.rate,
			'fetched_at': rate.fetched_at,
			'created_at': now,
			'updated_at': now,
		}

	async def upsert_rate(self, rate: ExchangeRate) -> None:
		stmt = self._upsert_statement([self._to_row(rate, datetime.now(UTC))])
		try:
			async with self.db.session() as session:
				await session.execute(stmt)
		except SQLAlchemyError as e:
			raise PersistenceError(
				f'Failed to upsert rate {rate.base_currency}/{rate.target_currency}: {e}'
			) from e

	async def bulk_upsert_rates(self, rates: list[ExchangeRate]) -> None:
		"""Upsert all rates in one transaction, in batches of ``BATCH_SIZE``.

		Either every row is written or none is.
		"""
		if not rates:
			return

		now = datetime.now(UTC)
		rows = [self._to_row(r, now) for r in rates]
		try:
			async with self.db.session() as session:
				for start in range(0, len(rows), BATCH_SIZE):
					await session.execute(self._upsert_statement(rows[start:start + BATCH_SIZE]))
		except SQLAlchemyError as e:
			raise PersistenceError(f'Failed to bulk upsert {len(rows)} rates: {e}') from e

		logger.debug(f'Upserted {len(rows)} exchange rates')

	async def delete_old_rates(self, older_than: datetime) -> int:
		now = datetime.now(UTC)
		stmt = (
			update(ExchangeRateDB)
			.where(ExchangeRateDB.fetched_at < older_than, ExchangeRateDB.deleted_at.is_(None))
			.values(deleted_at=now, updated_at=now)
		)
		try:
			async with self.db.session() as session:
				result = await session.execute(stmt)
		except SQLAlchemyError as e:
			raise PersistenceError(f'Failed to delete rates older than {older_than}: {e}') from e

		return result.rowcount or 0

	async def get_latest_fetch_time(self) -> datetime | None:
		stmt = select(func.max(ExchangeRateDB.fetched_at)).where(ExchangeRateDB.deleted_at.is_(None))
		try:
			async with self.db.session() as session:
				latest = (await session.execute(stmt)).scalar_one_or_none()
		except SQLAlchemyError as e:
			raise PersistenceError(f'Failed to load latest fetch time: {e}') from e

		return _as_utc(latest)
