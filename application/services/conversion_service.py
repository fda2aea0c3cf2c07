import logging
from decimal import Decimal

from application.services.rate_service import RateService
from domain.exceptions.currency import BulkConversionError, CurrencyException
from domain.models.currency import BulkConvertItem, BulkConvertResponse, BulkConvertResult

logger = logging.getLogger(__name__)


class ConversionService:
	def __init__(self, rate_service: RateService):
		self.rate_service = rate_service

	async def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
		from_currency = from_currency.upper()
		to_currency = to_currency.upper()

		if from_currency == to_currency:
			return amount

		rate = await self.rate_service.get_rate(from_currency, to_currency)
		return amount * rate

	async def bulk_convert(self, items: list[BulkConvertItem], to_currency: str) -> BulkConvertResponse:
		"""Convert every item into one target currency.

		Fails on the first item whose rate cannot be resolved; no partial
		result is returned.
		"""
		to_currency = to_currency.upper()
		conversions = []
		total = Decimal('0')

		for item in items:
			from_currency = item.from_currency.upper()
			try:
				rate = await self.rate_service.get_rate(from_currency, to_currency)
			except CurrencyException as e:
				logger.warning(f'Bulk conversion aborted at {from_currency}: {e}')
				raise BulkConversionError(from_currency, to_currency, str(e)) from e

			converted = item.amount * rate
			total += converted
			conversions.append(
				BulkConvertResult(
					original_amount=item.amount,
					from_currency=from_currency,
					converted_amount=converted,
					rate=rate,
				)
			)

		rate_date = await self.rate_service.get_rate_date()

		return BulkConvertResponse(
			to_currency=to_currency,
			conversions=conversions,
			total_amount=total,
			rate_date=rate_date,
		)
