import logging
import re

from domain.exceptions.currency import InvalidCurrencyError
from domain.models.currency import SupportedCurrency, currency_decimal_places, currency_symbol
from infrastructure.providers.base import ExchangeRateProvider

logger = logging.getLogger(__name__)

CURRENCY_CODE_PATTERN = re.compile(r'^[A-Z]{3}$')


class CurrencyService:
	def __init__(self, provider: ExchangeRateProvider):
		self.provider = provider

	@staticmethod
	def normalize_code(code: str | None) -> str:
		normalized = (code or '').strip().upper()
		if not CURRENCY_CODE_PATTERN.match(normalized):
			raise InvalidCurrencyError(f'Invalid currency code: {code!r} (must be 3 letters)')
		return normalized

	async def get_supported_currencies(self) -> list[SupportedCurrency]:
		currencies = await self.provider.get_supported_currencies()
		logger.debug(f'{self.provider.name} supports {len(currencies)} currencies')

		return sorted(
			(
				SupportedCurrency(
					code=c['code'],
					name=c.get('name'),
					symbol=currency_symbol(c['code']),
					decimal_places=currency_decimal_places(c['code']),
				)
				for c in currencies
			),
			key=lambda c: c.code,
		)
