import contextlib
from decimal import Decimal, InvalidOperation

import httpx

from domain.exceptions.currency import ProviderError
from domain.models.currency import LatestRates

DEFAULT_BASE_CURRENCY = 'EUR'


class FrankfurterProvider:
	"""Client for the Frankfurter API (European Central Bank reference rates)."""

	BASE_URL = 'https://api.frankfurter.app'

	def __init__(
		self,
		base_url: str | None = None,
		client: httpx.AsyncClient | None = None,
		timeout: float = 10,
	):
		self.base_url = (base_url or self.BASE_URL).rstrip('/')
		self._client = client or httpx.AsyncClient(timeout=timeout)

	@property
	def name(self) -> str:
		return 'frankfurter'

	async def _request(self, endpoint: str, params: dict | None = None) -> dict:
		url = f'{self.base_url}/{endpoint}'

		try:
			response = await self._client.get(url, params=params)
			response.raise_for_status()
			data = response.json()

			if not isinstance(data, dict):
				raise ProviderError(f'Frankfurter returned unexpected payload for {endpoint}')

			return data

		except httpx.HTTPStatusError as e:
			msg = None
			with contextlib.suppress(Exception):
				msg = e.response.json().get('message')
			raise ProviderError(
				f'Frankfurter HTTP error {e.response.status_code}: {msg or e.response.text[:200]}'
			) from e
		except httpx.RequestError as e:
			raise ProviderError(f'Frankfurter request failed: {e.__class__.__name__}') from e
		except ProviderError:
			raise
		except Exception as e:
			raise ProviderError(f'Frankfurter response parsing error: {str(e)}') from e

	def _parse_rates(self, data: dict) -> LatestRates:
		try:
			rates = {code: Decimal(str(value)) for code, value in data['rates'].items()}
			return LatestRates(
				base=data['base'],
				date=data['date'],
				rates=rates,
				amount=Decimal(str(data.get('amount', 1))),
			)
		except (KeyError, TypeError, AttributeError, InvalidOperation) as e:
			raise ProviderError(f'Frankfurter response parsing error: {str(e)}') from e

	async def get_latest_rates(self, base_currency: str) -> LatestRates:
		data = await self._request('latest', {'from': base_currency or DEFAULT_BASE_CURRENCY})
		return self._parse_rates(data)

	async def get_latest_rates_for_currencies(
		self, base_currency: str, target_currencies: list[str]
	) -> LatestRates:
		params = {'from': base_currency or DEFAULT_BASE_CURRENCY}
		if target_currencies:
			params['to'] = ','.join(target_currencies)
		data = await self._request('latest', params)
		return self._parse_rates(data)

	async def get_supported_currencies(self) -> list[dict]:
		data = await self._request('currencies')
		return [{'code': code, 'name': name} for code, name in data.items()]

	async def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> LatestRates:
		if not to_currency:
			raise ProviderError('Target currency is required')

		data = await self._request(
			'latest',
			{
				'amount': str(amount),
				'from': from_currency or DEFAULT_BASE_CURRENCY,
				'to': to_currency,
			},
		)
		return self._parse_rates(data)

	async def get_historical_rates(self, date: str, base_currency: str) -> LatestRates:
		data = await self._request(date, {'from': base_currency or DEFAULT_BASE_CURRENCY})
		return self._parse_rates(data)

	async def close(self) -> None:
		await self._client.aclose()
