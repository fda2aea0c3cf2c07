from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import (
	get_conversion_service,
	get_currency_service,
	get_rate_service,
	get_rate_updater,
)
from api.schemas import (
	BulkConversionItemResponse,
	BulkConversionResponse,
	BulkConvertRequest,
	ConversionResponse,
	RateResponse,
	RatesResponse,
	RefreshResponse,
	SupportedCurrenciesResponse,
	SupportedCurrencyResponse,
	UpdaterStatusResponse,
)
from application.services import ConversionService, CurrencyService, RateService
from application.workers.rate_updater import RateUpdater
from domain.models.currency import BulkConvertItem

router = APIRouter(prefix='/api/v1/currency', tags=['currency'])

normalize_code = CurrencyService.normalize_code


@router.get(
	'/convert',
	response_model=ConversionResponse,
	status_code=status.HTTP_200_OK,
	summary='Convert currency amount',
)
async def convert_currency(
	amount: Annotated[Decimal, Query()],
	from_currency: Annotated[str, Query(alias='from')],
	to_currency: Annotated[str, Query(alias='to')],
	conversion_service: Annotated[ConversionService, Depends(get_conversion_service)],
	rate_service: Annotated[RateService, Depends(get_rate_service)],
) -> ConversionResponse:
	from_currency = normalize_code(from_currency)
	to_currency = normalize_code(to_currency)

	converted = await conversion_service.convert(amount, from_currency, to_currency)
	rate = await rate_service.get_rate(from_currency, to_currency)
	rate_date = await rate_service.get_rate_date()

	return ConversionResponse(
		from_currency=from_currency,
		to_currency=to_currency,
		original_amount=amount,
		converted_amount=converted,
		rate=rate,
		rate_date=rate_date,
	)


@router.post(
	'/bulk-convert',
	response_model=BulkConversionResponse,
	status_code=status.HTTP_200_OK,
	summary='Convert several amounts into one currency',
)
async def bulk_convert(
	request: BulkConvertRequest,
	service: Annotated[ConversionService, Depends(get_conversion_service)],
) -> BulkConversionResponse:
	to_currency = normalize_code(request.to)
	items = [
		BulkConvertItem(amount=item.amount, from_currency=normalize_code(item.from_currency))
		for item in request.amounts
	]

	result = await service.bulk_convert(items, to_currency)

	return BulkConversionResponse(
		to_currency=result.to_currency,
		conversions=[
			BulkConversionItemResponse(
				original_amount=c.original_amount,
				from_currency=c.from_currency,
				converted_amount=c.converted_amount,
				rate=c.rate,
			)
			for c in result.conversions
		],
		total_amount=result.total_amount,
		rate_date=result.rate_date,
	)


@router.get(
	'/rates',
	response_model=RatesResponse,
	status_code=status.HTTP_200_OK,
	summary='Get all rates for a base currency',
)
async def get_all_rates(
	service: Annotated[RateService, Depends(get_rate_service)],
	base: Annotated[str, Query()] = 'EUR',
) -> RatesResponse:
	base = normalize_code(base)
	rates = await service.get_all_rates(base)
	rate_date = await service.get_rate_date()
	return RatesResponse(base=base, rate_date=rate_date, rates=rates)


@router.get(
	'/rate',
	response_model=RateResponse,
	status_code=status.HTTP_200_OK,
	summary='Get current exchange rate',
)
async def get_exchange_rate(
	from_currency: Annotated[str, Query(alias='from')],
	to_currency: Annotated[str, Query(alias='to')],
	service: Annotated[RateService, Depends(get_rate_service)],
) -> RateResponse:
	from_currency = normalize_code(from_currency)
	to_currency = normalize_code(to_currency)

	rate = await service.get_rate(from_currency, to_currency)
	rate_date = await service.get_rate_date()
	return RateResponse(
		from_currency=from_currency,
		to_currency=to_currency,
		rate=rate,
		rate_date=rate_date,
	)


@router.get(
	'/supported',
	response_model=SupportedCurrenciesResponse,
	status_code=status.HTTP_200_OK,
	summary='List supported currencies',
)
async def get_supported_currencies(
	service: Annotated[CurrencyService, Depends(get_currency_service)],
) -> SupportedCurrenciesResponse:
	currencies = await service.get_supported_currencies()
	return SupportedCurrenciesResponse(
		currencies=[
			SupportedCurrencyResponse(
				code=c.code, name=c.name, symbol=c.symbol, decimal_places=c.decimal_places
			)
			for c in currencies
		]
	)


@router.post(
	'/refresh',
	response_model=RefreshResponse,
	status_code=status.HTTP_200_OK,
	summary='Refresh rates from the provider now',
)
async def refresh_rates(
	updater: Annotated[RateUpdater, Depends(get_rate_updater)],
) -> RefreshResponse:
	count = await updater.force_update()
	return RefreshResponse(success=True, message='Exchange rates updated', rates_updated=count)


@router.get(
	'/status',
	response_model=UpdaterStatusResponse,
	status_code=status.HTTP_200_OK,
	summary='Rate updater status',
)
async def get_updater_status(
	updater: Annotated[RateUpdater, Depends(get_rate_updater)],
) -> UpdaterStatusResponse:
	current = updater.status()
	return UpdaterStatusResponse(
		running=current.running,
		interval_seconds=current.interval,
		last_update=current.last_update,
		last_error=current.last_error,
	)
