from typing import Annotated

from fastapi import Depends, Request

from application.services import ConversionService, CurrencyService, RateService
from application.services.service_factory import ServiceFactory
from application.workers.rate_updater import RateUpdater


def get_services(request: Request) -> ServiceFactory:
	services = getattr(request.app.state, 'services', None)
	if services is None:
		raise RuntimeError('Services are not initialized')
	return services


def get_rate_service(
	services: Annotated[ServiceFactory, Depends(get_services)],
) -> RateService:
	return services.rate_service


def get_conversion_service(
	services: Annotated[ServiceFactory, Depends(get_services)],
) -> ConversionService:
	return services.conversion_service


def get_currency_service(
	services: Annotated[ServiceFactory, Depends(get_services)],
) -> CurrencyService:
	return services.currency_service


def get_rate_updater(
	services: Annotated[ServiceFactory, Depends(get_services)],
) -> RateUpdater:
	return services.rate_updater
