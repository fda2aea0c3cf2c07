import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.error_handlers import register_exception_handlers
from api.routes import currency
from application.services.service_factory import ServiceFactory
from config.settings import get_settings
from infrastructure.monitoring.logger import setup_logging

logger = logging.getLogger(__name__)


settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
	setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
	logger.info('Starting Currency Converter API...')

	services = ServiceFactory(settings)
	await services.startup()
	app.state.services = services

	logger.info('Application ready')

	yield

	logger.info('Shutting down...')
	await services.cleanup()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.include_router(currency.router)
register_exception_handlers(app)
