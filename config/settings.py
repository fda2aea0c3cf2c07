from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
	DATABASE_URL: str = 'sqlite+aiosqlite:///./currency_converter.db'

	REDIS_URL: str = 'redis://localhost:6379/0'
	REDIS_ENABLED: bool = True

	# Rate provider
	FRANKFURTER_BASE_URL: str = 'https://api.frankfurter.app'
	PROVIDER_TIMEOUT: float = 10.0
	BASE_CURRENCY: str = 'EUR'

	# Rate updater (seconds)
	RATE_UPDATE_INTERVAL: float = 3600
	RATE_RETRY_DELAY: float = 300
	RATE_MAX_RETRIES: int = 3
	RATE_RETENTION_DAYS: int = 30

	# Cache (seconds)
	CACHE_LOCAL_TTL: float = 300
	CACHE_REMOTE_TTL: float = 3600
	CACHE_CLEANUP_INTERVAL: float = 60
	CACHE_REMOTE_TIMEOUT: float = 2.0

	# Application
	APP_NAME: str = 'Currency Converter API'
	LOG_LEVEL: str = 'INFO'
	LOG_JSON: bool = False

	model_config = SettingsConfigDict(env_file='.env', case_sensitive=False, extra='ignore')


@lru_cache
def get_settings() -> Settings:
	return Settings()
