from .base import ExchangeRateProvider
from .frankfurter import FrankfurterProvider

__all__ = ['ExchangeRateProvider', 'FrankfurterProvider']
