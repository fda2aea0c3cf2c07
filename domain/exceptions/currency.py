class CurrencyException(Exception):
    pass


class InvalidCurrencyError(CurrencyException):
    pass


class ProviderError(CurrencyException):
    pass


class PersistenceError(CurrencyException):
    pass


class CacheError(CurrencyException):
    pass


class RateNotFoundError(CurrencyException):
    def __init__(self, base_currency: str, target_currency: str):
        self.base_currency = base_currency
        self.target_currency = target_currency
        super().__init__(f"Rate not found for {base_currency}/{target_currency}")


class BulkConversionError(CurrencyException):
    """Raised when one item of a bulk conversion cannot be priced.

    The whole batch is rejected; the original failure is chained as __cause__.
    """

    def __init__(self, from_currency: str, to_currency: str, reason: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(f"Failed to get rate for {from_currency} to {to_currency}: {reason}")
