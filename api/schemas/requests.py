from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class BulkConvertItemRequest(BaseModel):
	amount: Decimal = Field(..., description='Amount in the source currency')
	from_currency: str = Field(..., alias='from', description='Source currency code')

	model_config = ConfigDict(populate_by_name=True)


class BulkConvertRequest(BaseModel):
	amounts: list[BulkConvertItemRequest] = Field(..., min_length=1)
	to: str = Field(..., description='Target currency code')

	model_config = ConfigDict(
		json_schema_extra={
			'example': {
				'amounts': [{'amount': 100, 'from': 'USD'}, {'amount': 50, 'from': 'EUR'}],
				'to': 'GBP',
			}
		}
	)
