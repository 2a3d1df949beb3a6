"""
Pydantic schemas for API requests
"""

from typing import Dict, Optional
from pydantic import BaseModel, Field

from ..economy import CurrencySpec
from ..money import to_decimal


class CurrencySpecModel(BaseModel):
    name: str
    abbreviation: str
    symbol: str = ""
    base_value: str = Field("1", description="Decimal value relative to the base currency")
    color: str = ""

    def to_spec(self) -> CurrencySpec:
        return CurrencySpec(
            name=self.name,
            abbreviation=self.abbreviation,
            symbol=self.symbol,
            base_value=to_decimal(self.base_value),
            color=self.color
        )


# Economy schemas
class CreateEconomyRequest(BaseModel):
    name: str
    description: str = ""
    base_currency: CurrencySpecModel
    interest_rate: str = "0"  # Percentage as string
    growth_rate: str = "0"


class CreatePresetEconomyRequest(BaseModel):
    name: str
    description: str = ""


class UpdateEconomyRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    interest_rate: Optional[str] = None
    growth_rate: Optional[str] = None


class SetBaseCurrencyRequest(BaseModel):
    currency_id: str


# Currency schemas
class CreateCurrencyRequest(BaseModel):
    economy_id: str
    name: str
    abbreviation: str
    symbol: str = ""
    base_value: str = "1"
    color: str = ""


class UpdateCurrencyRequest(BaseModel):
    name: Optional[str] = None
    abbreviation: Optional[str] = None
    symbol: Optional[str] = None
    color: Optional[str] = None
    base_value: Optional[str] = None


class ExchangeRateRequest(BaseModel):
    from_currency_id: str
    to_currency_id: str
    rate: str = Field(..., description="How many target units one source unit buys")


# Bank schemas
class FeeScheduleModel(BaseModel):
    withdrawal: str = "0"
    transfer: str = "0"
    exchange: str = "0"


class CreateBankRequest(BaseModel):
    economy_id: str
    name: str
    description: str = ""
    interest_rate: Optional[str] = None  # None uses the economy's rate
    fees: Optional[FeeScheduleModel] = None
    npc_actor_id: Optional[str] = None


class UpdateBankRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    interest_rate: Optional[str] = None
    clear_interest_rate: bool = False
    fees: Optional[FeeScheduleModel] = None
    npc_actor_id: Optional[str] = None
    clear_npc: bool = False


# Account schemas
class CreateAccountRequest(BaseModel):
    bank_id: str
    currency_id: str
    owner_id: str
    owner_name: str
    name: str = "Main Account"


class UpdateAccountRequest(BaseModel):
    name: Optional[str] = None
    owner_name: Optional[str] = None


# Transaction schemas
class AmountRequest(BaseModel):
    account_id: str
    amount: str = Field(..., description="Positive decimal amount as string")
    description: Optional[str] = None
    initiator: str = "system"


class TransferRequest(BaseModel):
    from_account_id: str
    to_account_id: str
    amount: str
    description: Optional[str] = None
    initiator: str = "system"


class InterestRequest(BaseModel):
    account_id: str
    rate: Optional[str] = None  # Percentage; None uses the bank's effective rate
    initiator: str = "system"


def optional_params(**params) -> Dict[str, object]:
    """Drop unset optional fields so manager defaults apply"""
    return {key: value for key, value in params.items() if value is not None}
