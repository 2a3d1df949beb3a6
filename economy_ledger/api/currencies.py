"""
Currency and exchange rate endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .deps import get_ledger_system
from .schemas import CreateCurrencyRequest, ExchangeRateRequest, UpdateCurrencyRequest, optional_params
from ..system import LedgerSystem


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_currency(
    request: CreateCurrencyRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    currency = system.catalog.create_currency(
        economy_id=request.economy_id,
        name=request.name,
        abbreviation=request.abbreviation,
        symbol=request.symbol,
        base_value=request.base_value,
        color=request.color
    )
    return currency.to_dict()


@router.get("")
def list_currencies(
    economy_id: Optional[str] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    return {"currencies": [c.to_dict() for c in system.catalog.list_currencies(economy_id)]}


# Exchange rate routes are declared before /{currency_id} so they are not shadowed

@router.get("/exchange-rates")
def list_exchange_rates(system: LedgerSystem = Depends(get_ledger_system)):
    return {"exchange_rates": [r.to_dict() for r in system.catalog.list_exchange_rates()]}


@router.put("/exchange-rates")
def set_exchange_rate(
    request: ExchangeRateRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Set an explicit one-way rate override"""
    override = system.catalog.set_exchange_rate(
        request.from_currency_id, request.to_currency_id, request.rate
    )
    return override.to_dict()


@router.delete("/exchange-rates")
def remove_exchange_rate(
    from_currency_id: str,
    to_currency_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    system.catalog.remove_exchange_rate(from_currency_id, to_currency_id)
    return {"removed": True}


@router.get("/exchange-rate")
def get_exchange_rate(
    from_currency_id: str,
    to_currency_id: str,
    amount: Optional[str] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Effective rate between two currencies, and the converted amount if given"""
    rate = system.catalog.get_exchange_rate(from_currency_id, to_currency_id)
    result = {
        "from_currency_id": from_currency_id,
        "to_currency_id": to_currency_id,
        "rate": str(rate)
    }
    if amount is not None:
        result["converted"] = str(system.catalog.convert(amount, from_currency_id, to_currency_id))
    return result


@router.get("/{currency_id}")
def get_currency(currency_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    return system.catalog.get_currency(currency_id).to_dict()


@router.patch("/{currency_id}")
def update_currency(
    currency_id: str,
    request: UpdateCurrencyRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    currency = system.catalog.update_currency(
        currency_id,
        **optional_params(
            name=request.name,
            abbreviation=request.abbreviation,
            symbol=request.symbol,
            color=request.color,
            base_value=request.base_value
        )
    )
    return currency.to_dict()


@router.delete("/{currency_id}")
def delete_currency(currency_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Delete a currency no account uses"""
    system.catalog.delete_currency(currency_id)
    return {"deleted": currency_id}
