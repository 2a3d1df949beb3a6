"""
Economy management endpoints
"""

from fastapi import APIRouter, Depends, status

from .deps import get_ledger_system
from .schemas import (
    CreateEconomyRequest, CreatePresetEconomyRequest, SetBaseCurrencyRequest,
    UpdateEconomyRequest, optional_params
)
from ..system import LedgerSystem


router = APIRouter()


def _economy_with_currencies(system: LedgerSystem, economy) -> dict:
    data = economy.to_dict()
    data["currencies"] = [c.to_dict() for c in system.catalog.list_currencies(economy.id)]
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
def create_economy(
    request: CreateEconomyRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create an economy with its base currency"""
    economy = system.catalog.create_economy(
        name=request.name,
        description=request.description,
        base_currency=request.base_currency.to_spec(),
        interest_rate=request.interest_rate,
        growth_rate=request.growth_rate
    )
    return _economy_with_currencies(system, economy)


@router.post("/presets/{preset}", status_code=status.HTTP_201_CREATED)
def create_economy_from_preset(
    preset: str,
    request: CreatePresetEconomyRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create an economy with a preset currency set (dnd5e, pf2e)"""
    economy = system.catalog.create_economy_from_preset(request.name, request.description, preset)
    return _economy_with_currencies(system, economy)


@router.get("")
def list_economies(system: LedgerSystem = Depends(get_ledger_system)):
    return {"economies": [e.to_dict() for e in system.catalog.list_economies()]}


@router.get("/{economy_id}")
def get_economy(economy_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    return _economy_with_currencies(system, system.catalog.get_economy(economy_id))


@router.patch("/{economy_id}")
def update_economy(
    economy_id: str,
    request: UpdateEconomyRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    economy = system.catalog.update_economy(
        economy_id,
        **optional_params(
            name=request.name,
            description=request.description,
            interest_rate=request.interest_rate,
            growth_rate=request.growth_rate
        )
    )
    return economy.to_dict()


@router.post("/{economy_id}/base-currency")
def set_base_currency(
    economy_id: str,
    request: SetBaseCurrencyRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Make another currency the base; other values are rescaled"""
    economy = system.catalog.set_base_currency(economy_id, request.currency_id)
    return _economy_with_currencies(system, economy)


@router.delete("/{economy_id}")
def delete_economy(economy_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Delete an economy and everything in it"""
    removed = system.catalog.delete_economy(economy_id)
    return {"deleted": economy_id, "removed": removed}
