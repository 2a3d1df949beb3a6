"""
Bank management endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .deps import get_ledger_system
from .schemas import CreateBankRequest, UpdateBankRequest
from ..system import LedgerSystem


router = APIRouter()


def _bank_view(system: LedgerSystem, bank) -> dict:
    data = bank.to_dict()
    data["effective_interest_rate"] = str(system.banks.effective_interest_rate(bank.id))
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
def create_bank(
    request: CreateBankRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create a bank in an economy"""
    bank = system.banks.create_bank(
        economy_id=request.economy_id,
        name=request.name,
        description=request.description,
        interest_rate=request.interest_rate,
        fees=request.fees.model_dump() if request.fees else None,
        npc_actor_id=request.npc_actor_id
    )
    return _bank_view(system, bank)


@router.get("")
def list_banks(
    economy_id: Optional[str] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    return {"banks": [b.to_dict() for b in system.banks.list_banks(economy_id)]}


@router.get("/by-npc/{actor_id}")
def get_bank_by_npc(actor_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Bank bound to an NPC actor"""
    return _bank_view(system, system.banks.get_bank_by_npc(actor_id))


@router.get("/{bank_id}")
def get_bank(bank_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    return _bank_view(system, system.banks.get_bank(bank_id))


@router.patch("/{bank_id}")
def update_bank(
    bank_id: str,
    request: UpdateBankRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    bank = system.banks.update_bank(
        bank_id,
        name=request.name,
        description=request.description,
        interest_rate=request.interest_rate,
        clear_interest_rate=request.clear_interest_rate,
        fees=request.fees.model_dump() if request.fees else None,
        npc_actor_id=request.npc_actor_id,
        clear_npc=request.clear_npc
    )
    return _bank_view(system, bank)


@router.delete("/{bank_id}")
def delete_bank(bank_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Delete a bank that holds no accounts"""
    system.banks.delete_bank(bank_id)
    return {"deleted": bank_id}
