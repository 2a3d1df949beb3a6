"""
Transaction processing endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .deps import get_ledger_system
from .schemas import AmountRequest, InterestRequest, TransferRequest, optional_params
from ..system import LedgerSystem
from ..transactions import TransferResult


router = APIRouter()


def _transfer_view(result: TransferResult) -> dict:
    return {
        "outgoing": result.outgoing.to_dict(),
        "incoming": result.incoming.to_dict(),
        "fee": result.fee.to_dict() if result.fee else None
    }


@router.post("/deposit", status_code=status.HTTP_201_CREATED)
def deposit(request: AmountRequest, system: LedgerSystem = Depends(get_ledger_system)):
    transaction = system.engine.deposit(
        request.account_id, request.amount, initiator=request.initiator,
        **optional_params(description=request.description)
    )
    return transaction.to_dict()


@router.post("/withdraw", status_code=status.HTTP_201_CREATED)
def withdraw(request: AmountRequest, system: LedgerSystem = Depends(get_ledger_system)):
    transaction = system.engine.withdraw(
        request.account_id, request.amount, initiator=request.initiator,
        **optional_params(description=request.description)
    )
    return transaction.to_dict()


@router.post("/transfer", status_code=status.HTTP_201_CREATED)
def transfer(request: TransferRequest, system: LedgerSystem = Depends(get_ledger_system)):
    """Transfer between accounts, converting currency if needed"""
    result = system.engine.transfer(
        request.from_account_id, request.to_account_id, request.amount,
        initiator=request.initiator, **optional_params(description=request.description)
    )
    return _transfer_view(result)


@router.post("/exchange", status_code=status.HTTP_201_CREATED)
def exchange(request: TransferRequest, system: LedgerSystem = Depends(get_ledger_system)):
    """Exchange between two accounts of the same owner"""
    result = system.engine.exchange(
        request.from_account_id, request.to_account_id, request.amount,
        initiator=request.initiator, **optional_params(description=request.description)
    )
    return _transfer_view(result)


@router.post("/fee", status_code=status.HTTP_201_CREATED)
def charge_fee(request: AmountRequest, system: LedgerSystem = Depends(get_ledger_system)):
    transaction = system.engine.charge_fee(
        request.account_id, request.amount, initiator=request.initiator,
        **optional_params(description=request.description)
    )
    return transaction.to_dict()


@router.post("/interest")
def post_interest(request: InterestRequest, system: LedgerSystem = Depends(get_ledger_system)):
    """Credit one period of interest; transaction is null when nothing accrued"""
    transaction = system.engine.post_interest(
        request.account_id, rate=request.rate, initiator=request.initiator
    )
    return {"transaction": transaction.to_dict() if transaction else None}


@router.get("")
def list_transactions(
    limit: Optional[int] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Most recent transactions across the world, newest first"""
    return {"transactions": [t.to_dict() for t in system.engine.get_all_transactions(limit)]}


@router.get("/{transaction_id}")
def get_transaction(transaction_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    return system.engine.get_transaction(transaction_id).to_dict()
