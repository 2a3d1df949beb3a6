"""
Account management endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .deps import get_ledger_system
from .schemas import CreateAccountRequest, UpdateAccountRequest
from ..system import LedgerSystem


router = APIRouter()


def _account_view(system: LedgerSystem, account) -> dict:
    data = account.to_dict()
    currency = system.catalog.get_currency(account.currency_id)
    data["currency"] = {
        "abbreviation": currency.abbreviation,
        "symbol": currency.symbol,
        "name": currency.name
    }
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
def create_account(
    request: CreateAccountRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Open an account with a zero balance"""
    account = system.accounts.create_account(
        bank_id=request.bank_id,
        currency_id=request.currency_id,
        owner_id=request.owner_id,
        owner_name=request.owner_name,
        name=request.name
    )
    return _account_view(system, account)


@router.get("")
def list_accounts(
    owner_id: Optional[str] = None,
    bank_id: Optional[str] = None,
    include_inactive: bool = True,
    system: LedgerSystem = Depends(get_ledger_system)
):
    accounts = system.accounts.list_accounts(
        bank_id=bank_id, owner_id=owner_id, include_inactive=include_inactive
    )
    return {"accounts": [a.to_dict() for a in accounts]}


@router.get("/{account_id}")
def get_account(account_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    return _account_view(system, system.accounts.get_account(account_id))


@router.patch("/{account_id}")
def update_account(
    account_id: str,
    request: UpdateAccountRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Rename an account or refresh its owner's display name"""
    account = system.accounts.update_account(
        account_id, name=request.name, owner_name=request.owner_name
    )
    return _account_view(system, account)


@router.delete("/{account_id}")
def delete_account(account_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Delete a zero-balance account and its transaction history"""
    removed = system.accounts.delete_account(account_id)
    return {"deleted": account_id, "removed": removed}


@router.post("/{account_id}/close")
def close_account(account_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Close an account with a zero balance"""
    return _account_view(system, system.accounts.close_account(account_id))


@router.post("/{account_id}/reopen")
def reopen_account(account_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    return _account_view(system, system.accounts.reopen_account(account_id))


@router.get("/{account_id}/transactions")
def get_account_transactions(
    account_id: str,
    limit: Optional[int] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Transaction history for an account, newest first"""
    transactions = system.engine.get_transactions(account_id, limit=limit)
    return {"transactions": [t.to_dict() for t in transactions]}


@router.get("/{account_id}/verify")
def verify_account_balance(account_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Compare the live balance with the replayed transaction history"""
    account = system.accounts.get_account(account_id)
    return {
        "account_id": account_id,
        "balance": str(account.balance),
        "replayed_balance": str(system.engine.replay_balance(account_id)),
        "consistent": system.engine.verify_balance(account_id)
    }
