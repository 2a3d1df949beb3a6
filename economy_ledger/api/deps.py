"""
Shared dependencies for API routers
"""

from fastapi import Request

from ..system import LedgerSystem


def get_ledger_system(request: Request) -> LedgerSystem:
    """Ledger system bound to the running application"""
    return request.app.state.ledger_system
