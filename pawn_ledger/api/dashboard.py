"""
Dashboard endpoints
"""

from fastapi import APIRouter, Depends

from .auth import LedgerSystem, get_ledger_system, get_current_user
from .schemas import transaction_payload, to_payload


router = APIRouter()


@router.get("/overview")
async def get_overview(
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Combined totals, recent transactions and grouped statistics"""
    result = system.dashboard.overview(owner_id)

    return {
        "overview": to_payload(result["overview"]),
        "recentTransactions": [
            transaction_payload(entry["transaction"], entry["particular_name"])
            for entry in result["recent_transactions"]
        ],
        "transactionStats": to_payload(result["transaction_stats"]),
        "monthlyStats": to_payload(result["monthly_stats"])
    }


@router.get("/particulars-summary")
async def get_particulars_summary(
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Per-particular totals ranked by incoming value"""
    return to_payload(system.dashboard.particulars_summary(owner_id))


@router.get("/analytics")
async def get_analytics(
    period: str = "month",
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Activity over the trailing week, month, quarter or year"""
    return to_payload(system.dashboard.analytics(owner_id, period))
