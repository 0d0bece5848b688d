"""
Transaction endpoints

Every write here goes through the balance rule, so the owning particular's
totals change in the same request.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from .auth import LedgerSystem, get_ledger_system, get_current_user
from .schemas import CreateTransactionRequest, UpdateTransactionRequest, transaction_payload
from .paging import page_size
from ..balances import TransactionType, TransactionFlow


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    request: CreateTransactionRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Post a transaction against one of the caller's particulars"""
    transaction = system.transaction_manager.create_transaction(
        owner_id=owner_id,
        particular_id=request.particular_id,
        transaction_type=request.transaction_type,
        transaction_flow=request.transaction_flow,
        quantity=request.quantity,
        rate=request.rate,
        percentage=request.percentage,
        total=request.total,
        description=request.description
    )

    return {
        "message": "Transaction created successfully",
        "transaction": transaction_payload(transaction)
    }


@router.get("/particular/{particular_id}")
async def list_particular_transactions(
    particular_id: str,
    transaction_type: Optional[TransactionType] = Query(None, alias="transactionType"),
    transaction_flow: Optional[TransactionFlow] = Query(None, alias="transactionFlow"),
    page: int = Query(1, ge=1),
    limit: int = Depends(page_size),
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """List a particular's transactions, newest first"""
    particular = system.particular_manager.get_particular(owner_id, particular_id)
    result = system.transaction_manager.list_transactions_for_particular(
        owner_id, particular.id,
        transaction_type=transaction_type,
        transaction_flow=transaction_flow,
        page=page,
        limit=limit
    )

    return {
        "transactions": [transaction_payload(t, particular.name) for t in result.items],
        "pagination": result.pagination()
    }


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Get transaction by ID"""
    transaction = system.transaction_manager.get_transaction(owner_id, transaction_id)
    particular = system.particular_manager.get_particular(owner_id, transaction.particular_id)
    return transaction_payload(transaction, particular.name)


@router.put("/{transaction_id}")
async def update_transaction(
    transaction_id: str,
    request: UpdateTransactionRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Edit a transaction; the particular is rebalanced from old to new values"""
    transaction = system.transaction_manager.update_transaction(
        owner_id, transaction_id, **request.model_dump(exclude_unset=True)
    )

    return {
        "message": "Transaction updated successfully",
        "transaction": transaction_payload(transaction)
    }


@router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Delete a transaction and reverse its effect on the particular"""
    system.transaction_manager.delete_transaction(owner_id, transaction_id)
    return {"message": "Transaction deleted successfully"}
