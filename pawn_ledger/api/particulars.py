"""
Particular management endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from .auth import LedgerSystem, get_ledger_system, get_current_user
from .schemas import CreateParticularRequest, UpdateParticularRequest, particular_payload
from .paging import page_size


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_particular(
    request: CreateParticularRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Register a new particular"""
    particular = system.particular_manager.create_particular(
        owner_id=owner_id,
        name=request.name,
        contact_number=request.contact_number,
        address=request.address,
        identity_document=request.identity_document
    )

    return {
        "message": "Particular created successfully",
        "particular": particular_payload(particular)
    }


@router.get("")
async def list_particulars(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Depends(page_size),
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Search the caller's particulars by name or contact number"""
    result = system.particular_manager.list_particulars(
        owner_id, search=search, page=page, limit=limit
    )

    return {
        "particulars": [particular_payload(p) for p in result.items],
        "pagination": result.pagination()
    }


@router.get("/{particular_id}")
async def get_particular(
    particular_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Get particular by ID"""
    particular = system.particular_manager.get_particular(owner_id, particular_id)
    return particular_payload(particular)


@router.put("/{particular_id}")
async def update_particular(
    particular_id: str,
    request: UpdateParticularRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Update a particular's descriptive fields"""
    particular = system.particular_manager.update_particular(
        owner_id, particular_id, **request.model_dump(exclude_unset=True)
    )

    return {
        "message": "Particular updated successfully",
        "particular": particular_payload(particular)
    }


@router.delete("/{particular_id}")
async def delete_particular(
    particular_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    owner_id: str = Depends(get_current_user)
):
    """Delete a particular together with its transactions"""
    removed = system.particular_manager.delete_particular(owner_id, particular_id)

    return {
        "message": "Particular deleted successfully",
        "deletedTransactions": removed
    }
