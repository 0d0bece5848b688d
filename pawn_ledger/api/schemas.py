"""
Pydantic schemas for API requests and responses

Field names are snake_case in Python and camelCase on the wire.
"""

from decimal import Decimal
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..balances import TransactionType, TransactionFlow
from ..particulars import Particular
from ..transactions import Transaction


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Particular schemas
class CreateParticularRequest(CamelModel):
    name: str = Field(..., min_length=1)
    contact_number: Optional[str] = None
    address: Optional[str] = None
    identity_document: Optional[str] = None


class UpdateParticularRequest(CamelModel):
    name: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None
    identity_document: Optional[str] = None


class ParticularResponse(CamelModel):
    id: str
    name: str
    contact_number: Optional[str] = None
    address: Optional[str] = None
    identity_document: Optional[str] = None
    total_assets: float
    total_cash: float
    total_incoming: float
    total_outgoing: float
    net_position: float
    owner_id: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_particular(cls, particular: Particular) -> 'ParticularResponse':
        return cls(
            id=particular.id,
            name=particular.name,
            contact_number=particular.contact_number,
            address=particular.address,
            identity_document=particular.identity_document,
            total_assets=float(particular.total_assets),
            total_cash=float(particular.total_cash),
            total_incoming=float(particular.total_incoming),
            total_outgoing=float(particular.total_outgoing),
            net_position=float(particular.net_position),
            owner_id=particular.owner_id,
            created_at=particular.created_at,
            updated_at=particular.updated_at
        )


# Transaction schemas
class CreateTransactionRequest(CamelModel):
    particular_id: str
    transaction_type: TransactionType
    transaction_flow: TransactionFlow
    quantity: Decimal
    rate: Optional[Decimal] = None
    percentage: Optional[Decimal] = Field(None, description="Metal purity; clamped into 0-100 for metal")
    total: Optional[Decimal] = Field(
        None, description="Signed monetary contribution, stored as supplied; required unless totals are recomputed"
    )
    description: Optional[str] = None


class UpdateTransactionRequest(CamelModel):
    transaction_type: Optional[TransactionType] = None
    transaction_flow: Optional[TransactionFlow] = None
    quantity: Optional[Decimal] = None
    rate: Optional[Decimal] = None
    percentage: Optional[Decimal] = None
    total: Optional[Decimal] = None
    description: Optional[str] = None


class TransactionResponse(CamelModel):
    id: str
    particular_id: str
    particular_name: Optional[str] = None
    transaction_type: str
    transaction_flow: str
    quantity: float
    rate: Optional[float] = None
    percentage: Optional[float] = None
    total: float
    description: Optional[str] = None
    owner_id: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_transaction(cls, transaction: Transaction,
                         particular_name: Optional[str] = None) -> 'TransactionResponse':
        return cls(
            id=transaction.id,
            particular_id=transaction.particular_id,
            particular_name=particular_name,
            transaction_type=transaction.transaction_type.value,
            transaction_flow=transaction.transaction_flow.value,
            quantity=float(transaction.quantity),
            rate=float(transaction.rate) if transaction.rate is not None else None,
            percentage=float(transaction.percentage) if transaction.percentage is not None else None,
            total=float(transaction.total),
            description=transaction.description,
            owner_id=transaction.owner_id,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at
        )


def particular_payload(particular: Particular) -> dict:
    return ParticularResponse.from_particular(particular).model_dump(mode="json", by_alias=True)


def transaction_payload(transaction: Transaction, particular_name: Optional[str] = None) -> dict:
    return TransactionResponse.from_transaction(
        transaction, particular_name
    ).model_dump(mode="json", by_alias=True)


def to_payload(value: Any) -> Any:
    """
    Convert aggregate results to JSON: camelCase keys, Decimals as numbers,
    nested transactions as transaction payloads
    """
    if isinstance(value, Transaction):
        return transaction_payload(value)
    if isinstance(value, Particular):
        return particular_payload(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {to_camel(str(k)): to_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    return value
