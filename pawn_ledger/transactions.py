"""
Transaction Processing Module

Records cash and metal pledge transactions against particulars. Every
create, update and delete adjusts the owning particular's running totals
through the balance rule in ``balances``, and the transaction write and the
particular write run in one storage transaction.

Concurrent writers to the same particular are not serialized: each request
reads the particular, adjusts it and writes it back, so two overlapping
postings can lose one update.
"""

from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Union
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .balances import (
    TransactionType, TransactionFlow, BalanceEffect,
    apply_transaction, reverse_transaction, clamp_percentage, expected_total
)
from .exceptions import TransactionNotFoundError, ValidationError
from .pagination import Page, paginate
from .particulars import ParticularManager, TRANSACTIONS_TABLE
from .logging_config import get_logger, log_action


Number = Union[Decimal, int, float, str]

UPDATABLE_FIELDS = (
    "transaction_type", "transaction_flow", "quantity", "rate",
    "percentage", "total", "description"
)


@dataclass
class Transaction(StorageRecord):
    """
    A single cash or metal movement posted against a particular
    """
    particular_id: str
    owner_id: str
    transaction_type: TransactionType
    transaction_flow: TransactionFlow
    quantity: Decimal
    total: Decimal
    rate: Optional[Decimal] = None
    percentage: Optional[Decimal] = None  # Metal purity
    description: Optional[str] = None

    @property
    def is_metal(self) -> bool:
        return self.transaction_type == TransactionType.METAL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            particular_id=data['particular_id'],
            owner_id=data['owner_id'],
            transaction_type=TransactionType(data['transaction_type']),
            transaction_flow=TransactionFlow(data['transaction_flow']),
            quantity=Decimal(data['quantity']),
            total=Decimal(data['total']),
            rate=Decimal(data['rate']) if data.get('rate') is not None else None,
            percentage=Decimal(data['percentage']) if data.get('percentage') is not None else None,
            description=data.get('description')
        )


def _to_decimal(value: Optional[Number], field: str, required: bool = False) -> Optional[Decimal]:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    try:
        # str() first so floats keep their shortest decimal form
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", field=field)
    if not number.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return number


def _to_type(value: Union[TransactionType, str, None]) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(value)
    except ValueError:
        raise ValidationError("transaction_type must be cash or metal", field="transaction_type")


def _to_flow(value: Union[TransactionFlow, str, None]) -> TransactionFlow:
    if isinstance(value, TransactionFlow):
        return value
    try:
        return TransactionFlow(value)
    except ValueError:
        raise ValidationError("transaction_flow must be incoming or outgoing", field="transaction_flow")


class TransactionManager:
    """
    Posts, edits and removes transactions while keeping particular
    balances in step
    """

    def __init__(
        self,
        storage: StorageInterface,
        particular_manager: ParticularManager,
        audit_trail: AuditTrail,
        recompute_totals: bool = False
    ):
        self.storage = storage
        self.particular_manager = particular_manager
        self.audit_trail = audit_trail
        self.recompute_totals = recompute_totals
        self.table_name = TRANSACTIONS_TABLE
        self.logger = get_logger("pawn_ledger.transactions")

    def create_transaction(
        self,
        owner_id: str,
        particular_id: str,
        transaction_type: Union[TransactionType, str],
        transaction_flow: Union[TransactionFlow, str],
        quantity: Number,
        total: Optional[Number],
        rate: Optional[Number] = None,
        percentage: Optional[Number] = None,
        description: Optional[str] = None
    ) -> Transaction:
        """
        Post a new transaction and apply it to the particular's totals

        Args:
            owner_id: Authenticated caller; must own the particular
            particular_id: Particular the transaction belongs to
            transaction_type: cash or metal
            transaction_flow: incoming or outgoing
            quantity: Units of cash or metal
            total: Signed monetary contribution, trusted unless the manager
                recomputes totals
            rate: Unit price
            percentage: Metal purity, clamped into [0, 100] for metal
            description: Free text

        Returns:
            Created Transaction

        Raises:
            ParticularNotFoundError: particular missing or owned by someone else
            ValidationError: a required field is missing or malformed
        """
        particular = self.particular_manager.get_particular(owner_id, particular_id)

        now = datetime.now(timezone.utc)
        transaction = Transaction(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            particular_id=particular.id,
            owner_id=owner_id,
            transaction_type=_to_type(transaction_type),
            transaction_flow=_to_flow(transaction_flow),
            quantity=_to_decimal(quantity, "quantity", required=True),
            total=_to_decimal(total, "total", required=not self.recompute_totals) or Decimal('0'),
            rate=_to_decimal(rate, "rate"),
            percentage=_to_decimal(percentage, "percentage"),
            description=description
        )
        self._normalize(transaction)

        with self.storage.atomic():
            self._save_transaction(transaction)
            effect = apply_transaction(particular, transaction)
            particular.updated_at = now
            self.particular_manager.save_particular(particular)

        self._record(
            AuditEventType.TRANSACTION_CREATED, "create_transaction",
            "Transaction created", transaction, effect
        )

        return transaction

    def get_transaction(self, owner_id: str, transaction_id: str) -> Transaction:
        """Transaction by ID, visible only to its owner"""
        data = self.storage.load(self.table_name, transaction_id)
        if not data or data.get('owner_id') != owner_id:
            raise TransactionNotFoundError(transaction_id)
        return Transaction.from_dict(data)

    def get_owner_transactions(self, owner_id: str) -> List[Transaction]:
        """All of an owner's transactions, newest first"""
        transactions = [Transaction.from_dict(data)
                        for data in self.storage.find(self.table_name, {"owner_id": owner_id})]
        transactions.sort(key=lambda t: t.created_at)
        transactions.reverse()
        return transactions

    def list_recent_transactions(self, owner_id: str, limit: int = 10) -> List[Transaction]:
        return self.get_owner_transactions(owner_id)[:limit]

    def list_transactions_for_particular(
        self,
        owner_id: str,
        particular_id: str,
        transaction_type: Union[TransactionType, str, None] = None,
        transaction_flow: Union[TransactionFlow, str, None] = None,
        page: int = 1,
        limit: int = 10
    ) -> Page[Transaction]:
        """
        Page through a particular's transactions, newest first, optionally
        narrowed by type and flow
        """
        particular = self.particular_manager.get_particular(owner_id, particular_id)

        filters: Dict[str, Any] = {"particular_id": particular.id}
        if transaction_type:
            filters["transaction_type"] = _to_type(transaction_type).value
        if transaction_flow:
            filters["transaction_flow"] = _to_flow(transaction_flow).value

        transactions = [Transaction.from_dict(data)
                        for data in self.storage.find(self.table_name, filters)]
        transactions.sort(key=lambda t: t.created_at)
        transactions.reverse()

        return paginate(transactions, page, limit)

    def get_transactions_since(self, owner_id: str, since: Optional[datetime]) -> List[Transaction]:
        transactions = self.get_owner_transactions(owner_id)
        if since is None:
            return transactions
        return [t for t in transactions if t.created_at >= since]

    def update_transaction(self, owner_id: str, transaction_id: str, **changes: Any) -> Transaction:
        """
        Edit a transaction and rebalance its particular

        The pre-image's effect is reversed, the changes are applied, and the
        post-image's effect is posted. Type, flow and total may all change,
        so the buckets touched before and after can differ.

        Args:
            owner_id: Authenticated caller; must own the transaction
            transaction_id: Transaction to edit
            **changes: Any of transaction_type, transaction_flow, quantity,
                rate, percentage, total, description. Optional fields accept
                None to clear them.

        Returns:
            Updated Transaction
        """
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        transaction = self.get_transaction(owner_id, transaction_id)
        particular = self.particular_manager.get_particular(owner_id, transaction.particular_id)

        before = transaction.to_dict()
        reversed_effect = reverse_transaction(particular, transaction)

        if "transaction_type" in changes:
            transaction.transaction_type = _to_type(changes["transaction_type"])
        if "transaction_flow" in changes:
            transaction.transaction_flow = _to_flow(changes["transaction_flow"])
        if "quantity" in changes:
            transaction.quantity = _to_decimal(changes["quantity"], "quantity", required=True)
        if "total" in changes:
            transaction.total = _to_decimal(changes["total"], "total", required=True)
        if "rate" in changes:
            transaction.rate = _to_decimal(changes["rate"], "rate")
        if "percentage" in changes:
            transaction.percentage = _to_decimal(changes["percentage"], "percentage")
        if "description" in changes:
            transaction.description = changes["description"]
        self._normalize(transaction)

        now = datetime.now(timezone.utc)
        transaction.updated_at = now

        with self.storage.atomic():
            self._save_transaction(transaction)
            applied_effect = apply_transaction(particular, transaction)
            particular.updated_at = now
            self.particular_manager.save_particular(particular)

        net = BalanceEffect(
            total_assets=reversed_effect.total_assets + applied_effect.total_assets,
            total_cash=reversed_effect.total_cash + applied_effect.total_cash,
            total_incoming=reversed_effect.total_incoming + applied_effect.total_incoming,
            total_outgoing=reversed_effect.total_outgoing + applied_effect.total_outgoing
        )
        self._record(
            AuditEventType.TRANSACTION_UPDATED, "update_transaction",
            "Transaction updated", transaction, net,
            extra={"before": before}
        )

        return transaction

    def delete_transaction(self, owner_id: str, transaction_id: str) -> None:
        """Reverse a transaction's posting and remove it"""
        transaction = self.get_transaction(owner_id, transaction_id)
        particular = self.particular_manager.get_particular(owner_id, transaction.particular_id)

        with self.storage.atomic():
            effect = reverse_transaction(particular, transaction)
            particular.updated_at = datetime.now(timezone.utc)
            self.particular_manager.save_particular(particular)
            self.storage.delete(self.table_name, transaction.id)

        self._record(
            AuditEventType.TRANSACTION_DELETED, "delete_transaction",
            "Transaction deleted", transaction, effect
        )

    def _normalize(self, transaction: Transaction) -> None:
        """Clamp metal purity and, when configured, recompute the total"""
        if transaction.is_metal:
            transaction.percentage = clamp_percentage(transaction.percentage)
        if self.recompute_totals:
            transaction.total = expected_total(
                transaction.transaction_type, transaction.quantity,
                transaction.rate, transaction.percentage
            )

    def _save_transaction(self, transaction: Transaction) -> None:
        self.storage.save(self.table_name, transaction.id, transaction.to_dict())

    def _record(self, event_type: AuditEventType, action: str, message: str,
                transaction: Transaction, effect: BalanceEffect,
                extra: Optional[Dict[str, Any]] = None) -> None:
        details = {
            "particular_id": transaction.particular_id,
            "transaction_type": transaction.transaction_type.value,
            "transaction_flow": transaction.transaction_flow.value,
            "total": str(transaction.total),
            "balance_effect": effect.to_dict()
        }
        if extra:
            details.update(extra)

        log_action(
            self.logger, "info", message,
            user_id=transaction.owner_id, action=action,
            resource=f"transaction:{transaction.id}", extra=details
        )
        self.audit_trail.log_event(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction.id,
            user_id=transaction.owner_id,
            metadata=details
        )
