"""
Particular Management Module

Manages particulars (the broker's clients) and the running totals the
balance rule maintains on them. Every operation is scoped to an owner:
records created by one user are invisible to every other user.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .exceptions import ParticularNotFoundError, ValidationError
from .pagination import Page, paginate
from .logging_config import get_logger, log_action


PARTICULARS_TABLE = "particulars"
TRANSACTIONS_TABLE = "transactions"

EDITABLE_FIELDS = ("name", "contact_number", "address", "identity_document")


@dataclass
class Particular(StorageRecord):
    """
    Client record with running totals
    """
    name: str
    owner_id: str
    contact_number: Optional[str] = None
    address: Optional[str] = None
    identity_document: Optional[str] = None
    total_assets: Decimal = Decimal('0')
    total_cash: Decimal = Decimal('0')
    total_incoming: Decimal = Decimal('0')
    total_outgoing: Decimal = Decimal('0')

    @property
    def net_position(self) -> Decimal:
        """Incoming minus outgoing; computed, never stored"""
        return self.total_incoming - self.total_outgoing

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Particular':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            name=data['name'],
            owner_id=data['owner_id'],
            contact_number=data.get('contact_number'),
            address=data.get('address'),
            identity_document=data.get('identity_document'),
            total_assets=Decimal(data.get('total_assets', '0')),
            total_cash=Decimal(data.get('total_cash', '0')),
            total_incoming=Decimal(data.get('total_incoming', '0')),
            total_outgoing=Decimal(data.get('total_outgoing', '0'))
        )


def _require_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise ValidationError("Name is required", field="name")
    return name.strip()


class ParticularManager:
    """
    Create, look up, search, edit and delete particulars
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = PARTICULARS_TABLE
        self.logger = get_logger("pawn_ledger.particulars")

    def create_particular(
        self,
        owner_id: str,
        name: str,
        contact_number: Optional[str] = None,
        address: Optional[str] = None,
        identity_document: Optional[str] = None
    ) -> Particular:
        """
        Register a new particular with all totals at zero

        Args:
            owner_id: Authenticated caller creating the record
            name: Display name (required)
            contact_number: Optional phone number
            address: Optional postal address
            identity_document: Optional ID document reference

        Returns:
            Created Particular
        """
        now = datetime.now(timezone.utc)
        particular = Particular(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=_require_name(name),
            owner_id=owner_id,
            contact_number=contact_number,
            address=address,
            identity_document=identity_document
        )

        self.save_particular(particular)

        log_action(
            self.logger, "info", "Particular created",
            user_id=owner_id, action="create_particular",
            resource=f"particular:{particular.id}"
        )
        self.audit_trail.log_event(
            event_type=AuditEventType.PARTICULAR_CREATED,
            entity_type="particular",
            entity_id=particular.id,
            user_id=owner_id,
            metadata={"name": particular.name}
        )

        return particular

    def get_particular(self, owner_id: str, particular_id: str) -> Particular:
        """Particular by ID, visible only to its owner"""
        data = self.storage.load(self.table_name, particular_id)
        if not data or data.get('owner_id') != owner_id:
            raise ParticularNotFoundError(particular_id)
        return Particular.from_dict(data)

    def get_owner_particulars(self, owner_id: str) -> List[Particular]:
        """All of an owner's particulars, newest first"""
        particulars = [Particular.from_dict(data)
                       for data in self.storage.find(self.table_name, {"owner_id": owner_id})]
        # Storage yields write order, so equal timestamps stay newest first too
        particulars.sort(key=lambda p: p.created_at)
        particulars.reverse()
        return particulars

    def list_particulars(
        self,
        owner_id: str,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10
    ) -> Page[Particular]:
        """
        Page through an owner's particulars, newest first

        ``search`` matches a case-insensitive substring of the name or the
        contact number.
        """
        particulars = self.get_owner_particulars(owner_id)

        if search:
            needle = search.lower()
            particulars = [
                p for p in particulars
                if needle in p.name.lower()
                or (p.contact_number and needle in p.contact_number.lower())
            ]

        return paginate(particulars, page, limit)

    def update_particular(
        self,
        owner_id: str,
        particular_id: str,
        **changes: Any
    ) -> Particular:
        """
        Edit descriptive fields; totals only change through transactions

        Only the fields passed are touched. contact_number, address and
        identity_document accept None to clear them; name cannot be blank.
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        particular = self.get_particular(owner_id, particular_id)

        old_data = {
            "name": particular.name,
            "contact_number": particular.contact_number,
            "address": particular.address,
            "identity_document": particular.identity_document
        }

        for field, value in changes.items():
            setattr(particular, field, _require_name(value) if field == "name" else value)

        particular.updated_at = datetime.now(timezone.utc)
        self.save_particular(particular)

        log_action(
            self.logger, "info", "Particular updated",
            user_id=owner_id, action="update_particular",
            resource=f"particular:{particular.id}"
        )
        self.audit_trail.log_event(
            event_type=AuditEventType.PARTICULAR_UPDATED,
            entity_type="particular",
            entity_id=particular.id,
            user_id=owner_id,
            metadata={
                "old_data": old_data,
                "new_data": {
                    "name": particular.name,
                    "contact_number": particular.contact_number,
                    "address": particular.address,
                    "identity_document": particular.identity_document
                }
            }
        )

        return particular

    def delete_particular(self, owner_id: str, particular_id: str) -> int:
        """
        Delete a particular and every transaction posted against it

        No balances are reversed since both sides disappear together.

        Returns:
            Number of transactions removed
        """
        particular = self.get_particular(owner_id, particular_id)

        with self.storage.atomic():
            self.storage.delete(self.table_name, particular.id)
            removed = self.storage.delete_where(TRANSACTIONS_TABLE, {"particular_id": particular.id})

        log_action(
            self.logger, "info", "Particular deleted",
            user_id=owner_id, action="delete_particular",
            resource=f"particular:{particular.id}",
            extra={"transactions_removed": removed}
        )
        self.audit_trail.log_event(
            event_type=AuditEventType.PARTICULAR_DELETED,
            entity_type="particular",
            entity_id=particular.id,
            user_id=owner_id,
            metadata={
                "name": particular.name,
                "transactions_removed": removed
            }
        )

        return removed

    def save_particular(self, particular: Particular) -> None:
        """Persist a particular as-is"""
        self.storage.save(self.table_name, particular.id, particular.to_dict())
