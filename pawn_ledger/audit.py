"""
Audit Trail Module

Every particular and transaction mutation appends one event to a SHA-256
hash chain: each event's hash covers its own content and the previous
event's hash, so editing or removing a stored event breaks the chain.
Transaction events carry the balance delta they caused.
"""

import hashlib
import json
import threading
import uuid
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum
from decimal import Decimal

from .storage import StorageInterface, StorageRecord


AUDIT_TABLE = "audit_events"

# Fields left out of an event's hash
UNHASHED_FIELDS = ("current_hash", "updated_at")


class AuditEventType(Enum):
    PARTICULAR_CREATED = "particular_created"
    PARTICULAR_UPDATED = "particular_updated"
    PARTICULAR_DELETED = "particular_deleted"
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"


def _json_safe(value: Any) -> Any:
    """Reduce metadata to JSON primitives so it hashes the same after a reload"""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


@dataclass
class AuditEvent(StorageRecord):
    """One link in the audit chain"""
    event_type: AuditEventType
    entity_type: str   # "particular" or "transaction"
    entity_id: str
    previous_hash: str
    current_hash: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None

    def __post_init__(self):
        self.metadata = _json_safe(self.metadata or {})

    def calculate_hash(self) -> str:
        content = {k: v for k, v in self.to_dict().items() if k not in UNHASHED_FIELDS}
        canonical = json.dumps(content, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(canonical.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        return self.current_hash == self.calculate_hash()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            event_type=AuditEventType(data['event_type']),
            entity_type=data['entity_type'],
            entity_id=data['entity_id'],
            previous_hash=data['previous_hash'],
            current_hash=data['current_hash'],
            metadata=data.get('metadata') or {},
            user_id=data.get('user_id')
        )


class AuditTrail:
    """
    Append-only, hash-chained record of ledger mutations

    The chain head is re-read from storage before each append, so several
    trails over one storage extend the same chain.
    """

    def __init__(self, storage: StorageInterface, table_name: str = AUDIT_TABLE,
                 enabled: bool = True):
        self.storage = storage
        self.table_name = table_name
        self.enabled = enabled
        self._lock = threading.Lock()

    def _events(self, filters: Optional[Dict[str, Any]] = None) -> List[AuditEvent]:
        """Events in chain order (storage write order)"""
        return [AuditEvent.from_dict(data)
                for data in self.storage.find(self.table_name, filters or {})]

    def _chain_head(self) -> str:
        events = self.storage.load_all(self.table_name)
        return events[-1]['current_hash'] if events else ""

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> Optional[AuditEvent]:
        """
        Append an event to the chain.

        Returns None without writing when auditing is disabled.
        """
        if not self.enabled:
            return None

        with self._lock:
            now = datetime.now(timezone.utc)
            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                previous_hash=self._chain_head(),
                metadata=metadata or {},
                user_id=user_id
            )
            event.current_hash = event.calculate_hash()
            self.storage.save(self.table_name, event.id, event.to_dict())

        return event

    def get_events_for_entity(self, entity_type: str, entity_id: str) -> List[AuditEvent]:
        """History of one particular or transaction, oldest first"""
        return self._events({'entity_type': entity_type, 'entity_id': entity_id})

    def get_events_for_user(self, user_id: str, limit: Optional[int] = None) -> List[AuditEvent]:
        """An owner's most recent events, oldest first"""
        events = self._events({'user_id': user_id})
        return events[-limit:] if limit else events

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Re-hash every event and check each one points at its predecessor.

        Returns:
            Dictionary with ``valid``, ``total_events``, ``hash_errors``
            (events whose content no longer matches their hash) and
            ``chain_breaks`` (events whose predecessor is not the one they
            were chained to)
        """
        events = self._events()
        hash_errors = []
        chain_breaks = []

        expected_previous = ""
        for position, event in enumerate(events):
            if not event.verify_hash():
                hash_errors.append({
                    'event_id': event.id,
                    'position': position,
                    'expected_hash': event.calculate_hash(),
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != expected_previous:
                chain_breaks.append({
                    'event_id': event.id,
                    'position': position,
                    'expected_previous_hash': expected_previous,
                    'actual_previous_hash': event.previous_hash
                })
            expected_previous = event.current_hash

        return {
            'valid': not hash_errors and not chain_breaks,
            'total_events': len(events),
            'hash_errors': hash_errors,
            'chain_breaks': chain_breaks
        }

    def count_events(self) -> int:
        return self.storage.count(self.table_name)
