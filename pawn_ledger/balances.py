"""
Balance Maintenance Module

Keeps a particular's four running totals consistent with the transactions
posted against it. A transaction's effect depends only on its type, flow and
total:

    flow      type    total_incoming  total_outgoing  total_cash  total_assets
    incoming  cash        +t                              +t
    incoming  metal       +t                                          +t
    outgoing  cash                        +t              -t
    outgoing  metal                       +t                          -t

Creating a transaction applies its effect, deleting it applies the inverted
effect, and updating it inverts the pre-image effect before applying the
post-image effect. The ``total`` supplied by the caller is trusted as-is;
``expected_total`` only describes the pricing convention clients follow.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .particulars import Particular
    from .transactions import Transaction


ZERO = Decimal('0')
PERCENTAGE_MIN = Decimal('0')
PERCENTAGE_MAX = Decimal('100')


class TransactionType(Enum):
    """What changes hands"""
    CASH = "cash"
    METAL = "metal"


class TransactionFlow(Enum):
    """Direction of value relative to the business"""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


@dataclass(frozen=True)
class BalanceEffect:
    """Signed deltas a transaction contributes to a particular's totals"""
    total_assets: Decimal = ZERO
    total_cash: Decimal = ZERO
    total_incoming: Decimal = ZERO
    total_outgoing: Decimal = ZERO

    def inverted(self) -> 'BalanceEffect':
        return BalanceEffect(
            total_assets=-self.total_assets,
            total_cash=-self.total_cash,
            total_incoming=-self.total_incoming,
            total_outgoing=-self.total_outgoing
        )

    def to_dict(self) -> dict:
        return {
            'total_assets': str(self.total_assets),
            'total_cash': str(self.total_cash),
            'total_incoming': str(self.total_incoming),
            'total_outgoing': str(self.total_outgoing)
        }


def effect_of(transaction_type: TransactionType, transaction_flow: TransactionFlow,
              total: Decimal) -> BalanceEffect:
    """Effect of posting ``total`` with the given type and flow"""
    incoming = transaction_flow == TransactionFlow.INCOMING
    signed = total if incoming else -total

    return BalanceEffect(
        total_assets=signed if transaction_type == TransactionType.METAL else ZERO,
        total_cash=signed if transaction_type == TransactionType.CASH else ZERO,
        total_incoming=total if incoming else ZERO,
        total_outgoing=ZERO if incoming else total
    )


def apply_effect(particular: 'Particular', effect: BalanceEffect) -> None:
    """Add an effect to a particular's totals in place"""
    particular.total_assets += effect.total_assets
    particular.total_cash += effect.total_cash
    particular.total_incoming += effect.total_incoming
    particular.total_outgoing += effect.total_outgoing


def apply_transaction(particular: 'Particular', transaction: 'Transaction') -> BalanceEffect:
    """Post a transaction to its particular; returns the effect applied"""
    effect = effect_of(transaction.transaction_type, transaction.transaction_flow, transaction.total)
    apply_effect(particular, effect)
    return effect


def reverse_transaction(particular: 'Particular', transaction: 'Transaction') -> BalanceEffect:
    """Undo a transaction's posting; returns the (inverted) effect applied"""
    effect = effect_of(transaction.transaction_type, transaction.transaction_flow,
                       transaction.total).inverted()
    apply_effect(particular, effect)
    return effect


def clamp_percentage(percentage: Optional[Decimal]) -> Optional[Decimal]:
    """Coerce a metal purity percentage into [0, 100]"""
    if percentage is None:
        return None
    return min(max(percentage, PERCENTAGE_MIN), PERCENTAGE_MAX)


def expected_total(transaction_type: TransactionType, quantity: Decimal,
                   rate: Optional[Decimal] = None,
                   percentage: Optional[Decimal] = None) -> Decimal:
    """
    Total under the client pricing convention.

    Cash is ``quantity * rate``; metal is additionally scaled by purity,
    ``quantity * rate * percentage / 100``. A missing rate prices at zero and
    a missing percentage counts as pure (100).
    """
    value = quantity * (rate if rate is not None else ZERO)
    if transaction_type == TransactionType.METAL:
        purity = percentage if percentage is not None else PERCENTAGE_MAX
        value = value * purity / PERCENTAGE_MAX
    return value
