"""
Dashboard Module

Aggregates an owner's particulars and transactions into the figures the
dashboard shows: combined running totals, recent activity, and grouped
transaction statistics.
"""

from decimal import Decimal
from datetime import datetime, timezone, timedelta
from typing import Dict, List, Optional, Any, Tuple

from .particulars import ParticularManager, Particular
from .transactions import TransactionManager, Transaction


ANALYTICS_PERIODS = {
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365
}

MONTHLY_STATS_LIMIT = 12
TOP_PARTICULARS_LIMIT = 10


def _sum_totals(particulars: List[Particular]) -> Dict[str, Decimal]:
    totals = {
        'total_incoming': Decimal('0'),
        'total_outgoing': Decimal('0'),
        'total_cash': Decimal('0'),
        'total_assets': Decimal('0')
    }
    for particular in particulars:
        totals['total_incoming'] += particular.total_incoming
        totals['total_outgoing'] += particular.total_outgoing
        totals['total_cash'] += particular.total_cash
        totals['total_assets'] += particular.total_assets
    return totals


def _group(transactions: List[Transaction], key) -> Dict[Any, Dict[str, Any]]:
    """Count and sum totals per key, preserving first-seen key order"""
    groups: Dict[Any, Dict[str, Any]] = {}
    for transaction in transactions:
        group_key = key(transaction)
        group = groups.setdefault(group_key, {'count': 0, 'total': Decimal('0')})
        group['count'] += 1
        group['total'] += transaction.total
    return groups


class DashboardService:
    """
    Read-only aggregation over one owner's ledger
    """

    def __init__(self, particular_manager: ParticularManager,
                 transaction_manager: TransactionManager,
                 recent_limit: int = 10):
        self.particular_manager = particular_manager
        self.transaction_manager = transaction_manager
        self.recent_limit = recent_limit

    def _particular_names(self, owner_id: str) -> Dict[str, str]:
        return {p.id: p.name for p in self.particular_manager.get_owner_particulars(owner_id)}

    def overview(self, owner_id: str) -> Dict[str, Any]:
        """
        Combined totals, recent transactions and grouped statistics

        Returns:
            Dictionary with ``overview`` (summed totals, net position and
            particular count), ``recent_transactions`` (newest first, each
            with its particular's name), ``transaction_stats`` (count and sum
            by type and flow) and ``monthly_stats`` (count and sum by year,
            month and flow, newest month first)
        """
        particulars = self.particular_manager.get_owner_particulars(owner_id)
        names = {p.id: p.name for p in particulars}
        transactions = self.transaction_manager.get_owner_transactions(owner_id)

        totals = _sum_totals(particulars)
        summary = dict(totals)
        summary['net_position'] = totals['total_incoming'] - totals['total_outgoing']
        summary['total_particulars'] = len(particulars)

        recent = [
            {'transaction': t, 'particular_name': names.get(t.particular_id)}
            for t in self.transaction_manager.list_recent_transactions(owner_id, self.recent_limit)
        ]

        by_type_flow = _group(
            transactions,
            lambda t: (t.transaction_type.value, t.transaction_flow.value)
        )
        transaction_stats = [
            {'transaction_type': type_, 'transaction_flow': flow, **values}
            for (type_, flow), values in sorted(by_type_flow.items())
        ]

        by_month = _group(
            transactions,
            lambda t: (t.created_at.year, t.created_at.month, t.transaction_flow.value)
        )
        monthly_keys = sorted(by_month, key=lambda k: (k[0], k[1]), reverse=True)
        monthly_stats = [
            {'year': year, 'month': month, 'transaction_flow': flow, **by_month[(year, month, flow)]}
            for year, month, flow in monthly_keys[:MONTHLY_STATS_LIMIT]
        ]

        return {
            'overview': summary,
            'recent_transactions': recent,
            'transaction_stats': transaction_stats,
            'monthly_stats': monthly_stats
        }

    def particulars_summary(self, owner_id: str) -> Dict[str, Any]:
        """Per-particular totals ranked by incoming value, with column totals"""
        particulars = self.particular_manager.get_owner_particulars(owner_id)
        particulars.sort(key=lambda p: p.total_incoming, reverse=True)

        rows = [
            {
                'id': p.id,
                'name': p.name,
                'total_incoming': p.total_incoming,
                'total_outgoing': p.total_outgoing,
                'total_cash': p.total_cash,
                'total_assets': p.total_assets,
                'net_position': p.net_position
            }
            for p in particulars
        ]

        return {
            'particulars': rows,
            'totals': _sum_totals(particulars)
        }

    def analytics(self, owner_id: str, period: str = "month",
                  now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Activity over a trailing window

        ``period`` is week, month, quarter or year (7, 30, 90 or 365 days);
        any other value disables the date filter.
        """
        now = now or datetime.now(timezone.utc)
        days = ANALYTICS_PERIODS.get(period)
        since = now - timedelta(days=days) if days else None

        transactions = self.transaction_manager.get_transactions_since(owner_id, since)
        names = self._particular_names(owner_id)

        by_day = _group(
            transactions,
            lambda t: (t.created_at.date().isoformat(), t.transaction_flow.value)
        )
        daily_stats = [
            {'date': day, 'transaction_flow': flow, **values}
            for (day, flow), values in sorted(by_day.items())
        ]

        by_type = _group(transactions, lambda t: t.transaction_type.value)
        type_distribution = [
            {'transaction_type': type_, **values}
            for type_, values in sorted(by_type.items())
        ]

        by_particular = _group(transactions, lambda t: t.particular_id)
        ranked: List[Tuple[str, Dict[str, Any]]] = sorted(
            by_particular.items(), key=lambda item: item[1]['total'], reverse=True
        )
        top_particulars = [
            {'id': particular_id, 'name': names.get(particular_id), **values}
            for particular_id, values in ranked[:TOP_PARTICULARS_LIMIT]
        ]

        return {
            'period': period,
            'daily_stats': daily_stats,
            'type_distribution': type_distribution,
            'top_particulars': top_particulars
        }
