"""
Pawn Ledger

Client ledger for a pawn broker: particulars (clients), cash and metal
pledge transactions, and running balances kept in step with every posting.
"""

__version__ = "1.0.0"
