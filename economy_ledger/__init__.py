"""
Economy Ledger

A ledger engine for tabletop economies: currencies with exchange rates,
banks with fee schedules, owner accounts, and an append-only transaction
history, all persisted as one JSON document per world.
"""

__version__ = "1.1.0"
