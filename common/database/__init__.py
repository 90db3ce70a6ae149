"""
Database module - async MongoDB connection (Motor) and transaction helper.
"""

from common.database.mongodb import MongoDB, start_transaction

__all__ = ["MongoDB", "start_transaction"]
