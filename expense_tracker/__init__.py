"""
Expense Tracker - Client Package

Client-side core for recording expenses and attaching receipts to them.

DESIGN PRINCIPLES:
1. The user sees their change immediately (optimistic updates)
2. The server is the authority (every write is followed by a refresh)
3. Failures roll back visibly, never silently
4. Uploads are staged: sign, transfer, commit
5. Every step must be auditable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
