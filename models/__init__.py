from models.audit import AuditLog
from models.loan import LoanRequest
from models.needs_list import NeedsListItem
from models.status_history import LoanStatusHistory

__all__ = [
    "AuditLog",
    "LoanRequest",
    "LoanStatusHistory",
    "NeedsListItem",
]
