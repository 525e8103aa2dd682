from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from database import Base


class LoanStatusHistory(Base):
    """Append-only audit of status changes. Rows are never updated or deleted by the application."""

    __tablename__ = "loan_status_history"

    id = Column(String(64), primary_key=True, index=True)
    loan_id = Column(String(64), ForeignKey("loan_requests.id"), nullable=False, index=True)
    from_status = Column(String(48), nullable=True)
    to_status = Column(String(48), nullable=False)
    step = Column(Integer, nullable=True)
    actor = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    loan = relationship("LoanRequest", back_populates="history")
