from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from database import Base


class NeedsListItem(Base):
    __tablename__ = "needs_list_items"
    __table_args__ = (
        UniqueConstraint("loan_id", "document_type", "folder_name", name="uq_needs_list_loan_doc_folder"),
    )

    id = Column(String(64), primary_key=True, index=True)
    loan_id = Column(String(64), ForeignKey("loan_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type = Column(String(128), nullable=False)
    folder_name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="pending")
    required = Column(Boolean, nullable=False, default=True)
    # Optional columns; populated only when the store's capabilities say so.
    name = Column(String(128), nullable=True)
    category = Column(String(32), nullable=True)
    loan_type = Column(String(32), nullable=True)
    reviewed_by = Column(String(64), nullable=True)
    review_notes = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    loan = relationship("LoanRequest", back_populates="needs_list")
