from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import relationship

from database import Base


class LoanRequest(Base):
    __tablename__ = "loan_requests"

    id = Column(String(64), primary_key=True, index=True)
    loan_number = Column(String(32), unique=True, nullable=False, index=True)
    created_by = Column(String(64), nullable=True)

    property_name = Column(String(256), nullable=True)
    property_address = Column(String(512), nullable=True)
    property_city = Column(String(128), nullable=True)
    property_state = Column(String(2), nullable=True)
    property_zip = Column(String(10), nullable=True)
    property_type = Column(String(32), nullable=True)
    residential_units = Column(Integer, nullable=True)
    commercial_type = Column(String(64), nullable=True)
    is_portfolio = Column(Boolean, nullable=False, default=False)
    portfolio_count = Column(Integer, nullable=True)

    request_type = Column(String(32), nullable=True)
    transaction_type = Column(String(32), nullable=True)
    borrower_type = Column(String(32), nullable=True)
    documentation_type = Column(String(32), nullable=True)
    property_value = Column(Float, nullable=True)
    requested_ltv = Column(Float, nullable=True)
    loan_amount = Column(Float, nullable=True)
    fico_score = Column(Integer, nullable=True)

    annual_rental_income = Column(Float, nullable=True)
    annual_operating_expenses = Column(Float, nullable=True)
    noi = Column(Float, nullable=True)
    annual_loan_payments = Column(Float, nullable=True)
    dscr_ratio = Column(Float, nullable=True)

    status = Column(String(48), nullable=False, default="new_request", index=True)
    current_step = Column(Integer, nullable=False, default=1)
    status_entered_at = Column(DateTime(timezone=True), nullable=True)

    rejection_reason = Column(Text, nullable=True)
    dscr_auto_declined = Column(Boolean, nullable=False, default=False)
    # Latest quote or decline record; replaced wholesale, never edited in place.
    soft_quote_data = Column(JSON, nullable=True)
    soft_quote_generated = Column(Boolean, nullable=False, default=False)
    soft_quote_rate_min = Column(Float, nullable=True)
    soft_quote_rate_max = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    history = relationship(
        "LoanStatusHistory",
        back_populates="loan",
        # Append-only: the ORM never deletes or re-parents history rows.
        passive_deletes="all",
        order_by="LoanStatusHistory.created_at",
    )
    needs_list = relationship("NeedsListItem", back_populates="loan", cascade="all, delete-orphan")
