"""SQLAlchemy models for tallybook database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Index,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class TaxRate(Base):
    """Tax rate model. Components point at their composite through parent_id."""

    __tablename__ = "tax_rates"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    rate = Column(Numeric(9, 4), nullable=False, default=0)
    is_composite = Column(Boolean, default=False, nullable=False)
    parent_id = Column(Integer, ForeignKey("tax_rates.id"), nullable=True)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    parent = relationship("TaxRate", remote_side=[id], backref="components")


class Transaction(Base):
    """Transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    reference = Column(String, nullable=False)
    type = Column(String, nullable=False)
    date = Column(Date, nullable=False)
    description = Column(String, nullable=True)
    amount = Column(Numeric(14, 2), nullable=False)
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(String, nullable=False, default="open")
    sub_total = Column(Numeric(14, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(14, 2), nullable=False, default=0)
    pricing_mode = Column(String, nullable=False, default="exclusive")
    currency = Column(String, nullable=True)
    exchange_rate = Column(Numeric(18, 8), nullable=True)
    foreign_amount = Column(Numeric(14, 2), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (Index("ix_transactions_type_reference", "type", "reference"),)

    # Relationships
    line_items = relationship(
        "LineItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="LineItem.position",
    )
    ledger_entries = relationship(
        "LedgerEntry", back_populates="transaction", cascade="all, delete-orphan"
    )


class LineItem(Base):
    """Line item model, owned by its transaction."""

    __tablename__ = "line_items"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False)
    description = Column(String, nullable=False, default="")
    quantity = Column(Numeric(14, 4), nullable=False, default=1)
    unit_price = Column(Numeric(14, 4), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    tax_rate_id = Column(Integer, ForeignKey("tax_rates.id"), nullable=True)
    position = Column(Integer, nullable=False, default=0)

    # Relationships
    transaction = relationship("Transaction", back_populates="line_items")
    tax_rate = relationship("TaxRate")


class ApplicationEntry(Base):
    """Amount of a source transaction's credit applied to a target transaction."""

    __tablename__ = "payment_applications"

    id = Column(Integer, primary_key=True)
    source_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    target_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    amount_applied = Column(Numeric(14, 2), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


class LedgerEntry(Base):
    """Historical ledger posting."""

    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False)
    description = Column(String, nullable=True)
    debit = Column(Numeric(14, 2), nullable=False, default=0)
    credit = Column(Numeric(14, 2), nullable=False, default=0)
    date = Column(Date, nullable=True)

    # Relationships
    transaction = relationship("Transaction", back_populates="ledger_entries")


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """Turn on foreign key enforcement for SQLite connections."""
    if dbapi_connection.__class__.__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
