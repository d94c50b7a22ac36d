"""SQLAlchemy models for the ledger."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TransactionKind(str, Enum):
    """Kind of an audited on-chain submission."""

    SEND = "SEND"
    SWAP = "SWAP"


class User(Base):
    """Wallet binding for a Telegram chat.

    The secret (seed phrase or private key) is stored Fernet-encrypted.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False, index=True)
    encrypted_secret: Mapped[str] = mapped_column(Text, nullable=False)
    public_address: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class TransactionRecord(Base):
    """Append-only audit entry for a confirmed submission."""

    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_chat_created", "chat_id", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    kind: Mapped[TransactionKind] = mapped_column(String(10), nullable=False)
    signature: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(36, 18), nullable=False)
    token: Mapped[str] = mapped_column(String(64), nullable=False, default="SOL")
    counterparty_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Trader(Base):
    """A wallet listed for comparison by /traders."""

    __tablename__ = "traders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    public_address: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Performance counters
    total_trades: Mapped[int] = mapped_column(default=0)
    successful_trades: Mapped[int] = mapped_column(default=0)
    profit_percentage: Mapped[Decimal] = mapped_column(Numeric(12, 4), default=Decimal("0"))

    added_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
