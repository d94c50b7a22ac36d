"""Repository for ledger operations."""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from solbot.ledger.models import Trader, TransactionKind, TransactionRecord, User

logger = logging.getLogger(__name__)


class LedgerRepository:
    """Repository for all ledger-related database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # User operations
    async def get_user(self, chat_id: int) -> Optional[User]:
        """Get the wallet binding for a chat."""
        stmt = select(User).where(User.chat_id == chat_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_wallet(
        self,
        chat_id: int,
        encrypted_secret: str,
        public_address: str,
    ) -> User:
        """Bind a wallet to a chat, replacing any previous binding."""
        user = await self.get_user(chat_id)

        if user is None:
            user = User(
                chat_id=chat_id,
                encrypted_secret=encrypted_secret,
                public_address=public_address,
            )
            self.session.add(user)
        else:
            user.encrypted_secret = encrypted_secret
            user.public_address = public_address

        await self.session.flush()
        logger.info(f"Wallet bound for chat {chat_id}: {public_address}")
        return user

    async def list_users(self) -> list[User]:
        """All wallet bindings, oldest first."""
        stmt = select(User).order_by(User.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # Transaction log
    async def record_transaction(
        self,
        chat_id: int,
        kind: TransactionKind,
        signature: str,
        amount: Decimal,
        token: str,
        counterparty_address: Optional[str] = None,
    ) -> TransactionRecord:
        """Append an audit entry for a confirmed submission."""
        record = TransactionRecord(
            chat_id=chat_id,
            kind=kind.value,
            signature=signature,
            amount=amount,
            token=token,
            counterparty_address=counterparty_address,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_transactions(self, chat_id: int, limit: int = 10) -> list[TransactionRecord]:
        """Get the most recent transactions for a chat."""
        stmt = (
            select(TransactionRecord)
            .where(TransactionRecord.chat_id == chat_id)
            .order_by(TransactionRecord.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_transaction_by_signature(self, signature: str) -> Optional[TransactionRecord]:
        """Get a transaction by its on-chain signature."""
        stmt = select(TransactionRecord).where(TransactionRecord.signature == signature)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # Traders
    async def list_traders(self) -> list[Trader]:
        """Get all listed traders, oldest first."""
        stmt = select(Trader).order_by(Trader.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_trader(self, public_address: str) -> Optional[Trader]:
        """Get a trader by wallet address."""
        stmt = select(Trader).where(Trader.public_address == public_address)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_trader(
        self,
        public_address: str,
        name: str,
        description: Optional[str] = None,
        added_by: Optional[int] = None,
    ) -> Trader:
        """List a new trader.

        Raises:
            ValueError: If the address is already listed
        """
        existing = await self.get_trader(public_address)
        if existing is not None:
            raise ValueError(
                f'Trader with address {public_address} already exists as "{existing.name}".'
            )

        trader = Trader(
            public_address=public_address,
            name=name,
            description=description or None,
            added_by=added_by,
        )
        self.session.add(trader)
        await self.session.flush()
        return trader
