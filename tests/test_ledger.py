"""Tests for the ledger module."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from solbot.ledger.models import TransactionKind
from solbot.ledger.repository import LedgerRepository


class TestWalletBindings:
    """Tests for chat -> wallet bindings."""

    @pytest.mark.asyncio
    async def test_bind_wallet(self, ledger_repo: LedgerRepository, db_session):
        """Test binding a wallet to a chat."""
        user = await ledger_repo.upsert_wallet(123456789, "sealed-blob", "Addr1111")
        await db_session.commit()

        assert user.id is not None
        assert user.chat_id == 123456789
        assert user.public_address == "Addr1111"

    @pytest.mark.asyncio
    async def test_rebind_replaces_wallet(self, ledger_repo: LedgerRepository, db_session):
        """Test that importing again overwrites the previous binding."""
        first = await ledger_repo.upsert_wallet(111111, "blob-a", "AddrA")
        await db_session.commit()

        second = await ledger_repo.upsert_wallet(111111, "blob-b", "AddrB")
        await db_session.commit()

        assert first.id == second.id
        fetched = await ledger_repo.get_user(111111)
        assert fetched.encrypted_secret == "blob-b"
        assert fetched.public_address == "AddrB"

    @pytest.mark.asyncio
    async def test_unknown_chat(self, ledger_repo: LedgerRepository):
        """Test that a chat without a binding has no user."""
        assert await ledger_repo.get_user(999) is None

    @pytest.mark.asyncio
    async def test_list_users(self, ledger_repo: LedgerRepository, db_session):
        await ledger_repo.upsert_wallet(1, "blob-1", "Addr1")
        await ledger_repo.upsert_wallet(2, "blob-2", "Addr2")
        await db_session.commit()

        users = await ledger_repo.list_users()
        assert [u.chat_id for u in users] == [1, 2]


class TestTransactionLog:
    """Tests for the transaction log."""

    @pytest.mark.asyncio
    async def test_record_transaction(self, ledger_repo: LedgerRepository, db_session):
        """Test recording a confirmed transfer."""
        record = await ledger_repo.record_transaction(
            chat_id=222222,
            kind=TransactionKind.SEND,
            signature="sig-1",
            amount=Decimal("0.25"),
            token="SOL",
            counterparty_address="Recipient111",
        )
        await db_session.commit()

        assert record.id is not None
        assert record.kind == "SEND"
        assert record.amount == Decimal("0.25")

        fetched = await ledger_repo.get_transaction_by_signature("sig-1")
        assert fetched.counterparty_address == "Recipient111"

    @pytest.mark.asyncio
    async def test_history_newest_first(self, ledger_repo: LedgerRepository, db_session):
        """Test that history is returned newest first and limited."""
        for i in range(12):
            await ledger_repo.record_transaction(
                chat_id=333333,
                kind=TransactionKind.SWAP,
                signature=f"sig-{i}",
                amount=Decimal(i + 1),
                token="SOL",
            )
        await ledger_repo.record_transaction(
            chat_id=444444,
            kind=TransactionKind.SEND,
            signature="other-chat",
            amount=Decimal("1"),
            token="SOL",
        )
        await db_session.commit()

        history = await ledger_repo.get_transactions(333333, limit=10)

        assert len(history) == 10
        assert history[0].signature == "sig-11"
        assert all(r.chat_id == 333333 for r in history)

    @pytest.mark.asyncio
    async def test_duplicate_signature_rejected(self, ledger_repo: LedgerRepository, db_session):
        """Test that a signature can only be recorded once."""
        await ledger_repo.record_transaction(
            chat_id=1, kind=TransactionKind.SEND, signature="dup", amount=Decimal("1"), token="SOL"
        )
        await db_session.commit()

        with pytest.raises(IntegrityError):
            await ledger_repo.record_transaction(
                chat_id=1, kind=TransactionKind.SEND, signature="dup", amount=Decimal("1"), token="SOL"
            )


class TestTraders:
    """Tests for the trader list."""

    @pytest.mark.asyncio
    async def test_add_and_list(self, ledger_repo: LedgerRepository, db_session):
        """Test adding a trader."""
        trader = await ledger_repo.add_trader("TraderAddr1", "alice", "momentum", added_by=42)
        await db_session.commit()

        assert trader.total_trades == 0
        traders = await ledger_repo.list_traders()
        assert [t.name for t in traders] == ["alice"]
        assert traders[0].added_by == 42

    @pytest.mark.asyncio
    async def test_duplicate_trader(self, ledger_repo: LedgerRepository, db_session):
        """Test that the same address cannot be listed twice."""
        await ledger_repo.add_trader("TraderAddr2", "bob")
        await db_session.commit()

        with pytest.raises(ValueError, match='already exists as "bob"'):
            await ledger_repo.add_trader("TraderAddr2", "carol")
