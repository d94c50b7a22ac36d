"""Pytest configuration and fixtures."""

import os
from decimal import Decimal
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from solders.keypair import Keypair

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["DEBUG"] = "true"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key"

from solbot.chain.gateway import is_valid_address
from solbot.crypto import SecretVault
from solbot.ledger.models import Base
from solbot.ledger.repository import LedgerRepository
from solbot.routing.base import Quote, SwapTransaction
from solbot.routing.jupiter import KNOWN_TOKENS
from solbot.session.controller import FlowController
from solbot.session.storage import TTLMemoryStorage
from solbot.utils.locks import clear_chat_locks

CHAT_ID = 100
TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_chat_locks():
    clear_chat_locks()
    yield
    clear_chat_locks()


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def ledger_repo(db_session: AsyncSession) -> LedgerRepository:
    """Create ledger repository for testing."""
    return LedgerRepository(db_session)


@pytest.fixture
def db(session_factory):
    """Session context factory shaped like solbot.ledger.database.get_db."""

    @asynccontextmanager
    async def _db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return _db


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(clock) -> TTLMemoryStorage:
    return TTLMemoryStorage(ttl_seconds=900, clock=clock)


@pytest.fixture
def state(storage) -> FSMContext:
    """FSM context of the test chat."""
    return FSMContext(storage=storage, key=StorageKey(bot_id=1, chat_id=CHAT_ID, user_id=CHAT_ID))


@pytest.fixture
def vault() -> SecretVault:
    return SecretVault("test-encryption-key")


@pytest.fixture
def wallet_keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def recipient() -> str:
    return str(Keypair().pubkey())


@pytest.fixture
def chain():
    """Chain gateway double: real address validation, scripted submissions."""
    gateway = AsyncMock()
    gateway.is_valid_address = is_valid_address
    gateway.send_sol.return_value = "sig-send-sol"
    gateway.send_token.return_value = "sig-send-token"
    gateway.send_swap_transaction.return_value = "sig-swap"
    return gateway


def make_quote(amount: str = "1", out_amount: int = 150_000_000) -> Quote:
    sol = KNOWN_TOKENS["SOL"]
    usdc = KNOWN_TOKENS["USDC"]
    amount_dec = Decimal(amount)
    return Quote(
        provider="Jupiter",
        from_token=sol,
        to_token=usdc,
        amount=amount_dec,
        in_amount=int(amount_dec * 10**sol.decimals),
        out_amount=out_amount,
        price_impact_pct=Decimal("0.01"),
        slippage_bps=50,
        quote_response={"inAmount": str(int(amount_dec * 10**sol.decimals)), "outAmount": str(out_amount)},
    )


@pytest.fixture
def swaps():
    """Swap provider double that resolves known tokens."""
    provider = AsyncMock()
    provider.name = "Jupiter"

    async def find_token_by_symbol(symbol):
        return KNOWN_TOKENS.get(symbol.upper())

    provider.find_token_by_symbol.side_effect = find_token_by_symbol
    provider.get_quote.return_value = make_quote()
    provider.build_swap_transaction.return_value = SwapTransaction(payload="c2lnbmVk", last_valid_block_height=1234)
    return provider


@pytest.fixture
def controller(vault, chain, swaps, db) -> FlowController:
    return FlowController(vault=vault, chain=chain, swaps=swaps, db=db, explorer_tx_url="https://explorer.test/tx")


@pytest_asyncio.fixture
async def bound_wallet(db, vault, wallet_keypair) -> Keypair:
    """Bind wallet_keypair to the test chat."""
    async with db() as session:
        await LedgerRepository(session).upsert_wallet(
            CHAT_ID, vault.seal_secret(str(wallet_keypair)), str(wallet_keypair.pubkey())
        )
    return wallet_keypair
