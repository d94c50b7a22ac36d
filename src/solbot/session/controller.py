"""Multi-step conversation flows.

Handlers translate Telegram events into calls on FlowController, which owns
the per-chat state transitions (through aiogram's FSMContext) and talks to
the vault, the chain and the swap provider. Every method returns a Reply
for the handler to send.

A fund-moving action is only ever executed from a confirm callback that
matches the pending action stored at proposal time. The pending action is
cleared before anything is submitted, so a second confirmation of the same
prompt finds nothing to execute.
"""

import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from aiogram.fsm.context import FSMContext
from aiogram.types import InlineKeyboardMarkup
from sqlalchemy.ext.asyncio import AsyncSession
from solders.keypair import Keypair

from solbot.bot.keyboards import confirm_keyboard, send_choice_keyboard
from solbot.chain.gateway import SOL_DECIMALS, ChainGateway, to_smallest_units
from solbot.crypto import SecretVault, classify_secret, derive_keypair
from solbot.errors import (
    GatewayFailure,
    InvalidAddress,
    InvalidInputFormat,
    InvalidSecretFormat,
    NoWalletBound,
    StaleAction,
)
from solbot.ledger.database import get_db
from solbot.ledger.models import TransactionKind
from solbot.ledger.repository import LedgerRepository
from solbot.routing.base import SwapProvider
from solbot.session.intents import (
    PENDING_KEY,
    IntentKind,
    PendingAction,
    SwapIntent,
    TokenTransferIntent,
    TransferIntent,
    load_pending,
    parse_swap_request,
    parse_token_transfer,
    parse_transfer,
)
from solbot.session.states import FlowStates

logger = logging.getLogger(__name__)

DEFAULT_EXPLORER_TX_URL = "https://explorer.solana.com/tx"

IMPORT_PROMPT = (
    "🔐 Import Wallet\n\n"
    "Send your private key (base58) or your seed phrase (12 or 24 words).\n\n"
    "⚠️ Your message will be deleted right away and the secret is stored encrypted. "
    "Never share it with anyone else.\n\n"
    "Type /cancel to abort."
)

SEND_SOL_PROMPT = (
    "Enter the recipient address and amount of SOL:\n\n"
    "Format: address amount\n"
    "Example: 7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU 0.1"
)

SEND_TOKEN_PROMPT = (
    "Enter the recipient address, token mint and amount:\n\n"
    "Format: address token_mint amount\n"
    "Example: 7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU "
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v 10"
)

SWAP_PROMPT = (
    "💱 Swap Tokens\n\n"
    "Enter the tokens and amount:\n\n"
    "Format: from_token to_token amount\n"
    "Example: SOL USDC 0.1"
)

# State each pending kind lives in
_PENDING_STATES = {
    IntentKind.SEND_SOL: FlowStates.sending_native.state,
    IntentKind.SEND_TOKEN: FlowStates.sending_token.state,
    IntentKind.SWAP: FlowStates.swapping.state,
}

_EXPIRED_TEXT = {
    IntentKind.SEND_SOL: "Transaction expired. Please try again.",
    IntentKind.SEND_TOKEN: "Transaction expired. Please try again.",
    IntentKind.SWAP: "Swap request expired. Please try again.",
}

_CANCELLED_TEXT = {
    IntentKind.SEND_SOL: "Transaction cancelled.",
    IntentKind.SEND_TOKEN: "Transaction cancelled.",
    IntentKind.SWAP: "Swap cancelled.",
}

_CANCEL_BY_STATE = {
    FlowStates.awaiting_secret.state: "Wallet import cancelled.",
    FlowStates.sending_native.state: "Transaction cancelled.",
    FlowStates.sending_token.state: "Transaction cancelled.",
    FlowStates.swapping.state: "Swap cancelled.",
}


def format_amount(amount: Decimal) -> str:
    """Render a Decimal without exponent or trailing zeros."""
    return f"{amount.normalize():f}"


@dataclass
class Reply:
    """Text (and optional inline keyboard) to send back to the chat."""

    text: str
    keyboard: Optional[InlineKeyboardMarkup] = None


class FlowController:
    """Drives the import, send and swap conversations."""

    def __init__(
        self,
        vault: SecretVault,
        chain: ChainGateway,
        swaps: SwapProvider,
        db: Callable[[], AbstractAsyncContextManager[AsyncSession]] = get_db,
        explorer_tx_url: str = DEFAULT_EXPLORER_TX_URL,
    ):
        """Initialize the controller.

        Args:
            vault: Encrypts and decrypts stored wallet secrets
            chain: Solana RPC gateway
            swaps: Swap quote/transaction provider
            db: Factory for database session context managers
            explorer_tx_url: Base URL for transaction links
        """
        self.vault = vault
        self.chain = chain
        self.swaps = swaps
        self.db = db
        self.explorer_tx_url = explorer_tx_url.rstrip("/")

    def explorer_link(self, signature: str) -> str:
        return f"{self.explorer_tx_url}/{signature}"

    # Wallet import

    async def start_import(self, state: FSMContext) -> Reply:
        await state.clear()
        await state.set_state(FlowStates.awaiting_secret)
        return Reply(IMPORT_PROMPT)

    async def submit_secret(self, state: FSMContext, chat_id: int, text: str) -> Reply:
        """Bind the wallet described by ``text`` to the chat.

        The caller removes the user's message regardless of the outcome.
        An unrecognized secret keeps the chat waiting for another attempt.
        """
        try:
            classified = classify_secret(text)
        except InvalidSecretFormat as e:
            logger.info(f"Chat {chat_id} sent an unrecognized wallet secret")
            return Reply(f"❌ {e.message}\n\nSend it again or type /cancel.")

        blob = self.vault.seal_secret(classified.normalized)
        async with self.db() as session:
            await LedgerRepository(session).upsert_wallet(chat_id, blob, classified.address)

        await state.clear()
        logger.info(f"Chat {chat_id} imported wallet {classified.address} ({classified.kind.value})")
        return Reply(
            "✅ Wallet imported successfully!\n\n"
            f"Address: {classified.address}\n\n"
            "Use /balance to check your balance."
        )

    # Send

    async def begin_send(self, state: FSMContext, chat_id: int) -> Reply:
        await state.clear()
        try:
            await self.wallet_address(chat_id)
        except NoWalletBound as e:
            return Reply(e.message)
        return Reply("What would you like to send?", keyboard=send_choice_keyboard())

    async def choose_send_native(self, state: FSMContext) -> Reply:
        await state.clear()
        await state.set_state(FlowStates.sending_native)
        return Reply(SEND_SOL_PROMPT)

    async def choose_send_token(self, state: FSMContext) -> Reply:
        await state.clear()
        await state.set_state(FlowStates.sending_token)
        return Reply(SEND_TOKEN_PROMPT)

    async def submit_transfer(self, state: FSMContext, text: str) -> Reply:
        """Parse ``address amount`` and propose a SOL transfer."""
        try:
            intent = parse_transfer(text, self.chain.is_valid_address)
            try:
                lamports = to_smallest_units(intent.amount, SOL_DECIMALS)
            except ValueError:
                raise InvalidInputFormat("Amount is too large.")
            if lamports <= 0:
                raise InvalidInputFormat("Amount is smaller than 1 lamport (0.000000001 SOL).")
        except (InvalidInputFormat, InvalidAddress) as e:
            return Reply(e.message)

        await self._propose(state, intent)
        return Reply(
            "Please confirm the transaction:\n\n"
            f"Amount: {format_amount(intent.amount)} SOL\n"
            f"Recipient: {intent.recipient}",
            keyboard=confirm_keyboard(intent.kind, intent.action_id),
        )

    async def submit_token_transfer(self, state: FSMContext, text: str) -> Reply:
        """Parse ``address mint amount`` and propose a token transfer."""
        try:
            intent = parse_token_transfer(text, self.chain.is_valid_address)
        except (InvalidInputFormat, InvalidAddress) as e:
            return Reply(e.message)

        await self._propose(state, intent)
        return Reply(
            "Please confirm the token transfer:\n\n"
            f"Amount: {format_amount(intent.amount)}\n"
            f"Token: {intent.mint}\n"
            f"Recipient: {intent.recipient}",
            keyboard=confirm_keyboard(intent.kind, intent.action_id),
        )

    # Swap

    async def begin_swap(self, state: FSMContext, chat_id: int) -> Reply:
        await state.clear()
        try:
            await self.wallet_address(chat_id)
        except NoWalletBound as e:
            return Reply(e.message)
        await state.set_state(FlowStates.swapping)
        return Reply(SWAP_PROMPT)

    async def submit_swap(self, state: FSMContext, text: str) -> Reply:
        """Parse ``from to amount``, fetch a quote and propose the swap.

        A provider failure ends the flow; the user starts over with /swap.
        """
        try:
            from_symbol, to_symbol, amount = parse_swap_request(text)
        except InvalidInputFormat as e:
            return Reply(e.message)

        try:
            from_token = await self.swaps.find_token_by_symbol(from_symbol)
            to_token = await self.swaps.find_token_by_symbol(to_symbol)
            if from_token is None or to_token is None:
                return Reply("Invalid token symbols. Please check and try again.")
            quote = await self.swaps.get_quote(from_token, to_token, amount)
        except InvalidInputFormat as e:
            return Reply(e.message)
        except GatewayFailure as e:
            logger.warning(f"Quote failed for {from_symbol}->{to_symbol}: {e.message}")
            await state.clear()
            return Reply(f"❌ Error getting swap quote: {e.message}\n\nUse /swap to try again.")

        intent = SwapIntent.from_quote(quote)
        await self._propose(state, intent)

        lines = [
            "💱 Swap Quote\n",
            f"From: {format_amount(intent.amount)} {intent.from_token.symbol}",
            f"To: {intent.expected_output:.6f} {intent.to_token.symbol} (estimated)",
            f"Price impact: {quote.price_impact_pct:.2f}%",
            f"Slippage: {quote.slippage_bps / 100:.2f}%",
            "\nDo you want to proceed with this swap?",
        ]
        return Reply("\n".join(lines), keyboard=confirm_keyboard(intent.kind, intent.action_id))

    # Confirm / cancel

    async def confirm(
        self,
        state: FSMContext,
        chat_id: int,
        kind: IntentKind,
        action_id: Optional[str] = None,
    ) -> Reply:
        """Execute the pending action if it still matches the pressed button."""
        try:
            intent = await self._matching_pending(state, kind, action_id)
        except StaleAction as e:
            logger.info(f"Stale {kind.value} confirmation in chat {chat_id}")
            return Reply(e.message)

        await state.clear()

        try:
            keypair = await self._load_keypair(chat_id)
        except NoWalletBound:
            return Reply("Wallet not found. Please import your wallet first with /importwallet")

        if isinstance(intent, TransferIntent):
            return await self._execute_transfer(chat_id, keypair, intent)
        if isinstance(intent, TokenTransferIntent):
            return await self._execute_token_transfer(chat_id, keypair, intent)
        return await self._execute_swap(chat_id, keypair, intent)

    async def cancel_pending(
        self,
        state: FSMContext,
        kind: IntentKind,
        action_id: Optional[str] = None,
    ) -> Reply:
        """Discard the pending action behind a cancel button."""
        try:
            await self._matching_pending(state, kind, action_id)
        except StaleAction as e:
            return Reply(e.message)

        await state.clear()
        return Reply(_CANCELLED_TEXT[kind])

    async def cancel(self, state: FSMContext) -> Reply:
        """Leave whatever flow the chat is in."""
        current = await state.get_state()
        await state.clear()
        if current is None:
            return Reply("Nothing to cancel.")
        return Reply(_CANCEL_BY_STATE.get(current, "Cancelled."))

    # Execution

    async def _execute_transfer(self, chat_id: int, keypair: Keypair, intent: TransferIntent) -> Reply:
        try:
            signature = await self.chain.send_sol(keypair, intent.recipient, intent.amount)
        except GatewayFailure as e:
            return self._failure_reply("Error sending SOL", e)

        await self._record(chat_id, TransactionKind.SEND, signature, intent.amount, "SOL", intent.recipient)
        return Reply(
            "✅ Transaction successful!\n\n"
            f"Amount: {format_amount(intent.amount)} SOL\n"
            f"Recipient: {intent.recipient}\n"
            f"Transaction: {self.explorer_link(signature)}"
        )

    async def _execute_token_transfer(
        self, chat_id: int, keypair: Keypair, intent: TokenTransferIntent
    ) -> Reply:
        try:
            signature = await self.chain.send_token(keypair, intent.recipient, intent.mint, intent.amount)
        except GatewayFailure as e:
            return self._failure_reply("Error sending token", e)

        await self._record(chat_id, TransactionKind.SEND, signature, intent.amount, intent.mint, intent.recipient)
        return Reply(
            "✅ Token transfer successful!\n\n"
            f"Amount: {format_amount(intent.amount)}\n"
            f"Token: {intent.mint}\n"
            f"Recipient: {intent.recipient}\n"
            f"Transaction: {self.explorer_link(signature)}"
        )

    async def _execute_swap(self, chat_id: int, keypair: Keypair, intent: SwapIntent) -> Reply:
        try:
            swap_tx = await self.swaps.build_swap_transaction(intent.quote_response, str(keypair.pubkey()))
            signature = await self.chain.send_swap_transaction(
                keypair, swap_tx.payload, swap_tx.last_valid_block_height
            )
        except GatewayFailure as e:
            return self._failure_reply("Error executing swap", e)

        await self._record(chat_id, TransactionKind.SWAP, signature, intent.amount, intent.from_token.symbol)
        return Reply(
            "✅ Swap successful!\n\n"
            f"Swapped: {format_amount(intent.amount)} {intent.from_token.symbol}\n"
            f"Received: ~{intent.expected_output:.6f} {intent.to_token.symbol}\n"
            f"Transaction: {self.explorer_link(signature)}"
        )

    def _failure_reply(self, title: str, error: GatewayFailure) -> Reply:
        text = f"❌ {title}: {error.message}"
        if error.signature:
            text += f"\n\nTransaction: {self.explorer_link(error.signature)}"
        return Reply(text)

    async def _record(
        self,
        chat_id: int,
        kind: TransactionKind,
        signature: str,
        amount: Decimal,
        token: str,
        counterparty_address: Optional[str] = None,
    ) -> None:
        """Write the transaction log entry for a confirmed signature.

        The transfer already happened on chain, so a logging failure is
        reported in the server log and not to the user as a failed transfer.
        """
        try:
            async with self.db() as session:
                await LedgerRepository(session).record_transaction(
                    chat_id=chat_id,
                    kind=kind,
                    signature=signature,
                    amount=amount,
                    token=token,
                    counterparty_address=counterparty_address,
                )
        except Exception:
            logger.exception(f"Failed to record {kind.value} {signature} for chat {chat_id}")

    # Helpers

    async def _propose(self, state: FSMContext, intent: PendingAction) -> None:
        await state.update_data({PENDING_KEY: intent.to_dict()})
        logger.debug(f"Proposed {intent.kind.value} action {intent.action_id}")

    async def _matching_pending(
        self,
        state: FSMContext,
        kind: IntentKind,
        action_id: Optional[str],
    ) -> PendingAction:
        """The pending action a confirm/cancel button refers to.

        Raises:
            StaleAction: If nothing pending matches the kind and action id
        """
        intent = load_pending(await state.get_data())
        if (
            intent is None
            or intent.kind != kind
            or (action_id is not None and action_id != intent.action_id)
            or await state.get_state() != _PENDING_STATES[kind]
        ):
            raise StaleAction(_EXPIRED_TEXT[kind])
        return intent

    async def wallet_address(self, chat_id: int) -> str:
        """Public address bound to the chat.

        Raises:
            NoWalletBound: If no wallet was imported
        """
        async with self.db() as session:
            user = await LedgerRepository(session).get_user(chat_id)
        if user is None:
            raise NoWalletBound()
        return user.public_address

    async def _load_keypair(self, chat_id: int) -> Keypair:
        async with self.db() as session:
            user = await LedgerRepository(session).get_user(chat_id)
        if user is None:
            raise NoWalletBound()
        return derive_keypair(self.vault.open_secret(user.encrypted_secret))

