"""Solana chain gateway.

Wraps the ledger RPC: address validation, balance queries, token account
enumeration and construction/signing/submission/confirmation of transfers
and pre-built swap transactions.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction, VersionedTransaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)

from solbot.errors import GatewayFailure

logger = logging.getLogger(__name__)

SOL_DECIMALS = 9
MAX_RAW_AMOUNT = 2**64 - 1  # u64 amount field of transfer instructions


def is_valid_address(address: str) -> bool:
    """Check that a string is a well-formed base58 public key."""
    try:
        Pubkey.from_string(address)
    except ValueError:
        return False
    return True


def to_smallest_units(amount: Decimal, decimals: int) -> int:
    """Convert a human amount into integer base units, rounding down.

    Raises:
        ValueError: If the result does not fit in a u64
    """
    try:
        raw = int((amount * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN))
    except ArithmeticError as e:
        raise ValueError(f"Amount {amount} is out of range") from e

    if raw > MAX_RAW_AMOUNT:
        raise ValueError(f"Amount {amount} is out of range")
    return raw


def from_smallest_units(raw: int, decimals: int) -> Decimal:
    """Convert integer base units into a human amount."""
    return Decimal(raw) / (Decimal(10) ** decimals)


@dataclass
class TokenBalance:
    """A non-empty SPL token account owned by a wallet."""

    mint: str
    account: str
    amount: Decimal
    decimals: int


class ChainGateway:
    """Gateway to a Solana RPC node."""

    def __init__(
        self,
        rpc_url: str,
        confirm_timeout: float = 60.0,
        commitment: Commitment = Confirmed,
    ):
        self.rpc_url = rpc_url
        self.confirm_timeout = confirm_timeout
        self.commitment = commitment

    def _client(self) -> AsyncClient:
        return AsyncClient(self.rpc_url, commitment=self.commitment)

    @staticmethod
    def is_valid_address(address: str) -> bool:
        return is_valid_address(address)

    async def get_sol_balance(self, address: str) -> Decimal:
        """Get the SOL balance of a wallet."""
        try:
            async with self._client() as client:
                resp = await client.get_balance(Pubkey.from_string(address))
        except Exception as e:
            logger.error(f"Balance query failed for {address}: {e}")
            raise GatewayFailure(f"Could not fetch SOL balance: {e}") from e

        return from_smallest_units(resp.value, SOL_DECIMALS)

    async def get_token_accounts(self, address: str) -> list[TokenBalance]:
        """List the wallet's SPL token accounts with a positive balance."""
        try:
            async with self._client() as client:
                resp = await client.get_token_accounts_by_owner_json_parsed(
                    Pubkey.from_string(address),
                    TokenAccountOpts(program_id=TOKEN_PROGRAM_ID),
                )
        except Exception as e:
            logger.error(f"Token account query failed for {address}: {e}")
            raise GatewayFailure(f"Could not fetch token accounts: {e}") from e

        balances = []
        for keyed in resp.value:
            info = keyed.account.data.parsed.get("info", {})
            token_amount = info.get("tokenAmount", {})
            amount = Decimal(token_amount.get("uiAmountString") or "0")
            if amount <= 0:
                continue
            balances.append(
                TokenBalance(
                    mint=info.get("mint", ""),
                    account=str(keyed.pubkey),
                    amount=amount,
                    decimals=int(token_amount.get("decimals", 0)),
                )
            )
        return balances

    async def send_sol(self, keypair: Keypair, recipient: str, amount: Decimal) -> str:
        """Transfer SOL and wait for confirmation.

        Returns:
            Transaction signature
        """
        try:
            lamports = to_smallest_units(amount, SOL_DECIMALS)
            instruction = transfer(
                TransferParams(
                    from_pubkey=keypair.pubkey(),
                    to_pubkey=Pubkey.from_string(recipient),
                    lamports=lamports,
                )
            )
        except (ValueError, TypeError) as e:
            raise GatewayFailure(f"Could not build transfer: {e}") from e

        if lamports <= 0:
            raise GatewayFailure("Amount is smaller than 1 lamport")

        logger.info(f"Sending {amount} SOL from {keypair.pubkey()} to {recipient}")
        async with self._client() as client:
            return await self._send_instructions(client, keypair, [instruction])

    async def send_token(
        self,
        keypair: Keypair,
        recipient: str,
        mint: str,
        amount: Decimal,
    ) -> str:
        """Transfer an SPL token and wait for confirmation.

        Creates the recipient's associated token account when missing. The
        amount is scaled by the mint's on-chain decimals.
        """
        owner = keypair.pubkey()
        mint_pubkey = Pubkey.from_string(mint)
        recipient_pubkey = Pubkey.from_string(recipient)
        source = get_associated_token_address(owner, mint_pubkey)
        dest = get_associated_token_address(recipient_pubkey, mint_pubkey)

        async with self._client() as client:
            try:
                supply = await client.get_token_supply(mint_pubkey)
                decimals = supply.value.decimals
                dest_info = await client.get_account_info(dest)
            except Exception as e:
                logger.error(f"Token lookup failed for mint {mint}: {e}")
                raise GatewayFailure(f"Could not read token mint {mint}: {e}") from e

            try:
                raw_amount = to_smallest_units(amount, decimals)
            except ValueError as e:
                raise GatewayFailure(f"Amount is too large for this token ({decimals} decimals)") from e
            if raw_amount <= 0:
                raise GatewayFailure(f"Amount is below the smallest unit of this token ({decimals} decimals)")

            instructions: list[Instruction] = []
            if dest_info.value is None:
                instructions.append(
                    create_associated_token_account(payer=owner, owner=recipient_pubkey, mint=mint_pubkey)
                )
            try:
                instructions.append(
                    transfer_checked(
                        TransferCheckedParams(
                            program_id=TOKEN_PROGRAM_ID,
                            source=source,
                            mint=mint_pubkey,
                            dest=dest,
                            owner=owner,
                            amount=raw_amount,
                            decimals=decimals,
                        )
                    )
                )
            except (ValueError, TypeError) as e:
                raise GatewayFailure(f"Could not build token transfer: {e}") from e

            logger.info(f"Sending {amount} of {mint} from {owner} to {recipient}")
            return await self._send_instructions(client, keypair, instructions)

    async def send_swap_transaction(
        self,
        keypair: Keypair,
        swap_transaction: str,
        last_valid_block_height: Optional[int] = None,
    ) -> str:
        """Sign a base64 versioned transaction (e.g. from Jupiter) and submit it."""
        try:
            unsigned = VersionedTransaction.from_bytes(base64.b64decode(swap_transaction))
            signed = VersionedTransaction(unsigned.message, [keypair])
        except Exception as e:
            raise GatewayFailure(f"Malformed swap transaction: {e}") from e

        async with self._client() as client:
            try:
                resp = await client.send_raw_transaction(
                    bytes(signed),
                    opts=TxOpts(preflight_commitment=self.commitment),
                )
            except Exception as e:
                logger.error(f"Swap submission failed: {e}")
                raise GatewayFailure(f"Transaction was rejected: {e}") from e

            signature = resp.value
            await self._confirm(client, signature, last_valid_block_height)
            return str(signature)

    async def _send_instructions(
        self,
        client: AsyncClient,
        keypair: Keypair,
        instructions: list[Instruction],
    ) -> str:
        """Build, sign, submit and confirm a legacy transaction."""
        try:
            latest = (await client.get_latest_blockhash()).value
            message = Message.new_with_blockhash(instructions, keypair.pubkey(), latest.blockhash)
            tx = Transaction([keypair], message, latest.blockhash)
            resp = await client.send_transaction(tx)
        except Exception as e:
            logger.error(f"Transaction submission failed: {e}")
            raise GatewayFailure(f"Transaction was rejected: {e}") from e

        signature = resp.value
        await self._confirm(client, signature, latest.last_valid_block_height)
        return str(signature)

    async def _confirm(
        self,
        client: AsyncClient,
        signature: Signature,
        last_valid_block_height: Optional[int],
    ) -> None:
        """Wait until the signature reaches the configured commitment.

        A timeout does not mean the transaction failed; the signature is
        attached to the error so the user can check the explorer.
        """
        try:
            resp = await asyncio.wait_for(
                client.confirm_transaction(
                    signature,
                    commitment=self.commitment,
                    last_valid_block_height=last_valid_block_height,
                ),
                timeout=self.confirm_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Confirmation timed out for {signature}")
            raise GatewayFailure(
                f"Transaction {signature} was submitted but not confirmed within "
                f"{self.confirm_timeout:.0f}s. It may still land - check the explorer before retrying.",
                signature=str(signature),
            ) from e
        except Exception as e:
            logger.warning(f"Confirmation failed for {signature}: {e}")
            raise GatewayFailure(
                f"Transaction {signature} was submitted but its status is unknown: {e}",
                signature=str(signature),
            ) from e

        status = resp.value[0] if resp.value else None
        if status is not None and status.err is not None:
            raise GatewayFailure(
                f"Transaction {signature} failed on-chain: {status.err}",
                signature=str(signature),
            )
        logger.info(f"Transaction confirmed: {signature}")


def create_chain_gateway() -> ChainGateway:
    """Create a chain gateway from settings."""
    from solbot.config import get_settings

    settings = get_settings()
    return ChainGateway(settings.solana_rpc_url, confirm_timeout=settings.confirm_timeout_seconds)
