"""Credential vault: classify, seal and open wallet secrets.

A secret is either a BIP39 seed phrase or a base58-encoded Solana secret key.
Secrets are sealed with Fernet (AES-128-CBC with HMAC) under a key derived
from the process-wide ENCRYPTION_KEY.
"""

import base64
import hashlib
import logging
from dataclasses import dataclass
from enum import Enum

import base58
from bip_utils import Bip39MnemonicValidator, Bip39SeedGenerator, Bip44, Bip44Changes, Bip44Coins
from cryptography.fernet import Fernet
from solders.keypair import Keypair

from solbot.errors import InvalidSecretFormat

logger = logging.getLogger(__name__)

# Phantom/Solflare default account: m/44'/501'/0'/0'
DERIVATION_ACCOUNT = 0


class SecretKind(str, Enum):
    """Shape of a user-supplied secret."""

    MNEMONIC = "mnemonic"
    ENCODED_KEY = "encoded_key"
    INVALID = "invalid"


@dataclass(frozen=True)
class ClassifiedSecret:
    """A validated secret together with the address it controls."""

    kind: SecretKind
    normalized: str
    address: str

    def __repr__(self) -> str:
        # Never leak the secret through logs or tracebacks
        return f"ClassifiedSecret(kind={self.kind.value}, address={self.address})"


def detect_secret_kind(raw: str) -> SecretKind:
    """Guess the shape of a secret without validating it."""
    text = raw.strip()
    if not text:
        return SecretKind.INVALID
    if len(text.split()) > 1:
        return SecretKind.MNEMONIC
    return SecretKind.ENCODED_KEY


def _keypair_from_mnemonic(phrase: str) -> Keypair:
    """Derive the Solana keypair for a seed phrase.

    Uses the BIP44 path m/44'/501'/0'/0', the one Phantom and Solflare use
    for the first account.
    """
    seed = Bip39SeedGenerator(phrase).Generate()
    bip44 = Bip44.FromSeed(seed, Bip44Coins.SOLANA)
    account = bip44.Purpose().Coin().Account(DERIVATION_ACCOUNT).Change(Bip44Changes.CHAIN_EXT)
    private_key = account.PrivateKey().Raw().ToBytes()
    return Keypair.from_seed(private_key[:32])


def _keypair_from_encoded(encoded: str) -> Keypair:
    """Build a keypair from a base58 secret key (64 bytes) or seed (32 bytes)."""
    try:
        raw = base58.b58decode(encoded)
    except ValueError as e:
        raise InvalidSecretFormat("Invalid private key. Please check and try again.") from e

    try:
        if len(raw) == 64:
            return Keypair.from_bytes(raw)
        if len(raw) == 32:
            return Keypair.from_seed(raw)
    except ValueError as e:
        raise InvalidSecretFormat("Invalid private key. Please check and try again.") from e

    raise InvalidSecretFormat("Invalid private key. Please check and try again.")


def classify_secret(raw: str) -> ClassifiedSecret:
    """Validate a secret and derive the wallet address it controls.

    Raises:
        InvalidSecretFormat: If the input is neither a valid seed phrase
            nor a valid encoded private key
    """
    kind = detect_secret_kind(raw)

    if kind == SecretKind.MNEMONIC:
        normalized = " ".join(word.lower() for word in raw.split())
        if not Bip39MnemonicValidator().IsValid(normalized):
            raise InvalidSecretFormat("Invalid seed phrase. Please check and try again.")
        keypair = _keypair_from_mnemonic(normalized)
    elif kind == SecretKind.ENCODED_KEY:
        normalized = raw.strip()
        keypair = _keypair_from_encoded(normalized)
    else:
        raise InvalidSecretFormat("Please send your private key or seed phrase.")

    return ClassifiedSecret(kind=kind, normalized=normalized, address=str(keypair.pubkey()))


def derive_keypair(secret: str) -> Keypair:
    """Rebuild the signing keypair from a stored (normalized) secret."""
    kind = detect_secret_kind(secret)
    if kind == SecretKind.MNEMONIC:
        return _keypair_from_mnemonic(secret)
    if kind == SecretKind.ENCODED_KEY:
        return _keypair_from_encoded(secret)
    raise InvalidSecretFormat("Stored secret is empty")


def derive_fernet_key(passphrase: str) -> bytes:
    """Turn an arbitrary passphrase into a Fernet key (SHA-256, urlsafe base64)."""
    digest = hashlib.sha256(passphrase.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def generate_encryption_key() -> str:
    """Generate a random value suitable for ENCRYPTION_KEY."""
    return Fernet.generate_key().decode()


class SecretVault:
    """Seals and opens wallet secrets.

    Usage:
        vault = SecretVault(encryption_key)
        blob = vault.seal_secret(secret)
        assert vault.open_secret(blob) == secret
    """

    def __init__(self, encryption_key: str):
        """Initialize with the process-wide encryption key.

        Args:
            encryption_key: Any non-empty passphrase; hashed into a Fernet key
        """
        if not encryption_key:
            raise ValueError("encryption key must not be empty")
        self._fernet = Fernet(derive_fernet_key(encryption_key))

    def seal_secret(self, secret: str) -> str:
        """Encrypt a secret.

        Returns:
            Base64-encoded Fernet token
        """
        return self._fernet.encrypt(secret.encode()).decode()

    def open_secret(self, blob: str) -> str:
        """Decrypt a sealed secret.

        Raises:
            InvalidToken: If decryption fails (wrong key or corrupted data)
        """
        return self._fernet.decrypt(blob.encode()).decode()

    def rotate(self, new_key: str, blob: str) -> str:
        """Re-seal a blob under a new encryption key."""
        return SecretVault(new_key).seal_secret(self.open_secret(blob))


def get_vault() -> SecretVault:
    """Get vault instance using ENCRYPTION_KEY from settings.

    Raises:
        RuntimeError: If ENCRYPTION_KEY is not configured
    """
    from solbot.config import get_settings

    settings = get_settings()
    if not settings.encryption_key:
        raise RuntimeError("ENCRYPTION_KEY is not set - cannot store wallet secrets")
    return SecretVault(settings.encryption_key)
