#!/usr/bin/env python3
"""Re-encrypt stored wallet secrets under a new ENCRYPTION_KEY.

Usage:
    python scripts/rotate_key.py --generate          # print a fresh key
    python scripts/rotate_key.py --new-key NEWKEY    # rotate (reads old key from env)
    python scripts/rotate_key.py --new-key NEWKEY --dry-run
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cryptography.fernet import InvalidToken
from dotenv import load_dotenv

from solbot.crypto import generate_encryption_key, get_vault
from solbot.ledger.database import close_db, get_db, init_db
from solbot.ledger.repository import LedgerRepository

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


async def rotate(new_key: str, dry_run: bool) -> int:
    """Re-seal every user's secret. Returns the number of failures."""
    vault = get_vault()
    failures = 0

    await init_db()
    try:
        async with get_db() as session:
            repo = LedgerRepository(session)
            users = await repo.list_users()
            logger.info(f"Rotating {len(users)} wallet secrets")

            for user in users:
                try:
                    blob = vault.rotate(new_key, user.encrypted_secret)
                except InvalidToken:
                    logger.error(f"Chat {user.chat_id}: secret does not decrypt with the current key")
                    failures += 1
                    continue
                if not dry_run:
                    user.encrypted_secret = blob

            if failures and not dry_run:
                raise RuntimeError(f"{failures} secrets could not be decrypted, nothing was changed")
    finally:
        await close_db()

    return failures


def main():
    parser = argparse.ArgumentParser(description="Rotate the wallet secret encryption key")
    parser.add_argument("--new-key", help="New ENCRYPTION_KEY value")
    parser.add_argument("--generate", action="store_true", help="Print a freshly generated key")
    parser.add_argument("--dry-run", action="store_true", help="Check decryption without writing")
    args = parser.parse_args()

    if args.generate:
        print(generate_encryption_key())
        return

    if not args.new_key:
        parser.error("--new-key is required unless --generate is given")

    failures = asyncio.run(rotate(args.new_key, args.dry_run))
    if args.dry_run:
        print(f"Dry run complete, {failures} failures")
    else:
        print("Rotation complete. Update ENCRYPTION_KEY to the new key before restarting the bot.")


if __name__ == "__main__":
    main()
