#!/usr/bin/env python3
"""
Standalone script to delete draft goals whose target date has passed.
Usage: python expire_stale_drafts.py [--user USER_ID]

Drafts hold no funds, so deleting them is safe. Listing goals also expires a
user's stale drafts lazily; this script sweeps every user at once.
"""

import argparse
import asyncio
import logging

from dreamsaver.core.database import AsyncSessionLocal, engine
from dreamsaver.utils.goal_lifecycle import expire_stale_drafts
from dreamsaver.models import product, goal, deposit, price_lock, notification  # noqa: F401

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def run(user_id=None) -> int:
    async with AsyncSessionLocal() as session:
        try:
            expired = await expire_stale_drafts(session, user_id=user_id)
            logger.info(f"Expired {expired} stale draft goal(s)")
            return expired
        finally:
            await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Delete draft goals past their target date")
    parser.add_argument("--user", dest="user_id", default=None, help="Only sweep this user's drafts")
    args = parser.parse_args()
    asyncio.run(run(args.user_id))
