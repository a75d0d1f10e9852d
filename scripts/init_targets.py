"""
scripts/init_targets.py
────────────────────────────────────────────────────────────────────────
Recompute macro targets from each client's latest onboarding and store
them as a new version:

    python -m scripts.init_targets           # every onboarded client

One client only:

    python -m scripts.init_targets --user abc123
"""
from __future__ import annotations

import asyncio
from argparse import ArgumentParser
from dotenv import load_dotenv
load_dotenv()

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.macro_calc import generate_macro_targets
from services.db import (
    MacroTarget,
    OnboardingResponse,
    add_versioned,
    latest_for_user,
    profile_from_row,
    session_scope,
    targets_columns,
)


async def refresh_user(db: AsyncSession, user_id: str) -> MacroTarget | None:
    onboarding = await latest_for_user(db, OnboardingResponse, user_id)
    if onboarding is None:
        print(f"· skip {user_id} – no onboarding")
        return None

    targets = generate_macro_targets(profile_from_row(onboarding))
    row = await add_versioned(
        db, MacroTarget, user_id,
        onboarding_version=onboarding.version,
        created_by="script:init_targets",
        **targets_columns(targets),
    )
    print(f"✓ targets v{row.version} for {user_id}: {row.calorie_target} kcal")
    return row


# ───────────────────────────────
# CLI entrypoint
# ───────────────────────────────
async def _async_main() -> None:
    ap = ArgumentParser()
    ap.add_argument("--user", help="update only this user-id")
    args = ap.parse_args()

    async with session_scope() as db:
        if args.user:
            await refresh_user(db, args.user)
        else:
            ids = (await db.execute(select(OnboardingResponse.user_id).distinct())).scalars().all()
            for uid in ids:
                await refresh_user(db, uid)


if __name__ == "__main__":  # pragma: no cover
    asyncio.run(_async_main())
