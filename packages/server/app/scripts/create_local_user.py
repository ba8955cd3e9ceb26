"""
Script to create a creator or client account with a password for local testing.
"""

import asyncio
import argparse
import sys

# Add the project root to sys.path to allow importing from 'app'
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

import structlog

from app.core.auth import hash_password
from app.core.backend import BackendClient
from app.core.database import get_session_context
from app.core.logging import configure_logging
from app.services.profiles import create_profile
from connectry_shared.schemas.common import Role

log = structlog.get_logger()


async def create_user(email: str, password: str, role: Role, display_name: str | None):
    async with get_session_context() as session:
        backend = BackendClient(session)

        user = await backend.select_one("users", {"email": email})
        if not user:
            user = await backend.insert(
                "users", {"email": email, "password_hash": hash_password(password)}
            )
            log.info("script.user_created", email=email, user_id=str(user.id))
        else:
            log.info("script.user_exists", email=email, user_id=str(user.id))

        profile = await backend.select_one("profiles", {"id": user.id})
        if not profile:
            await create_profile(backend, user.id, role, display_name or email.split("@")[0])
        elif profile.role != role.value:
            log.warning("script.role_unchanged", email=email, role=profile.role)

        await backend.commit()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local Connectry account.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument(
        "--role", choices=[r.value for r in Role], default=Role.CREATOR.value,
        help="Account role (fixed once created)",
    )
    parser.add_argument("--display-name", default=None, help="Name shown on the profile")

    args = parser.parse_args()

    configure_logging(fmt="console")
    asyncio.run(create_user(args.email, args.password, Role(args.role), args.display_name))
