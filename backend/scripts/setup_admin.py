"""Provision an admin account with a password.

Standalone operator script. Admins sign in at /auth/admin/login; this is the
only way to grant the admin role.

Usage:
    cd backend && python -m scripts.setup_admin admin@example.org [--name "Admin"]

The password is read from the terminal (never from argv, so it stays out of
shell history).
"""

import argparse
import getpass
import logging

import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

# bcrypt cost factor for admin password hashing
_BCRYPT_ROUNDS = 12
_MIN_PASSWORD_LENGTH = 12


def hash_password(password: str) -> str:
    """bcrypt-hash a password.

    Raises:
        ValueError: If the password is shorter than the minimum length.
    """
    if len(password) < _MIN_PASSWORD_LENGTH:
        msg = f"Admin password must be at least {_MIN_PASSWORD_LENGTH} characters"
        raise ValueError(msg)
    return bcrypt.hashpw(
        password.encode(), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)
    ).decode()


async def setup_admin(
    session: AsyncSession, *, email: str, password: str, name: str | None = None
) -> User:
    """Create or promote ``email`` to admin with the given password."""
    user = await UserRepository.provision_admin(
        session, email=email, password_hash=hash_password(password), name=name
    )
    logger.info("Admin credentials set for %s (id: %s)", user.email, user.id)
    return user


async def main() -> None:
    """CLI entry point: provision an admin against the configured database."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from app.core.config import settings

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("email")
    parser.add_argument("--name", default="Admin")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    password = getpass.getpass("Admin password: ")
    if password != getpass.getpass("Repeat password: "):
        raise SystemExit("Passwords do not match")

    engine = create_async_engine(settings.database_url, echo=False)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        await setup_admin(session, email=args.email, password=password, name=args.name)
        await session.commit()

    await engine.dispose()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
