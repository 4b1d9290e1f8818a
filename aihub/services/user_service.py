"""
User context and credit balance.

The balance is always read fresh from the database; nothing caches it
between requests.
"""

from aihub.db.helpers import with_db_retry
from aihub.infrastructure.observability.logging import get_logger
from aihub.models.domain.user_domain import CurrentUser, UserAccount
from aihub.repositories.user_repository import UserRepository

logger = get_logger(__name__)


@with_db_retry(max_retries=3, base_delay=0.1)
async def get_user_account(user: CurrentUser) -> UserAccount:
    """
    Load the caller's users row, creating it with a zero balance for a
    Supabase account that has not been synced yet.
    """
    account = await UserRepository.get_user(user.id)
    if account:
        return account

    logger.info("No users row for authenticated account, creating one", user_id=user.id)
    return await UserRepository.create_user(user.id, user.email)


@with_db_retry(max_retries=3, base_delay=0.1)
async def get_live_credits(user_id: str) -> int:
    credits = await UserRepository.get_credits(user_id)
    return credits or 0
