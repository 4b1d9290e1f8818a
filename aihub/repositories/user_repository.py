"""
Persistence for users, credit balances and subscriptions.

Credit changes are single conditional UPDATEs so concurrent executions and
webhook deliveries never read-modify-write the balance.
"""

import psycopg

from aihub.db.helpers import execute_query, fetch_one
from aihub.infrastructure.observability.logging import get_logger
from aihub.models.domain.user_domain import Subscription, UserAccount

logger = get_logger(__name__)

USER_COLUMNS = "id, email, credits, stripe_customer_id, created_at, updated_at"


def _row_to_user(row: dict | None) -> UserAccount | None:
    if not row:
        return None
    return UserAccount(
        id=str(row["id"]),
        email=row.get("email"),
        credits=row.get("credits") or 0,
        stripe_customer_id=row.get("stripe_customer_id"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class UserRepository:
    @classmethod
    async def get_user(cls, user_id: str) -> UserAccount | None:
        row = await fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
        return _row_to_user(row)

    @classmethod
    async def get_credits(cls, user_id: str) -> int | None:
        """Fresh balance read; None when the user has no users row yet."""
        row = await fetch_one("SELECT credits FROM users WHERE id = %s", (user_id,))
        return (row["credits"] or 0) if row else None

    @classmethod
    async def find_by_email(cls, email: str) -> UserAccount | None:
        row = await fetch_one(
            f"SELECT {USER_COLUMNS} FROM users WHERE lower(email) = lower(%s) LIMIT 1", (email,)
        )
        return _row_to_user(row)

    @classmethod
    async def find_auth_user(cls, *, user_id: str | None = None, email: str | None = None) -> dict | None:
        """Supabase auth account by id or email, for accounts without a users row."""
        if user_id:
            row = await fetch_one("SELECT id, email FROM auth.users WHERE id = %s", (user_id,))
        elif email:
            row = await fetch_one(
                "SELECT id, email FROM auth.users WHERE lower(email) = lower(%s) LIMIT 1", (email,)
            )
        else:
            return None
        return {"id": str(row["id"]), "email": row["email"]} if row else None

    @classmethod
    async def create_user(cls, user_id: str, email: str | None, credits: int = 0) -> UserAccount:
        row = await fetch_one(
            f"""
            INSERT INTO users (id, email, credits)
            VALUES (%s, %s, %s)
            ON CONFLICT (id) DO UPDATE SET email = COALESCE(users.email, EXCLUDED.email)
            RETURNING {USER_COLUMNS}
            """,
            (user_id, email, credits),
        )
        logger.info("User row created", user_id=user_id)
        return _row_to_user(row)

    @classmethod
    async def add_credits(
        cls, user_id: str, amount: int, *, stripe_customer_id: str | None = None
    ) -> int | None:
        """Atomically add credits (and record the Stripe customer); returns the new balance."""
        row = await fetch_one(
            """
            UPDATE users
            SET credits = credits + %s,
                stripe_customer_id = COALESCE(%s, stripe_customer_id),
                updated_at = NOW()
            WHERE id = %s
            RETURNING credits
            """,
            (amount, stripe_customer_id, user_id),
        )
        return row["credits"] if row else None

    @classmethod
    async def debit_credits(
        cls, user_id: str, amount: int, *, connection: psycopg.AsyncConnection | None = None
    ) -> int | None:
        """
        Subtract credits only if the balance covers them.

        Returns:
            The new balance, or None when the balance was insufficient
        """
        row = await fetch_one(
            """
            UPDATE users
            SET credits = credits - %s, updated_at = NOW()
            WHERE id = %s AND credits >= %s
            RETURNING credits
            """,
            (amount, user_id, amount),
            connection=connection,
        )
        return row["credits"] if row else None

    @classmethod
    async def upsert_subscription(cls, subscription: Subscription) -> None:
        await execute_query(
            """
            INSERT INTO subscriptions (
                user_id, stripe_subscription_id, plan_name, credits_per_month, status, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, NOW())
            ON CONFLICT (user_id) DO UPDATE SET
                stripe_subscription_id = EXCLUDED.stripe_subscription_id,
                plan_name = EXCLUDED.plan_name,
                credits_per_month = EXCLUDED.credits_per_month,
                status = EXCLUDED.status,
                updated_at = NOW()
            """,
            (
                subscription.user_id,
                subscription.stripe_subscription_id,
                subscription.plan_name,
                subscription.credits_per_month,
                subscription.status,
            ),
        )
