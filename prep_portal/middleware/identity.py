import logging
from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from prep_portal.db.queries import is_registered

logger = logging.getLogger(__name__)


class IdentityMiddleware(BaseMiddleware):
    """Puts ``owner_id`` into handler data: the user id once signed up, else None."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        user = getattr(event, "from_user", None)
        if user is None:
            return  # no user info (e.g. channel post)

        # Fail to guest on DB errors
        try:
            registered = await is_registered(user.id)
        except Exception:
            logger.exception("DB error in identity middleware — treating user %s as guest", user.id)
            registered = False

        data["owner_id"] = user.id if registered else None
        return await handler(event, data)
