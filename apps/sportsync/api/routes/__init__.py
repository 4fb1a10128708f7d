"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, constants, error translation) lives here;
every sub-router imports what it needs from this package.
"""

import logging
import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from sportsync.services.errors import (
    ForbiddenError,
    NotFoundError,
    QuotaExceededError,
    ServiceError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)

# ---------------------------------------------------------------------------
# Shared constants
# ---------------------------------------------------------------------------
INVALID_CREDENTIALS_RESPONSE = HTTPException(
    status_code=401, detail="Email or password is incorrect"
)


def service_error_response(e: ServiceError) -> HTTPException:
    """
    Translate a domain exception into an HTTPException.

    QuotaExceeded -> 403 with the evaluator result, Forbidden -> 403,
    NotFound/InvalidCode -> 404, anything else (validation, conflict) -> 400.
    """
    if isinstance(e, QuotaExceededError):
        return HTTPException(status_code=403, detail={"message": str(e), "limits": e.limits})
    if isinstance(e, ForbiddenError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def internal_error(action: str, e: Exception) -> HTTPException:
    """Log an unexpected failure and hide its details from the client."""
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from sportsync.api.routes.auth import router as auth_router  # noqa: E402
from sportsync.api.routes.users import router as users_router  # noqa: E402
from sportsync.api.routes.matches import router as matches_router  # noqa: E402
from sportsync.api.routes.invitations import router as invitations_router  # noqa: E402
from sportsync.api.routes.friends import router as friends_router  # noqa: E402
from sportsync.api.routes.posts import router as posts_router  # noqa: E402
from sportsync.api.routes.stats import router as stats_router  # noqa: E402
from sportsync.api.routes.finances import router as finances_router  # noqa: E402
from sportsync.api.routes.notifications import router as notifications_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(users_router)
router.include_router(matches_router)
router.include_router(invitations_router)
router.include_router(friends_router)
router.include_router(posts_router)
router.include_router(stats_router)
router.include_router(finances_router)
router.include_router(notifications_router)
