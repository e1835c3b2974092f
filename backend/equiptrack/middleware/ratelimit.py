"""Rate limiting pipeline stage."""

import math
from typing import TYPE_CHECKING

from backend.equiptrack.api.auth import TokenAuthority, extract_bearer_token
from backend.equiptrack.db.repositories import RateLimitDecision, RateLimitStore
from backend.equiptrack.errors import AppError, RateLimited
from backend.equiptrack.ratelimit import make_rate_limit_key
from backend.equiptrack.utils.metrics import rate_limit_denials_total

if TYPE_CHECKING:
    from backend.equiptrack.middleware.pipeline import PipelineContext


class RateLimitStage:
    """First pipeline stage: count the request, reject once over quota.

    Runs before identity resolution, so the key comes from the verified
    user id claim of the bearer credential when one is present; liveness of
    that user is checked later by the identity stage.
    """

    name = "rate_limit"

    def __init__(self, store: RateLimitStore, authority: TokenAuthority) -> None:
        """Initialize rate limit stage.

        Args:
            store: Rate limit store implementation
            authority: Token authority used to read the user id claim
        """
        self._store = store
        self._authority = authority

    def key_for(self, ctx: "PipelineContext") -> str:
        token = extract_bearer_token(ctx.headers.get("authorization"))
        user_id = self._authority.peek_user_id(token) if token else None
        return make_rate_limit_key(user_id, ctx.client_host)

    async def run(self, ctx: "PipelineContext") -> AppError | None:
        decision = await self._store.check_and_increment(self.key_for(ctx), ctx.started_at)
        ctx.rate_limit = decision

        if not decision.allowed:
            rate_limit_denials_total.inc()
            return RateLimited(decision.reset_at)

        return None


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    """Headers carried by every response, allowed or denied."""
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(math.ceil(decision.reset_at.timestamp())),
    }


def retry_after_seconds(decision: RateLimitDecision, ctx: "PipelineContext") -> int:
    return max(1, math.ceil((decision.reset_at - ctx.started_at).total_seconds()))
