import math
from typing import TYPE_CHECKING, Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .auth import StatusAuth
from .config import Settings

if TYPE_CHECKING:
    from .bot import AfkCoordinator

bearer_scheme = HTTPBearer(auto_error=False)


def create_app(coordinator: "AfkCoordinator", settings: Settings) -> FastAPI:
    """Read-only HTTP view of the stored guild configuration and bot health."""
    app = FastAPI(
        title="AFK Guard status",
        version="1.0.0",
        docs_url="/docs",
        redoc_url=None,
    )
    auth = StatusAuth(settings)

    # One limiter per app keeps test clients independent.
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    async def require_token(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    ) -> dict:
        if credentials is None:
            raise HTTPException(status_code=401, detail="Authentication required")
        claims = auth.decode(credentials.credentials)
        if claims is None:
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        return claims

    @app.post("/api/auth/login")
    @limiter.limit("5/minute")
    async def login(request: Request, username: str = Form(...), password: str = Form(...)):
        if not auth.check_credentials(username, password):
            raise HTTPException(status_code=401, detail="Incorrect username or password")
        return {
            "access_token": auth.issue_token(username),
            "token_type": "bearer",
            "expires_in": int(auth.lifetime.total_seconds()),
        }

    @app.get("/api/health")
    @limiter.limit("60/minute")
    async def health(request: Request, claims: dict = Depends(require_token)):
        bot = coordinator.discord_bot
        latency = bot.latency
        return {
            **coordinator.get_health_stats(),
            "guilds": len(bot.guilds),
            "latency_ms": 0.0 if math.isnan(latency) else round(latency * 1000, 1),
        }

    @app.get("/api/guilds")
    @limiter.limit("30/minute")
    async def guilds(request: Request, claims: dict = Depends(require_token)):
        return {"guilds": [config.to_dict() for config in await coordinator.config_store.list_all()]}

    @app.get("/api/guilds/{guild_id}")
    @limiter.limit("60/minute")
    async def guild_detail(request: Request, guild_id: str, claims: dict = Depends(require_token)):
        config = await coordinator.config_store.get(guild_id)
        if config is None:
            raise HTTPException(status_code=404, detail="Guild not configured")
        return config.to_dict()

    return app
