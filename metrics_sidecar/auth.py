"""Bearer token allow-list and request authorization middleware."""
from typing import Dict, Iterable, Optional, Protocol, Sequence
import logging

from fastapi import Request
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from metrics_sidecar.config import BearerTokenEntry, load_bearer_tokens

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class Allower(Protocol):
    def allowed(self, token: str) -> bool:
        ...


class BearerTokenProvider:
    """Static mapping of bearer token to caller name, loaded at startup."""

    def __init__(self, entries: Iterable[BearerTokenEntry]):
        self.bearer_tokens: Dict[str, str] = {}
        for entry in entries:
            logger.info(f"Bearer token loaded for: {entry.name}")
            self.bearer_tokens[entry.token] = entry.name

    @classmethod
    def from_file(cls, path: Optional[str]) -> Optional["BearerTokenProvider"]:
        """Build a provider from a token file, or None when no path is configured."""
        if path is None:
            return None
        return cls(load_bearer_tokens(path))

    def allowed(self, token: str) -> bool:
        name = self.bearer_tokens.get(token)
        if name is not None:
            logger.info(f"Accepted request from: {name}")
            return True
        logger.info("Rejected unknown bearer token")
        return False


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an Authorization header value, if it is a bearer token."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    return authorization[len(BEARER_PREFIX):]


class BearerTokenMiddleware(BaseHTTPMiddleware):
    """Rejects requests to protected paths that lack a known bearer token."""

    def __init__(self, app, allower: Allower, protected_prefixes: Sequence[str] = ("/publish", "/control")):
        super().__init__(app)
        self.allower = allower
        self.protected_prefixes = tuple(protected_prefixes)

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.protected_prefixes):
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("authorization"))
        if token is None:
            logger.info("No bearer token found, rejecting request")
            return PlainTextResponse("Unauthorized", status_code=401)

        if not self.allower.allowed(token):
            logger.info("Invalid token, rejecting request")
            return PlainTextResponse("Unauthorized", status_code=401)

        return await call_next(request)
