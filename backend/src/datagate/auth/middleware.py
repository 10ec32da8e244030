"""Session middleware for FastAPI."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from datagate.access.types import Session
from datagate.auth.jwt_service import JWTError, JWTService


class SessionMiddleware(BaseHTTPMiddleware):
    """Extracts a Bearer token and sets request.state.session.

    Missing or invalid tokens leave the session as None, so the request
    runs as an anonymous caller. The middleware never rejects a request;
    anonymous callers simply see whatever the access rules allow them.
    """

    def __init__(self, app, jwt_service: JWTService):
        super().__init__(app)
        self._jwt_service = jwt_service

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.session = None

        if self._should_skip(request.url.path):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header[7:]
            try:
                request.state.session = self._jwt_service.decode(token)
            except JWTError:
                # Invalid token - stay anonymous
                pass

        return await call_next(request)

    def _should_skip(self, path: str) -> bool:
        skip_paths = [
            "/docs",
            "/openapi.json",
            "/redoc",
        ]
        return any(path.startswith(p) for p in skip_paths)


def get_session(request: Request) -> Session | None:
    """Get the caller's session from the request state (None when anonymous)."""
    return getattr(request.state, "session", None)
