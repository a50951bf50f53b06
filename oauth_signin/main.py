"""
FastAPI host application demonstrating OAuth2 sign-in.

This module wires the sign-in middleware into a small app: a login
endpoint that challenges the provider, a protected dashboard that shows
the signed-in claims, and a logout endpoint.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, Optional

# Configure logging FIRST, before other local imports
from oauth_signin.logging_config import setup_global_logging

setup_global_logging()

from fastapi import FastAPI, HTTPException, Query, Request, status  # noqa: E402
from starlette.middleware.sessions import SessionMiddleware  # noqa: E402
from starlette.responses import RedirectResponse  # noqa: E402

from oauth_signin.core.domain import AuthenticationProperties  # noqa: E402
from oauth_signin.infrastructure.session_store import SessionSignInManager  # noqa: E402
from oauth_signin.oauth.config import get_oauth_options  # noqa: E402
from oauth_signin.oauth.middleware import challenge, use_oauth_authentication  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: log startup and shutdown."""
    logger.info("Application starting up...")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="OAuth Sign-in",
    description="Signs users in with an OAuth2 authorization-code provider",
    version="1.0.0",
    lifespan=lifespan,
)

options = get_oauth_options()
sign_in_manager = SessionSignInManager()

# ============================================================================
# Middleware (last added runs first: the session must wrap sign-in)
# ============================================================================

use_oauth_authentication(app, options, sign_in_manager=sign_in_manager)

SESSION_SECRET_KEY = os.getenv("SESSION_SECRET_KEY")
if not SESSION_SECRET_KEY:
    raise ValueError("SESSION_SECRET_KEY is not set in the environment.")
app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET_KEY,
    https_only=os.getenv("SESSION_HTTPS_ONLY", "false").lower() == "true",
)


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "oauth-signin",
        "provider": options.definition.name,
        "caption": options.caption,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/health")
async def health():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy"}


# ============================================================================
# Sign-in Endpoints
# ============================================================================


def is_local_url(url: str) -> bool:
    """True for a path on this site (no scheme, no host, no protocol-relative //)."""
    return url.startswith("/") and not url.startswith(("//", "/\\"))


@app.get("/login")
async def login(
    request: Request,
    return_url: Annotated[
        str, Query(description="Where to go after sign-in")
    ] = "/dashboard",
    scope: Annotated[
        Optional[str], Query(description="Comma separated scope override")
    ] = None,
):
    """
    Start sign-in with the configured provider.

    Returns a 401 challenge that the sign-in middleware turns into a
    redirect to the provider.
    """
    if not is_local_url(return_url):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="return_url must be a path on this site",
        )

    properties = AuthenticationProperties()
    properties.redirect_uri = return_url
    if scope:
        properties.items["scope"] = scope

    logger.info(
        f"Login requested for provider: {options.definition.name}",
        extra={"return_url": return_url},
    )
    return challenge(request, options.authentication_type, properties=properties)


@app.get("/dashboard")
async def dashboard(request: Request):
    """
    Protected dashboard endpoint.

    Shows the claims of the signed-in identity, or challenges the provider
    when nobody is signed in.
    """
    identity = sign_in_manager.get_identity(
        request, options.sign_in_as_authentication_type
    )
    if identity is None:
        properties = AuthenticationProperties()
        properties.redirect_uri = str(request.url)
        return challenge(request, options.authentication_type, properties=properties)

    logger.info(f"Dashboard accessed by user: {identity.name}")

    return {
        "status": "success",
        "message": "Welcome, you are authenticated!",
        "user": {
            "name": identity.name,
            "authentication_type": identity.authentication_type,
            "claims": {claim.type: claim.value for claim in identity.claims},
        },
    }


@app.get("/logout")
async def logout(request: Request):
    """Forget the signed-in identity and go back to the root page."""
    sign_in_manager.sign_out(request, options.sign_in_as_authentication_type)
    return RedirectResponse(url="/", status_code=302)


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
