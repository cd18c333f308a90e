"""OAuth routes.

Handles the Figma OAuth authorization flow: authorization URL generation,
the provider callback (rendered as a small HTML page for the popup window),
and explicit token refresh.
"""

from html import escape

import structlog
from fastapi import APIRouter, Query, status
from fastapi.responses import HTMLResponse

from changewatch.api.deps import OAuthServiceDep, OptionalUser
from changewatch.core.errors import ChangewatchError, UnauthenticatedError
from changewatch.models.execution import CamelModel
from changewatch.services.oauth_service import decode_state

logger = structlog.get_logger()

router = APIRouter(prefix="/oauth", tags=["oauth"])


class OAuthInitiateRequest(CamelModel):
    """Body of an authorization request."""

    client_id: str | None = None
    integration_id: str


class OAuthInitiateResponse(CamelModel):
    auth_url: str
    state: str


class OAuthRefreshRequest(CamelModel):
    integration_id: str


_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <title>Figma OAuth {title}</title>
    <style>
      body {{
        font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
        display: flex;
        align-items: center;
        justify-content: center;
        height: 100vh;
        margin: 0;
        background: #f5f5f5;
      }}
      .container {{
        background: white;
        padding: 2rem;
        border-radius: 8px;
        box-shadow: 0 2px 8px rgba(0,0,0,0.1);
        max-width: 400px;
        text-align: center;
      }}
      .heading {{ color: {color}; margin-bottom: 1rem; }}
      button {{
        background: {color};
        color: white;
        border: none;
        padding: 0.75rem 1.5rem;
        border-radius: 4px;
        cursor: pointer;
        font-size: 1rem;
      }}
    </style>
  </head>
  <body>
    <div class="container">
      <h2 class="heading">{heading}</h2>
      {paragraphs}
      <button onclick="window.close()">Close Window</button>
    </div>
    {script}
  </body>
</html>
"""


def render_page(
    heading: str,
    messages: list[str],
    status_code: int,
    success: bool = False,
) -> HTMLResponse:
    """Render the popup page shown at the end of the OAuth flow.

    Messages are escaped; they may carry provider-controlled text.
    """
    content = _PAGE_TEMPLATE.format(
        title="Success" if success else "Error",
        color="#2e7d32" if success else "#d32f2f",
        heading=escape(heading),
        paragraphs="\n      ".join(f"<p>{escape(m)}</p>" for m in messages),
        script=(
            "<script>setTimeout(() => window.close(), 2000);</script>"
            if success
            else ""
        ),
    )
    return HTMLResponse(content=content, status_code=status_code)


@router.post(
    "/initiate",
    summary="Start OAuth authorization",
    description="Build the Figma authorization URL for an integration.",
)
async def initiate_oauth(
    data: OAuthInitiateRequest,
    user: OptionalUser,
    oauth_service: OAuthServiceDep,
) -> OAuthInitiateResponse:
    """Generate the authorization URL and state for an integration.

    Raises:
        UnauthenticatedError: Without a session (401)
        ConfigError: Without a client id (400)
    """
    if user is None:
        raise UnauthenticatedError("Unauthorized")

    result = oauth_service.initiate(data.client_id, data.integration_id)

    logger.info(
        "oauth_initiate_requested",
        user_id=user.id,
        integration_id=data.integration_id,
    )

    return OAuthInitiateResponse(auth_url=result["authUrl"], state=result["state"])


@router.get(
    "/callback",
    summary="OAuth callback",
    description="Exchange the authorization code for tokens and store them on the integration.",
    response_class=HTMLResponse,
)
async def oauth_callback(
    user: OptionalUser,
    oauth_service: OAuthServiceDep,
    code: str | None = Query(default=None, description="Authorization code from provider"),
    state: str | None = Query(default=None, description="State carrying the integration id"),
    error: str | None = Query(default=None, description="Error from provider"),
    error_description: str | None = Query(default=None, description="Error description"),
) -> HTMLResponse:
    """Handle the provider redirect after authorization."""
    if error:
        logger.warning(
            "oauth_callback_error_from_provider",
            error=error,
            error_description=error_description,
        )
        return render_page(
            "OAuth Error",
            [error_description or error],
            status.HTTP_400_BAD_REQUEST,
        )

    if not (code and state):
        return render_page(
            "OAuth Error",
            ["Missing required parameters: code or state"],
            status.HTTP_400_BAD_REQUEST,
        )

    if user is None:
        return render_page("OAuth Error", ["Unauthorized"], status.HTTP_401_UNAUTHORIZED)

    try:
        integration_id = decode_state(state)
        await oauth_service.exchange(code, integration_id, user.id)
    except ChangewatchError as e:
        logger.warning(
            "oauth_callback_failed",
            user_id=user.id,
            error_code=e.code,
        )
        return render_page("OAuth Error", [e.message], e.status_code)

    logger.info("oauth_callback_success", user_id=user.id, integration_id=integration_id)

    return render_page(
        "Successfully Connected",
        [
            "Your Figma account has been successfully connected.",
            "You can now close this window and return to your workflow builder.",
        ],
        status.HTTP_200_OK,
        success=True,
    )


@router.post(
    "/refresh",
    summary="Refresh access token",
    description="Exchange the stored refresh token for a new access token.",
)
async def refresh_token(
    data: OAuthRefreshRequest,
    user: OptionalUser,
    oauth_service: OAuthServiceDep,
) -> dict[str, bool]:
    """Refresh an integration's tokens.

    Errors are rendered by the application's error handler as
    ``{"error": ..., "details": ...}`` with the matching status.
    """
    if user is None:
        raise UnauthenticatedError("Unauthorized")

    await oauth_service.refresh(data.integration_id, user.id)
    return {"success": True}
