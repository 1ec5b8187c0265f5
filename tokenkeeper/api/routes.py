"""
FastAPI routes for starting and completing OAuth authorization and managing
stored credentials.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from tokenkeeper.core.errors import (
    DecryptionFailedError,
    OAuthStateError,
    OAuthTokenExchangeError,
    OAuthTokenNotFoundError,
    TokenRefreshError,
)
from tokenkeeper.dependencies import (
    get_app_settings,
    get_authorization_service,
    get_token_refresh_service,
)
from tokenkeeper.schemas import CredentialStatus, OAuthCallbackPayload

router = APIRouter()
logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/activate", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    auth_service: Annotated[Any, Depends(get_authorization_service)],
    user_id: str = Query(..., description="User identifier initiating authentication."),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the consent screen.",
    ),
) -> Any:
    """
    Kick off the OAuth flow by generating a state token and authorization URL.
    """
    authorization = auth_service.begin(user_id)

    if redirect or _wants_html(request):
        return RedirectResponse(
            url=authorization.authorization_url,
            status_code=HTTPStatus.TEMPORARY_REDIRECT,
        )

    return {"authorization_url": authorization.authorization_url, "state": authorization.state}


@router.post("/auth/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback(
    payload: OAuthCallbackPayload,
    auth_service: Annotated[Any, Depends(get_authorization_service)],
) -> dict:
    """Complete the OAuth exchange and store tokens."""
    try:
        user_id, _ = await auth_service.handle_callback(state=payload.state, code=payload.code)
    except OAuthStateError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="OAuth state is invalid or has expired.",
        ) from exc
    except OAuthTokenExchangeError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Failed to exchange authorization code: {exc.description}",
        ) from exc

    return {"status": "connected", "user_id": user_id}


@router.get("/auth/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback_get(
    request: Request,
    auth_service: Annotated[Any, Depends(get_authorization_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
    state: Optional[str] = Query(default=None, description="OAuth state token."),
    code: Optional[str] = Query(default=None, description="Authorization code."),
    error: Optional[str] = Query(default=None, description="Error reported by the server."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    browser = redirect or _wants_html(request)
    try:
        if error:
            logger.warning("Authorization server reported an error: %s", error)
            raise HTTPException(
                status_code=HTTPStatus.BAD_REQUEST,
                detail=f"Authorization failed: {error}",
            )
        if not state or not code:
            raise HTTPException(
                status_code=HTTPStatus.BAD_REQUEST,
                detail="Missing code or state parameter.",
            )
        result = await handle_oauth_callback(
            payload=OAuthCallbackPayload(state=state, code=code),
            auth_service=auth_service,
        )
    except HTTPException:
        if browser and settings.failure_redirect_url:
            return RedirectResponse(
                url=str(settings.failure_redirect_url),
                status_code=HTTPStatus.TEMPORARY_REDIRECT,
            )
        raise

    if browser and settings.frontend_base_url:
        return RedirectResponse(
            url=str(settings.frontend_base_url),
            status_code=HTTPStatus.TEMPORARY_REDIRECT,
        )

    return JSONResponse(content=result)


@router.get(
    "/auth/credentials/{user_id}",
    response_model=CredentialStatus,
    status_code=HTTPStatus.OK,
)
async def get_credential_status(
    user_id: str,
    token_service: Annotated[Any, Depends(get_token_refresh_service)],
) -> CredentialStatus:
    """Ensure the user holds a valid credential and describe it without secrets."""
    try:
        credential = await token_service.get_valid_credential(user_id=user_id)
    except OAuthTokenNotFoundError as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Account not connected.",
        ) from exc
    except TokenRefreshError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail=f"Failed to refresh access token: {exc.description}",
        ) from exc
    except DecryptionFailedError as exc:
        logger.error("Stored credential for user %s could not be decrypted", user_id)
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Stored credential could not be decrypted.",
        ) from exc

    return CredentialStatus(
        user_id=user_id,
        token_type=credential.token_type,
        scope=credential.scope,
        expires_at=credential.expires_at,
    )


@router.delete("/auth/credentials/{user_id}", status_code=HTTPStatus.NO_CONTENT)
async def revoke_credential(
    user_id: str,
    token_service: Annotated[Any, Depends(get_token_refresh_service)],
) -> Response:
    """Forget the user's stored credential."""
    await token_service.revoke(user_id=user_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)
