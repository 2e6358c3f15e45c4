"""
FastAPI routes for signing in, signing out and inspecting the session.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse

from jukebox.api.cookies import clear_session_cookie, set_session_cookie
from jukebox.clients.providers import ExchangeError, ProviderError
from jukebox.dependencies import (
    AuthContext,
    SessionIdentity,
    get_auth_context,
    get_session_identity,
    require_user,
)
from jukebox.models import AuthRecord
from jukebox.schemas import AuthRecordSummary, LoginLink, RenewResponse, SessionResponse
from jukebox.services import AuthInvalidError
from jukebox.utils.http import local_path

router = APIRouter()
logger = logging.getLogger(__name__)


def _readable_expiry(record: AuthRecord) -> str:
    if not record.expiring or record.token_expiry is None:
        return "Never"
    return record.token_expiry.strftime("%a %b %d %Y %H:%M:%S %Z")


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/login")
async def start_login(
    context: Annotated[AuthContext, Depends(get_auth_context)],
    provider: str = Query(..., description="Slug of the provider to sign in with."),
    from_path: str = Query("/", alias="from", description="Path to return to afterwards."),
) -> RedirectResponse:
    """Redirect to the provider's consent screen with a signed return path as state."""
    selected = context.providers.find(provider)
    if selected is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Unknown auth provider.")

    state = context.codec.sign(local_path(from_path))
    return RedirectResponse(url=selected.build_login_url(state), status_code=HTTPStatus.FOUND)


@router.get("/auth/callback/{provider_slug}")
async def handle_oauth_callback(
    provider_slug: str,
    request: Request,
    context: Annotated[AuthContext, Depends(get_auth_context)],
    code: Optional[str] = Query(None, description="Authorization code from the provider."),
    state: Optional[str] = Query(None, description="Signed return path issued at login."),
    error: Optional[str] = Query(None, description="Error reported by the provider."),
) -> RedirectResponse:
    """Complete the OAuth exchange, sign the user in and return them where they came from."""
    provider = context.providers.find(provider_slug)
    if provider is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Unknown auth provider.")

    return_to = context.codec.verify(state)
    if return_to is None:
        raise HTTPException(status_code=HTTPStatus.FORBIDDEN, detail="State mismatch.")

    if error:
        raise HTTPException(
            status_code=HTTPStatus.FORBIDDEN,
            detail=f"Authorization was denied by the provider ({error}).",
        )
    if not code:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Missing authorization code."
        )

    try:
        token = await provider.exchange_code(code)
    except ExchangeError as exc:
        logger.error("Code exchange failed", extra={"provider": provider_slug, "error": str(exc)})
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Error during authentication.",
        ) from exc

    try:
        record = await context.auth_records.ensure_authenticated(provider, token)
    except ProviderError as exc:
        logger.error("Identity fetch failed", extra={"provider": provider_slug, "error": str(exc)})
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Error during authentication.",
        ) from exc

    current: Optional[SessionIdentity] = get_session_identity(request)
    if current is not None and current.auth_record.provider != provider.descriptor.slug:
        user = context.users.link_secondary(current.user, record)
    else:
        user = context.users.login_or_signup(record)

    response = RedirectResponse(url=local_path(return_to), status_code=HTTPStatus.FOUND)
    set_session_cookie(response, context.settings, context.codec.sign(str(user.id)))
    return response


@router.get("/auth/logout")
async def logout(
    context: Annotated[AuthContext, Depends(get_auth_context)],
    from_signed: Optional[str] = Query(None, alias="from", description="Signed return path."),
) -> RedirectResponse:
    """Clear the session cookie. The auth record itself is kept."""
    return_to = context.codec.verify(from_signed) or "/"
    response = RedirectResponse(url=local_path(return_to), status_code=HTTPStatus.FOUND)
    clear_session_cookie(response, context.settings)
    return response


@router.get("/auth/me", response_model=SessionResponse)
async def current_session(
    request: Request,
    identity: Annotated[SessionIdentity, Depends(require_user)],
    context: Annotated[AuthContext, Depends(get_auth_context)],
) -> SessionResponse:
    """Describe the signed-in user and the state of their provider credentials."""
    record = identity.auth_record
    linked_provider = None
    if identity.user.linked_auth_record_id is not None:
        linked = context.store.get_auth_record(identity.user.linked_auth_record_id)
        linked_provider = linked.provider if linked else None

    return SessionResponse(
        user_id=identity.user_id,
        name=identity.user.name,
        username=identity.user.username,
        avatar_url=identity.user.avatar_url,
        is_admin=identity.is_admin,
        last_seen_at=identity.user.last_seen_at,
        auth=AuthRecordSummary(
            provider=record.provider,
            provider_identity_id=record.provider_identity_id,
            is_valid=record.is_valid,
            last_authenticated_at=record.last_authenticated_at,
            token_expires=_readable_expiry(record),
            reauth_due_at=record.reauth_due_at(identity.provider.descriptor.reauth_interval),
        ),
        linked_provider=linked_provider,
        logout_link=request.state.logout_link,
        login_links=[LoginLink(**link) for link in request.state.login_links],
    )


@router.post("/auth/renew", response_model=RenewResponse)
async def renew_session(
    identity: Annotated[SessionIdentity, Depends(require_user)],
    context: Annotated[AuthContext, Depends(get_auth_context)],
) -> RenewResponse:
    """Refresh the user's token now and re-verify it with the provider."""
    provider = identity.provider
    try:
        record = await context.auth_records.renew_if_needed(provider, identity.auth_record)
        record = await context.auth_records.ensure_authenticated(provider, record.token(), record)
    except AuthInvalidError as exc:
        raise HTTPException(
            status_code=HTTPStatus.FORBIDDEN,
            detail="Credentials are no longer valid; please log in again.",
        ) from exc
    except ProviderError as exc:
        logger.error(
            "Manual renewal failed",
            extra={"auth_id": identity.auth_record.id, "error": str(exc)},
        )
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Could not renew credentials with the provider.",
        ) from exc

    return RenewResponse(
        status="renewed",
        provider=record.provider,
        last_authenticated_at=record.last_authenticated_at,
        token_expiry=record.token_expiry,
    )
