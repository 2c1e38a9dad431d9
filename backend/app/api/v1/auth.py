"""Email code sign-in endpoints.

Endpoints:
- POST /auth/send-code: issue and email a one-time code
- POST /auth/verify-code: verify a code, issue the session cookie
- POST /auth/logout: delete the session, clear the cookie
- GET /auth/session: current session info
- POST /auth/signup: create a member account and send a code

Caller-facing messages are deliberately coarse. The precise outcome is in
the service logs.
"""

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.exc import IntegrityError

from app.api.deps import CurrentUser, DbSession, Issuer, Sessions, Verifier
from app.core.auth import clear_auth_cookie, set_auth_cookie
from app.core.config import settings
from app.core.errors import ConflictError
from app.core.rate_limiting import limiter
from app.core.responses import OkResponse
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.services.otp_errors import AlreadyConsumedError, RateLimitedError

router = APIRouter()

_EMAIL_EXISTS_MSG = "An account with this email already exists. Please sign in instead."


# ===================================================================
# Request / response models
# ===================================================================


class SendCodeRequest(BaseModel):
    """Request body for POST /auth/send-code."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class VerifyCodeRequest(BaseModel):
    """Request body for POST /auth/verify-code."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    code: str = Field(min_length=1, max_length=32)


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str | None = Field(None, max_length=50)


class UserSummary(BaseModel):
    """Public view of the signed-in account."""

    id: str
    email: str
    name: str | None
    role: str

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        """Build from a User row."""
        return cls.model_validate(user.to_dict())


class VerifyCodeResponse(OkResponse):
    """Response body for POST /auth/verify-code."""

    user: UserSummary | None = None
    already_consumed: bool = False


class SessionResponse(BaseModel):
    """Response body for GET /auth/session."""

    authenticated: bool = True
    user: UserSummary


# ===================================================================
# POST /auth/send-code
# ===================================================================


@router.post("/send-code")
@limiter.limit(lambda: settings.rate_limit_send_code)
async def send_code(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SendCodeRequest,
    db: DbSession,
    issuer: Issuer,
) -> OkResponse:
    """Issue a sign-in code and email it.

    Any address may request a code; the account is created on first
    successful verification. Admin addresses are accepted without sending
    a code unless code sign-in is enabled for admins. A request over the
    per-email limit gets the same 200 and sends nothing, so the response
    never says anything about the address.

    Errors: 400 malformed email, 429 per-client limit,
    502 delivery failure (the code stays valid; resending is safe).
    """
    try:
        await issuer.issue(db, body.email)
    except RateLimitedError:
        pass  # logged by the issuer as otp.issue_rejected
    return OkResponse()


# ===================================================================
# POST /auth/verify-code
# ===================================================================


@router.post("/verify-code")
@limiter.limit(lambda: settings.rate_limit_verify_code)
async def verify_code(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: VerifyCodeRequest,
    response: Response,
    db: DbSession,
    verifier: Verifier,
) -> VerifyCodeResponse:
    """Verify a code and sign the user in.

    A repeat submission of an already-used code is reported as a benign
    success without a new session cookie.

    Errors: 400 INVALID_CODE, 400 CODE_EXPIRED (expired or no active code),
    429 TOO_MANY_ATTEMPTS.
    """
    try:
        result = await verifier.verify(db, body.email, body.code)
    except AlreadyConsumedError:
        return VerifyCodeResponse(already_consumed=True)

    set_auth_cookie(response, result.session_token)
    return VerifyCodeResponse(user=UserSummary.from_user(result.user))


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    db: DbSession,
    sessions: Sessions,
) -> OkResponse:
    """Delete the server-side session and clear the cookie.

    No auth required. Idempotent: unknown, expired, or missing cookies
    still succeed.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    await sessions.invalidate(db, token)
    await db.commit()
    clear_auth_cookie(response)
    return OkResponse()


# ===================================================================
# GET /auth/session
# ===================================================================


@router.get("/session")
async def get_session(user: CurrentUser) -> SessionResponse:
    """Return the signed-in account. 401 without a valid session."""
    return SessionResponse(user=UserSummary.from_user(user))


# ===================================================================
# POST /auth/signup
# ===================================================================


@router.post("/signup")
@limiter.limit(lambda: settings.rate_limit_send_code)
async def signup(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SignupRequest,
    db: DbSession,
    issuer: Issuer,
) -> OkResponse:
    """Create a member account with profile details, then send a code.

    Errors: 409 EMAIL_EXISTS when an account already uses the address,
    plus the send-code errors. The per-email limit is silent here too.
    """
    email = body.email.strip().lower()
    if await UserRepository.get_by_email(db, email) is not None:
        raise ConflictError(
            code="EMAIL_EXISTS",
            message=_EMAIL_EXISTS_MSG,
        )

    name = body.name.strip()
    phone = body.phone.strip() if body.phone else None
    try:
        await UserRepository.create(db, email=email, name=name, phone=phone or None)
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(
            code="EMAIL_EXISTS",
            message=_EMAIL_EXISTS_MSG,
        ) from exc
    await db.commit()
    try:
        await issuer.issue(db, email, name=name)
    except RateLimitedError:
        pass  # logged by the issuer as otp.issue_rejected
    return OkResponse()
