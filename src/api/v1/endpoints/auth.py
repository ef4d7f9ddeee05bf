from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import bearer_scheme, get_current_user
from src.database import get_db
from src.models.user import User
from src.schemas.auth import SessionResponse, SignInRequest, UserRead
from src.services import auth as auth_service
from src.services.audit import client_ip

router = APIRouter(tags=["auth"])


@router.post("/auth/sign-in", response_model=SessionResponse)
async def sign_in_endpoint(
    payload: SignInRequest,
    request: Request,
    session: AsyncSession = Depends(get_db),
) -> SessionResponse:
    user_session, user = await auth_service.sign_in(
        session,
        email=payload.email,
        password=payload.password,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return SessionResponse(
        token=user_session.token,
        expires_at=user_session.expires_at,
        user=UserRead.model_validate(user),
    )


@router.post("/auth/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out_endpoint(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db),
) -> Response:
    if credentials is not None:
        await auth_service.sign_out(session, token=credentials.credentials)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserRead)
async def me_endpoint(user: User = Depends(get_current_user)) -> UserRead:
    return UserRead.model_validate(user)
