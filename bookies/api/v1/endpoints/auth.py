from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from bookies.api.v1.dependencies_auth import get_current_user, revoke_token
from bookies.api.v1.dependencies import get_db

from bookies.core.security import create_access_token
from bookies.db.models import User
from bookies.schemas.auth import MessageResponse, Token
from bookies.schemas.user import PasswordChange, UserCreate, UserRead
from bookies.services import user_service

import logging
logger = logging.getLogger("api.auth")

router = APIRouter(
    prefix="/api/v1/auth",
    tags=["auth"],
)


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
):
    user = user_service.register_user(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
    )

    logger.info(
        "user_registered",
        extra={
            "operation": "auth_register",
            "resource": "user",
            "email": user.email,
            "status_code": 201,
        },
    )
    return user


@router.post("/login", response_model=Token)
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    # username se usa como email
    email = form_data.username
    user = user_service.authenticate(db, email, form_data.password)

    client_ip = request.client.host if request.client else None

    if user is None:
        logger.warning(
            "login_failed",
            extra={
                "operation": "auth_login",
                "resource": "user",
                "email": email,
                "status_code": 401,
                "ip": client_ip,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    access_token = create_access_token(user_id=user.id, role=user.role.value)

    logger.info(
        "login_success",
        extra={
            "operation": "auth_login",
            "resource": "user",
            "email": user.email,
            "status_code": 200,
            "ip": client_ip,
        },
    )

    return Token(access_token=access_token, email=user.email, role=user.role)


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/change-password", response_model=MessageResponse)
def change_password(
    payload: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user_service.change_password(
        db,
        current_user,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )

    logger.info(
        "password_changed",
        extra={
            "operation": "auth_change_password",
            "resource": "user",
            "email": current_user.email,
            "status_code": 200,
        },
    )
    return MessageResponse(message="Password updated successfully")


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
):
    """
    Logout: revoca el token actual del usuario.
    """
    # get_current_user ya dejó el payload validado en request.state
    revoke_token(request, request.state.token_payload)

    logger.info(
        "Logout succeeded",
        extra={
            "operation": "auth_logout",
            "resource": "user",
            "email": current_user.email,
            "user_id": current_user.id,
            "status_code": 204,
            "ip": request.client.host if request.client else None,
        },
    )

    # 204 No Content (no devuelve body)
    return
