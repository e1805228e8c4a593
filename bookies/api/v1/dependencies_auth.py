from datetime import datetime, timezone

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from bookies.api.v1.dependencies import get_db
from bookies.core.security import decode_access_token
from bookies.db.models import User, UserRole
from bookies.core.logging import user_id_ctx


# Esta URL debe coincidir con tu endpoint de login
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def revoke_token(request: Request, payload: dict) -> None:
    """
    Marca el token como revocado (jti -> exp).

    Los jti ya expirados se descartan en cada llamada.
    """
    now = datetime.now(timezone.utc).timestamp()
    revoked = getattr(request.app.state, "revoked_tokens", {})

    revoked = {jti: exp for jti, exp in revoked.items() if exp > now}
    jti = payload.get("jti")
    if jti:
        revoked[jti] = payload["exp"]

    request.app.state.revoked_tokens = revoked


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Obtiene el usuario actual a partir del token JWT.
    Lanza 401 si no se puede validar.

    El rol sale siempre del usuario en la BD, no de lo que diga el cliente.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    # 1) Decodificar (firma y expiración)
    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    # 2) Revisar si el token ha sido revocado (logout)
    revoked_tokens = getattr(request.app.state, "revoked_tokens", {})
    if payload.get("jti") in revoked_tokens:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token revoked",
        )

    # 3) Obtener usuario de la BD
    user: User | None = db.query(User).filter(User.id == payload["user_id"]).first()
    if user is None:
        raise credentials_exception

    # Guardar user_id para LOGGING estructurado
    user_id_ctx.set(user.id)
    request.state.token_payload = payload

    return user


def require_role(required_role: UserRole):
    """
    Dependencia para exigir un rol.
    Admin siempre tiene acceso.
    """
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role != required_role and current_user.role != UserRole.ADMIN:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return dependency


def require_self_or_admin(current_user: User, email: str) -> None:
    # Un USER solo puede actuar sobre su propia cuenta
    if current_user.role == UserRole.ADMIN:
        return
    if current_user.email.lower() != email.lower():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
        )
