from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from bookies.api.v1.dependencies import get_db
from bookies.api.v1.dependencies_auth import get_current_user, require_role, require_self_or_admin
from bookies.db.models import RequestStatus, RequestType, User, UserRole
from bookies.schemas.auth import MessageResponse
from bookies.schemas.book import BookRead
from bookies.schemas.book_request import (
    ApprovalResponse,
    ApproveRequestBody,
    BookRequestCreate,
    BookRequestRead,
    RejectionResponse,
    RejectRequestBody,
    to_view,
)
from bookies.services import request_service
from bookies.services.request_service import Decision

import logging

logger = logging.getLogger("api.requests")


router = APIRouter(
    prefix="/requests",
    tags=["requests"],
)


def _resolver_email(current_user: User, hinted_email: Optional[str], book_request_id: int) -> str:
    """
    El admin que resuelve es siempre el usuario autenticado. Si el cuerpo trae
    otro adminEmail, se ignora y queda registrado en el log.
    """
    if hinted_email and hinted_email.lower() != current_user.email.lower():
        logger.warning(
            "admin_email_mismatch",
            extra={
                "operation": "request_resolve",
                "resource": "book_request",
                "book_request_id": book_request_id,
                "hinted_email": hinted_email,
                "authenticated_email": current_user.email,
            },
        )
    return current_user.email


# ---- Crear solicitud (USER o ADMIN) ----
@router.post(
    "",
    response_model=BookRequestRead,
    status_code=status.HTTP_201_CREATED,
)
def create_book_request(
    payload: BookRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    # Un USER solo puede pedir a su nombre
    require_self_or_admin(current_user, payload.user_email)

    book_request = request_service.create_request(
        db,
        book_id=payload.book_id,
        user_email=payload.user_email,
        request_type=payload.request_type,
        notes=payload.notes,
    )

    logger.info(
        "Book request created",
        extra={
            "operation": "request_create",
            "resource": "book_request",
            "book_request_id": book_request.id,
            "book_id": book_request.book_id,
            "request_type": book_request.request_type.value,
            "status_code": 201,
            "old_status": None,
            "new_status": book_request.status.value,
        },
    )

    return to_view(book_request)


# ---- Listar todas (solo ADMIN) ----
@router.get(
    "",
    response_model=List[BookRequestRead],
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)
def list_book_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    request_type: Optional[RequestType] = Query(None, alias="requestType"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    requests = request_service.list_requests(
        db,
        status=status_filter,
        request_type=request_type,
        skip=skip,
        limit=limit,
    )
    return [to_view(r) for r in requests]


# ---- Pendientes (solo ADMIN) ---- (importante: antes de /{request_id})
@router.get(
    "/pending",
    response_model=List[BookRequestRead],
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)
def list_pending_requests(db: Session = Depends(get_db)):
    requests = request_service.list_pending(db)
    logger.info(
        "Pending requests fetched",
        extra={"operation": "request_list_pending", "resource": "book_request", "count": len(requests)},
    )
    return [to_view(r) for r in requests]


# ---- Solicitudes de un usuario ----
@router.get("/user/{email}", response_model=List[BookRequestRead])
def list_user_requests(
    email: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_self_or_admin(current_user, email)
    return [to_view(r) for r in request_service.list_by_user(db, email)]


# ---- Detalle ----
@router.get("/{request_id}", response_model=BookRequestRead)
def get_book_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    book_request = request_service.get_request(db, request_id)

    if current_user.role != UserRole.ADMIN and book_request.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    return to_view(book_request)


# ---- Aprobar (solo ADMIN) ----
@router.post("/{request_id}/approve", response_model=ApprovalResponse)
def approve_book_request(
    request_id: int,
    payload: Optional[ApproveRequestBody] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    admin_email = _resolver_email(current_user, payload.admin_email if payload else None, request_id)

    book_request, book = request_service.resolve_request(
        db,
        request_id,
        Decision.APPROVE,
        admin_email=admin_email,
    )

    logger.info(
        "Book request approved",
        extra={
            "operation": "request_approve",
            "resource": "book_request",
            "book_request_id": book_request.id,
            "book_id": book.id,
            "request_type": book_request.request_type.value,
            "status_code": 200,
            "old_status": RequestStatus.PENDING.value,
            "new_status": book_request.status.value,
            "book_status": book.status.value,
        },
    )

    return ApprovalResponse(
        request=to_view(book_request),
        book=BookRead.model_validate(book),
    )


# ---- Rechazar (solo ADMIN) ----
@router.post("/{request_id}/reject", response_model=RejectionResponse)
def reject_book_request(
    request_id: int,
    payload: Optional[RejectRequestBody] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    admin_email = _resolver_email(current_user, payload.admin_email if payload else None, request_id)

    book_request, _ = request_service.resolve_request(
        db,
        request_id,
        Decision.REJECT,
        admin_email=admin_email,
        notes=payload.notes if payload else None,
    )

    logger.info(
        "Book request rejected",
        extra={
            "operation": "request_reject",
            "resource": "book_request",
            "book_request_id": book_request.id,
            "book_id": book_request.book_id,
            "request_type": book_request.request_type.value,
            "status_code": 200,
            "old_status": RequestStatus.PENDING.value,
            "new_status": book_request.status.value,
            "reason": book_request.notes,
        },
    )

    return RejectionResponse(request=to_view(book_request))


# ---- Borrar (solo ADMIN, cualquier estado) ----
@router.delete(
    "/{request_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)
def delete_book_request(
    request_id: int,
    db: Session = Depends(get_db),
):
    request_service.delete_request(db, request_id)

    logger.info(
        "Book request deleted",
        extra={
            "operation": "request_delete",
            "resource": "book_request",
            "book_request_id": request_id,
            "status_code": 200,
        },
    )

    return MessageResponse(message="Request deleted successfully")
