# bookies/api/v1/endpoints/admin.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func

from bookies.api.v1.dependencies import get_db
from bookies.api.v1.dependencies_auth import require_role
from bookies.core.logging import get_logger
from bookies.db.models import Book, BookStatus, RequestStatus, User, UserRole
from bookies.schemas.admin import AdminStats, RequestStatusCount
from bookies.services.request_service import request_counts_by_status

logger = get_logger("api.admin")

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
)


@router.get("/stats", response_model=AdminStats)
def get_admin_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    """
    Resumen para el panel de administración (solo ADMIN).
    """

    # === Usuarios ===
    total_users = db.query(func.count(User.id)).scalar() or 0
    total_admins = db.query(func.count(User.id)).filter(User.role == UserRole.ADMIN).scalar() or 0

    # === Libros ===
    total_books = db.query(func.count(Book.id)).scalar() or 0
    borrowed_books = (
        db.query(func.count(Book.id))
        .filter(Book.status == BookStatus.BORROWED)
        .scalar()
        or 0
    )

    # === Solicitudes ===
    counts = request_counts_by_status(db)

    stats = AdminStats(
        total_users=total_users,
        total_admins=total_admins,
        total_books=total_books,
        borrowed_books=borrowed_books,
        total_requests=sum(counts.values()),
        pending_requests=counts[RequestStatus.PENDING],
        requests_by_status=[
            RequestStatusCount(status=status.value, count=count)
            for status, count in counts.items()
        ],
        generated_at=datetime.now(timezone.utc),
    )

    # LOG: acción administrativa
    logger.info(
        "Admin fetched stats",
        extra={
            "operation": "admin_stats",
            "resource": "stats",
            "user_id": current_user.id,
        },
    )

    return stats
