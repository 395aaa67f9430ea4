from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from imobcrm.core.database import get_db
from imobcrm.core.deps import get_current_user, require_roles
from imobcrm.models.cliente import Cliente
from imobcrm.models.user import User, UserRole
from imobcrm.services.clientes import visible_clientes
from imobcrm.services.dashboard import build_dashboard, resolve_month_range, resolve_scope
from imobcrm.services.reports import clientes_csv, dashboard_pdf

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/clientes.csv")
def export_clientes_csv(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.manager, UserRole.marketing, UserRole.consultant)),
):
    rows = visible_clientes(db, current_user).order_by(Cliente.created_at.desc()).all()
    return Response(
        content=clientes_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=clientes.csv"},
    )


@router.get("/dashboard.pdf")
def export_dashboard_pdf(
    period: str = Query(default="month"),
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    user_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = build_dashboard(
        db,
        role=current_user.role,
        viewer_id=current_user.id,
        month_range=resolve_month_range(period, start, end, today=date.today()),
        user_id=resolve_scope(current_user, user_id),
    )
    return Response(
        content=dashboard_pdf(result, title_suffix=current_user.full_name),
        media_type="application/pdf",
        headers={"Content-Disposition": "attachment; filename=dashboard.pdf"},
    )
