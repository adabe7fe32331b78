from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.pagination import paginate_rows
from ..db.session import get_db
from ..deps.auth import ALL_ROLES, require_roles
from ..schemas.report import (
    ActivityEntry,
    DashboardSummary,
    InventoryReport,
    RowPage,
    SummaryReport,
    TopItem,
)
from ..services.reporting import (
    checkout_rows,
    dashboard_summary,
    delivery_rows,
    inventory_rows,
    recent_activity,
    return_rows,
    summarize_stock,
    top_checked_out,
)

router = APIRouter(prefix="/api/v1/reports", tags=["reports"], dependencies=[Depends(require_roles(*ALL_ROLES))])
dashboard_router = APIRouter(
    prefix="/api/v1/dashboard", tags=["dashboard"], dependencies=[Depends(require_roles(*ALL_ROLES))]
)


@router.get("/summary", response_model=SummaryReport)
def api_summary(
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    page: int = 1,
    limit: Optional[int] = None,
    all: bool = False,
    db: Session = Depends(get_db),
):
    return summarize_stock(db, date_from, date_to, page=page, limit=limit, all_rows=all)


@router.get("/deliveries", response_model=RowPage)
def api_delivery_report(
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    page: int = 1,
    limit: Optional[int] = None,
    all: bool = False,
    db: Session = Depends(get_db),
):
    return paginate_rows(delivery_rows(db, date_from, date_to), page=page, limit=limit, all_rows=all)


@router.get("/checkouts", response_model=RowPage)
def api_checkout_report(
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    page: int = 1,
    limit: Optional[int] = None,
    all: bool = False,
    db: Session = Depends(get_db),
):
    return paginate_rows(checkout_rows(db, date_from, date_to), page=page, limit=limit, all_rows=all)


@router.get("/returns", response_model=RowPage)
def api_return_report(
    date_from: Optional[date] = Query(default=None, alias="from"),
    date_to: Optional[date] = Query(default=None, alias="to"),
    page: int = 1,
    limit: Optional[int] = None,
    all: bool = False,
    db: Session = Depends(get_db),
):
    return paginate_rows(return_rows(db, date_from, date_to), page=page, limit=limit, all_rows=all)


@router.get("/inventory", response_model=InventoryReport)
def api_inventory_report(page: int = 1, limit: Optional[int] = None, all: bool = False, db: Session = Depends(get_db)):
    return paginate_rows(inventory_rows(db), page=page, limit=limit, all_rows=all)


@dashboard_router.get("/summary", response_model=DashboardSummary)
def api_dashboard_summary(db: Session = Depends(get_db)):
    return dashboard_summary(db)


@dashboard_router.get("/top-checkedout", response_model=list[TopItem])
def api_top_checked_out(db: Session = Depends(get_db)):
    return top_checked_out(db)


@dashboard_router.get("/recent", response_model=list[ActivityEntry])
def api_recent_activity(db: Session = Depends(get_db)):
    return recent_activity(db)
