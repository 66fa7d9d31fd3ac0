# ================================
# REPORTS API (api/v1/reports.py)
# ================================

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
import logging

from app.dependencies import get_db, get_current_active_user
from app.models.user import User
from app.schemas.reports import (
    SummaryReport,
    MonthlyReport,
    TopCustomersReport,
    InvoiceAgingReport,
    CustomerProfitabilityReport,
    ExpenseBreakdownReport
)
from app.services.report_service import ReportService
from app.core.exceptions import AppException

logger = logging.getLogger(__name__)

router = APIRouter()

def _check_period(date_from: Optional[date], date_to: Optional[date]) -> None:
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must not be after date_to")

@router.get("/summary", response_model=SummaryReport)
async def get_summary(
    date_from: Optional[date] = Query(None, description="Defaults to January 1 of the current year"),
    date_to: Optional[date] = Query(None, description="Defaults to December 31 of the current year"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Revenue, expenses and profit for a period"""
    _check_period(date_from, date_to)
    try:
        return ReportService.summary(db, date_from, date_to)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Summary report failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to build summary report")

@router.get("/monthly", response_model=MonthlyReport)
async def get_monthly(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Last 12 months of revenue and expenses"""
    try:
        return ReportService.monthly(db)

    except Exception as e:
        logger.error(f"Monthly report failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to build monthly report")

@router.get("/top-customers", response_model=TopCustomersReport)
async def get_top_customers(
    limit: int = Query(5, ge=1, le=50),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return ReportService.top_customers(db, limit)

    except Exception as e:
        logger.error(f"Top customers report failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to build top customers report")

@router.get("/aging", response_model=InvoiceAgingReport)
async def get_invoice_aging(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Open invoices grouped by days past due"""
    try:
        return ReportService.invoice_aging(db)

    except Exception as e:
        logger.error(f"Aging report failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to build aging report")

@router.get("/customer-profitability", response_model=CustomerProfitabilityReport)
async def get_customer_profitability(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return ReportService.customer_profitability(db)

    except Exception as e:
        logger.error(f"Profitability report failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to build profitability report")

@router.get("/expense-breakdown", response_model=ExpenseBreakdownReport)
async def get_expense_breakdown(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    _check_period(date_from, date_to)
    try:
        return ReportService.expense_breakdown(db, date_from, date_to)

    except Exception as e:
        logger.error(f"Expense breakdown failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to build expense breakdown")

@router.get("/export")
async def export_summary_csv(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Summary and monthly figures as a CSV download"""
    _check_period(date_from, date_to)
    try:
        content = ReportService.export_summary_csv(db, date_from, date_to)
        filename = f"report-{date.today().isoformat()}.csv"

        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    except Exception as e:
        logger.error(f"Report export failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to export report")
