# ================================
# EXPENSES API (api/v1/expenses.py)
# ================================

from fastapi import APIRouter, Depends, HTTPException, Query, status, Path, UploadFile, File, Form
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any
from uuid import UUID
from datetime import date
import logging

from app.dependencies import get_db, get_current_active_user, get_pagination_params
from app.models.user import User
from app.schemas.business import (
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseResponse,
    ExpenseListResponse,
    EXPENSE_CATEGORY_PATTERN
)
from app.schemas.base import SuccessResponse
from app.services.expense_service import ExpenseService
from app.core.exceptions import AppException
from app.mappers.expense_mapper import map_expense_to_response

logger = logging.getLogger(__name__)

router = APIRouter()

def _form_fields(**fields) -> Dict[str, Any]:
    """Submitted form fields only"""
    return {name: value for name, value in fields.items() if value is not None}

def _validate_form(schema, data: Dict[str, Any]):
    """Form fields go through the same schema as JSON bodies"""
    try:
        return schema(**data)
    except PydanticValidationError as e:
        raise RequestValidationError(errors=e.errors())

def _expense_response(db: Session, expense_id: UUID) -> ExpenseResponse:
    expense = ExpenseService.get_expense(db, expense_id)
    return ExpenseResponse(**map_expense_to_response(expense))

@router.get("/", response_model=ExpenseListResponse)
async def list_expenses(
    invoice_id: Optional[UUID] = Query(None),
    category: Optional[str] = Query(None, pattern=EXPENSE_CATEGORY_PATTERN),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    pagination: tuple = Depends(get_pagination_params),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """List expenses, newest expense date first"""
    try:
        page, page_size = pagination
        result = ExpenseService.list_expenses(
            db, page, page_size,
            invoice_id=invoice_id,
            category=category,
            date_from=date_from,
            date_to=date_to
        )
        return ExpenseListResponse(**result)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Failed to list expenses: {e}")
        raise HTTPException(status_code=500, detail="Failed to list expenses")

@router.post("/", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    vendor: str = Form(...),
    description: str = Form(...),
    amount: str = Form(...),
    expense_date: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    invoice_id: Optional[str] = Form(None),
    receipt: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Create an expense from form fields.

    An attached receipt (JPEG, PNG or PDF) is parsed; parsed line items are
    appended to the linked invoice.
    """
    expense_data = _validate_form(ExpenseCreate, _form_fields(
        vendor=vendor,
        description=description,
        amount=amount,
        expense_date=expense_date,
        category=category,
        invoice_id=invoice_id
    ))

    new_receipt = None
    try:
        expense = await ExpenseService.create_expense(db, expense_data, receipt)
        new_receipt = expense.receipt_path
        db.commit()
        new_receipt = None

        return _expense_response(db, expense.id)

    except AppException as e:
        db.rollback()
        ExpenseService.discard_receipt(new_receipt)
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        ExpenseService.discard_receipt(new_receipt)
        logger.error(f"Failed to create expense: {e}")
        raise HTTPException(status_code=500, detail="Failed to create expense")

@router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: UUID = Path(..., description="Expense ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return _expense_response(db, expense_id)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

@router.put("/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: UUID = Path(..., description="Expense ID"),
    vendor: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    amount: Optional[str] = Form(None),
    expense_date: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    invoice_id: Optional[str] = Form(None),
    clear_invoice: bool = Form(False, description="Unlink the expense from its invoice"),
    receipt: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Update submitted fields; a new receipt replaces the old file"""
    fields = _form_fields(
        vendor=vendor,
        description=description,
        amount=amount,
        expense_date=expense_date,
        category=category,
        invoice_id=invoice_id
    )
    if clear_invoice:
        fields["invoice_id"] = None
    expense_data = _validate_form(ExpenseUpdate, fields)

    new_receipt = None
    try:
        old_receipt = ExpenseService.get_expense(db, expense_id).receipt_path
        expense = await ExpenseService.update_expense(db, expense_id, expense_data, receipt)
        if receipt is not None:
            new_receipt = expense.receipt_path
        db.commit()
        new_receipt = None

        if receipt is not None:
            ExpenseService.discard_receipt(old_receipt)
        return _expense_response(db, expense_id)

    except AppException as e:
        db.rollback()
        ExpenseService.discard_receipt(new_receipt)
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        ExpenseService.discard_receipt(new_receipt)
        logger.error(f"Failed to update expense {expense_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update expense")

@router.delete("/{expense_id}/receipt", response_model=ExpenseResponse)
async def delete_expense_receipt(
    expense_id: UUID = Path(..., description="Expense ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        receipt_path = ExpenseService.get_expense(db, expense_id).receipt_path
        ExpenseService.delete_receipt(db, expense_id)
        db.commit()
        ExpenseService.discard_receipt(receipt_path)

        return _expense_response(db, expense_id)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete receipt of expense {expense_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete receipt")

@router.delete("/{expense_id}", response_model=SuccessResponse)
async def delete_expense(
    expense_id: UUID = Path(..., description="Expense ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        receipt_path = ExpenseService.delete_expense(db, expense_id)
        db.commit()
        ExpenseService.discard_receipt(receipt_path)

        return SuccessResponse(message="Expense deleted successfully")

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete expense {expense_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete expense")
