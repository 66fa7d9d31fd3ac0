# ================================
# EXPENSE SERVICE (services/expense_service.py)
# ================================

from sqlalchemy.orm import Session, joinedload
from fastapi import UploadFile
from typing import Optional, Dict, Any
from uuid import UUID
from datetime import date
import logging

from app.models.business import Expense, Invoice, InvoiceLineItem
from app.schemas.business import ExpenseCreate, ExpenseUpdate
from app.core.exceptions import AppException, NotFoundError
from app.services.storage_service import get_storage_service
from app.services.receipt_parser_service import get_receipt_parser
from app.utils.invoice_utils import apply_totals, calculate_line_total, to_decimal
from app.mappers.expense_mapper import map_expense_to_response
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

class ExpenseService:
    """Expenses with optional receipt upload and AI parsing"""

    @staticmethod
    def get_expense(db: Session, expense_id: UUID) -> Expense:
        expense = db.query(Expense).options(
            joinedload(Expense.invoice)
        ).filter(Expense.id == expense_id).first()
        if not expense:
            raise NotFoundError("Expense not found")
        return expense

    @staticmethod
    def list_expenses(
        db: Session,
        page: int = 1,
        page_size: int = 20,
        invoice_id: Optional[UUID] = None,
        category: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> Dict[str, Any]:
        """Newest expenses first"""
        query = db.query(Expense).options(joinedload(Expense.invoice))

        if invoice_id:
            query = query.filter(Expense.invoice_id == invoice_id)
        if category:
            query = query.filter(Expense.category == category)
        if date_from:
            query = query.filter(Expense.expense_date >= date_from)
        if date_to:
            query = query.filter(Expense.expense_date <= date_to)

        query = query.order_by(Expense.expense_date.desc(), Expense.created_at.desc())
        return paginate(query, page, page_size, map_expense_to_response)

    @staticmethod
    def _get_invoice(db: Session, invoice_id: Optional[UUID]) -> Optional[Invoice]:
        if not invoice_id:
            return None
        invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    @staticmethod
    async def _store_and_parse(receipt: UploadFile) -> Dict[str, Any]:
        """Stores the receipt; parsing failures are logged and leave parsed_data empty"""
        stored = await get_storage_service().save_receipt(receipt)

        parsed_data = None
        try:
            parsed_data = await get_receipt_parser().parse_receipt(stored["content"], stored["mime_type"])
        except AppException as e:
            logger.warning(f"Receipt parsing failed, saving expense without parsed data: {e.detail}")

        return {"receipt_path": stored["file_path"], "parsed_data": parsed_data}

    @staticmethod
    def _append_parsed_items(invoice: Invoice, parsed_data: Optional[Dict[str, Any]]) -> int:
        """Adds parsed receipt lines to the invoice and recomputes its totals"""
        if not invoice or not parsed_data or not parsed_data.get("lineItems"):
            return 0

        position = max((item.position for item in invoice.line_items), default=-1) + 1
        added = 0
        for item in parsed_data["lineItems"]:
            quantity = to_decimal(item.get("quantity") or 1)
            unit_price = to_decimal(item.get("unitPrice") or 0)
            if quantity <= 0 or unit_price < 0:
                continue
            invoice.line_items.append(InvoiceLineItem(
                description=str(item.get("description") or "Unknown item")[:500],
                quantity=quantity,
                unit_price=unit_price,
                line_total=calculate_line_total(quantity, unit_price),
                position=position
            ))
            position += 1
            added += 1

        apply_totals(invoice)
        logger.info(f"Appended {added} parsed receipt line(s) to invoice {invoice.invoice_number}")
        return added

    @staticmethod
    def discard_receipt(receipt_path: Optional[str]) -> None:
        """Removes a receipt file whose database change was rolled back or replaced"""
        if receipt_path:
            get_storage_service().delete_file(receipt_path)

    @staticmethod
    async def create_expense(
        db: Session,
        expense_data: ExpenseCreate,
        receipt: Optional[UploadFile] = None
    ) -> Expense:
        invoice = ExpenseService._get_invoice(db, expense_data.invoice_id)

        expense = Expense(**expense_data.model_dump())

        if receipt is not None:
            receipt_info = await ExpenseService._store_and_parse(receipt)
            expense.receipt_path = receipt_info["receipt_path"]
            expense.parsed_data = receipt_info["parsed_data"]

        try:
            ExpenseService._append_parsed_items(invoice, expense.parsed_data)
            db.add(expense)
            db.flush()
        except Exception:
            ExpenseService.discard_receipt(expense.receipt_path)
            raise

        logger.info(f"Expense created: {expense.vendor} {expense.amount} ({expense.id})")
        return expense

    @staticmethod
    async def update_expense(
        db: Session,
        expense_id: UUID,
        expense_data: ExpenseUpdate,
        receipt: Optional[UploadFile] = None
    ) -> Expense:
        """
        Partial update. A new receipt replaces the stored path; the previous file
        stays on disk until the caller has committed and calls discard_receipt.
        """
        expense = ExpenseService.get_expense(db, expense_id)
        update_data = expense_data.model_dump(exclude_unset=True)

        for required in ("vendor", "description", "amount", "expense_date", "category"):
            if required in update_data and update_data[required] is None:
                raise AppException(f"Field '{required}' cannot be empty", 400, "INVALID_FIELD")

        if "invoice_id" in update_data:
            ExpenseService._get_invoice(db, update_data["invoice_id"])

        for field, value in update_data.items():
            setattr(expense, field, value)

        new_path = None
        if receipt is not None:
            receipt_info = await ExpenseService._store_and_parse(receipt)
            new_path = receipt_info["receipt_path"]
            expense.receipt_path = new_path
            expense.parsed_data = receipt_info["parsed_data"]

        try:
            db.flush()
        except Exception:
            ExpenseService.discard_receipt(new_path)
            raise

        logger.info(f"Expense updated: {expense.id}")
        return expense

    @staticmethod
    def delete_receipt(db: Session, expense_id: UUID) -> Expense:
        """Clears the receipt columns; the caller removes the file after commit"""
        expense = ExpenseService.get_expense(db, expense_id)
        if not expense.receipt_path:
            raise AppException("Expense has no receipt", 400, "NO_RECEIPT")

        expense.receipt_path = None
        expense.parsed_data = None
        db.flush()
        return expense

    @staticmethod
    def delete_expense(db: Session, expense_id: UUID) -> Optional[str]:
        """Returns the receipt path so the caller can remove the file after commit"""
        expense = ExpenseService.get_expense(db, expense_id)
        receipt_path = expense.receipt_path

        db.delete(expense)
        db.flush()

        logger.info(f"Expense deleted: {expense_id}")
        return receipt_path
