# ================================
# DATA EXPORT / IMPORT SERVICE (services/data_export_service.py)
# ================================

"""
Full data export to a zip archive (JSON or CSV) and transactional import.

Import order follows the foreign keys: customers, invoices with line items,
expenses, recurring templates. Existing rows are recognised by natural keys
and skipped:

    customer          email, or name when the customer has no email
    invoice           invoice number
    expense           vendor + amount + expense date + description
    recurring template customer + template name
"""

from sqlalchemy.orm import Session, selectinload, joinedload
from pathlib import Path
from datetime import datetime, date, timezone, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any, List, Callable
import csv
import json
import shutil
import tempfile
import zipfile
import logging

from app.config import settings
from app.models.business import (
    Customer, Invoice, InvoiceLineItem, Expense, RecurringTemplate,
    InvoiceStatus, ExpenseCategory, RecurringFrequency
)
from app.core.exceptions import AppException, NotFoundError
from app.utils.invoice_utils import apply_totals, calculate_line_total, money

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"
EXPORT_PREFIX = "invoice-export-"

ENTITY_TYPES = ("customers", "invoices", "expenses", "recurring_templates")
ENTITY_FILES = {
    "customers": "customers",
    "invoices": "invoices",
    "expenses": "expenses",
    "recurring_templates": "recurring-templates",
}

CUSTOMER_COLUMNS = ["id", "name", "email", "phone", "billing_address", "created_at", "updated_at"]
INVOICE_COLUMNS = [
    "id", "invoice_number", "customer_name", "customer_email", "invoice_date", "due_date",
    "payment_date", "status", "tax_rate", "subtotal", "tax_amount", "grand_total", "notes",
    "created_at", "updated_at"
]
LINE_ITEM_COLUMNS = ["invoice_id", "invoice_number", "description", "quantity", "unit_price", "line_total", "position"]
EXPENSE_COLUMNS = [
    "id", "vendor", "description", "amount", "expense_date", "category", "invoice_number",
    "customer_name", "has_receipt", "created_at", "updated_at"
]
TEMPLATE_COLUMNS = [
    "id", "customer_name", "customer_email", "template_name", "base_invoice_data", "tax_rate",
    "frequency", "start_date", "end_date", "occurrences", "next_run_date", "is_active",
    "completed_occurrences", "created_at", "updated_at"
]

# ================================
# Value helpers
# ================================

def _iso(value) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()

def _num(value) -> Optional[float]:
    return float(value) if value is not None else None

def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())

def _parse_date(value, field: str) -> Optional[date]:
    if _blank(value):
        return None
    if isinstance(value, date):
        return value
    try:
        # Accept full timestamps as well as plain dates
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValueError(f"Invalid date for {field}: {value}")

def _parse_decimal(value, field: str, default: Optional[Decimal] = None) -> Optional[Decimal]:
    if _blank(value):
        return default
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid number for {field}: {value}")
    if not parsed.is_finite():
        raise ValueError(f"Invalid number for {field}: {value}")
    return parsed

def _parse_int(value, field: str) -> Optional[int]:
    if _blank(value):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid integer for {field}: {value}")

def _parse_bool(value, default: bool = True) -> bool:
    if _blank(value):
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "y")

def _text(value) -> Optional[str]:
    if _blank(value):
        return None
    return str(value).strip()

def _file_info(path: Path) -> Dict[str, Any]:
    stat = path.stat()
    return {
        "filename": path.name,
        "size": stat.st_size,
        "created_at": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        "download_url": f"/api/v1/data/exports/{path.name}",
    }

class DataExportService:
    """Export of all business data and transactional re-import"""

    @staticmethod
    def export_dir() -> Path:
        path = Path(settings.EXPORT_DIR)
        path.mkdir(parents=True, exist_ok=True)
        return path

    # ================================
    # Collect
    # ================================

    @staticmethod
    def collect_data(db: Session) -> Dict[str, List[Dict[str, Any]]]:
        """Serializable snapshot of every business entity"""
        customers = db.query(Customer).order_by(Customer.name.asc()).all()

        invoices = db.query(Invoice).options(
            joinedload(Invoice.customer),
            joinedload(Invoice.property),
            selectinload(Invoice.line_items)
        ).order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc()).all()

        expenses = db.query(Expense).options(
            joinedload(Expense.invoice).joinedload(Invoice.customer)
        ).order_by(Expense.expense_date.desc()).all()

        templates = db.query(RecurringTemplate).options(
            joinedload(RecurringTemplate.customer)
        ).order_by(RecurringTemplate.template_name.asc()).all()

        return {
            "customers": [
                {
                    "id": str(c.id),
                    "name": c.name,
                    "email": c.email,
                    "phone": c.phone,
                    "billing_address": c.billing_address,
                    "created_at": _iso(c.created_at),
                    "updated_at": _iso(c.updated_at),
                }
                for c in customers
            ],
            "invoices": [
                {
                    "id": str(i.id),
                    "invoice_number": i.invoice_number,
                    "customer": {"name": i.customer.name, "email": i.customer.email},
                    "property_name": i.property.name if i.property else None,
                    "invoice_date": _iso(i.invoice_date),
                    "due_date": _iso(i.due_date),
                    "payment_date": _iso(i.payment_date),
                    "status": i.status,
                    "tax_rate": _num(i.tax_rate),
                    "subtotal": _num(i.subtotal),
                    "tax_amount": _num(i.tax_amount),
                    "grand_total": _num(i.grand_total),
                    "notes": i.notes,
                    "line_items": [
                        {
                            "description": item.description,
                            "quantity": _num(item.quantity),
                            "unit_price": _num(item.unit_price),
                            "line_total": _num(item.line_total),
                            "position": item.position,
                        }
                        for item in i.line_items
                    ],
                    "created_at": _iso(i.created_at),
                    "updated_at": _iso(i.updated_at),
                }
                for i in invoices
            ],
            "expenses": [
                {
                    "id": str(e.id),
                    "vendor": e.vendor,
                    "description": e.description,
                    "amount": _num(e.amount),
                    "expense_date": _iso(e.expense_date),
                    "category": e.category,
                    "invoice_number": e.invoice.invoice_number if e.invoice else None,
                    "customer_name": e.invoice.customer.name if e.invoice and e.invoice.customer else None,
                    # Receipt file paths never leave the server
                    "has_receipt": bool(e.receipt_path),
                    "created_at": _iso(e.created_at),
                    "updated_at": _iso(e.updated_at),
                }
                for e in expenses
            ],
            "recurring_templates": [
                {
                    "id": str(t.id),
                    "customer": {"name": t.customer.name, "email": t.customer.email},
                    "template_name": t.template_name,
                    "base_invoice_data": t.base_invoice_data,
                    "tax_rate": _num(t.tax_rate),
                    "frequency": t.frequency,
                    "start_date": _iso(t.start_date),
                    "end_date": _iso(t.end_date),
                    "occurrences": t.occurrences,
                    "next_run_date": _iso(t.next_run_date),
                    "is_active": t.is_active,
                    "completed_occurrences": t.completed_occurrences,
                    "created_at": _iso(t.created_at),
                    "updated_at": _iso(t.updated_at),
                }
                for t in templates
            ],
        }

    # ================================
    # Export
    # ================================

    @staticmethod
    def export_all(db: Session, export_format: str = "json") -> Dict[str, Any]:
        """
        Writes all business data to EXPORT_DIR/invoice-export-<ts>.zip

        Returns:
            Dict with the archive info, format and per-entity counts
        """
        if export_format not in ("json", "csv"):
            raise AppException(f"Unsupported export format: {export_format}", 400, "INVALID_FORMAT")

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        export_name = f"{EXPORT_PREFIX}{timestamp}"
        export_dir = DataExportService.export_dir()
        work_dir = export_dir / export_name

        try:
            work_dir.mkdir(parents=True)
            data = DataExportService.collect_data(db)

            if export_format == "json":
                DataExportService._write_json(work_dir, data, export_format)
            else:
                DataExportService._write_csv(work_dir, data)

            zip_path = export_dir / f"{export_name}.zip"
            with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                for file_path in sorted(work_dir.iterdir()):
                    archive.write(file_path, arcname=file_path.name)

        except Exception as e:
            logger.error(f"Data export failed: {e}")
            raise
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        counts = {entity: len(data[entity]) for entity in ENTITY_TYPES}
        logger.info(f"Data exported to {zip_path} ({export_format}): {counts}")

        return {"export": _file_info(zip_path), "format": export_format, "counts": counts}

    @staticmethod
    def _write_json(work_dir: Path, data: Dict[str, Any], export_format: str) -> None:
        payload = {
            "metadata": {
                "export_date": datetime.now(timezone.utc).isoformat(),
                "version": EXPORT_VERSION,
                "format": export_format,
            },
            **data,
        }
        (work_dir / "data.json").write_text(json.dumps(payload, indent=2), encoding="utf-8")
        for entity, file_stem in ENTITY_FILES.items():
            (work_dir / f"{file_stem}.json").write_text(json.dumps(data[entity], indent=2), encoding="utf-8")

    @staticmethod
    def _write_csv_file(path: Path, columns: List[str], rows: List[Dict[str, Any]]) -> None:
        with path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.DictWriter(handle, fieldnames=columns, extrasaction="ignore")
            writer.writeheader()
            for row in rows:
                writer.writerow({key: ("" if value is None else value) for key, value in row.items()})

    @staticmethod
    def _write_csv(work_dir: Path, data: Dict[str, Any]) -> None:
        DataExportService._write_csv_file(work_dir / "customers.csv", CUSTOMER_COLUMNS, data["customers"])

        invoices, line_items = [], []
        for invoice in data["invoices"]:
            invoices.append({
                **invoice,
                "customer_name": invoice["customer"]["name"],
                "customer_email": invoice["customer"]["email"],
            })
            for item in invoice["line_items"]:
                line_items.append({"invoice_id": invoice["id"], "invoice_number": invoice["invoice_number"], **item})

        DataExportService._write_csv_file(work_dir / "invoices.csv", INVOICE_COLUMNS, invoices)
        DataExportService._write_csv_file(work_dir / "line-items.csv", LINE_ITEM_COLUMNS, line_items)

        expenses = [
            {**expense, "has_receipt": "Yes" if expense["has_receipt"] else "No"}
            for expense in data["expenses"]
        ]
        DataExportService._write_csv_file(work_dir / "expenses.csv", EXPENSE_COLUMNS, expenses)

        templates = [
            {
                **template,
                "customer_name": template["customer"]["name"],
                "customer_email": template["customer"]["email"],
                "base_invoice_data": json.dumps(template["base_invoice_data"]),
            }
            for template in data["recurring_templates"]
        ]
        DataExportService._write_csv_file(work_dir / "recurring-templates.csv", TEMPLATE_COLUMNS, templates)

    # ================================
    # Export files
    # ================================

    @staticmethod
    def list_exports() -> List[Dict[str, Any]]:
        """Export archives, newest first"""
        files = [
            _file_info(path)
            for path in DataExportService.export_dir().glob("*.zip")
            if path.is_file()
        ]
        return sorted(files, key=lambda info: info["created_at"], reverse=True)

    @staticmethod
    def get_export_path(filename: str) -> Path:
        """Resolves a download name inside EXPORT_DIR; anything else is rejected"""
        if not filename or Path(filename).name != filename or not filename.endswith(".zip"):
            raise AppException("Invalid export filename", 400, "INVALID_FILENAME")

        path = DataExportService.export_dir() / filename
        if not path.is_file():
            raise NotFoundError("Export not found")
        return path

    @staticmethod
    def cleanup_old_exports(retention_days: Optional[int] = None) -> int:
        """Deletes export archives older than the retention window"""
        retention_days = retention_days if retention_days is not None else settings.EXPORT_RETENTION_DAYS
        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)

        deleted = 0
        for path in DataExportService.export_dir().glob("*.zip"):
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            if modified < cutoff:
                path.unlink()
                deleted += 1

        logger.info(f"Cleaned up {deleted} old export file(s)")
        return deleted

    # ================================
    # Import
    # ================================

    @staticmethod
    def _run_import(db: Session, loader: Callable[[], Dict[str, Any]], source: str) -> Dict[str, Dict[str, int]]:
        """All-or-nothing: any failure rolls back the whole import and re-raises"""
        try:
            payload = loader()
            results = DataExportService._import_payload(db, payload)
            db.flush()
        except AppException:
            db.rollback()
            logger.error(f"Import from {source} failed, rolled back")
            raise
        except (ValueError, ArithmeticError, KeyError, TypeError, json.JSONDecodeError, csv.Error) as e:
            db.rollback()
            logger.error(f"Import from {source} failed, rolled back: {e}")
            raise AppException(f"Import failed: {e}", 400, "IMPORT_FAILED")
        except Exception as e:
            db.rollback()
            logger.error(f"Import from {source} failed, rolled back: {e}")
            raise

        logger.info(f"Import from {source} completed: {results}")
        return results

    @staticmethod
    def import_json(db: Session, path: Path) -> Dict[str, Dict[str, int]]:
        def load():
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise ValueError("Import file must contain a JSON object")
            return payload

        return DataExportService._run_import(db, load, str(path))

    @staticmethod
    def import_csv(db: Session, directory: Path) -> Dict[str, Dict[str, int]]:
        return DataExportService._run_import(
            db, lambda: DataExportService._load_csv_directory(Path(directory)), str(directory)
        )

    @staticmethod
    def import_archive(db: Session, zip_path: Path) -> Dict[str, Dict[str, int]]:
        """Imports an export archive; data.json wins over CSV files"""
        try:
            archive = zipfile.ZipFile(zip_path)
        except zipfile.BadZipFile:
            raise AppException("Uploaded file is not a valid zip archive", 400, "INVALID_ARCHIVE")

        with archive, tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp).resolve()
            for member in archive.namelist():
                if target not in (target / member).resolve().parents:
                    raise AppException("Archive contains unsafe paths", 400, "INVALID_ARCHIVE")
            archive.extractall(target)

            json_files = sorted(target.rglob("data.json"))
            if json_files:
                return DataExportService.import_json(db, json_files[0])

            csv_files = sorted(target.rglob("customers.csv")) or sorted(target.rglob("invoices.csv"))
            if csv_files:
                return DataExportService.import_csv(db, csv_files[0].parent)

        raise AppException("Archive contains no data.json or CSV export", 400, "INVALID_ARCHIVE")

    @staticmethod
    def _read_csv(path: Path) -> List[Dict[str, str]]:
        if not path.is_file():
            return []
        with path.open(newline="", encoding="utf-8") as handle:
            return list(csv.DictReader(handle))

    @staticmethod
    def _load_csv_directory(directory: Path) -> Dict[str, Any]:
        """Rebuilds the JSON payload shape from the flattened CSV files"""
        line_items: Dict[str, List[Dict[str, Any]]] = {}
        for row in DataExportService._read_csv(directory / "line-items.csv"):
            line_items.setdefault(row.get("invoice_number"), []).append(row)

        invoices = []
        for row in DataExportService._read_csv(directory / "invoices.csv"):
            invoices.append({
                **row,
                "customer": {"name": row.get("customer_name"), "email": row.get("customer_email")},
                "line_items": line_items.get(row.get("invoice_number"), []),
            })

        templates = []
        for row in DataExportService._read_csv(directory / "recurring-templates.csv"):
            base_data = row.get("base_invoice_data")
            templates.append({
                **row,
                "customer": {"name": row.get("customer_name"), "email": row.get("customer_email")},
                "base_invoice_data": json.loads(base_data) if not _blank(base_data) else None,
            })

        return {
            "customers": DataExportService._read_csv(directory / "customers.csv"),
            "invoices": invoices,
            "expenses": DataExportService._read_csv(directory / "expenses.csv"),
            "recurring_templates": templates,
        }

    @staticmethod
    def _find_customer(db: Session, ref: Optional[Dict[str, Any]]) -> Optional[Customer]:
        if not ref:
            return None
        email = _text(ref.get("email"))
        if email:
            customer = db.query(Customer).filter(Customer.email == email.lower()).first()
            if customer:
                return customer
        name = _text(ref.get("name"))
        if name:
            return db.query(Customer).filter(Customer.name == name).first()
        return None

    @staticmethod
    def _import_payload(db: Session, payload: Dict[str, Any]) -> Dict[str, Dict[str, int]]:
        results = {entity: {"created": 0, "skipped": 0} for entity in ENTITY_TYPES}

        for row in payload.get("customers") or []:
            DataExportService._import_customer(db, row, results["customers"])
        for row in payload.get("invoices") or []:
            DataExportService._import_invoice(db, row, results["invoices"])
        for row in payload.get("expenses") or []:
            DataExportService._import_expense(db, row, results["expenses"])
        for row in payload.get("recurring_templates") or []:
            DataExportService._import_template(db, row, results["recurring_templates"])

        return results

    @staticmethod
    def _import_customer(db: Session, row: Dict[str, Any], result: Dict[str, int]) -> None:
        name = _text(row.get("name"))
        if not name:
            raise ValueError("Customer without name")
        email = _text(row.get("email"))
        email = email.lower() if email else None

        if email:
            existing = db.query(Customer).filter(Customer.email == email).first()
        else:
            existing = db.query(Customer).filter(Customer.name == name, Customer.email.is_(None)).first()

        if existing:
            result["skipped"] += 1
            return

        db.add(Customer(
            name=name,
            email=email,
            phone=_text(row.get("phone")),
            billing_address=_text(row.get("billing_address"))
        ))
        db.flush()
        result["created"] += 1

    @staticmethod
    def _import_invoice(db: Session, row: Dict[str, Any], result: Dict[str, int]) -> None:
        number = _text(row.get("invoice_number"))
        if not number:
            raise ValueError("Invoice without invoice number")

        if db.query(Invoice).filter(Invoice.invoice_number == number).first():
            result["skipped"] += 1
            return

        customer = DataExportService._find_customer(db, row.get("customer"))
        if not customer:
            logger.warning(f"Customer not found for invoice {number}, skipping")
            result["skipped"] += 1
            return

        status = _text(row.get("status")) or InvoiceStatus.UNPAID.value
        if status not in {s.value for s in InvoiceStatus}:
            raise ValueError(f"Invalid status for invoice {number}: {status}")

        invoice_date = _parse_date(row.get("invoice_date"), "invoice_date")
        due_date = _parse_date(row.get("due_date"), "due_date")
        if not invoice_date or not due_date:
            raise ValueError(f"Invoice {number} is missing its dates")

        invoice = Invoice(
            invoice_number=number,
            customer_id=customer.id,
            invoice_date=invoice_date,
            due_date=due_date,
            payment_date=_parse_date(row.get("payment_date"), "payment_date"),
            tax_rate=_parse_decimal(row.get("tax_rate"), "tax_rate", Decimal("0")),
            status=status,
            notes=_text(row.get("notes")),
        )

        items = sorted(
            row.get("line_items") or [],
            key=lambda item: _parse_int(item.get("position"), "position") or 0
        )
        for position, item in enumerate(items):
            quantity = _parse_decimal(item.get("quantity"), "quantity", Decimal("1"))
            unit_price = _parse_decimal(item.get("unit_price"), "unit_price", Decimal("0"))
            invoice.line_items.append(InvoiceLineItem(
                description=_text(item.get("description")) or "Imported item",
                quantity=quantity,
                unit_price=unit_price,
                line_total=calculate_line_total(quantity, unit_price),
                position=position
            ))

        # Totals are rebuilt from the line items, never trusted from the file
        apply_totals(invoice)
        db.add(invoice)
        db.flush()
        result["created"] += 1

    @staticmethod
    def _import_expense(db: Session, row: Dict[str, Any], result: Dict[str, int]) -> None:
        vendor = _text(row.get("vendor"))
        description = _text(row.get("description"))
        amount = _parse_decimal(row.get("amount"), "amount")
        expense_date = _parse_date(row.get("expense_date"), "expense_date")
        if not vendor or not description or amount is None or not expense_date:
            raise ValueError("Expense is missing vendor, description, amount or date")
        amount = money(amount)

        existing = db.query(Expense).filter(
            Expense.vendor == vendor,
            Expense.amount == amount,
            Expense.expense_date == expense_date,
            Expense.description == description
        ).first()
        if existing:
            result["skipped"] += 1
            return

        invoice_id = None
        invoice_number = _text(row.get("invoice_number"))
        if invoice_number:
            invoice = db.query(Invoice).filter(Invoice.invoice_number == invoice_number).first()
            invoice_id = invoice.id if invoice else None

        category = _text(row.get("category")) or ExpenseCategory.OTHER.value
        if category not in {c.value for c in ExpenseCategory}:
            category = ExpenseCategory.OTHER.value

        db.add(Expense(
            vendor=vendor,
            description=description,
            amount=amount,
            expense_date=expense_date,
            category=category,
            invoice_id=invoice_id
        ))
        db.flush()
        result["created"] += 1

    @staticmethod
    def _import_template(db: Session, row: Dict[str, Any], result: Dict[str, int]) -> None:
        name = _text(row.get("template_name"))
        if not name:
            raise ValueError("Recurring template without name")

        customer = DataExportService._find_customer(db, row.get("customer"))
        if not customer:
            logger.warning(f"Customer not found for template {name}, skipping")
            result["skipped"] += 1
            return

        existing = db.query(RecurringTemplate).filter(
            RecurringTemplate.customer_id == customer.id,
            RecurringTemplate.template_name == name
        ).first()
        if existing:
            result["skipped"] += 1
            return

        frequency = _text(row.get("frequency"))
        if frequency not in {f.value for f in RecurringFrequency}:
            raise ValueError(f"Invalid frequency for template {name}: {frequency}")

        start_date = _parse_date(row.get("start_date"), "start_date")
        if not start_date:
            raise ValueError(f"Template {name} has no start date")

        base_data = row.get("base_invoice_data") or {}
        if not isinstance(base_data, dict):
            raise ValueError(f"Invalid base invoice data for template {name}")

        db.add(RecurringTemplate(
            customer_id=customer.id,
            template_name=name,
            base_invoice_data=base_data,
            tax_rate=_parse_decimal(row.get("tax_rate"), "tax_rate", Decimal("0")),
            frequency=frequency,
            start_date=start_date,
            end_date=_parse_date(row.get("end_date"), "end_date"),
            occurrences=_parse_int(row.get("occurrences"), "occurrences"),
            next_run_date=_parse_date(row.get("next_run_date"), "next_run_date"),
            is_active=_parse_bool(row.get("is_active")),
            completed_occurrences=_parse_int(row.get("completed_occurrences"), "completed_occurrences") or 0
        ))
        db.flush()
        result["created"] += 1
