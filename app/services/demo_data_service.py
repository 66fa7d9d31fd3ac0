# ================================
# DEMO DATA SERVICE (services/demo_data_service.py)
# ================================

from sqlalchemy.orm import Session
from datetime import date, timedelta
from dateutil.relativedelta import relativedelta
from decimal import Decimal
from typing import Optional, Dict, List
import random
import logging

from app.models.business import (
    Customer, Property, PropertyServiceHistory, Invoice, InvoiceLineItem,
    Expense, RecurringTemplate, InvoiceStatus, RecurringFrequency
)
from app.models.media import CustomerPhoto, CustomerNote, PropertyPhoto, PropertyNote, InvoicePhoto
from app.services.storage_service import get_storage_service
from app.utils.invoice_utils import apply_totals, calculate_line_total, format_invoice_number

logger = logging.getLogger(__name__)

DEMO_TAX_RATE = Decimal("8.25")
DEMO_INVOICE_COUNT = 45
DEMO_EXPENSE_COUNT = 85
DEMO_TEMPLATE_COUNT = 3

DEMO_CUSTOMERS = [
    ("Greenfield Property Management", "contact@greenfieldpm.com", "(555) 123-4567", "123 Business Park Dr\nAustin, TX 78701"),
    ("Johnson Family Trust", "trust@johnsonfamily.com", "(555) 234-5678", "456 Oak Street\nAustin, TX 78702"),
    ("Austin Rental Ventures LLC", "operations@austinrental.com", "(555) 345-6789", "789 Cedar Lane\nAustin, TX 78703"),
    ("Heritage Property Group", "maintenance@heritageprops.com", "(555) 456-7890", "321 Heritage Blvd\nAustin, TX 78704"),
    ("Modern Living Properties", "service@modernliving.com", "(555) 567-8901", "654 Innovation Way\nAustin, TX 78705"),
]

# name, address, zip, gate code, key location, access notes, latitude, longitude
DEMO_PROPERTIES = [
    ("Riverside Cottage", "1234 Riverside Dr", "78701", None, "Under front door mat",
     "Tenant works from home, call ahead. Dog friendly.", "30.2672", "-97.7431"),
    ("Downtown Duplex Unit A", "567 Congress Ave Unit A", "78701", "1234", "Lockbox by front door",
     "Recently renovated. Use side entrance.", "30.2667", "-97.7420"),
    ("Eastside Bungalow", "890 E 6th St", "78702", None, "Spare key with neighbor at 892 E 6th St",
     "Historic property, careful with original hardwood floors.", "30.2669", "-97.7300"),
    ("Oak Hill Family Home", "456 Oak Hill Dr", "78749", None, "Under large flower pot by garage",
     "Family with young children. Best access 9AM-3PM weekdays.", "30.2200", "-97.8000"),
    ("Westlake Townhome", "789 Westlake Dr", "78746", "9876", "Property manager has key",
     "High-end property. Remove shoes inside.", "30.3000", "-97.8200"),
    ("Student Housing Building C", "321 University Blvd Unit C", "78705", "2468", "Office has master key",
     "Multiple tenants. Schedule during business hours.", "30.2849", "-97.7341"),
    ("South Austin Condo", "654 South Lamar Blvd", "78704", "3579", "Concierge desk in lobby",
     "Check in with concierge. Parking validation available.", "30.2400", "-97.7700"),
    ("Historic Hyde Park Home", "987 Avenue B", "78751", None, "Lockbox by side gate",
     "Exterior work needs city approval.", "30.3100", "-97.7250"),
    ("Smart Home Alpha", "147 Future Lane", "78759", None, "Smart lock, code sent via app",
     "Fully automated smart home.", "30.4000", "-97.7100"),
    ("Modern Loft Downtown", "258 Rainey St", "78701", "7890", "Smart lockbox",
     "High-rise building. Valet parking available.", "30.2600", "-97.7380"),
]

SERVICE_DESCRIPTIONS = {
    "painting": ["Painted bedroom walls", "Touch-up paint throughout", "Painted front door", "Exterior trim painting"],
    "repair": ["Fixed leaky kitchen faucet", "Replaced faulty outlet", "Replaced damaged tiles", "Repaired fence gate"],
    "maintenance": ["Replaced air filter", "Cleaned AC coils", "Cleaned gutters", "Replaced smoke detector"],
    "inspection": ["Annual safety inspection", "HVAC system inspection", "Roof condition assessment"],
    "estimate": ["Kitchen renovation estimate", "Exterior painting estimate", "Flooring replacement estimate"],
    "consultation": ["Color selection consultation", "Project planning meeting", "Budget planning session"],
    "cleanup": ["Post-project cleanup", "Debris removal", "Deep cleaning service"],
    "preparation": ["Surface preparation", "Masking and protection", "Site setup"],
    "other": ["General maintenance service", "Emergency repair", "Seasonal maintenance"],
}

# (low, high) unit price per service type
SERVICE_PRICES = {
    "painting": (150, 900), "repair": (85, 450), "maintenance": (60, 250),
    "inspection": (100, 300), "estimate": (0, 75), "consultation": (50, 150),
    "cleanup": (75, 300), "preparation": (80, 260), "other": (75, 400),
}

EXPENSE_VENDORS = {
    "materials": (["Home Depot", "Lowe's", "Ferguson Supply"], ["Paint and primer", "PVC pipe fittings", "Drywall compound", "Tiles and grout"], (20, 450)),
    "fuel": (["Shell", "Exxon", "Valero"], ["Truck fuel", "Fuel for job site visits"], (35, 120)),
    "tools": (["Harbor Freight", "Northern Tool"], ["Cordless drill", "Paint sprayer parts", "Ladder"], (25, 600)),
    "permits": (["City of Austin"], ["Building permit", "Electrical permit"], (50, 400)),
    "subcontractor": (["Austin Electric Co", "Lone Star Plumbing"], ["Electrical subcontract work", "Plumbing subcontract work"], (200, 1500)),
    "equipment_rental": (["Sunbelt Rentals", "United Rentals"], ["Scaffolding rental", "Pressure washer rental"], (75, 500)),
    "supplies": (["Sherwin-Williams", "Office Depot"], ["Drop cloths and tape", "Brushes and rollers", "Office supplies"], (10, 150)),
}

CUSTOMER_NOTES = [
    "Prefers email communication over phone calls.",
    "Payment terms Net 30, very reliable payer.",
    "Requires detailed invoices with photos for insurance purposes.",
    "Prefers services scheduled between 9 AM and 4 PM.",
    "Tenant communication goes through the property manager only.",
]
CUSTOMER_NOTE_CATEGORIES = ["paint_codes", "materials", "preferences", "access_info", "special_instructions"]

PROPERTY_NOTES = [
    "Water shut-off valve is in the garage behind the water heater.",
    "Living room color is SW 7015 Repose Gray.",
    "Side gate latch sticks, lift before opening.",
    "Tenant requests 24 hours notice before visits.",
    "Attic access through the hallway closet.",
]
PROPERTY_NOTE_CATEGORIES = ["access_info", "special_instructions", "maintenance_history", "client_preferences"]

def _price(rng: random.Random, low: int, high: int) -> Decimal:
    return Decimal(rng.randint(low * 100, high * 100)) / Decimal(100)

class DemoDataService:
    """Seeds and clears demonstration data; user accounts are never touched"""

    @staticmethod
    def clear_business_data(db: Session) -> int:
        """Deletes every business row in foreign key order and removes uploaded files"""
        file_paths = []
        for photo_model in (InvoicePhoto, PropertyPhoto, CustomerPhoto):
            file_paths.extend(path for (path,) in db.query(photo_model.file_path).all())
        file_paths.extend(
            path for (path,) in db.query(Expense.receipt_path).filter(Expense.receipt_path.is_not(None)).all()
        )

        deleted = 0
        for model in (
            InvoicePhoto, InvoiceLineItem, PropertyServiceHistory, Expense, Invoice, RecurringTemplate,
            PropertyPhoto, PropertyNote, Property, CustomerPhoto, CustomerNote, Customer
        ):
            deleted += db.query(model).delete(synchronize_session=False)

        db.flush()
        db.expire_all()

        storage = get_storage_service()
        for path in file_paths:
            storage.delete_file(path)

        logger.info(f"Cleared {deleted} business record(s)")
        return deleted

    @staticmethod
    def _invoice_status(rng: random.Random, due_date: date, today: date) -> str:
        if due_date < today:
            return InvoiceStatus.PAID.value if rng.random() < 0.7 else InvoiceStatus.OVERDUE.value
        return rng.choice([InvoiceStatus.UNPAID.value, InvoiceStatus.UNPAID.value, InvoiceStatus.PAID.value, InvoiceStatus.DRAFT.value])

    @staticmethod
    def generate_demo_data(db: Session, seed: Optional[int] = None, today: Optional[date] = None) -> Dict[str, int]:
        """
        Replaces all business data with a reproducible demo data set

        Args:
            db: Database session; the caller commits
            seed: optional random seed
            today: reference date (default: today)

        Returns:
            Dict with the number of created rows per entity
        """
        rng = random.Random(seed)
        today = today or date.today()

        DemoDataService.clear_business_data(db)
        counts = {
            "customers": 0, "properties": 0, "customer_notes": 0, "property_notes": 0,
            "invoices": 0, "line_items": 0, "service_records": 0, "expenses": 0, "recurring_templates": 0,
        }

        customers: List[Customer] = []
        for name, email, phone, address in DEMO_CUSTOMERS:
            customer = Customer(name=name, email=email, phone=phone, billing_address=address)
            db.add(customer)
            customers.append(customer)
        db.flush()
        counts["customers"] = len(customers)

        properties: List[Property] = []
        for index, (name, address, zip_code, gate, key, access, lat, lng) in enumerate(DEMO_PROPERTIES):
            prop = Property(
                customer_id=customers[index // 2].id,
                name=name,
                address=address,
                city="Austin",
                state="TX",
                zip_code=zip_code,
                property_type="residential",
                gate_code=gate,
                key_location=key,
                access_notes=access,
                latitude=Decimal(lat),
                longitude=Decimal(lng),
                floors=rng.randint(1, 3),
                is_active=True
            )
            db.add(prop)
            properties.append(prop)
        db.flush()
        counts["properties"] = len(properties)

        for customer in customers:
            for _ in range(rng.randint(1, 3)):
                text = rng.choice(CUSTOMER_NOTES)
                db.add(CustomerNote(
                    customer_id=customer.id,
                    title=text.split(".")[0],
                    content=text,
                    category=rng.choice(CUSTOMER_NOTE_CATEGORIES),
                    priority="medium"
                ))
                counts["customer_notes"] += 1

        for prop in properties:
            for _ in range(rng.randint(1, 4)):
                text = rng.choice(PROPERTY_NOTES)
                db.add(PropertyNote(
                    property_id=prop.id,
                    title=text.split(".")[0][:200],
                    content=text,
                    category=rng.choice(PROPERTY_NOTE_CATEGORIES),
                    priority="medium"
                ))
                counts["property_notes"] += 1

        # Numbers follow invoice date order within each year
        invoice_dates = sorted(today - timedelta(days=rng.randint(0, 364)) for _ in range(DEMO_INVOICE_COUNT))
        sequences: Dict[int, int] = {}
        invoices: List[Invoice] = []

        for invoice_date in invoice_dates:
            customer = rng.choice(customers)
            customer_properties = [p for p in properties if p.customer_id == customer.id]
            prop = rng.choice(customer_properties)
            due_date = invoice_date + timedelta(days=30)
            status = DemoDataService._invoice_status(rng, due_date, today)

            sequences[invoice_date.year] = sequences.get(invoice_date.year, 0) + 1
            invoice = Invoice(
                invoice_number=format_invoice_number(invoice_date.year, sequences[invoice_date.year]),
                customer_id=customer.id,
                property_id=prop.id,
                invoice_date=invoice_date,
                due_date=due_date,
                tax_rate=DEMO_TAX_RATE,
                status=status,
                notes=rng.choice([None, "Thank you for your business.", "Work completed as discussed."]),
            )
            if status == InvoiceStatus.PAID.value:
                invoice.payment_date = min(invoice_date + timedelta(days=rng.randint(0, 30)), today)

            for position in range(rng.randint(1, 4)):
                service_type = rng.choice(list(SERVICE_DESCRIPTIONS))
                quantity = Decimal(rng.randint(2, 4)) if rng.random() > 0.8 else Decimal(1)
                unit_price = _price(rng, *SERVICE_PRICES[service_type])
                invoice.line_items.append(InvoiceLineItem(
                    description=rng.choice(SERVICE_DESCRIPTIONS[service_type]),
                    quantity=quantity,
                    unit_price=unit_price,
                    line_total=calculate_line_total(quantity, unit_price),
                    position=position
                ))
                counts["line_items"] += 1

            apply_totals(invoice)
            db.add(invoice)
            invoices.append(invoice)
        db.flush()
        counts["invoices"] = len(invoices)

        for prop in properties:
            property_invoices = [invoice for invoice in invoices if invoice.property_id == prop.id]
            for _ in range(rng.randint(2, 9)):
                service_date = today - timedelta(days=rng.randint(0, 179))
                service_type = rng.choice(list(SERVICE_DESCRIPTIONS))
                related = next(
                    (inv for inv in property_invoices if abs((inv.invoice_date - service_date).days) < 7),
                    None
                )
                follow_up = rng.random() > 0.8
                db.add(PropertyServiceHistory(
                    property_id=prop.id,
                    invoice_id=related.id if related else None,
                    service_date=service_date,
                    service_type=service_type,
                    description=rng.choice(SERVICE_DESCRIPTIONS[service_type]),
                    total_cost=_price(rng, *SERVICE_PRICES[service_type]),
                    time_spent=Decimal(rng.randint(1, 6)),
                    customer_satisfaction=rng.randint(4, 5),
                    follow_up_required=follow_up,
                    follow_up_date=service_date + timedelta(days=rng.randint(7, 36)) if follow_up else None,
                ))
                if not prop.last_service_date or service_date > prop.last_service_date:
                    prop.last_service_date = service_date
                counts["service_records"] += 1

        for _ in range(DEMO_EXPENSE_COUNT):
            category = rng.choice(list(EXPENSE_VENDORS))
            vendors, descriptions, (low, high) = EXPENSE_VENDORS[category]
            db.add(Expense(
                vendor=rng.choice(vendors),
                description=rng.choice(descriptions),
                amount=_price(rng, low, high),
                expense_date=today - timedelta(days=rng.randint(0, 364)),
                category=category
            ))
            counts["expenses"] += 1

        for customer in customers[:DEMO_TEMPLATE_COUNT]:
            first_property = next(p for p in properties if p.customer_id == customer.id)
            db.add(RecurringTemplate(
                customer_id=customer.id,
                template_name=f"Monthly {customer.name} Maintenance",
                base_invoice_data={
                    "line_items": [{"description": "Monthly maintenance service", "quantity": 1, "unit_price": 150.0}],
                    "notes": "Regular monthly maintenance service",
                    "payment_terms": 30,
                    "property_id": str(first_property.id),
                },
                tax_rate=DEMO_TAX_RATE,
                frequency=RecurringFrequency.MONTHLY.value,
                start_date=today - relativedelta(months=2),
                next_run_date=today + timedelta(days=rng.randint(0, 29)),
                is_active=True,
                completed_occurrences=0
            ))
            counts["recurring_templates"] += 1

        db.flush()
        logger.info(f"Demo data generated: {counts}")
        return counts
