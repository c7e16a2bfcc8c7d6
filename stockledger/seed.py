"""Demo catalog: five suppliers, ten products, their offers and a first month of trading.

Everything goes through the catalog services and StockLedger, so the seeded
database satisfies the stock invariant like any other.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from stockledger.models.product import Product
from stockledger.schemas.product import ProductCreate
from stockledger.schemas.supplier import LinkCreate, SupplierCreate
from stockledger.services import product_service, supplier_service
from stockledger.services.ledger_service import StockLedger

logger = logging.getLogger(__name__)

SUPPLIERS = [
    ("TechSupply SA", "Av. Tecnologia 123, Santiago", "+56-2-2345-6789", "ventas@techsupply.cl"),
    ("Distribuidora Norte", "Calle Industrial 456, Antofagasta", "+56-55-234-5678", "contacto@disnorte.cl"),
    ("Importadora Global", "Av. Libertador 789, Valparaiso", "+56-32-345-6789", "info@impglobal.cl"),
    ("Suministros del Sur", "Ruta 5 Sur Km 850, Temuco", "+56-45-456-7890", "ventas@sumisur.cl"),
    ("ElectroMax Ltda", "Av. Providencia 234, Santiago", "+56-2-3456-7890", "pedidos@electromax.cl"),
]

# name, description, price, opening stock
PRODUCTS = [
    ("Laptop Dell Inspiron 15", "Office laptop, Intel i5, 8GB RAM, 256GB SSD", "850000.00", 15),
    ("Wireless Mouse Logitech", "Optical wireless mouse with USB receiver", "25000.00", 50),
    ("Mechanical Keyboard RGB", "Mechanical keyboard with programmable RGB lighting", "89000.00", 25),
    ('Monitor Samsung 24"', "Full HD LED monitor, HDMI and VGA", "180000.00", 12),
    ("Printer HP LaserJet", "Monochrome laser printer, 22 ppm", "320000.00", 8),
    ("External Drive 1TB", "USB 3.0 external hard drive, 1TB", "75000.00", 30),
    ("Webcam HD Logitech", "1080p webcam with built-in microphone", "45000.00", 20),
    ("Bluetooth Headphones", "Wireless headphones with noise cancelling", "120000.00", 18),
    ("Router WiFi 6", "WiFi 6 router, up to 150m2 coverage", "95000.00", 10),
    ("Tablet Samsung Galaxy", '10" Android tablet, 64GB, WiFi', "280000.00", 6),
]

# product index, supplier index, supplier price, lead time days, start date
LINKS = [
    (0, 0, "750000.00", 7, date(2024, 1, 15)),
    (1, 0, "18000.00", 3, date(2024, 1, 15)),
    (2, 0, "75000.00", 5, date(2024, 1, 15)),
    (6, 0, "38000.00", 4, date(2024, 1, 15)),
    (3, 1, "150000.00", 10, date(2024, 2, 1)),
    (4, 1, "280000.00", 14, date(2024, 2, 1)),
    (5, 1, "62000.00", 7, date(2024, 2, 1)),
    (0, 2, "780000.00", 12, date(2024, 1, 20)),
    (7, 2, "95000.00", 8, date(2024, 1, 20)),
    (9, 2, "250000.00", 15, date(2024, 1, 20)),
    (8, 3, "82000.00", 6, date(2024, 2, 10)),
    (1, 3, "20000.00", 4, date(2024, 2, 10)),
    (3, 4, "160000.00", 8, date(2024, 2, 15)),
    (5, 4, "68000.00", 5, date(2024, 2, 15)),
    (7, 4, "105000.00", 7, date(2024, 2, 15)),
]

# kind, product index, supplier index, occurred at, quantity, unit price, notes
MOVEMENTS = [
    ("purchase", 0, 0, datetime(2024, 6, 1, 9, 0), 10, "750000.00", "Initial laptop purchase"),
    ("purchase", 1, 0, datetime(2024, 6, 1, 10, 30), 30, "18000.00", "Mouse restock"),
    ("purchase", 2, 0, datetime(2024, 6, 2, 14, 15), 15, "75000.00", "New RGB keyboards"),
    ("purchase", 3, 1, datetime(2024, 6, 3, 11, 20), 8, "150000.00", "Office monitors"),
    ("purchase", 4, 1, datetime(2024, 6, 5, 16, 45), 5, "280000.00", "Department printers"),
    ("sale", 0, 0, datetime(2024, 6, 10, 10, 15), 2, "850000.00", "Corporate sale"),
    ("sale", 1, 0, datetime(2024, 6, 10, 11, 30), 5, "25000.00", "Retail sale"),
    ("sale", 2, 0, datetime(2024, 6, 12, 9, 45), 3, "89000.00", "Gaming setup"),
    ("sale", 3, 1, datetime(2024, 6, 12, 15, 20), 1, "180000.00", "Designer monitor"),
    ("sale", 1, 0, datetime(2024, 6, 15, 13, 10), 8, "25000.00", "Wholesale"),
    ("purchase", 5, 1, datetime(2024, 6, 18, 8, 30), 20, "62000.00", "Backup drives"),
    ("purchase", 6, 0, datetime(2024, 6, 19, 12, 0), 15, "38000.00", "Webcams for remote work"),
    ("purchase", 7, 2, datetime(2024, 6, 20, 10, 45), 12, "95000.00", "Premium headphones"),
    ("sale", 5, 1, datetime(2024, 6, 22, 14, 30), 5, "75000.00", "External drives"),
    ("sale", 6, 0, datetime(2024, 6, 23, 11, 15), 3, "45000.00", "Videoconference webcams"),
]


def seed_demo_data(db: Session, ledger: StockLedger | None = None) -> dict:
    """Load the demo catalog into an empty database. Returns row counts, or {} if skipped."""
    if db.query(Product).count() > 0:
        logger.info("Catalog already populated, skipping demo data")
        return {}

    ledger = ledger or StockLedger(db)

    suppliers = [
        supplier_service.create_supplier(db, SupplierCreate(name=n, address=a, phone=p, email=e))
        for n, a, p, e in SUPPLIERS
    ]
    products = [
        product_service.create_product(db, ProductCreate(name=n, description=d, price=Decimal(p), stock=s))
        for n, d, p, s in PRODUCTS
    ]
    for p_idx, s_idx, price, lead_time, start in LINKS:
        supplier_service.create_link(
            db,
            LinkCreate(
                product_id=products[p_idx].id,
                supplier_id=suppliers[s_idx].id,
                supplier_price=Decimal(price),
                lead_time_days=lead_time,
                start_date=start,
            ),
        )
    for kind, p_idx, s_idx, occurred_at, qty, price, notes in MOVEMENTS:
        record = ledger.record_purchase if kind == "purchase" else ledger.record_sale
        record(products[p_idx].id, suppliers[s_idx].id, qty, Decimal(price), notes, occurred_at=occurred_at)

    counts = {
        "suppliers": len(suppliers),
        "products": len(products),
        "links": len(LINKS),
        "ledger_entries": len(MOVEMENTS),
    }
    logger.info("Seeded demo data: %s", counts)
    return counts
