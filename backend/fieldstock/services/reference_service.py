# Overview: Service-layer operations for reference registries; encapsulates business logic and database work.

"""
Reference Registries

Suppliers and locations are org-scoped and soft-deleted (is_deleted); a
deleted row stays in place for historical purchase orders and ledger rows
but can no longer be looked up or referenced by new records.

Categories and units of measure are global lookup data and are deactivated
rather than deleted.

Codes are unique within their scope (ConflictError on duplicates).
"""

from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Category, InventoryItem, Location, Supplier, UnitOfMeasure
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import unit_of_work


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "code",
        "name",
        "legal_name",
        "contact_name",
        "email",
        "phone",
        "website",
        "address",
        "account_number",
        "payment_terms",
        "lead_time_days",
        "rating",
        "is_preferred",
        "is_active",
        "notes",
    },
    required_on_create={"name"},
)

LOCATION_TYPES = {"warehouse", "truck", "job_site", "yard", "office"}

LOCATION_POLICY = ModelValidationPolicy(
    writable_fields={
        "code",
        "name",
        "location_type",
        "parent_location_id",
        "address",
        "manager_id",
        "is_active",
    },
    required_on_create={"code", "name"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "description", "color", "sort_order", "is_active"},
    required_on_create={"name"},
)

UNIT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "abbreviation", "unit_type", "is_active"},
    required_on_create={"name", "abbreviation"},
)

DEFAULT_CATEGORIES = [
    {"name": "Materials", "code": "MAT", "description": "Construction and installation materials", "sort_order": 1},
    {"name": "Tools", "code": "TOOL", "description": "Hand and power tools", "sort_order": 2},
    {"name": "Consumables", "code": "CONS", "description": "Fasteners, adhesives and other consumables", "sort_order": 3},
    {"name": "Equipment", "code": "EQUIP", "description": "Heavy and specialty equipment", "sort_order": 4},
]

DEFAULT_UNITS = [
    {"name": "Each", "abbreviation": "pcs", "unit_type": "count"},
    {"name": "Box", "abbreviation": "box", "unit_type": "count"},
    {"name": "Roll", "abbreviation": "roll", "unit_type": "count"},
    {"name": "Set", "abbreviation": "set", "unit_type": "count"},
    {"name": "Foot", "abbreviation": "ft", "unit_type": "length"},
    {"name": "Pound", "abbreviation": "lb", "unit_type": "weight"},
    {"name": "Gallon", "abbreviation": "gal", "unit_type": "volume"},
]


def _clean_code(patch: dict) -> None:
    if patch.get("code"):
        patch["code"] = patch["code"].upper()
    elif "code" in patch:
        patch["code"] = None


# =============================================================================
# Suppliers
# =============================================================================

def get_supplier(org_id: int, supplier_id: int) -> Supplier:
    supplier = (
        db.session.query(Supplier)
        .filter_by(id=supplier_id, org_id=org_id, is_deleted=False)
        .first()
    )
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def list_suppliers(
    org_id: int,
    *,
    include_inactive: bool = False,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Supplier], int]:
    query = db.session.query(Supplier).filter(Supplier.org_id == org_id, Supplier.is_deleted.is_(False))
    if not include_inactive:
        query = query.filter(Supplier.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Supplier.name.ilike(pattern), Supplier.code.ilike(pattern)))
    total = query.count()
    rows = query.order_by(Supplier.name.asc()).offset(offset).limit(limit).all()
    return rows, total


def _ensure_unique_supplier_code(org_id: int, code: str | None, exclude_id: int | None = None) -> None:
    if not code:
        return
    query = db.session.query(Supplier.id).filter(Supplier.org_id == org_id, Supplier.code == code)
    if exclude_id is not None:
        query = query.filter(Supplier.id != exclude_id)
    if query.first():
        raise ConflictError(f"Supplier code {code} already exists")


def _check_rating(patch: dict) -> None:
    rating = patch.get("rating")
    if rating is not None and not 1 <= rating <= 5:
        raise ValidationError("rating must be between 1 and 5")
    lead = patch.get("lead_time_days")
    if lead is not None and lead < 0:
        raise ValidationError("lead_time_days must be >= 0")


def create_supplier(org_id: int, payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    _clean_code(patch)
    _check_rating(patch)
    with unit_of_work():
        _ensure_unique_supplier_code(org_id, patch.get("code"))
        supplier = Supplier(org_id=org_id, **patch)
        db.session.add(supplier)
    return supplier


def update_supplier(org_id: int, supplier_id: int, changes: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=changes, policy=SUPPLIER_POLICY, partial=True)
    _clean_code(patch)
    _check_rating(patch)
    with unit_of_work():
        supplier = get_supplier(org_id, supplier_id)
        if "code" in patch:
            _ensure_unique_supplier_code(org_id, patch["code"], exclude_id=supplier.id)
        for field, value in patch.items():
            setattr(supplier, field, value)
    return supplier


def delete_supplier(org_id: int, supplier_id: int) -> Supplier:
    with unit_of_work():
        supplier = get_supplier(org_id, supplier_id)
        supplier.is_deleted = True
        supplier.is_active = False
    return supplier


# =============================================================================
# Locations
# =============================================================================

def get_location(org_id: int, location_id: int) -> Location:
    location = (
        db.session.query(Location)
        .filter_by(id=location_id, org_id=org_id, is_deleted=False)
        .first()
    )
    if location is None:
        raise NotFoundError(f"Location {location_id} not found")
    return location


def list_locations(org_id: int, *, include_inactive: bool = False,
                   location_type: str | None = None) -> list[Location]:
    query = db.session.query(Location).filter(Location.org_id == org_id, Location.is_deleted.is_(False))
    if not include_inactive:
        query = query.filter(Location.is_active.is_(True))
    if location_type:
        query = query.filter(Location.location_type == location_type)
    return query.order_by(Location.code.asc()).all()


def _validate_location_patch(org_id: int, patch: dict, location_id: int | None = None) -> None:
    if "location_type" in patch and patch["location_type"] not in LOCATION_TYPES:
        raise ValidationError(f"Invalid location_type: {patch['location_type']}")
    parent_id = patch.get("parent_location_id")
    if parent_id is not None:
        if parent_id == location_id:
            raise ValidationError("A location cannot be its own parent")
        get_location(org_id, parent_id)
    if patch.get("code"):
        query = db.session.query(Location.id).filter(Location.org_id == org_id, Location.code == patch["code"])
        if location_id is not None:
            query = query.filter(Location.id != location_id)
        if query.first():
            raise ConflictError(f"Location code {patch['code']} already exists")


def create_location(org_id: int, payload: dict) -> Location:
    patch = validate_payload(model=Location, payload=payload, policy=LOCATION_POLICY, partial=False)
    _clean_code(patch)
    with unit_of_work():
        _validate_location_patch(org_id, patch)
        location = Location(org_id=org_id, **patch)
        db.session.add(location)
    return location


def update_location(org_id: int, location_id: int, changes: dict) -> Location:
    patch = validate_payload(model=Location, payload=changes, policy=LOCATION_POLICY, partial=True)
    _clean_code(patch)
    with unit_of_work():
        location = get_location(org_id, location_id)
        _validate_location_patch(org_id, patch, location_id=location.id)
        for field, value in patch.items():
            setattr(location, field, value)
    return location


def delete_location(org_id: int, location_id: int) -> Location:
    """Soft delete. Blocked while live items use it as their primary location."""
    with unit_of_work():
        location = get_location(org_id, location_id)
        in_use = (
            db.session.query(InventoryItem.id)
            .filter(
                InventoryItem.primary_location_id == location.id,
                InventoryItem.is_deleted.is_(False),
            )
            .count()
        )
        if in_use:
            raise ConflictError(f"Location {location.code} is the primary location of {in_use} item(s)")
        location.is_deleted = True
        location.is_active = False
    return location


# =============================================================================
# Categories / units (global)
# =============================================================================

def list_categories(include_inactive: bool = False) -> list[Category]:
    query = db.session.query(Category)
    if not include_inactive:
        query = query.filter(Category.is_active.is_(True))
    return query.order_by(Category.sort_order.asc(), Category.name.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def create_category(payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    _clean_code(patch)
    with unit_of_work():
        if db.session.query(Category.id).filter(Category.name == patch["name"]).first():
            raise ConflictError(f"Category {patch['name']} already exists")
        category = Category(**patch)
        db.session.add(category)
    return category


def update_category(category_id: int, changes: dict) -> Category:
    patch = validate_payload(model=Category, payload=changes, policy=CATEGORY_POLICY, partial=True)
    _clean_code(patch)
    with unit_of_work():
        category = get_category(category_id)
        for field, value in patch.items():
            setattr(category, field, value)
    return category


def deactivate_category(category_id: int) -> Category:
    with unit_of_work():
        category = get_category(category_id)
        category.is_active = False
    return category


def list_units(include_inactive: bool = False) -> list[UnitOfMeasure]:
    query = db.session.query(UnitOfMeasure)
    if not include_inactive:
        query = query.filter(UnitOfMeasure.is_active.is_(True))
    return query.order_by(UnitOfMeasure.name.asc()).all()


def get_unit(unit_id: int) -> UnitOfMeasure:
    unit = db.session.get(UnitOfMeasure, unit_id)
    if unit is None:
        raise NotFoundError(f"Unit of measure {unit_id} not found")
    return unit


def create_unit(payload: dict) -> UnitOfMeasure:
    patch = validate_payload(model=UnitOfMeasure, payload=payload, policy=UNIT_POLICY, partial=False)
    with unit_of_work():
        exists = (
            db.session.query(UnitOfMeasure.id)
            .filter(UnitOfMeasure.abbreviation == patch["abbreviation"])
            .first()
        )
        if exists:
            raise ConflictError(f"Unit {patch['abbreviation']} already exists")
        unit = UnitOfMeasure(**patch)
        db.session.add(unit)
    return unit


def update_unit(unit_id: int, changes: dict) -> UnitOfMeasure:
    patch = validate_payload(model=UnitOfMeasure, payload=changes, policy=UNIT_POLICY, partial=True)
    with unit_of_work():
        unit = get_unit(unit_id)
        for field, value in patch.items():
            setattr(unit, field, value)
    return unit


def deactivate_unit(unit_id: int) -> UnitOfMeasure:
    with unit_of_work():
        unit = get_unit(unit_id)
        unit.is_active = False
    return unit


def seed_defaults() -> dict:
    """Idempotently insert the default categories and units."""
    created = {"categories": 0, "units": 0}
    with unit_of_work():
        for data in DEFAULT_CATEGORIES:
            if not db.session.query(Category.id).filter_by(name=data["name"]).first():
                db.session.add(Category(**data))
                created["categories"] += 1
        for data in DEFAULT_UNITS:
            if not db.session.query(UnitOfMeasure.id).filter_by(abbreviation=data["abbreviation"]).first():
                db.session.add(UnitOfMeasure(**data))
                created["units"] += 1
    return created
