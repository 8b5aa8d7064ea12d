from __future__ import annotations

from ..extensions import db
from fieldstock.time_utils import to_utc_z


def decimal_str(value) -> str | None:
    """Numeric columns serialize as plain decimal strings (no float drift)."""
    if value is None:
        return None
    return str(value)


class Category(db.Model):
    """
    Item category (Materials, Tools, Consumables, Equipment, ...).

    Categories are global lookup data shared by every organization.
    They are deactivated rather than deleted.
    """
    __tablename__ = "inventory_categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_inventory_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(20), nullable=True, unique=True)
    description = db.Column(db.Text, nullable=True)
    color = db.Column(db.String(7), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "color": self.color,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class UnitOfMeasure(db.Model):
    """Global unit-of-measure lookup (pcs, box, ft, gal, ...)."""
    __tablename__ = "inventory_units"
    __table_args__ = (
        db.UniqueConstraint("abbreviation", name="uq_inventory_units_abbreviation"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    abbreviation = db.Column(db.String(10), nullable=False)
    # count, length, weight, volume, area
    unit_type = db.Column(db.String(20), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "abbreviation": self.abbreviation,
            "unit_type": self.unit_type,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    """
    Supplier master data.

    MULTI-TENANT: Suppliers are scoped to organizations via org_id.
    Supplier codes are unique within an organization when specified.
    Soft-deleted suppliers stay referenced by historical purchase orders.
    """
    __tablename__ = "inventory_suppliers"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_inventory_suppliers_org_code"),
        db.Index("ix_inventory_suppliers_org_name", "org_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)

    code = db.Column(db.String(50), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    legal_name = db.Column(db.String(255), nullable=True)

    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    website = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    account_number = db.Column(db.String(100), nullable=True)
    payment_terms = db.Column(db.String(100), nullable=True)
    lead_time_days = db.Column(db.Integer, nullable=True)
    rating = db.Column(db.Integer, nullable=True)

    is_preferred = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} code={self.code!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "legal_name": self.legal_name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "website": self.website,
            "address": self.address,
            "account_number": self.account_number,
            "payment_terms": self.payment_terms,
            "lead_time_days": self.lead_time_days,
            "rating": self.rating,
            "is_preferred": self.is_preferred,
            "is_active": self.is_active,
            "is_deleted": self.is_deleted,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Location(db.Model):
    """Stock location (warehouse, truck, job site, yard). Org-scoped, soft-deletable."""
    __tablename__ = "inventory_locations"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_inventory_locations_org_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, nullable=False, index=True)

    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    # warehouse, truck, job_site, yard, office
    location_type = db.Column(db.String(50), nullable=False, default="warehouse")
    parent_location_id = db.Column(db.Integer, db.ForeignKey("inventory_locations.id"), nullable=True)
    address = db.Column(db.Text, nullable=True)
    manager_id = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    parent = db.relationship("Location", remote_side=[id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "location_type": self.location_type,
            "parent_location_id": self.parent_location_id,
            "address": self.address,
            "manager_id": self.manager_id,
            "is_active": self.is_active,
            "is_deleted": self.is_deleted,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
