# Overview: Pytest coverage for suppliers, locations, categories and units.

import pytest

from fieldstock.errors import ConflictError, NotFoundError, ValidationError
from fieldstock.services import reference_service


ORG_ID = 1
OTHER_ORG_ID = 2


class TestSuppliers:
    """Supplier registry."""

    def test_create_normalizes_code(self, db_session):
        supplier = reference_service.create_supplier(ORG_ID, {"name": "Coastal Electric", "code": "coast"})
        assert supplier.code == "COAST"
        assert supplier.is_active is True

    def test_duplicate_code_conflicts(self, supplier):
        with pytest.raises(ConflictError):
            reference_service.create_supplier(ORG_ID, {"name": "Other", "code": "acme"})

    def test_same_code_in_other_org(self, supplier):
        other = reference_service.create_supplier(OTHER_ORG_ID, {"name": "Acme West", "code": "ACME"})
        assert other.org_id == OTHER_ORG_ID

    @pytest.mark.parametrize("payload", [
        {"name": "Bad rating", "rating": 6},
        {"name": "Bad lead", "lead_time_days": -1},
    ])
    def test_invalid_values(self, db_session, payload):
        with pytest.raises(ValidationError):
            reference_service.create_supplier(ORG_ID, payload)

    def test_list_and_search(self, supplier):
        reference_service.create_supplier(ORG_ID, {"name": "Zenith Tools", "code": "ZEN"})

        rows, total = reference_service.list_suppliers(ORG_ID)
        assert total == 2
        assert [s.name for s in rows] == ["Acme Supply", "Zenith Tools"]

        rows, total = reference_service.list_suppliers(ORG_ID, search="zen")
        assert [s.code for s in rows] == ["ZEN"]

    def test_soft_delete(self, supplier):
        reference_service.delete_supplier(ORG_ID, supplier.id)
        with pytest.raises(NotFoundError):
            reference_service.get_supplier(ORG_ID, supplier.id)

    def test_cross_org_read(self, supplier):
        with pytest.raises(NotFoundError):
            reference_service.get_supplier(OTHER_ORG_ID, supplier.id)


class TestLocations:
    """Stock locations."""

    def test_invalid_type(self, db_session):
        with pytest.raises(ValidationError):
            reference_service.create_location(ORG_ID, {"code": "X", "name": "X", "location_type": "boat"})

    def test_parent_location(self, warehouse):
        bay = reference_service.create_location(ORG_ID, {
            "code": "wh1-bay",
            "name": "Bay 1",
            "location_type": "warehouse",
            "parent_location_id": warehouse.id,
        })
        assert bay.code == "WH1-BAY"
        assert bay.parent_location_id == warehouse.id

        with pytest.raises(ValidationError):
            reference_service.update_location(ORG_ID, bay.id, {"parent_location_id": bay.id})

    def test_duplicate_code(self, warehouse):
        with pytest.raises(ConflictError):
            reference_service.create_location(ORG_ID, {"code": "wh1", "name": "Again", "location_type": "yard"})

    def test_filter_by_type(self, warehouse, truck):
        rows = reference_service.list_locations(ORG_ID, location_type="truck")
        assert [r.code for r in rows] == ["TRK1"]

    def test_delete_blocked_while_primary(self, make_item, warehouse):
        make_item()
        with pytest.raises(ConflictError):
            reference_service.delete_location(ORG_ID, warehouse.id)

    def test_delete_unused(self, truck):
        reference_service.delete_location(ORG_ID, truck.id)
        assert reference_service.list_locations(ORG_ID) == []


class TestCategoriesAndUnits:
    """Global lookup data."""

    def test_duplicate_category(self, category):
        with pytest.raises(ConflictError):
            reference_service.create_category({"name": "Materials"})

    def test_deactivated_category_hidden(self, category):
        reference_service.deactivate_category(category.id)
        assert reference_service.list_categories() == []
        assert len(reference_service.list_categories(include_inactive=True)) == 1

    def test_inactive_category_rejected_on_item(self, category, make_item):
        reference_service.deactivate_category(category.id)
        with pytest.raises(ValidationError):
            make_item(category_id=category.id)

    def test_units(self, db_session):
        unit = reference_service.create_unit({"name": "Meter", "abbreviation": "m", "unit_type": "length"})
        with pytest.raises(ConflictError):
            reference_service.create_unit({"name": "Metre", "abbreviation": "m"})

        reference_service.update_unit(unit.id, {"name": "Metre"})
        assert [u.name for u in reference_service.list_units()] == ["Metre"]

    def test_seed_is_idempotent(self, db_session):
        first = reference_service.seed_defaults()
        second = reference_service.seed_defaults()

        assert first["categories"] == len(reference_service.DEFAULT_CATEGORIES)
        assert first["units"] == len(reference_service.DEFAULT_UNITS)
        assert second == {"categories": 0, "units": 0}

