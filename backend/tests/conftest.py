"""
Pytest fixtures for fieldstock backend tests.

Provides test database setup, reference-data fixtures, an item factory and
the test client with actor headers.
"""

import pytest
from fieldstock import create_app
from fieldstock.extensions import db
from fieldstock.services import item_service, reference_service


ORG_ID = 1
OTHER_ORG_ID = 2
USER_ID = 7


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INVENTORY_CLAMP_CORRECTIONS_TO_ZERO': False,
        'INVENTORY_ALERTS_ON_LEDGER': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.config['INVENTORY_CLAMP_CORRECTIONS_TO_ZERO'] = False
        app.config['INVENTORY_ALERTS_ON_LEDGER'] = True


@pytest.fixture(scope='function')
def headers():
    """Actor headers for ORG_ID."""
    return {'X-User-Id': str(USER_ID), 'X-Org-Id': str(ORG_ID)}


@pytest.fixture(scope='function')
def warehouse(db_session):
    """Main warehouse location in ORG_ID."""
    return reference_service.create_location(ORG_ID, {
        'code': 'WH1',
        'name': 'Main Warehouse',
        'location_type': 'warehouse',
    })


@pytest.fixture(scope='function')
def truck(db_session):
    """Service truck location in ORG_ID."""
    return reference_service.create_location(ORG_ID, {
        'code': 'TRK1',
        'name': 'Truck 1',
        'location_type': 'truck',
    })


@pytest.fixture(scope='function')
def supplier(db_session):
    """Supplier in ORG_ID."""
    return reference_service.create_supplier(ORG_ID, {
        'code': 'ACME',
        'name': 'Acme Supply',
        'payment_terms': 'Net 30',
    })


@pytest.fixture(scope='function')
def category(db_session):
    return reference_service.create_category({'name': 'Materials', 'code': 'MAT'})


@pytest.fixture(scope='function')
def make_item(db_session, warehouse):
    """
    Item factory. Items default to the warehouse as primary location.

        item = make_item('PIPE-1', initial_quantity=100, reorder_level=20)
    """
    counter = {'n': 0}

    def _make(item_code=None, org_id=ORG_ID, **fields):
        counter['n'] += 1
        payload = {
            'item_code': item_code or f'ITEM-{counter["n"]}',
            'name': fields.pop('name', f'Test item {counter["n"]}'),
            'unit_cost': fields.pop('unit_cost', '10.00'),
        }
        if org_id == ORG_ID and 'primary_location_id' not in fields:
            payload['primary_location_id'] = warehouse.id
        payload.update(fields)
        return item_service.create_item(org_id, payload, performed_by=USER_ID)

    return _make
