from contextlib import contextmanager

import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from app import create_app
from app.models import Customer, User, UserRole
from app.services.numbering import ensure_sequences
from config.config import TestingConfig
from config.database import db as _db


@pytest.fixture
def app(tmp_path):
    database_path = tmp_path / 'medicourier-test.db'

    class FileDatabaseConfig(TestingConfig):
        # A file database so threads get their own connections
        SQLALCHEMY_DATABASE_URI = f'sqlite:///{database_path}'
        SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'check_same_thread': False, 'timeout': 30}}

    app = create_app(FileDatabaseConfig)
    with app.app_context():
        _db.create_all()
        ensure_sequences()
        yield app
        _db.session.remove()
        _db.drop_all()


class UnlockedRegistry:
    """Stands in for a KeyedLock so only the database guards remain"""

    @contextmanager
    def hold(self, key):
        yield


@pytest.fixture
def without_entity_locks(monkeypatch):
    monkeypatch.setattr('app.services.quotation_lifecycle.conversion_locks', UnlockedRegistry())
    monkeypatch.setattr('app.services.shipment_provisioning.shipment_locks', UnlockedRegistry())


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(db):
    created = {}
    for role in UserRole.ALL:
        user = User(
            name=f'{role} User',
            email=f'{role.lower()}@example.com',
            role=role,
            password_hash=generate_password_hash('secret', method='pbkdf2:sha256:1000'),
            is_active=True
        )
        db.session.add(user)
        created[role] = user
    db.session.commit()
    return created


@pytest.fixture
def auth_headers(users):
    def make(role=UserRole.ADMIN):
        token = create_access_token(identity=str(users[role].id))
        return {'Authorization': f'Bearer {token}'}
    return make


@pytest.fixture
def kerala_customer(db):
    customer = Customer(
        customer_code='CUST900',
        name='Anil Kumar',
        email='anil@example.com',
        country='India',
        billing_state='Kerala',
        address='MG Road, Kochi'
    )
    db.session.add(customer)
    db.session.commit()
    return customer


@pytest.fixture
def export_customer(db):
    customer = Customer(
        customer_code='CUST901',
        name='Fatima Al Fassi',
        email='fatima.fassi@example.com',
        country='UAE',
        address='789 Sheikh Zayed Rd, Dubai, UAE'
    )
    db.session.add(customer)
    db.session.commit()
    return customer


@pytest.fixture
def quotation_data(kerala_customer):
    """Scenario A input: 90 x 132.28 at 12%, delivery 500, pickup 100"""
    return {
        'customer_id': kerala_customer.id,
        'origin': 'India',
        'destination': 'USA',
        'purpose': 'Personal Use',
        'items': [
            {
                'name': 'Metformin 500mg',
                'quantity': 90,
                'unit_rate': '132.28',
                'hs_code': '3004.90',
                'tax_rate': 12,
                'unit_weight': '0.01'
            }
        ],
        'discount_percent': 0,
        'delivery_charge': 500,
        'remote_area_charge': 0,
        'pickup_charge': 100
    }


@pytest.fixture
def make_quotation(db, quotation_data, users):
    from app.services.quotation_lifecycle import save_quotation

    def make(**overrides):
        data = dict(quotation_data)
        data.update(overrides)
        return save_quotation(data, user_id=users[UserRole.SALES].id)
    return make


@pytest.fixture
def make_invoice(make_quotation):
    from app.services.quotation_lifecycle import convert_to_invoice

    def make(**overrides):
        quotation = make_quotation(**overrides)
        return convert_to_invoice(quotation.id)
    return make
