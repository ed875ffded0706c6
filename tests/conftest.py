"""
Pytest configuration and shared fixtures for ClinicStock tests.
"""
import os
import tempfile
from datetime import timedelta

import pytest

from clinicerp import create_app
from clinicerp.authz import issue_member_token
from clinicerp.extensions import db
from clinicerp.models import Clinic, Supplier, SupplierManager
from clinicerp.services.product_service import PRODUCTS_CACHE_EXTENSION, ProductService
from clinicerp.utils.timezone_utils import TimezoneUtils

TENANT_ID = 'clinic-test'
OTHER_TENANT_ID = 'clinic-other'
JWT_SECRET = 'test-jwt-secret'
API_KEY = 'test-supplier-api-key'


@pytest.fixture(scope='function')
def app():
    """Create and configure a new app instance for each test."""
    db_fd, db_path = tempfile.mkstemp()

    app = create_app({
        'TESTING': True,
        'DATABASE_URL': f'sqlite:///{db_path}',
        'SECRET_KEY': 'test-secret-key',
        'MEMBER_JWT_SECRET': JWT_SECRET,
        'SUPPLIER_BACKEND_API_KEY': API_KEY,
        'SUPPLIER_BACKEND_URL': 'http://supplier.test',
        'RATELIMIT_ENABLED': False,
        'PRODUCTS_CACHE_TTL_SECONDS': 60,
    })

    with app.app_context():
        db.create_all()
        db.session.add(Clinic(tenant_id=TENANT_ID, name='테스트 의원'))
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
    app.extensions[PRODUCTS_CACHE_EXTENSION].destroy()

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def auth_headers(app):
    token = issue_member_token(TENANT_ID, 'member-1', JWT_SECRET, email='staff@clinic.test')
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def supplier_id(app):
    with app.app_context():
        supplier = Supplier(
            tenant_id='supplier-tenant',
            company_name='메디칼 공급',
            business_number='123-45-67890',
        )
        supplier.managers.append(SupplierManager(name='김담당', phone_number='01011112222'))
        supplier.managers.append(SupplierManager(name='퇴사자', status='INACTIVE'))
        db.session.add(supplier)
        db.session.commit()
        return supplier.id


@pytest.fixture
def make_product(app):
    """Create a product through the service and return its serialized dict."""

    def _make(tenant_id=TENANT_ID, **data):
        data.setdefault('name', 'Test Product')
        with app.app_context():
            return ProductService.create_product(tenant_id, data)

    return _make


@pytest.fixture
def expiring_on():
    """ISO date ``days`` from today in the clinic timezone."""

    def _on(days):
        return (TimezoneUtils.clinic_today() + timedelta(days=days)).isoformat()

    return _on
