from datetime import date

import pytest

from clinicerp.errors import NotFoundError, ValidationError
from clinicerp.extensions import db
from clinicerp.models import Clinic
from clinicerp.services.clinic_service import ClinicService

from .conftest import OTHER_TENANT_ID, TENANT_ID


@pytest.fixture
def registered(app):
    with app.app_context():
        clinic = Clinic.for_tenant(TENANT_ID).one()
        clinic.location = '서울특별시 서초구 반포대로 1 (반포동)'
        clinic.category = '의원'
        clinic.open_date = date(2020, 9, 4)
        db.session.commit()


def test_get_clinic(app):
    with app.app_context():
        assert ClinicService.get_clinic(TENANT_ID)['name'] == '테스트 의원'
        with pytest.raises(NotFoundError):
            ClinicService.get_clinic(OTHER_TENANT_ID)


def test_matching_certificate_is_valid(app, registered):
    with app.app_context():
        result = ClinicService.verify_certificate(TENANT_ID, {
            'clinicName': '테스트  의원',
            'address': '서울시 서초구 반포대로 1 (반포동)',
            'clinicType': '의 원',
            'openDate': '2020년 09월 04일',
        })
    assert result['isValid'] is True
    assert result['confidence'] == 1.0
    assert result['warnings'] == []
    assert result['sidoCode'] == '11'
    assert result['emdong'] == '반포동'


def test_partial_certificate_is_not_valid(app, registered):
    with app.app_context():
        result = ClinicService.verify_certificate(TENANT_ID, {
            'clinicName': '테스트 의원',
            'openDate': '2021-01-01',
        })
    assert result['matches'] == {
        'nameMatch': True,
        'addressMatch': False,
        'typeMatch': False,
        'dateMatch': False,
    }
    assert result['confidence'] == 0.25
    assert result['isValid'] is False
    assert result['warnings'] == ['Open date mismatch: certificate="2021-01-01", registered="2020-09-04"']


def test_certificate_requires_name(app):
    with app.app_context():
        with pytest.raises(ValidationError):
            ClinicService.verify_certificate(TENANT_ID, {'address': '서울'})


def test_clinic_routes(client, auth_headers):
    assert client.get('/api/clinic', headers=auth_headers).get_json()['data']['tenantId'] == TENANT_ID
    response = client.post('/api/clinic/verify', json={'clinicName': '테스트 의원'}, headers=auth_headers)
    assert response.get_json()['data']['matches']['nameMatch'] is True
