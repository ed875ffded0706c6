import logging

import pytest

from clinicerp.config import EnvReader, normalize_db_url, resolve_env_name
from clinicerp.logging_config import PiiRedactionFilter


def test_env_reader_falls_back_and_records_warnings():
    reader = EnvReader({'WORKERS': 'many', 'RATE': '2.5', 'FLAG': 'off', 'BLANK': '  '})
    assert reader.int('WORKERS', 4) == 4
    assert reader.float('RATE', 1.0) == 2.5
    assert reader.flag('FLAG', True) is False
    assert reader.get('BLANK', 'default') == 'default'
    assert reader.first('MISSING', 'RATE') == '2.5'
    assert len(reader.warnings) == 1
    assert 'WORKERS' in reader.warnings[0]


def test_unknown_environment_is_rejected():
    assert resolve_env_name(EnvReader({})) == 'development'
    assert resolve_env_name(EnvReader({'FLASK_ENV': 'Production'})) == 'production'
    with pytest.raises(RuntimeError):
        resolve_env_name(EnvReader({'FLASK_ENV': 'qa'}))


def test_postgres_scheme_is_normalized():
    assert normalize_db_url('postgres://u:p@db/clinic') == 'postgresql://u:p@db/clinic'
    assert normalize_db_url('sqlite:///x.db') == 'sqlite:///x.db'
    assert normalize_db_url(None) is None


def test_redaction_filter_masks_secrets():
    record = logging.LogRecord(
        'clinicerp', logging.INFO, __file__, 1,
        'call %s with x-api-key=abc123 for %s at %s',
        ('Bearer eyJhbGciOi.x.y', 'kim@clinic.test', '010-1234-5678'), None,
    )
    assert PiiRedactionFilter().filter(record) is True
    message = record.getMessage()
    assert 'eyJhbGciOi' not in message
    assert 'abc123' not in message
    assert '[REDACTED_EMAIL]' in message
    assert '[REDACTED_PHONE]' in message
