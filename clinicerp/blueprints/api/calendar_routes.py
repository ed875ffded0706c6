import logging

from flask import Blueprint, request

from ...errors import ValidationError
from ...extensions import cache
from ...services.calendar_service import CalendarService
from ...utils.api_responses import APIResponse
from ...utils.timezone_utils import TimezoneUtils

logger = logging.getLogger(__name__)

calendar_api_bp = Blueprint('calendar_api', __name__, url_prefix='/calendar')

HOLIDAY_CACHE_SECONDS = 24 * 60 * 60


def _cached_holidays(key, build):
    try:
        cached = cache.get(key)
    except Exception as exc:
        logger.warning('Holiday cache read failed for %s: %s', key, exc)
        cached = None
    if cached is not None:
        return cached

    data = build()
    try:
        cache.set(key, data, timeout=HOLIDAY_CACHE_SECONDS)
    except Exception as exc:
        logger.warning('Holiday cache write failed for %s: %s', key, exc)
    return data


@calendar_api_bp.route('/holidays/<int:year>', methods=['GET'])
def yearly_holidays(year):
    data = _cached_holidays(f'holidays:{year}', lambda: CalendarService.get_yearly_holidays(year))
    return APIResponse.success(data)


@calendar_api_bp.route('/holidays/<int:year>/<int:month>', methods=['GET'])
def monthly_holidays(year, month):
    data = _cached_holidays(f'holidays:{year}:{month}', lambda: CalendarService.get_monthly_holidays(year, month))
    return APIResponse.success(data)


@calendar_api_bp.route('/is-holiday', methods=['GET'])
def is_holiday():
    raw = request.args.get('date')
    try:
        day = TimezoneUtils.parse_date(raw) if raw else TimezoneUtils.clinic_today()
    except ValueError:
        raise ValidationError('date must be an ISO date', errors={'date': ['invalid']})
    return APIResponse.success(CalendarService.is_holiday(day))
