from datetime import date

import pytest

from clinicerp.errors import ValidationError
from clinicerp.services.calendar_service import CalendarService


def test_yearly_holidays_sorted_by_date():
    result = CalendarService.get_yearly_holidays(2026)
    dates = [h['date'] for h in result['holidays']]
    assert result['year'] == 2026
    assert len(dates) == 11
    assert dates == sorted(dates)
    assert dates[0] == '2026-01-01'


def test_monthly_holidays():
    october = CalendarService.get_monthly_holidays(2026, 10)
    assert [h['nameEn'] for h in october['holidays']] == ['National Foundation Day', 'Hangeul Day']
    assert CalendarService.get_monthly_holidays(2026, 4)['holidays'] == []
    with pytest.raises(ValidationError):
        CalendarService.get_monthly_holidays(2026, 13)


def test_lunar_holidays_are_tagged():
    chuseok = [h for h in CalendarService.get_holidays(2026) if h.name == '추석'][0]
    assert chuseok.type == 'lunar'
    assert chuseok.date == date(2026, 9, 17)


def test_is_holiday():
    assert CalendarService.is_holiday(date(2026, 12, 25)) == {'date': '2026-12-25', 'isHoliday': True}
    assert CalendarService.is_holiday(date(2026, 12, 24))['isHoliday'] is False
