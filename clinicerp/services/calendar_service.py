"""Korean public holidays for the clinic calendar.

Lunar holidays use fixed approximate solar dates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List

from ..errors import ValidationError

SOLAR_HOLIDAYS = (
    (1, 1, '새해', "New Year's Day"),
    (3, 1, '삼일절', 'Independence Movement Day'),
    (5, 5, '어린이날', "Children's Day"),
    (6, 6, '현충일', 'Memorial Day'),
    (8, 15, '광복절', 'Liberation Day'),
    (10, 3, '개천절', 'National Foundation Day'),
    (10, 9, '한글날', 'Hangeul Day'),
    (12, 25, '크리스마스', 'Christmas'),
)

LUNAR_HOLIDAYS = (
    (2, 10, '설날', 'Lunar New Year'),
    (5, 15, '석가탄신일', "Buddha's Birthday"),
    (9, 17, '추석', 'Chuseok'),
)


@dataclass(frozen=True)
class Holiday:
    name: str
    name_en: str
    date: date
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'nameEn': self.name_en,
            'date': self.date.isoformat(),
            'type': self.type,
        }


class CalendarService:

    @staticmethod
    def get_holidays(year: int) -> List[Holiday]:
        if year < 1 or year > 9999:
            raise ValidationError('Invalid year', errors={'year': ['out of range']})
        holidays = [Holiday(name, name_en, date(year, month, day), 'solar')
                    for month, day, name, name_en in SOLAR_HOLIDAYS]
        holidays += [Holiday(name, name_en, date(year, month, day), 'lunar')
                     for month, day, name, name_en in LUNAR_HOLIDAYS]
        return sorted(holidays, key=lambda h: h.date)

    @staticmethod
    def get_yearly_holidays(year: int) -> Dict[str, Any]:
        return {
            'year': year,
            'holidays': [h.to_dict() for h in CalendarService.get_holidays(year)],
        }

    @staticmethod
    def get_monthly_holidays(year: int, month: int) -> Dict[str, Any]:
        if month < 1 or month > 12:
            raise ValidationError('Invalid month', errors={'month': ['must be between 1 and 12']})
        return {
            'year': year,
            'month': month,
            'holidays': [h.to_dict() for h in CalendarService.get_holidays(year) if h.date.month == month],
        }

    @staticmethod
    def is_holiday(day: date) -> Dict[str, Any]:
        holidays = CalendarService.get_holidays(day.year)
        return {
            'date': day.isoformat(),
            'isHoliday': any(h.date == day for h in holidays),
        }
