import pytest

from clinicerp.utils.address_normalizer import (
    compare_addresses,
    extract_emdong_name,
    extract_sggu_code,
    extract_sido_code,
    normalize_address,
)
from clinicerp.utils.date_normalizer import compare_dates, format_date_for_display, normalize_date
from clinicerp.utils.string_normalizer import (
    compare_clinic_types,
    fuzzy_match_clinic_name,
    normalize_business_number,
    normalize_clinic_name,
)


class TestClinicNames:

    def test_normalize_collapses_whitespace_and_drops_brackets(self):
        assert normalize_clinic_name('  서울 (피부과)   의원 ') == '서울 피부과 의원'
        assert normalize_clinic_name(None) == ''

    @pytest.mark.parametrize('left, right', [
        ('강남 피부과', '강남  피부과'),
        ('강남피부과', '강남피부과의원'),
        ('Seoul Skin Clinic', 'seoul skin clinic'),
    ])
    def test_fuzzy_match_positive(self, left, right):
        assert fuzzy_match_clinic_name(left, right)

    def test_fuzzy_match_requires_word_overlap(self):
        assert not fuzzy_match_clinic_name('강남 피부과', '부산 치과')
        assert not fuzzy_match_clinic_name('', '강남 피부과')

    def test_clinic_type_comparison_ignores_spacing_and_case(self):
        assert compare_clinic_types('피부 과', '피부과')
        assert compare_clinic_types('Dental', 'dental')

    def test_business_number_keeps_digits_only(self):
        assert normalize_business_number('123-45-67890') == '1234567890'
        assert normalize_business_number(None) == ''


class TestAddresses:

    def test_city_aliases_expand(self):
        assert normalize_address('서울시  강남구 테헤란로 1') == '서울특별시 강남구 테헤란로 1'

    def test_sido_code_lookup(self):
        assert extract_sido_code('서울특별시 서초구') == '11'
        assert extract_sido_code('경기도 성남시') == '41'
        assert extract_sido_code('Somewhere else') is None
        assert extract_sggu_code('서울특별시 서초구') is None

    def test_emdong_from_parentheses_or_trailing_word(self):
        assert extract_emdong_name('서울특별시 서초구 반포대로 1 (반포동)') == '반포동'
        assert extract_emdong_name('서울특별시 강남구 역삼동') == '역삼동'
        assert extract_emdong_name('서울특별시 강남구 테헤란로') is None

    def test_compare_addresses(self):
        assert compare_addresses('서울시 강남구 테헤란로 1', '서울특별시 강남구 테헤란로 1')
        assert compare_addresses('서울특별시 강남구', '서울특별시 강남구 테헤란로 1')
        assert not compare_addresses('부산광역시 해운대구', '서울특별시 강남구 테헤란로 1')


class TestDates:

    @pytest.mark.parametrize('raw', ['2020-09-04', '2020년 09월 04일', '20200904', ' 2020.09.04 '])
    def test_normalize_date_formats(self, raw):
        assert normalize_date(raw) == '20200904'

    def test_compare_and_display(self):
        assert compare_dates('2020-09-04', '2020년 09월 04일')
        assert format_date_for_display('20200904') == '2020-09-04'
        assert format_date_for_display('2020') == '2020'
        assert format_date_for_display(None) == ''
