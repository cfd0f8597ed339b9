"""Tests for cattle age and milking eligibility."""

from datetime import date

import pytest

from farm_manager.models.cattle import Cattle, CattleStatus, Gender, months_between, years_between

TODAY = date(2026, 10, 18)


def _cow(**fields: object) -> Cattle:
    defaults: dict = {
        "tag_number": "C-001",
        "name": "Bessie",
        "gender": Gender.FEMALE.value,
        "status": CattleStatus.ACTIVE.value,
        "birth_date": date(2020, 3, 1),
    }
    defaults.update(fields)
    return Cattle(**defaults)


class TestAgeHelpers:
    def test_years_before_birthday(self) -> None:
        assert years_between(date(2020, 10, 19), TODAY) == 5

    def test_years_on_birthday(self) -> None:
        assert years_between(date(2020, 10, 18), TODAY) == 6

    def test_leap_day_birthday(self) -> None:
        assert years_between(date(2024, 2, 29), date(2025, 2, 28)) == 0
        assert years_between(date(2024, 2, 29), date(2025, 3, 1)) == 1

    def test_months_ignore_day_of_month(self) -> None:
        assert months_between(date(2024, 10, 31), date(2026, 10, 1)) == 24
        assert months_between(date(2024, 11, 1), TODAY) == 23


class TestCattleAge:
    def test_unknown_birth_date(self) -> None:
        cow = _cow(birth_date=None)
        assert cow.age_on(TODAY) is None
        assert cow.age_in_months_on(TODAY) is None
        assert cow.is_adult_on(TODAY) is False

    def test_age_in_years_and_months(self) -> None:
        cow = _cow()
        assert cow.age_on(TODAY) == 6
        assert cow.age_in_months_on(TODAY) == 79

    @pytest.mark.parametrize(
        ("birth_date", "expected"),
        [(date(2024, 10, 1), True), (date(2024, 11, 1), False)],
    )
    def test_adult_from_twenty_four_months(self, birth_date: date, expected: bool) -> None:
        assert _cow(birth_date=birth_date).is_adult_on(TODAY) is expected


class TestCanMilk:
    def test_adult_active_cow(self) -> None:
        assert _cow().can_milk_on(TODAY) is True

    def test_bull_cannot_be_milked(self) -> None:
        assert _cow(gender=Gender.MALE.value).can_milk_on(TODAY) is False

    @pytest.mark.parametrize("status", [CattleStatus.DRY, CattleStatus.SICK, CattleStatus.PREGNANT, CattleStatus.SOLD])
    def test_inactive_cow_cannot_be_milked(self, status: CattleStatus) -> None:
        assert _cow(status=status.value).can_milk_on(TODAY) is False

    def test_heifer_cannot_be_milked(self) -> None:
        assert _cow(birth_date=date(2025, 6, 1)).can_milk_on(TODAY) is False

    def test_properties_use_current_day(self) -> None:
        cow = _cow(birth_date=date(2000, 1, 1))
        assert cow.is_adult is True
        assert cow.can_milk is True
        assert cow.age is not None and cow.age >= 26
