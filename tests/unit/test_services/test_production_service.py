"""Tests for the milk production log against a real SQLite session."""

import uuid
from datetime import UTC, date, datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.errors import DuplicateRecordError, InvalidRecordError, RecordNotFoundError
from farm_manager.models.cattle import Cattle, CattleStatus, Gender
from farm_manager.models.production import MilkingSession, Production, ProductionStatus
from farm_manager.models.user import User
from farm_manager.services import cattle_service, production_service
from tests.conftest import CattleFactory

TODAY = date(2026, 10, 18)
DAY = date(2026, 10, 1)


def _entry(cattle: Cattle, quantity: float = 12.5, **fields: object) -> dict:
    data: dict = {
        "cattle_id": cattle.id,
        "production_date": DAY,
        "session": MilkingSession.MORNING,
        "quantity": quantity,
    }
    data.update(fields)
    return data


@pytest.fixture
async def cow(cattle_factory: CattleFactory) -> Cattle:
    return await cattle_factory("C-001", name="Bessie")


async def _record(session: AsyncSession, user: User, cattle: Cattle, /, **fields: object) -> Production:
    return await production_service.record_production(
        session, data=_entry(cattle, **fields), recorded_by=user, today=TODAY
    )


class TestRecordProduction:
    @pytest.mark.asyncio
    async def test_records_milking(self, async_session: AsyncSession, sample_user: User, cow: Cattle) -> None:
        production = await _record(async_session, sample_user, cow, fat_content=3.8, protein_content=3.4)

        assert production.id is not None
        assert production.status == ProductionStatus.RECORDED
        assert production.recorded_by == sample_user.id
        assert production.quality_grade == "A"

    @pytest.mark.asyncio
    async def test_unknown_cattle(self, async_session: AsyncSession, sample_user: User) -> None:
        data = {"cattle_id": uuid.uuid4(), "production_date": DAY, "session": "morning", "quantity": 5.0}
        with pytest.raises(RecordNotFoundError, match="Cattle not found"):
            await production_service.record_production(async_session, data=data, recorded_by=sample_user)

    @pytest.mark.asyncio
    async def test_bull_is_not_eligible(
        self, async_session: AsyncSession, sample_user: User, cattle_factory: CattleFactory
    ) -> None:
        bull = await cattle_factory("B-001", name="Ferdinand", gender=Gender.MALE)
        with pytest.raises(InvalidRecordError, match=r"Cattle Ferdinand \(B-001\) is not eligible"):
            await _record(async_session, sample_user, bull)

    @pytest.mark.asyncio
    async def test_dry_cow_is_not_eligible(
        self, async_session: AsyncSession, sample_user: User, cattle_factory: CattleFactory
    ) -> None:
        dry = await cattle_factory("C-002", status=CattleStatus.DRY)
        with pytest.raises(InvalidRecordError):
            await _record(async_session, sample_user, dry)

    @pytest.mark.asyncio
    async def test_one_record_per_session(self, async_session: AsyncSession, sample_user: User, cow: Cattle) -> None:
        await _record(async_session, sample_user, cow)
        with pytest.raises(DuplicateRecordError, match="already exists for Bessie on 2026-10-01 morning session"):
            await _record(async_session, sample_user, cow, quantity=3.0)

        evening = await _record(async_session, sample_user, cow, session=MilkingSession.EVENING)
        assert evening.session == "evening"

    @pytest.mark.asyncio
    async def test_deleted_record_frees_the_session(
        self, async_session: AsyncSession, sample_user: User, cow: Cattle
    ) -> None:
        first = await _record(async_session, sample_user, cow)
        await production_service.soft_delete_production(async_session, first)

        again = await _record(async_session, sample_user, cow, quantity=11.0)
        assert again.id != first.id


class TestBulkRecord:
    @pytest.mark.asyncio
    async def test_keeps_valid_entries(
        self, async_session: AsyncSession, sample_user: User, cow: Cattle, cattle_factory: CattleFactory
    ) -> None:
        bull = await cattle_factory("B-001", gender=Gender.MALE)
        entries = [
            _entry(cow),
            _entry(bull),
            _entry(cow, session=MilkingSession.EVENING),
            _entry(cow, quantity=1.0),
        ]

        created, errors = await production_service.bulk_record_production(
            async_session, records=entries, recorded_by=sample_user, today=TODAY
        )

        assert [p.session for p in created] == ["morning", "evening"]
        assert [index for index, _ in errors] == [1, 3]
        assert "already exists" in errors[1][1]

    @pytest.mark.asyncio
    async def test_all_failing_raises(self, async_session: AsyncSession, sample_user: User) -> None:
        entries = [{"cattle_id": uuid.uuid4(), "production_date": DAY, "session": "morning", "quantity": 1.0}]
        with pytest.raises(InvalidRecordError, match="All records failed: Cattle not found"):
            await production_service.bulk_record_production(async_session, records=entries, recorded_by=sample_user)


class TestWorkflow:
    @pytest.mark.asyncio
    async def test_update_recorded_entry(self, async_session: AsyncSession, sample_user: User, cow: Cattle) -> None:
        production = await _record(async_session, sample_user, cow)
        updated = await production_service.update_production(
            async_session, production, {"quantity": 14.0, "cattle_id": uuid.uuid4(), "session": None}
        )

        assert updated.quantity == 14.0
        assert updated.cattle_id == cow.id
        assert updated.session == "morning"

    @pytest.mark.asyncio
    async def test_moving_onto_taken_session(self, async_session: AsyncSession, sample_user: User, cow: Cattle) -> None:
        await _record(async_session, sample_user, cow)
        evening = await _record(async_session, sample_user, cow, session=MilkingSession.EVENING)
        with pytest.raises(DuplicateRecordError):
            await production_service.update_production(async_session, evening, {"session": MilkingSession.MORNING})

    @pytest.mark.asyncio
    async def test_verify_appends_notes(
        self, async_session: AsyncSession, sample_user: User, admin_user: User, cow: Cattle
    ) -> None:
        production = await _record(async_session, sample_user, cow, notes="Warm udder")
        at = datetime(2026, 10, 2, 8, 0, tzinfo=UTC)

        verified = await production_service.verify_production(
            async_session, production, status=ProductionStatus.VERIFIED, verifier=admin_user, notes="Checked", now=at
        )

        assert verified.status == "verified"
        assert verified.verified_by == admin_user.id
        assert verified.verified_at is not None
        assert verified.notes == "Warm udder\n\nVerification: Checked"

    @pytest.mark.asyncio
    async def test_verify_without_previous_notes(
        self, async_session: AsyncSession, sample_user: User, admin_user: User, cow: Cattle
    ) -> None:
        production = await _record(async_session, sample_user, cow)
        rejected = await production_service.verify_production(
            async_session, production, status=ProductionStatus.REJECTED, verifier=admin_user, notes="Sample spoiled"
        )
        assert rejected.notes == "Verification: Sample spoiled"

    @pytest.mark.asyncio
    async def test_verified_record_is_frozen(
        self, async_session: AsyncSession, sample_user: User, admin_user: User, cow: Cattle
    ) -> None:
        production = await _record(async_session, sample_user, cow)
        await production_service.verify_production(
            async_session, production, status=ProductionStatus.VERIFIED, verifier=admin_user
        )

        with pytest.raises(InvalidRecordError, match="Cannot update production record with status: verified"):
            await production_service.update_production(async_session, production, {"quantity": 1.0})
        with pytest.raises(InvalidRecordError, match="already verified"):
            await production_service.verify_production(
                async_session, production, status=ProductionStatus.REJECTED, verifier=admin_user
            )
        with pytest.raises(InvalidRecordError, match="Cannot delete"):
            await production_service.soft_delete_production(async_session, production)

    @pytest.mark.asyncio
    async def test_recorded_is_not_a_verdict(
        self, async_session: AsyncSession, sample_user: User, admin_user: User, cow: Cattle
    ) -> None:
        production = await _record(async_session, sample_user, cow)
        with pytest.raises(InvalidRecordError):
            await production_service.verify_production(
                async_session, production, status=ProductionStatus.RECORDED, verifier=admin_user
            )


class TestReports:
    @pytest.fixture
    async def week(
        self, async_session: AsyncSession, sample_user: User, cattle_factory: CattleFactory
    ) -> tuple[Cattle, Cattle]:
        bessie = await cattle_factory("C-001", name="Bessie")
        molly = await cattle_factory("C-002", name="Molly")
        await _record(async_session, sample_user, bessie, quantity=10.0, fat_content=3.8, protein_content=3.4)
        await _record(async_session, sample_user, bessie, quantity=8.0, session=MilkingSession.EVENING)
        await _record(async_session, sample_user, molly, quantity=12.0, fat_content=2.5, protein_content=2.5)
        await _record(async_session, sample_user, molly, quantity=6.0, production_date=date(2026, 10, 3))
        return bessie, molly

    @pytest.mark.asyncio
    async def test_daily_summary(self, async_session: AsyncSession, week: tuple[Cattle, Cattle]) -> None:
        summary = await production_service.daily_summary(async_session, DAY)
        assert summary == {
            "date": DAY,
            "morning": 22.0,
            "evening": 8.0,
            "total": 30.0,
            "cattle_count": 2,
            "average_per_cow": 15.0,
        }

    @pytest.mark.asyncio
    async def test_empty_day(self, async_session: AsyncSession) -> None:
        summary = await production_service.daily_summary(async_session, DAY)
        assert summary["total"] == 0
        assert summary["average_per_cow"] == 0.0

    @pytest.mark.asyncio
    async def test_monthly_report(self, async_session: AsyncSession, week: tuple[Cattle, Cattle]) -> None:
        report = await production_service.monthly_report(async_session, 2026, 10)

        assert len(report) == 31
        assert report[0]["total"] == 30.0
        assert report[1]["total"] == 0
        assert report[2]["total"] == 6.0
        assert report[-1]["date"] == date(2026, 10, 31)

    @pytest.mark.asyncio
    async def test_monthly_report_rejects_bad_month(self, async_session: AsyncSession) -> None:
        with pytest.raises(InvalidRecordError):
            await production_service.monthly_report(async_session, 2026, 13)

    @pytest.mark.asyncio
    async def test_statistics(self, async_session: AsyncSession, week: tuple[Cattle, Cattle]) -> None:
        _, molly = week
        await cattle_service.update_cattle_status(async_session, molly, CattleStatus.SICK)

        stats = await production_service.production_statistics(async_session)

        assert stats["total_production"] == 36.0
        assert stats["average_daily"] == 18.0
        assert stats["average_per_cow"] == 18.0
        assert stats["highest_daily"] == 30.0
        assert stats["lowest_daily"] == 6.0
        assert stats["total_cattle"] == 2
        assert stats["active_cattle"] == 1
        assert stats["quality_distribution"] == {"grade_a": 1, "grade_b": 0, "grade_c": 1, "ungraded": 2}
        assert stats["status_distribution"] == {"recorded": 4, "verified": 0, "rejected": 0}

    @pytest.mark.asyncio
    async def test_statistics_date_range(self, async_session: AsyncSession, week: tuple[Cattle, Cattle]) -> None:
        stats = await production_service.production_statistics(async_session, date_from=date(2026, 10, 2))
        assert stats["total_production"] == 6.0
        assert stats["total_cattle"] == 1

    @pytest.mark.asyncio
    async def test_statistics_without_records(self, async_session: AsyncSession) -> None:
        stats = await production_service.production_statistics(async_session)
        assert stats["total_production"] == 0.0
        assert stats["quality_distribution"]["ungraded"] == 0

    @pytest.mark.asyncio
    async def test_history_order_and_filters(
        self, async_session: AsyncSession, week: tuple[Cattle, Cattle]
    ) -> None:
        bessie, molly = week
        history = await production_service.cattle_history(async_session, bessie.id)
        assert [p.session for p in history] == ["morning", "evening"]

        history = await production_service.cattle_history(async_session, molly.id, date_from=date(2026, 10, 2))
        assert [p.production_date for p in history] == [date(2026, 10, 3)]

    @pytest.mark.asyncio
    async def test_history_of_unknown_cattle(self, async_session: AsyncSession) -> None:
        with pytest.raises(RecordNotFoundError):
            await production_service.cattle_history(async_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_list_filters_and_search(self, async_session: AsyncSession, week: tuple[Cattle, Cattle]) -> None:
        records, total = await production_service.list_productions(async_session, search="moll")
        assert total == 2
        assert records[0].production_date == date(2026, 10, 3)

        _, total = await production_service.list_productions(async_session, milking_session="evening")
        assert total == 1
        _, total = await production_service.list_productions(async_session, min_quantity=9, max_quantity=11)
        assert total == 1
        _, total = await production_service.list_productions(async_session, on_date=DAY)
        assert total == 3
