"""Tests for the notification record store."""

import pytest

from coursewatch.errors.exceptions import InvalidAlertTypeError, ValidationError
from coursewatch.repositories.notification_repo import NotificationRepository
from factories import ALLOCATION, FACILITATOR, all_notifications

COURSE_INFO = {"moduleName": "Web Development", "moduleCode": "WEB101", "className": "2026-J"}
FACILITATOR_INFO = {"id": FACILITATOR, "email": "fac.a@example.edu"}


class TestCreation:
    @pytest.mark.asyncio
    async def test_reminder_starts_pending(self, seeded):
        async with seeded() as session:
            repo = NotificationRepository(session)
            row = await repo.create_facilitator_reminder(FACILITATOR, ALLOCATION, 3, COURSE_INFO)
            await session.commit()

        assert row.notification_id.startswith("notif_")
        assert row.status == "pending"
        assert row.sent_at is None
        assert row.title == "Weekly Activity Log Reminder"
        assert "Week 3 of Web Development (2026-J)" in row.message
        assert row.extra_data == {"courseInfo": COURSE_INFO, "reminderType": "weekly_submission"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "alert_type,severity,title",
        [
            ("compliance_warning", "high", "Compliance Warning"),
            ("missing_submission", "medium", "Missing Activity Log Submission"),
            ("late_submission", "medium", "Late Activity Log Submission"),
        ],
    )
    async def test_alert_severity_and_title(self, seeded, alert_type, severity, title):
        async with seeded() as session:
            row = await NotificationRepository(session).create_manager_alert(
                "usr_mgr_a", FACILITATOR_INFO, ALLOCATION, 2, alert_type
            )
            await session.commit()

        assert row.type == "manager_alert"
        assert row.title == title
        assert row.extra_data["severity"] == severity
        assert row.extra_data["alertType"] == alert_type
        assert row.extra_data["facilitatorInfo"] == FACILITATOR_INFO

    @pytest.mark.asyncio
    async def test_alert_copies_missed_weeks(self, seeded):
        async with seeded() as session:
            row = await NotificationRepository(session).create_manager_alert(
                "usr_mgr_a",
                {**FACILITATOR_INFO, "missedWeeks": [2, 3]},
                ALLOCATION,
                6,
                "compliance_warning",
            )
            await session.commit()

        assert row.extra_data["missedWeeks"] == [2, 3]
        assert row.extra_data["facilitatorInfo"]["missedWeeks"] == [2, 3]

    @pytest.mark.asyncio
    async def test_unknown_alert_type_persists_nothing(self, seeded):
        async with seeded() as session:
            with pytest.raises(InvalidAlertTypeError):
                await NotificationRepository(session).create_manager_alert(
                    "usr_mgr_a", FACILITATOR_INFO, ALLOCATION, 2, "overdue_coffee"
                )
            await session.commit()

        assert await all_notifications(seeded) == []

    def test_invalid_alert_type_is_a_validation_error(self):
        assert issubclass(InvalidAlertTypeError, ValidationError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"recipient_id": ""},
            {"title": ""},
            {"message": "   "},
            {"type": "carrier_pigeon"},
        ],
    )
    async def test_create_notification_rejects_bad_input(self, seeded, overrides):
        fields = {
            "type": "deadline_warning",
            "recipient_id": FACILITATOR,
            "title": "t",
            "message": "m",
            **overrides,
        }
        async with seeded() as session:
            with pytest.raises(ValidationError):
                await NotificationRepository(session).create_notification(**fields)
            await session.commit()

        assert await all_notifications(seeded) == []

    @pytest.mark.asyncio
    async def test_deadline_warning_metadata(self, seeded):
        async with seeded() as session:
            row = await NotificationRepository(session).create_deadline_warning(
                FACILITATOR, ALLOCATION, 4, COURSE_INFO
            )
            await session.commit()

        assert row.title == "Activity Log Deadline Approaching"
        assert row.message == (
            "Reminder: Your activity log for Week 4 of Web Development is due by end of this week."
        )
        assert row.extra_data == {
            "courseInfo": COURSE_INFO,
            "deadlineType": "weekly_submission",
            "daysRemaining": 3,
        }


class TestTransitions:
    @pytest.mark.asyncio
    async def test_mark_as_sent_moves_out_of_pending(self, seeded):
        async with seeded() as session:
            repo = NotificationRepository(session)
            row = await repo.create_facilitator_reminder(FACILITATOR, ALLOCATION, 1, COURSE_INFO)
            assert await repo.mark_as_sent(row) is True
            await session.commit()

        async with seeded() as session:
            counts = await NotificationRepository(session).count_by_status()
        assert counts == {"pending": 0, "sent": 1, "failed": 0}

    @pytest.mark.asyncio
    async def test_mark_as_failed_preserves_metadata(self, seeded):
        async with seeded() as session:
            repo = NotificationRepository(session)
            row = await repo.create_facilitator_reminder(FACILITATOR, ALLOCATION, 1, COURSE_INFO)
            await repo.mark_as_failed(row, RuntimeError("smtp down"))
            await session.commit()
            notification_id = row.notification_id

        async with seeded() as session:
            stored = await NotificationRepository(session).get(notification_id)
        assert stored.status == "failed"
        assert stored.sent_at is None
        assert stored.extra_data["courseInfo"] == COURSE_INFO
        assert stored.extra_data["reminderType"] == "weekly_submission"
        assert stored.extra_data["error"] == "smtp down"
        assert "failedAt" in stored.extra_data

    @pytest.mark.asyncio
    async def test_sent_is_terminal(self, seeded):
        async with seeded() as session:
            repo = NotificationRepository(session)
            row = await repo.create_facilitator_reminder(FACILITATOR, ALLOCATION, 1, COURSE_INFO)
            await repo.mark_as_sent(row)
            sent_at = row.sent_at

            assert await repo.mark_as_failed(row, "late error") is False
            assert await repo.mark_as_sent(row) is False
            await session.commit()

        assert row.status == "sent"
        assert row.sent_at == sent_at
        assert "error" not in row.extra_data

    @pytest.mark.asyncio
    async def test_retry_success_clears_failure_marker(self, seeded):
        async with seeded() as session:
            repo = NotificationRepository(session)
            row = await repo.create_facilitator_reminder(FACILITATOR, ALLOCATION, 1, COURSE_INFO)
            await repo.mark_as_failed(row, "first attempt")
            await repo.mark_as_sent(row)
            await session.commit()

        assert row.status == "sent"
        assert row.sent_at is not None
        assert "failedAt" not in row.extra_data
        assert "error" not in row.extra_data
        assert row.extra_data["previousErrors"][0]["error"] == "first attempt"


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_with_context_loads_relations(self, seeded):
        async with seeded() as session:
            row = await NotificationRepository(session).create_facilitator_reminder(
                FACILITATOR, ALLOCATION, 1, COURSE_INFO
            )
            await session.commit()
            notification_id = row.notification_id

        async with seeded() as session:
            loaded = await NotificationRepository(session).get_with_context(notification_id)

        assert loaded.recipient.email == "fac.a@example.edu"
        assert loaded.course_offering.module.code == "WEB101"
        assert loaded.course_offering.class_.name == "2026-J"

    @pytest.mark.asyncio
    async def test_list_by_recipient_and_status(self, seeded):
        async with seeded() as session:
            repo = NotificationRepository(session)
            first = await repo.create_facilitator_reminder(FACILITATOR, ALLOCATION, 1, COURSE_INFO)
            await repo.create_facilitator_reminder(FACILITATOR, ALLOCATION, 2, COURSE_INFO)
            await repo.mark_as_sent(first)
            await session.commit()

        async with seeded() as session:
            repo = NotificationRepository(session)
            assert len(await repo.list_by_recipient(FACILITATOR)) == 2
            assert [r.week_number for r in await repo.list_by_status("sent")] == [1]
            assert len(await repo.list_by_type("facilitator_reminder")) == 2
