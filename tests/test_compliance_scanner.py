"""End-to-end tests for the compliance scan triggers."""

import pytest

from coursewatch.db.models import CourseOfferingRow
from factories import ALLOCATION, FACILITATOR, MANAGERS, OTHER_FACILITATOR, add_logs, all_notifications, at_week


class TestWeeklyReminders:
    @pytest.mark.asyncio
    async def test_reminder_for_missing_current_week(self, scanner, service, sender, seeded):
        result = await scanner.send_weekly_reminders(now=at_week(3))

        assert result.week_number == 3
        assert result.queued == 1
        assert result.failed_units == 0

        [row] = await all_notifications(seeded, type="facilitator_reminder")
        assert (row.recipient_id, row.allocation_id, row.week_number) == (FACILITATOR, ALLOCATION, 3)
        assert row.status == "pending"

        await service.drain()
        [row] = await all_notifications(seeded, type="facilitator_reminder")
        assert row.status == "sent"
        assert len(sender.sent) == 1

    @pytest.mark.asyncio
    async def test_no_reminder_when_logged(self, scanner, seeded):
        await add_logs(seeded, ALLOCATION, [3])
        result = await scanner.send_weekly_reminders(now=at_week(3))

        assert result.queued == 0
        assert await all_notifications(seeded) == []

    @pytest.mark.asyncio
    async def test_rerun_queues_again(self, scanner, seeded):
        await scanner.send_weekly_reminders(now=at_week(3))
        await scanner.send_weekly_reminders(now=at_week(3))

        assert len(await all_notifications(seeded, type="facilitator_reminder")) == 2

    @pytest.mark.asyncio
    async def test_failing_offering_does_not_stop_scan(self, scanner, service, seeded):
        async with seeded() as session:
            session.add(CourseOfferingRow(
                allocation_id="alloc_web_b",
                module_id="mod_web",
                class_id="cls_2026j",
                trimester="T1",
                intake="HT2",
                facilitator_id=OTHER_FACILITATOR,
            ))
            await session.commit()

        original = service.queue_facilitator_reminder

        async def flaky(facilitator_id, allocation_id, week_number, delay_ms=0):
            if allocation_id == "alloc_web_a":
                raise RuntimeError("record store unavailable")
            return await original(facilitator_id, allocation_id, week_number, delay_ms)

        service.queue_facilitator_reminder = flaky
        result = await scanner.send_weekly_reminders(now=at_week(2))

        assert result.failed_units == 1
        assert result.queued == 1
        [row] = await all_notifications(seeded)
        assert row.allocation_id == "alloc_web_b"


class TestCompliance:
    @pytest.mark.asyncio
    async def test_missing_last_week_alerts_every_manager(self, scanner, seeded):
        await add_logs(seeded, ALLOCATION, [1, 2, 3])
        result = await scanner.check_compliance(now=at_week(5, weekday=1, hour=10))

        alerts = await all_notifications(seeded, type="manager_alert")
        assert result.queued == len(MANAGERS)
        assert sorted(a.recipient_id for a in alerts) == sorted(MANAGERS)
        assert {a.extra_data["alertType"] for a in alerts} == {"missing_submission"}
        assert {a.week_number for a in alerts} == {4}
        assert all(a.extra_data["severity"] == "medium" for a in alerts)

    @pytest.mark.asyncio
    async def test_two_of_four_missing_raises_compliance_warning(self, scanner, seeded):
        await add_logs(seeded, ALLOCATION, [4, 5])
        await scanner.check_compliance(now=at_week(6, weekday=1))

        alerts = await all_notifications(seeded, type="manager_alert")
        assert len(alerts) == len(MANAGERS)
        for alert in alerts:
            assert alert.extra_data["alertType"] == "compliance_warning"
            assert alert.extra_data["severity"] == "high"
            assert alert.extra_data["missedWeeks"] == [2, 3]
            assert alert.extra_data["facilitatorInfo"]["missedWeeks"] == [2, 3]
            assert alert.week_number == 6

    @pytest.mark.asyncio
    async def test_one_missing_week_is_not_a_pattern(self, scanner, seeded):
        await add_logs(seeded, ALLOCATION, [3, 4, 5])
        result = await scanner.check_compliance(now=at_week(6, weekday=1))

        assert result.queued == 0
        assert await all_notifications(seeded) == []

    @pytest.mark.asyncio
    async def test_both_checks_fire_independently(self, scanner, seeded):
        await add_logs(seeded, ALLOCATION, [4])
        await scanner.check_compliance(now=at_week(6, weekday=1))

        alerts = await all_notifications(seeded, type="manager_alert")
        kinds = sorted(a.extra_data["alertType"] for a in alerts)
        assert kinds == ["compliance_warning"] * 2 + ["missing_submission"] * 2
        warning = next(a for a in alerts if a.extra_data["alertType"] == "compliance_warning")
        assert warning.extra_data["missedWeeks"] == [2, 3, 5]

    @pytest.mark.asyncio
    async def test_first_week_has_no_history(self, scanner, seeded):
        result = await scanner.check_compliance(now=at_week(1, weekday=1))

        assert result.queued == 0
        assert await all_notifications(seeded) == []

    @pytest.mark.asyncio
    async def test_alerts_are_delivered(self, scanner, service, sender, seeded):
        await add_logs(seeded, ALLOCATION, [1, 2, 3])
        await scanner.check_compliance(now=at_week(5, weekday=1))

        assert await service.drain() == len(MANAGERS)
        assert {n.recipient.email for n in sender.sent} == {f"{m}@example.edu" for m in MANAGERS}


class TestDeadlineWarnings:
    @pytest.mark.asyncio
    async def test_thursday_warns_missing_current_week(self, scanner, service, seeded):
        result = await scanner.send_deadline_warnings(now=at_week(3, weekday=3, hour=8))

        assert result.skipped is False
        assert result.queued == 1
        [row] = await all_notifications(seeded, type="deadline_warning")
        assert row.recipient_id == FACILITATOR
        assert row.week_number == 3
        assert row.extra_data["daysRemaining"] == 3

        stats = await service.get_queue_stats()
        assert stats["deadlineWarnings"]["waiting"] == 1
        await service.drain()
        [row] = await all_notifications(seeded, type="deadline_warning")
        assert row.status == "sent"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("weekday", [0, 1, 2, 4, 5, 6])
    async def test_other_days_do_nothing(self, scanner, seeded, weekday):
        result = await scanner.send_deadline_warnings(now=at_week(3, weekday=weekday, hour=8))

        assert result.skipped is True
        assert await all_notifications(seeded) == []

    @pytest.mark.asyncio
    async def test_logged_week_is_not_warned(self, scanner, seeded):
        await add_logs(seeded, ALLOCATION, [3])
        result = await scanner.send_deadline_warnings(now=at_week(3, weekday=3))

        assert result.queued == 0


class TestQueueHygiene:
    @pytest.mark.asyncio
    async def test_clean_queues_reports_stats(self, scanner, service):
        await scanner.send_weekly_reminders(now=at_week(2))
        await service.drain()

        result = await scanner.clean_queues()
        assert result.details["stats"]["facilitatorReminders"]["completed"] == 1
        # finished seconds ago, well inside the retention window
        assert result.details["removed"]["facilitatorReminders"] == 0
