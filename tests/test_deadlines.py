from datetime import date, datetime, timedelta, timezone

import pytest

from teambalance.deadlines import NO_DEADLINE, DeadlineStatus, classify, days_until

NOW = date(2024, 1, 10)


class TestClassifyScenarios:
    @pytest.mark.parametrize(
        "deadline, category, label",
        [
            (date(2024, 1, 8), "overdue", "Overdue by 2 day(s)"),
            (date(2024, 1, 9), "overdue", "Overdue by 1 day(s)"),
            (date(2024, 1, 10), "today", "Due today!"),
            (date(2024, 1, 11), "urgent", "Due in 1 day(s)"),
            (date(2024, 1, 12), "urgent", "Due in 2 day(s)"),
            (date(2024, 1, 13), "soon", "Due in 3 days"),
            (date(2024, 1, 16), "soon", "Due in 6 days"),
            (date(2024, 1, 17), "soon", "Due in 7 days"),
            (date(2024, 1, 18), "safe", "Due in 8 days"),
            (date(2024, 2, 1), "safe", "Due in 22 days"),
        ],
    )
    def test_categories_at_midnight(self, deadline, category, label):
        assert classify(deadline, False, NOW) == DeadlineStatus(category, label)

    def test_no_deadline_is_none(self):
        status = classify(None, False, NOW)
        assert status == NO_DEADLINE
        assert status.category == "none"
        assert status.label == ""

    def test_completed_task_is_none_even_when_overdue(self):
        assert classify(date(2023, 12, 1), True, NOW) == NO_DEADLINE


class TestTimeOfDay:
    def test_later_on_the_due_day_is_still_today(self):
        now = datetime(2024, 1, 10, 18, 30)
        assert classify(date(2024, 1, 10), False, now).category == "today"

    def test_partial_day_rounds_up(self):
        # 15 hours away counts as one day
        now = datetime(2024, 1, 10, 9, 0)
        assert classify(date(2024, 1, 11), False, now) == DeadlineStatus("urgent", "Due in 1 day(s)")

    def test_yesterday_seen_mid_morning(self):
        now = datetime(2024, 1, 10, 9, 0)
        assert classify(date(2024, 1, 9), False, now) == DeadlineStatus("overdue", "Overdue by 1 day(s)")

    def test_aware_now_keeps_its_timezone(self):
        tz = timezone(timedelta(hours=-5))
        now = datetime(2024, 1, 10, 23, 0, tzinfo=tz)
        assert days_until(date(2024, 1, 12), now) == 2


class TestPurity:
    def test_same_inputs_same_output(self):
        results = {classify(date(2024, 1, 12), False, NOW) for _ in range(5)}
        assert results == {DeadlineStatus("urgent", "Due in 2 day(s)")}
