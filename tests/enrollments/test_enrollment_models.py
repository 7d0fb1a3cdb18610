"""Tests for lesson progress primitives and document serialization."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from mindful.enrollments.aggregate import Enrollment
from mindful.enrollments.models import (
    Certificate,
    EnrollmentSettings,
    LessonProgress,
    PaymentInfo,
    dump_modules,
    load_modules,
    load_value,
)


class TestLessonProgress:
    """Tests for LessonProgress mutation primitives."""

    def test_mark_complete_sets_completed_at_once(self, now) -> None:
        lesson = LessonProgress(lesson_id=uuid4())

        lesson.mark_complete(30, now)
        lesson.mark_complete(10, now + timedelta(hours=1))

        assert lesson.completed is True
        assert lesson.completed_at == now
        assert lesson.watch_time == 30

    def test_update_progress_never_uncompletes(self, now) -> None:
        lesson = LessonProgress(lesson_id=uuid4())
        lesson.mark_complete(60, now)

        for position in (0, 5, 600, 0):
            lesson.update_progress(position, 0)

        assert lesson.completed is True
        assert lesson.completed_at == now

    @pytest.mark.parametrize(
        "watch_times",
        [
            [10, 50, 30],
            [50, 10, 30],
            [0, 0, 0],
            [120],
            [5, 5, 120, 119],
        ],
    )
    def test_watch_time_is_high_water_mark(self, now, watch_times) -> None:
        """Any order of updates keeps the maximum watch time."""
        lesson = LessonProgress(lesson_id=uuid4())

        for index, watch_time in enumerate(watch_times):
            if index % 2:
                lesson.mark_complete(watch_time, now)
            else:
                lesson.update_progress(0, watch_time)

        assert lesson.watch_time == max(watch_times)

    def test_update_progress_overwrites_position(self) -> None:
        lesson = LessonProgress(lesson_id=uuid4())

        lesson.update_progress(120, 120)
        lesson.update_progress(30, 100)

        assert lesson.last_position == 30
        assert lesson.watch_time == 120
        assert lesson.completed is False

    def test_failed_quiz_attempt_does_not_complete(self, now) -> None:
        lesson = LessonProgress(lesson_id=uuid4(), content_type="quiz")

        attempt = lesson.record_quiz_attempt(40, [0, 1], False, now)

        assert lesson.completed is False
        assert lesson.attempts == [attempt]
        assert attempt.attempted_at == now

    def test_passing_quiz_attempt_completes(self, now) -> None:
        lesson = LessonProgress(lesson_id=uuid4(), content_type="quiz")
        lesson.record_quiz_attempt(40, [0, 1], False, now)

        later = now + timedelta(minutes=5)
        lesson.record_quiz_attempt(100, [1, 1], True, later)

        assert lesson.completed is True
        assert lesson.completed_at == later
        assert [a.score for a in lesson.attempts] == [40, 100]

    def test_add_note_appends(self, now) -> None:
        lesson = LessonProgress(lesson_id=uuid4())

        lesson.add_note(12, "breathe in", now)
        lesson.add_note(3, "breathe out", now)

        assert [n.content for n in lesson.notes] == ["breathe in", "breathe out"]


class TestDocumentSerialization:
    """Tests for the JSON document stored in the enrollments table."""

    def test_tree_survives_round_trip(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video", "audio"], ["quiz"])
        first, second = enrollment.modules_progress
        enrollment.mark_lesson_complete(
            first.module_id, first.lessons_progress[0].lesson_id, 42, now
        )
        enrollment.submit_quiz_attempt(
            second.module_id, second.lessons_progress[0].lesson_id, 50, [1, 2], False, now
        )
        enrollment.add_note(
            first.module_id, first.lessons_progress[1].lesson_id, 7, "calm", now
        )

        restored = load_modules(dump_modules(enrollment.modules_progress))

        assert restored == enrollment.modules_progress

    def test_empty_column_loads_empty_tree(self) -> None:
        assert load_modules(None) == []
        assert load_modules("") == []

    def test_value_columns(self, now) -> None:
        payment = PaymentInfo(
            transaction_id="txn_1",
            amount=Decimal("49.90"),
            currency="USD",
            payment_method="card",
            paid_at=now,
        )
        assert payment.to_dict()["amount"] == "49.90"
        assert PaymentInfo.from_dict(payment.to_dict()) == payment
        assert load_value(Certificate, None) is None

    def test_settings_defaults_fill_missing_keys(self) -> None:
        settings = EnrollmentSettings.from_dict({"playback_speed": 1.5})

        assert settings.playback_speed == 1.5
        assert settings.notifications is True
        assert settings.auto_play is True
        assert settings.subtitles is False

    def test_enrollment_row_round_trip(self, make_enrollment, now) -> None:
        """from_row(to_row()) restores the aggregate."""
        enrollment = make_enrollment(["video"])
        module = enrollment.modules_progress[0]
        enrollment.update_lesson_progress(
            module.module_id, module.lessons_progress[0].lesson_id, 15, 20, now
        )
        enrollment.rate_course(5, "Lovely", now)
        enrollment.version = 3

        class Row:
            pass

        row = Row()
        for column, value in enrollment.to_row().items():
            setattr(row, column, value)
        row.user_id = enrollment.user_id
        row.course_id = enrollment.course_id
        row.version = enrollment.version

        assert Enrollment.from_row(row) == enrollment
