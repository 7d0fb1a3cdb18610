"""Tests for Enrollment aggregate operations."""

from datetime import timedelta
from uuid import uuid4

import pytest

from mindful.enrollments.aggregate import MAX_NOTE_LENGTH, MAX_REVIEW_LENGTH, Enrollment
from mindful.enrollments.exceptions import (
    InvalidEnrollmentStateError,
    InvalidProgressInputError,
    LessonProgressNotFoundError,
    ModuleProgressNotFoundError,
)
from mindful.enrollments.models import EnrollmentStatus


def _ids(enrollment: Enrollment, module_index: int = 0, lesson_index: int = 0):
    module = enrollment.modules_progress[module_index]
    return module.module_id, module.lessons_progress[lesson_index].lesson_id


def _complete_course(enrollment: Enrollment, now) -> None:
    for module in enrollment.modules_progress:
        for lesson in module.lessons_progress:
            enrollment.mark_lesson_complete(module.module_id, lesson.lesson_id, 10, now)


class TestCreate:
    """Tests for Enrollment.create."""

    def test_mirrors_curriculum(self, make_curriculum, user_id, course_id, now) -> None:
        curriculum = make_curriculum(course_id, ["video", "quiz"], ["audio"])

        enrollment = Enrollment.create(user_id, course_id, curriculum, now)

        assert [m.module_id for m in enrollment.modules_progress] == [
            m.module_id for m in curriculum.modules
        ]
        lessons = enrollment.modules_progress[0].lessons_progress
        assert [lesson.content_type for lesson in lessons] == ["video", "quiz"]
        assert all(not lesson.completed for lesson in lessons)
        assert enrollment.enrolled_at == now
        assert enrollment.last_accessed_at == now
        assert enrollment.status == EnrollmentStatus.ENROLLED.value
        assert enrollment.settings.playback_speed == 1.0
        assert enrollment.certificate.issued is False

    def test_rejects_foreign_curriculum(self, make_curriculum, user_id, now) -> None:
        curriculum = make_curriculum(uuid4(), ["video"])

        with pytest.raises(InvalidProgressInputError):
            Enrollment.create(user_id, uuid4(), curriculum, now)


class TestProgressScenarios:
    """End-to-end progress flows on a single enrollment."""

    def test_two_lesson_course(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video", "video"])
        module_id, first = _ids(enrollment, 0, 0)
        _, second = _ids(enrollment, 0, 1)

        enrollment.mark_lesson_complete(module_id, first, 30, now)

        assert enrollment.progress.percentage == 50
        assert enrollment.status == EnrollmentStatus.IN_PROGRESS.value
        assert enrollment.started_at == now

        later = now + timedelta(minutes=10)
        enrollment.mark_lesson_complete(module_id, second, 45, later)

        assert enrollment.progress.percentage == 100
        assert enrollment.progress.total_watch_time == 75
        assert enrollment.status == EnrollmentStatus.COMPLETED.value
        assert enrollment.completed_at == later
        assert enrollment.modules_progress[0].completed is True

    def test_quiz_fail_then_pass(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["quiz"])
        module_id, lesson_id = _ids(enrollment)

        enrollment.submit_quiz_attempt(module_id, lesson_id, 40, [0, 0], False, now)
        assert enrollment.find_lesson(module_id, lesson_id).completed is False
        assert enrollment.status == EnrollmentStatus.ENROLLED.value

        enrollment.submit_quiz_attempt(module_id, lesson_id, 90, [1, 2], True, now)

        lesson = enrollment.find_lesson(module_id, lesson_id)
        assert len(lesson.attempts) == 2
        assert lesson.completed is True
        assert enrollment.status == EnrollmentStatus.COMPLETED.value

    def test_rewind_keeps_watch_time(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"])
        module_id, lesson_id = _ids(enrollment)

        enrollment.update_lesson_progress(module_id, lesson_id, 120, 120, now)
        enrollment.update_lesson_progress(module_id, lesson_id, 30, 100, now)

        lesson = enrollment.find_lesson(module_id, lesson_id)
        assert lesson.last_position == 30
        assert lesson.watch_time == 120
        assert enrollment.current_lesson.position == 30
        assert enrollment.current_lesson.lesson_id == lesson_id
        assert enrollment.progress.total_watch_time == 120
        assert enrollment.status == EnrollmentStatus.ENROLLED.value

    def test_progress_is_monotonic(self, make_enrollment, now) -> None:
        """No sequence of operations lowers completion or watch time."""
        enrollment = make_enrollment(["video", "audio"], ["text", "video"])
        operations = [
            ("update", 0, 0, 50, 60),
            ("complete", 0, 0, 0, 10),
            ("update", 0, 0, 0, 5),
            ("update", 1, 1, 300, 310),
            ("complete", 1, 0, 0, 0),
            ("update", 1, 1, 10, 20),
            ("complete", 0, 0, 0, 0),
        ]
        previous_percent = 0
        previous_watch = 0

        for index, (op, m, lesson_index, position, watch_time) in enumerate(operations):
            module_id, lesson_id = _ids(enrollment, m, lesson_index)
            at = now + timedelta(seconds=index)
            if op == "complete":
                enrollment.mark_lesson_complete(module_id, lesson_id, watch_time, at)
            else:
                enrollment.update_lesson_progress(
                    module_id, lesson_id, position, watch_time, at
                )

            assert enrollment.progress.percentage >= previous_percent
            assert enrollment.progress.total_watch_time >= previous_watch
            previous_percent = enrollment.progress.percentage
            previous_watch = enrollment.progress.total_watch_time

        assert enrollment.find_lesson(*_ids(enrollment, 0, 0)).completed is True
        assert enrollment.progress.total_watch_time == 60 + 310

    def test_completed_enrollment_accepts_progress(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"])
        _complete_course(enrollment, now)
        module_id, lesson_id = _ids(enrollment)

        enrollment.update_lesson_progress(module_id, lesson_id, 5, 500, now)

        assert enrollment.status == EnrollmentStatus.COMPLETED.value
        assert enrollment.progress.total_watch_time == 500


class TestInputValidation:
    """Invalid input raises and leaves the aggregate unchanged."""

    def test_unknown_module(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()

        with pytest.raises(ModuleProgressNotFoundError):
            enrollment.mark_lesson_complete(uuid4(), uuid4(), 0, now)

    def test_unknown_lesson(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()
        module_id, _ = _ids(enrollment)

        with pytest.raises(LessonProgressNotFoundError):
            enrollment.update_lesson_progress(module_id, uuid4(), 0, 0, now)

    @pytest.mark.parametrize("position,watch_time", [(-1, 0), (0, -5)])
    def test_negative_progress(self, make_enrollment, now, position, watch_time) -> None:
        enrollment = make_enrollment()
        module_id, lesson_id = _ids(enrollment)
        before = enrollment.to_row()

        with pytest.raises(InvalidProgressInputError):
            enrollment.update_lesson_progress(
                module_id, lesson_id, position, watch_time, now + timedelta(hours=1)
            )

        assert enrollment.to_row() == before

    def test_complete_rejects_quiz_lesson(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["quiz"])
        module_id, lesson_id = _ids(enrollment)

        with pytest.raises(InvalidProgressInputError):
            enrollment.mark_lesson_complete(module_id, lesson_id, 0, now)

        assert enrollment.find_lesson(module_id, lesson_id).completed is False

    def test_quiz_attempt_on_video_rejected(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"])
        module_id, lesson_id = _ids(enrollment)

        with pytest.raises(InvalidProgressInputError):
            enrollment.submit_quiz_attempt(module_id, lesson_id, 100, [], True, now)

    def test_quiz_attempt_on_untyped_lesson_allowed(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"])
        module_id, lesson_id = _ids(enrollment)
        enrollment.find_lesson(module_id, lesson_id).content_type = None

        enrollment.submit_quiz_attempt(module_id, lesson_id, 80, [1], True, now)

        assert enrollment.find_lesson(module_id, lesson_id).completed is True

    @pytest.mark.parametrize("score", [-1, 101])
    def test_quiz_score_bounds(self, make_enrollment, now, score) -> None:
        enrollment = make_enrollment(["quiz"])
        module_id, lesson_id = _ids(enrollment)

        with pytest.raises(InvalidProgressInputError):
            enrollment.submit_quiz_attempt(module_id, lesson_id, score, [], False, now)

        assert enrollment.find_lesson(module_id, lesson_id).attempts == []

    def test_note_is_stripped(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()
        module_id, lesson_id = _ids(enrollment)

        note = enrollment.add_note(module_id, lesson_id, 42, "  stay present  ", now)

        assert note.content == "stay present"
        assert enrollment.find_lesson(module_id, lesson_id).notes == [note]

    @pytest.mark.parametrize("content", ["", "   ", "x" * (MAX_NOTE_LENGTH + 1)])
    def test_note_length(self, make_enrollment, now, content) -> None:
        enrollment = make_enrollment()
        module_id, lesson_id = _ids(enrollment)

        with pytest.raises(InvalidProgressInputError):
            enrollment.add_note(module_id, lesson_id, 0, content, now)

    def test_note_negative_timestamp(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()
        module_id, lesson_id = _ids(enrollment)

        with pytest.raises(InvalidProgressInputError):
            enrollment.add_note(module_id, lesson_id, -1, "hello", now)


class TestRating:
    """Tests for rate_course."""

    def test_rating_overwrites(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()

        enrollment.rate_course(3, "ok", now)
        later = now + timedelta(days=2)
        rating = enrollment.rate_course(5, None, later)

        assert enrollment.rating == rating
        assert rating.score == 5
        assert rating.review is None
        assert rating.rated_at == later

    @pytest.mark.parametrize("score", [0, 6])
    def test_score_bounds(self, make_enrollment, now, score) -> None:
        enrollment = make_enrollment()

        with pytest.raises(InvalidProgressInputError):
            enrollment.rate_course(score, None, now)

        assert enrollment.rating is None

    def test_review_length(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()

        with pytest.raises(InvalidProgressInputError):
            enrollment.rate_course(4, "x" * (MAX_REVIEW_LENGTH + 1), now)


class TestSettings:
    """Tests for update_settings."""

    def test_partial_update(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()

        settings = enrollment.update_settings(now, playback_speed=1.5, subtitles=True)

        assert settings.playback_speed == 1.5
        assert settings.subtitles is True
        assert settings.notifications is True
        assert settings.auto_play is True

    @pytest.mark.parametrize("speed", [0.1, 4.5])
    def test_playback_speed_bounds(self, make_enrollment, now, speed) -> None:
        enrollment = make_enrollment()

        with pytest.raises(InvalidProgressInputError):
            enrollment.update_settings(now, playback_speed=speed, subtitles=True)

        assert enrollment.settings.playback_speed == 1.0
        assert enrollment.settings.subtitles is False

    @pytest.mark.parametrize("speed", [0.25, 4.0])
    def test_playback_speed_limits_allowed(self, make_enrollment, now, speed) -> None:
        enrollment = make_enrollment()

        assert enrollment.update_settings(now, playback_speed=speed).playback_speed == speed


class TestDrop:
    """Tests for drop and the dropped state."""

    def test_drop_active(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()

        enrollment.drop(now)

        assert enrollment.status == EnrollmentStatus.DROPPED.value
        assert enrollment.dropped_at == now

    def test_drop_completed_rejected(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"])
        _complete_course(enrollment, now)

        with pytest.raises(InvalidEnrollmentStateError):
            enrollment.drop(now)

    def test_drop_twice_rejected(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()
        enrollment.drop(now)

        with pytest.raises(InvalidEnrollmentStateError):
            enrollment.drop(now + timedelta(minutes=1))

        assert enrollment.dropped_at == now

    def test_dropped_rejects_mutations(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()
        module_id, lesson_id = _ids(enrollment)
        enrollment.drop(now)
        before = enrollment.to_row()

        with pytest.raises(InvalidEnrollmentStateError):
            enrollment.mark_lesson_complete(module_id, lesson_id, 10, now)
        with pytest.raises(InvalidEnrollmentStateError):
            enrollment.update_lesson_progress(module_id, lesson_id, 1, 1, now)
        with pytest.raises(InvalidEnrollmentStateError):
            enrollment.add_note(module_id, lesson_id, 0, "note", now)
        with pytest.raises(InvalidEnrollmentStateError):
            enrollment.rate_course(5, None, now)
        with pytest.raises(InvalidEnrollmentStateError):
            enrollment.update_settings(now, subtitles=True)

        assert enrollment.to_row() == before


class TestCertificate:
    """Tests for issue_certificate."""

    def test_issue_for_completed(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"])
        _complete_course(enrollment, now)

        certificate = enrollment.issue_certificate("CERT-1", "https://x/cert.pdf", now)

        assert certificate.issued is True
        assert certificate.issued_at == now
        assert enrollment.certificate.certificate_id == "CERT-1"

    def test_not_completed(self, make_enrollment, now) -> None:
        enrollment = make_enrollment()

        with pytest.raises(InvalidEnrollmentStateError):
            enrollment.issue_certificate("CERT-1", None, now)

    def test_issued_once(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"])
        _complete_course(enrollment, now)
        enrollment.issue_certificate("CERT-1", None, now)

        with pytest.raises(InvalidEnrollmentStateError):
            enrollment.issue_certificate("CERT-2", None, now)

        assert enrollment.certificate.certificate_id == "CERT-1"
