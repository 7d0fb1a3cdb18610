"""Tests for progress aggregation and status derivation."""

from datetime import timedelta

from mindful.enrollments.engine import recompute
from mindful.enrollments.models import EnrollmentStatus, ModuleProgress


def _complete_all(enrollment, now) -> None:
    for module in enrollment.modules_progress:
        for lesson in module.lessons_progress:
            lesson.mark_complete(10, now)


class TestRecompute:
    """Tests for recompute."""

    def test_fresh_enrollment(self, make_enrollment) -> None:
        enrollment = make_enrollment(["video", "audio"], ["text"])

        assert enrollment.status == EnrollmentStatus.ENROLLED.value
        assert enrollment.progress.percentage == 0
        assert enrollment.progress.total_lessons == 3
        assert enrollment.progress.total_modules == 2
        assert enrollment.started_at is None

    def test_aggregates_match_tree(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video", "video", "video"], ["audio"])
        first = enrollment.modules_progress[0]
        first.lessons_progress[0].mark_complete(30, now)
        first.lessons_progress[1].update_progress(10, 15)
        enrollment.modules_progress[1].lessons_progress[0].mark_complete(45, now)

        recompute(enrollment, now)

        progress = enrollment.progress
        assert progress.completed_lessons == 2
        assert progress.total_lessons == 4
        assert progress.percentage == 50
        assert progress.completed_modules == 1
        assert progress.total_modules == 2
        assert progress.total_watch_time == 90
        assert first.progress_percentage == 33
        assert first.completed is False
        assert enrollment.modules_progress[1].completed is True
        assert enrollment.modules_progress[1].completed_at == now

    def test_percentage_rounds_half_up(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"] * 8)
        enrollment.modules_progress[0].lessons_progress[0].mark_complete(0, now)

        recompute(enrollment, now)

        assert enrollment.progress.percentage == 13

    def test_completion_follows_rounded_percentage(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"] * 200)
        lessons = enrollment.modules_progress[0].lessons_progress
        for lesson in lessons[:-1]:
            lesson.mark_complete(0, now)

        recompute(enrollment, now)

        assert enrollment.progress.completed_lessons == 199
        assert enrollment.progress.percentage == 100
        assert enrollment.modules_progress[0].completed is True
        assert enrollment.status == EnrollmentStatus.COMPLETED.value

    def test_completion_sets_status_once(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"], ["video"])
        _complete_all(enrollment, now)

        recompute(enrollment, now)
        later = now + timedelta(days=1)
        recompute(enrollment, later)

        assert enrollment.status == EnrollmentStatus.COMPLETED.value
        assert enrollment.completed_at == now
        assert enrollment.started_at == now
        assert all(m.completed_at == now for m in enrollment.modules_progress)

    def test_direct_jump_to_completed_sets_started_at(
        self, make_enrollment, now
    ) -> None:
        enrollment = make_enrollment(["video"])
        _complete_all(enrollment, now)

        recompute(enrollment, now)

        assert enrollment.started_at == now
        assert enrollment.completed_at == now
        assert enrollment.progress.percentage == 100

    def test_zero_lesson_module_never_completes(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"], [])
        _complete_all(enrollment, now)

        recompute(enrollment, now)

        empty = enrollment.modules_progress[1]
        assert empty.completed is False
        assert empty.progress_percentage == 0
        assert enrollment.progress.completed_modules == 1
        assert enrollment.status == EnrollmentStatus.COMPLETED.value

    def test_empty_course_stays_enrolled(self, make_enrollment, now) -> None:
        enrollment = make_enrollment([])

        recompute(enrollment, now)

        assert enrollment.progress.total_lessons == 0
        assert enrollment.progress.percentage == 0
        assert enrollment.status == EnrollmentStatus.ENROLLED.value

    def test_rerun_is_idempotent(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video", "video"], ["audio"])
        enrollment.modules_progress[0].lessons_progress[0].mark_complete(20, now)
        recompute(enrollment, now)

        before = (
            enrollment.progress,
            enrollment.status,
            enrollment.started_at,
            [ModuleProgress.from_dict(m.to_dict()) for m in enrollment.modules_progress],
        )
        recompute(enrollment, now + timedelta(hours=3))
        after = (
            enrollment.progress,
            enrollment.status,
            enrollment.started_at,
            enrollment.modules_progress,
        )

        assert before == after

    def test_dropped_status_is_kept(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"])
        enrollment.status = EnrollmentStatus.DROPPED.value
        _complete_all(enrollment, now)

        recompute(enrollment, now)

        assert enrollment.status == EnrollmentStatus.DROPPED.value
        assert enrollment.completed_at is None
        assert enrollment.progress.percentage == 100

    def test_completed_never_reverts(self, make_enrollment, now) -> None:
        enrollment = make_enrollment(["video"])
        _complete_all(enrollment, now)
        recompute(enrollment, now)

        # Simulate a stale tree loaded without the completion
        enrollment.modules_progress[0].lessons_progress[0].completed = False
        recompute(enrollment, now + timedelta(minutes=1))

        assert enrollment.status == EnrollmentStatus.COMPLETED.value
        assert enrollment.completed_at == now
