"""Tests for request context variables."""

from uuid import uuid4

from mindful.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_course_id,
    get_request_id,
    get_user_id,
    set_course_id,
    set_request_id,
    set_user_id,
)


def test_set_request_id_generates_when_missing() -> None:
    request_id = set_request_id()

    assert request_id
    assert get_request_id() == request_id
    clear_context()


def test_context_includes_only_set_values() -> None:
    user_id = uuid4()
    set_request_id("req-1")
    set_user_id(user_id)

    assert get_context() == {"request_id": "req-1", "user_id": str(user_id)}
    clear_context()
    assert get_context() == {}


def test_request_context_restores_previous_values() -> None:
    course_id = uuid4()
    clear_context()
    set_course_id("outer-course")

    with RequestContext(request_id="req-2", course_id=course_id):
        assert get_request_id() == "req-2"
        assert get_course_id() == str(course_id)
        assert get_user_id() is None

    assert get_course_id() == "outer-course"
    assert get_request_id() == ""
    clear_context()
