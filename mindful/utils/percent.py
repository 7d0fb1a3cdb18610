"""Integer percentage helper shared by progress aggregation and quiz scoring."""


def percent_of(part: int, whole: int) -> int:
    """Return ``100 * part / whole`` rounded half-up to an integer.

    Uses integer arithmetic, so 1/8 -> 13 and 1/3 -> 33 exactly, with no
    float drift. A zero ``whole`` yields 0.
    """
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)
