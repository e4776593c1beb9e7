# Lower bound (inclusive) of each letter grade, on a 0-100 scale.
GRADE_BOUNDARIES = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)


def letter_grade(score: float) -> str:
    if score < 0 or score > 100:
        raise ValueError("score must be between 0 and 100")
    for lower, letter in GRADE_BOUNDARIES:
        if score >= lower:
            return letter
    return "F"
