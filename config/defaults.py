from typing import Optional

from config.schema import PlannerConfig


# ─── INTENSITY TIERS ───
# Tier key None is the "balanced" baseline used when no mode is given.

MODE_LABELS: dict[Optional[str], str] = {
    "short-term-exam": "Short-Term Exam Prep (intensive)",
    "long-term-exam": "Long-Term Exam Prep (balanced)",
    "no-exam": "No Exam Focus (homework first)",
    None: "Balanced (default)",
}

# Repetition cadence for topics of each tier
CADENCE: dict[Optional[str], str] = {
    "short-term-exam": "same topic every 2-3 days, daily in the final week before a test",
    "long-term-exam": "spaced repetition, review each topic every 4-7 days",
    "no-exam": "light review, once a week or less; homework first",
    None: "moderate spaced repetition, review every 5-7 days",
}

# Flexible-mode bands (min, max, default) in minutes: topic sessions, breaks
TOPIC_BANDS: dict[Optional[str], tuple[int, int, int]] = {
    "short-term-exam": (60, 90, 75),
    "long-term-exam": (45, 60, 50),
    "no-exam": (15, 25, 20),
    None: (45, 60, 50),
}

BREAK_BANDS: dict[Optional[str], tuple[int, int, int]] = {
    "short-term-exam": (5, 10, 8),
    "long-term-exam": (10, 15, 12),
    "no-exam": (15, 20, 18),
    None: (10, 15, 12),
}

# Focus topics (high priority / difficult) in flexible mode
FOCUS_BAND = (60, 90)
FOCUS_BASE_MINUTES = 45
FOCUS_MINUTES_PER_POINT = 5

# Topics of a subject with a test in flexible mode
TEST_SUBJECT_BAND = (60, 90, 75)

# Sessions per topic before test/priority boosts
BASE_TOPIC_SESSIONS = 2
BASE_TOPIC_SESSIONS_NO_EXAM = 1

# Difficult topics without an explicit priority count as this score
DIFFICULT_TOPIC_SCORE = 7.0
# Score → sessions: ceil(score / divisor)
PRIORITY_SESSION_DIVISOR = 1.5


# ─── RESOURCE HINTS ───

# Subject keyword (normalized, substring match) → practice resources
RESOURCE_HINTS: dict[str, list[str]] = {
    "math": ["Dr Frost Maths", "Corbett Maths"],
    "physics": ["Revisely", "SaveMyExams", "Isaac Physics"],
    "chemistry": ["Revisely", "SaveMyExams"],
    "biology": ["Revisely", "SaveMyExams"],
}

GENERAL_RESOURCES = ["SaveMyExams"]

EXAM_QUESTION_RESOURCES = ["PMT (Physics & Maths Tutor)", "Study Mind", "SaveMyExams"]


def resource_hints_for(subject_name: str) -> list[str]:
    """Practice resources for a subject, general resources last, no duplicates."""
    name = subject_name.casefold()
    hints: list[str] = []
    for keyword, resources in RESOURCE_HINTS.items():
        if keyword in name:
            hints.extend(resources)
    for r in GENERAL_RESOURCES:
        if r not in hints:
            hints.append(r)
    return hints


def default_planner_config() -> PlannerConfig:
    """Planner configuration with all defaults."""
    return PlannerConfig()


# ─── SCHOOL-HOUR WINDOWS ───

# Before-school, lunch and free-period windows only admit short homework
SCHOOL_WINDOW_MAX_HOMEWORK_MINUTES = 25
