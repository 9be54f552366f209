from models.identity import normalize_identity
from models.subject import Subject, StudyMode
from models.topic import Topic, TestDate
from models.homework import Homework
from models.event import BlockedEvent
from models.preferences import Preferences, DayTimeSlot, SchoolHours, DurationMode
from models.signals import (
    PeakPerformanceSignal,
    TimeWindowStat,
    TopicAnalysis,
    TopicPriority,
    DifficultTopic,
)
from models.request import StudyRequest, RequestCheck
from models.schedule import Schedule, ScheduleEntry, EntryType, BREAK_TOPIC

__all__ = [
    "normalize_identity",
    "Subject",
    "StudyMode",
    "Topic",
    "TestDate",
    "Homework",
    "BlockedEvent",
    "Preferences",
    "DayTimeSlot",
    "SchoolHours",
    "DurationMode",
    "PeakPerformanceSignal",
    "TimeWindowStat",
    "TopicAnalysis",
    "TopicPriority",
    "DifficultTopic",
    "StudyRequest",
    "RequestCheck",
    "Schedule",
    "ScheduleEntry",
    "EntryType",
    "BREAK_TOPIC",
]
