from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.semester import Semester  # noqa: F401
from app.models.timetable_entry import DayOfWeek, TimetableEntry  # noqa: F401
