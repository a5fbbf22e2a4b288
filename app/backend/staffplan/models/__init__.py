"""ORM model package."""

from staffplan.models.entities import (
    Approval,
    Bonus,
    ForecastDelta,
    LeaveRecord,
    OvertimeSubmission,
    Project,
    PublicHoliday,
    StaffMember,
    StaffRate,
    Task,
    TaskAssignment,
    TaskSellRate,
    TimeEntry,
)

__all__ = [
    "Approval",
    "Bonus",
    "ForecastDelta",
    "LeaveRecord",
    "OvertimeSubmission",
    "Project",
    "PublicHoliday",
    "StaffMember",
    "StaffRate",
    "Task",
    "TaskAssignment",
    "TaskSellRate",
    "TimeEntry",
]
