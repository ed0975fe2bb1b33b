"""
Work plans derived from a finished report.
MaintenancePlan and ProjectPlan are the validation targets for model-emitted plan JSON.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class PlanPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PlanStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class PlanTask(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(default="")
    steps: list[str] = Field(default_factory=list)
    priority: PlanPriority = Field(default=PlanPriority.MEDIUM)
    estimated_time_minutes: int = Field(default=0, ge=0)

    @field_validator("priority", mode="before")
    @classmethod
    def lowercase_priority(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class MaintenanceTask(PlanTask):
    """One maintenance step; dependencies are 1-based positions of earlier tasks."""

    status: PlanStatus = Field(default=PlanStatus.PENDING)
    dependencies: list[int] = Field(default_factory=list)


class MaintenancePlan(BaseModel):
    """Maintenance plan for the problems a report found."""

    title: str = Field(..., min_length=1)
    description: str = Field(default="")
    priority: PlanPriority = Field(default=PlanPriority.MEDIUM)
    status: PlanStatus = Field(default=PlanStatus.PENDING)
    tasks: list[MaintenanceTask] = Field(..., min_length=1)

    @field_validator("priority", mode="before")
    @classmethod
    def lowercase_priority(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def check_dependencies(self) -> "MaintenancePlan":
        for position, task in enumerate(self.tasks, start=1):
            for dependency in task.dependencies:
                if not 1 <= dependency <= len(self.tasks) or dependency == position:
                    raise ValueError(f"task {position} depends on unknown task {dependency}")
        return self

    @property
    def estimated_minutes(self) -> int:
        return sum(task.estimated_time_minutes for task in self.tasks)


class ProjectTask(PlanTask):
    due_date: date | None = Field(default=None)

    @field_validator("due_date", mode="before")
    @classmethod
    def blank_due_date(cls, value):
        return None if isinstance(value, str) and not value.strip() else value


class ProjectPlan(BaseModel):
    """Project that turns a report's findings into tracked work."""

    project_name: str = Field(..., min_length=1)
    project_description: str = Field(default="")
    priority: PlanPriority = Field(default=PlanPriority.MEDIUM)
    tasks: list[ProjectTask] = Field(..., min_length=1)
    created_from: str | None = Field(default=None)

    @field_validator("priority", mode="before")
    @classmethod
    def lowercase_priority(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @property
    def estimated_minutes(self) -> int:
        return sum(task.estimated_time_minutes for task in self.tasks)
