"""
Markdown rendering for maintenance plans and projects.
"""

from dbsage.schemas.plan import MaintenancePlan, PlanTask, ProjectPlan


def format_minutes(minutes: int) -> str:
    """45 -> "45 min", 150 -> "2 h 30 min", 0 -> "not estimated"."""
    if minutes <= 0:
        return "not estimated"
    hours, rest = divmod(minutes, 60)
    if not hours:
        return f"{rest} min"
    return f"{hours} h {rest} min" if rest else f"{hours} h"


def _steps(task: PlanTask) -> list[str]:
    if not task.steps:
        return []
    lines = ["**Steps:**", ""]
    lines.extend(f"{i}. {step}" for i, step in enumerate(task.steps, start=1))
    lines.append("")
    return lines


def render_maintenance_plan(plan: MaintenancePlan) -> str:
    lines = [
        f"# {plan.title}",
        "",
        f"**Priority:** {plan.priority.value}",
        f"**Status:** {plan.status.value}",
        f"**Estimated duration:** {format_minutes(plan.estimated_minutes)}",
        "",
    ]
    if plan.description:
        lines += [plan.description, ""]
    lines += ["## Tasks", ""]

    for i, task in enumerate(plan.tasks, start=1):
        lines += [
            f"### {i}. {task.title}",
            "",
            f"**Priority:** {task.priority.value}",
            f"**Estimated time:** {format_minutes(task.estimated_time_minutes)}",
            f"**Status:** {task.status.value}",
            "",
        ]
        if task.description:
            lines += [task.description, ""]
        lines += _steps(task)
        if task.dependencies:
            lines += [f"**Depends on:** tasks {', '.join(str(d) for d in task.dependencies)}", ""]

    return "\n".join(lines).rstrip() + "\n"


def render_project_plan(plan: ProjectPlan) -> str:
    lines = [f"# {plan.project_name}", "", f"**Priority:** {plan.priority.value}"]
    if plan.created_from:
        lines.append(f"**Created from:** {plan.created_from}")
    lines.append(f"**Estimated effort:** {format_minutes(plan.estimated_minutes)}")
    lines.append("")
    if plan.project_description:
        lines += [plan.project_description, ""]
    lines += ["## Tasks", ""]

    for i, task in enumerate(plan.tasks, start=1):
        lines += [
            f"### {i}. {task.title}",
            "",
            f"**Priority:** {task.priority.value}",
            f"**Estimated time:** {format_minutes(task.estimated_time_minutes)}",
        ]
        if task.due_date:
            lines.append(f"**Due:** {task.due_date.isoformat()}")
        lines.append("")
        if task.description:
            lines += [task.description, ""]
        lines += _steps(task)

    return "\n".join(lines).rstrip() + "\n"
