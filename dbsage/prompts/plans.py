"""
Prompts that turn a finished report into a maintenance plan or a project.
Both ask for strict JSON validated against the plan schemas.
"""

MAINTENANCE_PLAN_SYSTEM = (
    "You are an experienced DBA who writes detailed, practical maintenance plans for databases."
)

MAINTENANCE_PLAN_USER = """You are an experienced DBA specialised in {database_label}.

Review the following {analysis_kind} analysis result and write a detailed maintenance plan:

{report}

The plan needs a title, a description, an overall priority (high, medium, low) and a list of tasks. Each task has a title, a detailed description, the steps to carry it out, its own priority, an estimate in minutes and the tasks it depends on (1-based positions in the task list).

Return ONLY valid JSON with this structure:
{{
  "title": "Plan title",
  "description": "Detailed description",
  "priority": "high|medium|low",
  "tasks": [
    {{
      "title": "Task title",
      "description": "Description",
      "steps": ["step 1", "step 2"],
      "priority": "high|medium|low",
      "estimated_time_minutes": 30,
      "dependencies": []
    }}
  ]
}}"""

PROJECT_PLAN_SYSTEM = (
    "You are an experienced project manager who turns technical database analyses "
    "into structured projects with tasks and step-by-step instructions."
)

PROJECT_PLAN_USER = """You are a project manager specialised in databases.

Turn the problems and recommendations in the following {database_label} analysis ({analysis_kind}) into a structured project.

Analysis:
Title: {title}
Kind: {analysis_kind}
Result:
{report}

The project needs a descriptive name, a description, an overall priority (high, medium, low) and a list of tasks. Each task has a title, a detailed description, the steps to carry it out, its own priority, an estimate in minutes and a suggested due date when one applies.

Return ONLY valid JSON with this structure:
{{
  "project_name": "Project name",
  "project_description": "Detailed description",
  "priority": "high|medium|low",
  "tasks": [
    {{
      "title": "Task title",
      "description": "Description",
      "steps": ["step 1", "step 2"],
      "priority": "high|medium|low",
      "estimated_time_minutes": 60,
      "due_date": "YYYY-MM-DD" or null
    }}
  ]
}}"""
