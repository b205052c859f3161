"""Prompt builders for the planning and execution phases."""

from __future__ import annotations

import json

from astrid_agent.executors.models import CodingTask, ImplementationPlan

CONTEXT_FILES = ("ASTRID.md", "README.md")

EXPLORE_NUDGE = (
    "You must use the tools to explore the codebase. "
    "Please call glob_files with an appropriate pattern."
)
EMPTY_PLAN_NUDGE = (
    "Your plan has no files. You MUST use glob_files and read_file first, "
    "then provide a plan with specific files. Please call glob_files now."
)
PLAN_NUDGE = "Please provide the implementation plan as a JSON block with at least one file."
COMPLETE_NUDGE = "Please call task_complete to finalize."


def _task_section(task: CodingTask) -> str:
    parts = [f'"{task.title}"']
    if task.description:
        parts.append(f"\nDetails: {task.description}")
    return "\n".join(parts)


def _context_section(project_context: str | None) -> str:
    if not project_context:
        return ""
    return f"## Project Context\n{project_context}\n\n"


def build_planning_prompt(task: CodingTask, project_context: str | None = None) -> str:
    """Build the planning system prompt.

    Args:
        task: The task to plan.
        project_context: Optional ASTRID.md/README.md excerpt.

    Returns:
        System prompt text.
    """
    return f"""You are an expert software engineer analyzing a codebase to create an implementation plan.

{_context_section(project_context)}## Your Task
Create an implementation plan for: {_task_section(task)}

## Exploration Workflow (mandatory)

1. Use glob_files to find the relevant source files and read the project configuration.
2. Use grep_search to find related terms, functions or patterns, and read_file on the files likely to change.
3. After reading the relevant files, create a surgical plan.

When ready, respond with ONLY a JSON block:
```json
{{
  "summary": "Brief summary",
  "approach": "High-level approach with technical details",
  "files": [{{"path": "path/to/file", "purpose": "Why", "changes": "Specific changes"}}],
  "estimatedComplexity": "simple|medium|complex",
  "considerations": ["Edge case 1", "Testing requirement"]
}}
```

Rules:
- Only list files that MUST change
- Use file paths you discovered, never guessed ones
- Follow existing patterns in the codebase"""


def build_planning_kickoff(task: CodingTask) -> str:
    return (
        "Start by calling glob_files to find relevant files, "
        f"then create an implementation plan for: {task.title}"
    )


def build_execution_prompt(
    plan: ImplementationPlan,
    task: CodingTask,
    feedback: str | None = None,
    project_context: str | None = None,
) -> str:
    """Build the execution system prompt.

    Args:
        plan: The approved plan.
        task: The task being implemented.
        feedback: Change request from the reviewer, if this is a revision.
        project_context: Optional ASTRID.md/README.md excerpt.

    Returns:
        System prompt text.
    """
    feedback_section = ""
    if feedback:
        feedback_section = (
            "## Requested Changes\n"
            "The reviewer asked for the following changes to the previous implementation:\n"
            f"{feedback}\n\n"
        )

    return f"""You are an expert software engineer implementing changes to a codebase.

{_context_section(project_context)}## Task
Implement: {_task_section(task)}

## Implementation Plan
{json.dumps(plan.to_dict(), indent=2)}

{feedback_section}## Implementation Workflow (mandatory)

1. Re-read the files in the plan to confirm your approach.
2. Make changes one file at a time, following the existing code style.
3. Run the build or tests with run_bash and fix any failures.
4. Call task_complete with a commit message, PR title and PR description.

Rules:
- Follow the plan
- Write complete code, no placeholders
- Test your changes before completing"""


EXECUTION_KICKOFF = "Please implement the changes according to the plan."
