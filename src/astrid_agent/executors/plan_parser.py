"""Extract an ImplementationPlan from free model text.

Models without a structured-output mode answer with prose that contains a
fenced ```json block. This module is the only place that coerces such text
into a plan; callers that get structured output can build an
ImplementationPlan directly and skip it.
"""

from __future__ import annotations

import json
import re

from astrid_agent.executors.exceptions import PlanParseError, PlanValidationError
from astrid_agent.executors.models import ImplementationPlan

JSON_BLOCK_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")


def validate_plan(plan: ImplementationPlan) -> ImplementationPlan:
    """Reject plans that cannot be executed.

    Raises:
        PlanValidationError: If the plan lists no files or a file has no path.
    """
    if not plan.files:
        raise PlanValidationError("Plan has no files")
    if any(not planned.path for planned in plan.files):
        raise PlanValidationError("Plan contains a file without a path")
    return plan


def parse_plan(text: str) -> ImplementationPlan:
    """Parse the first fenced JSON block in model text.

    Args:
        text: Assistant text.

    Returns:
        A validated ImplementationPlan.

    Raises:
        PlanParseError: If there is no block, it is not a JSON object, or
            its ``files`` or ``considerations`` is not a list.
        PlanValidationError: If the plan lists no files.
    """
    match = JSON_BLOCK_RE.search(text)
    if match is None:
        raise PlanParseError("No JSON plan block found")

    try:
        data = json.loads(match.group(1))
    except json.JSONDecodeError as e:
        raise PlanParseError(f"Invalid plan JSON: {e}") from e
    if not isinstance(data, dict):
        raise PlanParseError("Plan JSON must be an object")
    for key in ("files", "considerations"):
        if data.get(key) is not None and not isinstance(data[key], list):
            raise PlanParseError(f"Plan '{key}' must be a list")

    return validate_plan(ImplementationPlan.from_dict(data))
