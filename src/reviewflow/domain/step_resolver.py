"""
Step resolvers: map the approved step to the one that follows it.
"""

import re

from reviewflow.domain.interfaces import StepResolverInterface

# Tried in order; the first pattern with any match wins.
STEP_PATTERNS = (
    # "## Step 3", "- Step 2:", "* Step 1", "Step 4: ..."
    re.compile(
        r"^[ \t]*(?:#+[ \t]*|[-*+][ \t]+)?Step[ \t]+(\d+)\b",
        re.IGNORECASE | re.MULTILINE,
    ),
    # "1) ..."
    re.compile(r"^[ \t]*(\d+)\)[ \t]", re.MULTILINE),
    # "1. ..."
    re.compile(r"^[ \t]*(\d+)\.[ \t]", re.MULTILINE),
)


class ListStepResolver(StepResolverInterface):
    """Resolves steps from a fixed ordered list of ids."""

    def __init__(self, steps: list[str] | tuple[str, ...]):
        self._steps = tuple(steps)

    @property
    def steps(self) -> tuple[str, ...]:
        return self._steps

    def get_next_step(self, current_step: str) -> str | None:
        try:
            index = self._steps.index(current_step)
        except ValueError:
            return None
        if index >= len(self._steps) - 1:
            return None
        return self._steps[index + 1]


class PlanBodyStepResolver(ListStepResolver):
    """
    Resolves steps by scanning a markdown plan body.

    Recognizes, in priority order:
        1. "Step N" headers and list items ("## Step 1", "- Step 2:", "Step 3:")
        2. "N) ..." numbered lists
        3. "N. ..." numbered lists

    Ids are de-duplicated (first occurrence wins) and ordered numerically, so
    "10" follows "9" rather than "1".
    """

    def __init__(self, plan_body: str):
        super().__init__(extract_step_ids(plan_body))


def extract_step_ids(plan_body: str) -> list[str]:
    """
    Extract step ids from a plan body.

    Args:
        plan_body: Markdown body of the plan (frontmatter excluded)

    Returns:
        Step ids sorted by numeric value, empty if no pattern matches
    """
    for pattern in STEP_PATTERNS:
        found: list[str] = []
        for match in pattern.finditer(plan_body):
            step_id = match.group(1)
            if step_id not in found:
                found.append(step_id)
        if found:
            return sorted(found, key=int)
    return []
