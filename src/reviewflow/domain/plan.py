"""
Plan documents: optional YAML-style frontmatter followed by a markdown body.

Only the `active_step` field matters to orchestration. Other frontmatter
fields are kept as parsed strings, and rewrites touch a single field so the
rest of the document survives byte for byte.
"""

import re
from dataclasses import dataclass, field

from reviewflow.domain.exceptions import PlanParseError

DEFAULT_ACTIVE_STEP = "1"

# ---\n<frontmatter>---<body>; the body keeps any leading newline
_FRONTMATTER_RE = re.compile(r"\A---\r?\n(.*?)^---(.*)\Z", re.DOTALL | re.MULTILINE)


@dataclass(frozen=True)
class ParsedPlan:
    """Parsed plan: frontmatter fields plus the untouched body text."""

    frontmatter: dict[str, str] = field(default_factory=dict)
    body: str = ""

    @property
    def active_step(self) -> str:
        return self.frontmatter.get("active_step") or DEFAULT_ACTIVE_STEP


@dataclass(frozen=True)
class PlanValidationError:
    """A single plan validation failure with an instruction to fix it."""

    field: str
    message: str
    fix_it: str


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def _parse_frontmatter(text: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if ":" not in stripped:
            raise PlanParseError(
                f"Malformed frontmatter: expected 'key: value' format, got '{stripped}'"
            )
        key, _, value = stripped.partition(":")
        fields[key.strip()] = _unquote(value.strip())
    return fields


def parse_plan(content: str) -> ParsedPlan:
    """
    Parse plan file content into frontmatter and body.

    Content without frontmatter is treated entirely as body, with the default
    active step.

    Raises:
        PlanParseError: If the frontmatter is unterminated or malformed
    """
    if not content.lstrip().startswith("---"):
        return ParsedPlan(
            frontmatter={"active_step": DEFAULT_ACTIVE_STEP}, body=content
        )

    match = _FRONTMATTER_RE.match(content)
    if not match:
        raise PlanParseError("Malformed frontmatter: missing closing '---' delimiter")

    frontmatter = _parse_frontmatter(match.group(1))
    frontmatter.setdefault("active_step", DEFAULT_ACTIVE_STEP)
    return ParsedPlan(frontmatter=frontmatter, body=match.group(2))


def set_frontmatter_field(content: str, key: str, value: str) -> str:
    """
    Rewrite one frontmatter field, leaving every other byte untouched.

    The field is appended to the frontmatter when missing, and a frontmatter
    block is prepended when the document has none.

    Raises:
        PlanParseError: If the existing frontmatter is malformed
    """
    rendered = f'{key}: "{value}"'
    if not content.lstrip().startswith("---"):
        return f"---\n{rendered}\n---\n{content}"

    match = _FRONTMATTER_RE.match(content)
    if not match:
        raise PlanParseError("Malformed frontmatter: missing closing '---' delimiter")

    block_start, block_end = match.span(1)
    block = match.group(1)
    line_re = re.compile(rf"^([ \t]*){re.escape(key)}[ \t]*:.*?(\r?)$", re.MULTILINE)
    if line_re.search(block):
        new_block = line_re.sub(
            lambda m: f"{m.group(1)}{rendered}{m.group(2)}", block, count=1
        )
    else:
        newline = "\r\n" if "\r\n" in block else "\n"
        if block and not block.endswith("\n"):
            block += newline
        new_block = f"{block}{rendered}{newline}"

    return content[:block_start] + new_block + content[block_end:]


def serialize_plan(plan: ParsedPlan) -> str:
    """Render a ParsedPlan as a fresh document."""
    lines = "".join(f'{k}: "{v}"\n' for k, v in plan.frontmatter.items())
    return f"---\n{lines}---{plan.body}"


def validate_plan_content(content: str) -> list[PlanValidationError]:
    """
    Validate plan content.

    Returns:
        Validation errors, empty when the plan is usable
    """
    try:
        plan = parse_plan(content)
    except PlanParseError as e:
        return [
            PlanValidationError(
                field="frontmatter",
                message=str(e),
                fix_it=(
                    "Wrap the frontmatter in '---' lines and write each field "
                    'as key: value, for example active_step: "1"'
                ),
            )
        ]

    errors = []
    if not plan.frontmatter.get("active_step", "").strip():
        errors.append(
            PlanValidationError(
                field="active_step",
                message="active_step cannot be empty",
                fix_it='Set active_step to the id of the current step, e.g. "1"',
            )
        )
    return errors
