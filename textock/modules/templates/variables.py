"""
Template variable engine.

A placeholder is ``{{`` + one or more non-``}`` characters + ``}}``; the
enclosed text, trimmed, is the variable name. Extraction and substitution
never raise so that a half-typed template cannot break an editing session.
"""
import re
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from textock.modules.templates.schemas import VariableDefinition

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")
MIN_CONTENT_LENGTH = 3

_STRAY_BRACE_PATTERN = re.compile(r"\{+[^{}]*\}+|\{+[^{}]*|\}+")
_SINGLE_BRACE_PATTERN = re.compile(r"^\{[^{].*\}$", re.DOTALL)
_INCOMPLETE_BRACE_PATTERN = re.compile(r"^\{[^}]*$|^[^{]*\}$", re.DOTALL)

CONTENT_REQUIRED_ERROR = "Template content is required"
CONTENT_TOO_SHORT_ERROR = f"Template content must be at least {MIN_CONTENT_LENGTH} characters"
EMPTY_VARIABLE_ERROR = "Empty variable found. Enter a variable name in the form {{name}}"


def _variable_names(content: str) -> List[str]:
    """Distinct trimmed placeholder names in first-occurrence order."""
    names: List[str] = []
    seen = set()
    for match in PLACEHOLDER_PATTERN.finditer(content):
        name = match.group(1).strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


def _stray_braces(content: str) -> List[str]:
    """Brace fragments outside well-formed placeholders. A fragment never spans a placeholder."""
    # split() interleaves the captured names; even indexes are the text between placeholders
    outside = PLACEHOLDER_PATTERN.split(content)[::2]
    fragments: List[str] = []
    for segment in outside:
        fragments.extend(_STRAY_BRACE_PATTERN.findall(segment))
    return fragments


def extract_variables(content: Any) -> List[VariableDefinition]:
    """Return one text variable per distinct placeholder name found in ``content``."""
    if not content or not isinstance(content, str):
        return []
    return [VariableDefinition(name=name) for name in _variable_names(content)]


def replace_variables(content: Any, values: Optional[Mapping[str, Any]]) -> str:
    """
    Substitute placeholder values into ``content``.
    Placeholders without a value (missing or empty) are left as they are so
    the caller can still see what is unfilled.
    """
    if not content or not isinstance(content, str):
        return ""
    if not isinstance(values, Mapping):
        values = {}

    def _substitute(match: "re.Match[str]") -> str:
        value = values.get(match.group(1).strip())
        if value is None or value == "":
            return match.group(0)
        return str(value)

    return PLACEHOLDER_PATTERN.sub(_substitute, content)


def find_unresolved(content: Any) -> List[str]:
    """Names of placeholders still present in ``content``."""
    if not content or not isinstance(content, str):
        return []
    return _variable_names(content)


def validate_template(content: Any) -> Tuple[bool, List[str]]:
    """
    Validate placeholder syntax in template content.
    Returns (is_valid, errors); every detected problem is reported.
    """
    errors: List[str] = []

    if not isinstance(content, str) or not content.strip():
        errors.append(CONTENT_REQUIRED_ERROR)
        return False, errors

    if len(content.strip()) < MIN_CONTENT_LENGTH:
        errors.append(CONTENT_TOO_SHORT_ERROR)

    placeholders = PLACEHOLDER_PATTERN.findall(content)
    if any(not inner.strip() for inner in placeholders):
        errors.append(EMPTY_VARIABLE_ERROR)

    fragments = _stray_braces(content)
    if fragments:
        single_brace = [f for f in fragments if _SINGLE_BRACE_PATTERN.match(f)]
        incomplete = [f for f in fragments if _INCOMPLETE_BRACE_PATTERN.match(f)]
        other = [f for f in fragments if f not in single_brace and f not in incomplete]

        if single_brace:
            errors.append(
                "Variables need double braces in the form {{name}}. "
                f"Invalid: {', '.join(single_brace)}"
            )
        if incomplete:
            errors.append(
                "Incomplete braces. Use the form {{name}}. "
                f"Invalid: {', '.join(incomplete)}"
            )
        if other:
            errors.append(f"Invalid brace usage: {', '.join(other)}")

    if errors:
        logger.debug(f"Template content failed validation with {len(errors)} error(s)")
    return len(errors) == 0, errors


def check_content(content: Any) -> Dict[str, Any]:
    """Validation plus extraction for a draft, as shown next to the editor."""
    is_valid, errors = validate_template(content)
    return {
        "is_valid": is_valid,
        "errors": errors,
        "variables": extract_variables(content),
    }
