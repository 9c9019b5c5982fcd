"""
Variable substitution service for replacing {{variable}} placeholders.

This service handles extraction and substitution of variable placeholders
in request templates (URL, headers, query params, body).
"""

import re
from typing import Iterable, List, Mapping, Tuple

from ..schemas.environment import Variable


# Pattern to match {{ variable name }} placeholders; the name is any run of
# characters other than "}" and surrounding whitespace is ignored
VARIABLE_PATTERN = re.compile(r'\{\{([^}]+)\}\}')

VariableSource = Iterable[Variable] | Iterable[tuple[str, str]] | Mapping[str, str]


def build_lookup(variables: VariableSource) -> dict[str, str]:
    """
    Build a name -> value mapping from a variable list.

    When a key appears more than once the first occurrence wins.
    """
    if isinstance(variables, Mapping):
        return dict(variables)

    lookup: dict[str, str] = {}
    for item in variables:
        if isinstance(item, Variable):
            key, value = item.key, item.value
        else:
            key, value = item
        lookup.setdefault(key, value)
    return lookup


def extract_variables(template: str) -> List[str]:
    """
    Extract all variable names from a template string.

    Example:
        >>> extract_variables("Hello {{name}}, your id is {{ id }}")
        ['name', 'id']
    """
    if not template:
        return []

    return [name.strip() for name in VARIABLE_PATTERN.findall(template)]


def substitute(template: str, variables: VariableSource) -> Tuple[str, List[str]]:
    """
    Replace variable placeholders in a template with their values.

    Args:
        template: String containing {{variable}} placeholders
        variables: Variables to substitute

    Returns:
        Tuple of (substituted string, list of unmatched variable names)

    Example:
        >>> substitute("Hello {{name}}", {"name": "World"})
        ('Hello World', [])
        >>> substitute("Hello {{name}}", {})
        ('Hello {{name}}', ['name'])
    """
    if not template:
        return template, []

    lookup = variables if isinstance(variables, dict) else build_lookup(variables)
    unmatched: List[str] = []

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1).strip()
        if var_name in lookup:
            return lookup[var_name]
        unmatched.append(var_name)
        return match.group(0)  # Keep original placeholder

    result = VARIABLE_PATTERN.sub(replace_match, template)
    return result, unmatched


def substitute_dict(data: dict[str, str], variables: VariableSource) -> Tuple[dict[str, str], List[str]]:
    """
    Replace variable placeholders in all values of a dictionary.

    Keys are left untouched and their order is preserved.
    """
    if not data:
        return dict(data), []

    lookup = variables if isinstance(variables, dict) else build_lookup(variables)
    result = {}
    all_unmatched: List[str] = []

    for key, value in data.items():
        substituted_value, unmatched = substitute(value, lookup)
        result[key] = substituted_value
        all_unmatched.extend(unmatched)

    return result, all_unmatched


def resolve(text: str, variables: VariableSource) -> str:
    """Substitute known variables into text, leaving unknown placeholders as they are."""
    result, _ = substitute(text, variables)
    return result
