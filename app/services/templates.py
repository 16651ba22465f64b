"""Dispatch message templates and variable substitution."""

from __future__ import annotations

import re

DEFAULT_DISPATCH_TEMPLATE = (
    "New maintenance issue at {property_address}. Issue: {issue_title}. "
    "Details: {issue_description}. Reply \"1\" to accept or \"2\" to decline."
)

FOLLOW_UP_TEMPLATE = (
    "Reminder ({attempt}/{max_retries}): we are still waiting for your answer on "
    "\"{issue_title}\" at {property_address}. Reply \"1\" to accept or \"2\" to decline."
)

CANCEL_TEMPLATE = (
    "The request for \"{issue_title}\" at {property_address} has been canceled. "
    "No action is needed."
)

GUEST_NOTICE_TEMPLATE = (
    "{handyman_name} has been contacted about \"{issue_title}\". "
    "We will let you know once the job is confirmed."
)

TEMPLATE_VARIABLES = (
    "handyman_name",
    "property_name",
    "property_address",
    "issue_title",
    "issue_description",
    "issue_priority",
    "issue_id",
)

_PLACEHOLDER = re.compile(r"\{([a-z_]+)\}")


def render_template(template: str, variables: dict) -> str:
    """Substitute ``{name}`` placeholders.

    Placeholders with no value (missing key or ``None``) stay in the text
    verbatim so an operator can see what was not filled in.
    """
    def _sub(match: re.Match) -> str:
        value = variables.get(match.group(1))
        if value is None:
            return match.group(0)
        return str(value)

    return _PLACEHOLDER.sub(_sub, template)


def dispatch_variables(issue, prop=None, handyman=None) -> dict:
    """Collect template variables from an issue, its property and a handyman."""
    variables = {
        "issue_title": issue.title,
        "issue_description": issue.description,
        "issue_priority": getattr(issue.priority, "value", issue.priority),
        "issue_id": issue.id,
    }
    if prop is not None:
        variables["property_name"] = prop.name
        variables["property_address"] = prop.full_address
    if handyman is not None:
        variables["handyman_name"] = handyman.name
    return variables
