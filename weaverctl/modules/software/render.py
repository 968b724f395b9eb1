"""Jinja2 rendering for catalog strings and bundled configuration templates.

Catalog strings use ``{{ VERSION }}``, ``{{ OS }}`` and ``{{ ARCH }}``.
File templates live in the ``templates/`` directory next to this module.
Undefined variables are always an error. Catalog strings render in a
sandbox that refuses access to private attributes and unsafe callables.
"""

import logging
import os
from typing import Any, Dict

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
)
from jinja2.exceptions import SecurityError
from jinja2.sandbox import SandboxedEnvironment

from .errors import TemplateError

logger = logging.getLogger("weaver.software.render")

_string_env = SandboxedEnvironment(undefined=StrictUndefined, keep_trailing_newline=True)


def get_template_path() -> str:
    """Get the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


def render_string(template_str: str, data: Dict[str, Any], owner: str = "") -> str:
    """Render a catalog template string.

    Args:
        template_str: Template text, e.g. ``https://host/{{ VERSION }}/x.tar.gz``
        data: Variables available to the template
        owner: Software the template belongs to, used in errors

    Raises:
        TemplateError: On syntax errors, undefined variables or sandbox violations
    """
    try:
        return _string_env.from_string(template_str).render(**data)
    except (TemplateSyntaxError, UndefinedError, SecurityError) as e:
        raise TemplateError(owner, e) from e


def render_file(template_name: str, owner: str = "", **context: Any) -> str:
    """Render one of the bundled file templates.

    Raises:
        TemplateError: If the template is missing, malformed or references
            an undefined variable
    """
    env = Environment(
        loader=FileSystemLoader(get_template_path()),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    try:
        template = env.get_template(template_name)
        return template.render(**context)
    except (TemplateNotFound, TemplateSyntaxError, UndefinedError) as e:
        logger.error(f"Failed to render template {template_name}: {e}")
        raise TemplateError(owner, e) from e
