"""
=============================================================================
TEMPLATE RENDERING
=============================================================================

A thin wrapper around Jinja2 that gives the directory handler exactly one
operation:

    renderer.render("listing.html", {"current_path": "/docs/", "entries": [...]})
    renderer.render("error.html", {"error_code": "404", "message": "..."})

=============================================================================
LIFETIME
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   startup:   TemplateRenderer(template_dir)                         │
    │                 └── one jinja2.Environment, never mutated after     │
    │                                                                      │
    │   requests:  worker-1 ──┐                                            │
    │              worker-2 ──┼──► renderer.render(...)   (shared, no lock)│
    │              worker-N ──┘                                            │
    └─────────────────────────────────────────────────────────────────────┘

A missing template directory is a startup error. A missing or broken
template file is only discovered when rendered, and surfaces as
TemplateRenderError so the handler can answer 500 instead of crashing.

=============================================================================
"""

import os
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import jinja2


logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

LISTING_TEMPLATE = "listing.html"
ERROR_TEMPLATE = "error.html"


class TemplateRenderError(Exception):
    """Raised when a template cannot be loaded or rendered."""

    def __init__(self, template_name: str, message: str):
        super().__init__(message)
        self.template_name = template_name
        self.message = message


class TemplateRenderer:
    """
    Renders named templates from one directory.

    Usage:
        renderer = TemplateRenderer()                  # bundled templates
        renderer = TemplateRenderer("./my-templates")  # custom look

        html = renderer.render("listing.html", {
            "current_path": "/",
            "entries": ["a.txt", "sub/"],
        })
    """

    def __init__(self, template_dir: Optional[Union[str, Path]] = None):
        """
        Args:
            template_dir: Directory holding listing.html and error.html.
                          Defaults to the templates bundled with the package.

        Raises:
            TemplateRenderError: If template_dir is not a readable directory.
        """
        self.template_dir = Path(template_dir or DEFAULT_TEMPLATE_DIR).resolve()

        if not self.template_dir.is_dir():
            raise TemplateRenderError(
                "", f"Template directory does not exist: {self.template_dir}"
            )
        if not os.access(self.template_dir, os.R_OK | os.X_OK):
            raise TemplateRenderError(
                "", f"Template directory is not readable: {self.template_dir}"
            )

        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.template_dir)),
            autoescape=jinja2.select_autoescape(["html", "htm", "xml"]),
            undefined=jinja2.StrictUndefined,
        )
        logger.debug(f"Loading templates from {self.template_dir}")

    def render(self, template_name: str, values: Mapping[str, Any]) -> str:
        """
        Render template_name with the given named values.

        Raises:
            TemplateRenderError: Template missing, malformed, or referencing
                                 a value that was not supplied.
        """
        try:
            template = self._env.get_template(template_name)
            return template.render(**values)
        except jinja2.TemplateNotFound as e:
            raise TemplateRenderError(template_name, f"Template not found: {e.name}") from e
        except jinja2.TemplateError as e:
            raise TemplateRenderError(template_name, f"{template_name}: {e}") from e
