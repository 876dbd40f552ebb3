"""Template helpers used to evaluate configuration fields."""

from __future__ import annotations

import typing as typ

from .errors import TemplateError

__all__ = ["render_template", "split_lines"]


def render_template(template: str, context: dict[str, typ.Any], field: str) -> str:
    """Return ``template`` formatted with ``context``.

    Parameters
    ----------
    template : str
        ``str.format`` template, for example ``"update-{version}"``.
    context : dict[str, Any]
        Values available to the template.
    field : str
        Role of the configuration field, reported when evaluation fails.

    Raises
    ------
    TemplateError
        Raised when the template references an unknown key or is malformed.

    Examples
    --------
    >>> render_template("pkgs/{name}.nix", {"name": "foo"}, "path")
    'pkgs/foo.nix'
    """

    if not template:
        return ""
    try:
        return template.format(**context)
    except KeyError as exc:
        raise TemplateError(field, template, exc) from exc
    except (AttributeError, IndexError, ValueError) as exc:
        raise TemplateError(field, template, f"({exc})") from exc


def split_lines(text: str) -> list[str]:
    """Return the non-blank, stripped lines of ``text``."""

    return [line.strip() for line in text.strip().splitlines() if line.strip()]
