"""Filling in ``{{VARIABLE}}`` placeholders.

Models are asked to write values only the user knows (IDs, names,
paths) as ``{{VARIABLE_NAME}}``.  Before a command runs, the user is
asked once for every distinct name and each occurrence is replaced.
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional

import click

PLACEHOLDER_RE = re.compile(r"\{\{([A-Z0-9_]+)\}\}")


def find_placeholders(command: str) -> List[str]:
    """Return placeholder names in order of first appearance."""
    names: List[str] = []
    for match in PLACEHOLDER_RE.finditer(command):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def fill_placeholders(command: str, prompt: Optional[Callable[..., str]] = None) -> str:
    """Prompt for every placeholder in ``command`` and substitute it.

    :param prompt: Callable with the signature of :func:`click.prompt`.
    :raises click.Abort: When the user interrupts a prompt.
    """
    names = find_placeholders(command)
    if not names:
        return command
    ask = prompt or click.prompt
    click.secho("\nInput required:", fg="yellow")
    values = {}
    for name in names:
        values[name] = ask(f"Enter value for {name}")
    final = PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], command)
    click.secho("\nFinal command:", fg="cyan")
    click.secho(final, bold=True)
    return final
