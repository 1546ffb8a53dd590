"""Terminal input capability.

Prompts are written to stderr: stdout carries the ExecCredential document
that kubectl parses.
"""

from __future__ import annotations

__all__ = [
    "ConsoleReader",
    "Reader",
]

from typing import Protocol, runtime_checkable

import click

from kubecred.exceptions import InputError


@runtime_checkable
class Reader(Protocol):
    """Synchronous, blocking line input."""

    def read_string(self, prompt: str) -> str:
        """Show prompt and return the entered line without surrounding whitespace."""
        ...

    def read_password(self, prompt: str) -> str:
        """Show prompt and return the entered line without echoing it."""
        ...


class ConsoleReader:
    """Reader on the controlling terminal via click prompts.

    Raises:
        InputError: If input ends (EOF) or is interrupted before a line is read.
    """

    def read_string(self, prompt: str) -> str:
        return self._prompt(prompt, hide_input=False)

    def read_password(self, prompt: str) -> str:
        return self._prompt(prompt, hide_input=True)

    def _prompt(self, prompt: str, *, hide_input: bool) -> str:
        try:
            value = click.prompt(
                prompt.rstrip(),
                prompt_suffix=" ",
                hide_input=hide_input,
                err=True,
                show_default=False,
            )
        except click.Abort as e:
            raise InputError("input was closed before a line was entered") from e
        return str(value).strip()
