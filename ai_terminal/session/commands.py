"""Slash-command matching.

Commands are checked in their configured order; the first command whose
trigger equals the input, or is followed by a space in the input, wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ai_terminal.config.plugin_config import CustomCommand


@dataclass(frozen=True)
class CommandMatch:
    command: CustomCommand
    instruction: str  # input with the trigger token stripped


def match_command(text: str, commands: Sequence[CustomCommand]) -> Optional[CommandMatch]:
    for command in commands:
        trigger = command.trigger
        if text == trigger:
            return CommandMatch(command=command, instruction="")
        if text.startswith(trigger + " "):
            return CommandMatch(command=command, instruction=text[len(trigger):].strip())
    return None
