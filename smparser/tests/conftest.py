"""
Pytest fixtures for smparser tests.
"""

import pytest

from ..engine_core import EvaluationOptions, ActionOptions
from ..engine_core.definition import handler, state_machine
from ..log import collecting_logger


@pytest.fixture
def log_entries() -> list:
    """Collected (category, message) pairs."""
    return []


@pytest.fixture
def logger(log_entries):
    """Logger sink that records into log_entries."""
    return collecting_logger(log_entries)


@pytest.fixture
def options(logger) -> EvaluationOptions:
    """Evaluation options with a recording logger and an empty timer registry."""
    return EvaluationOptions(logger=logger, timers=[])


@pytest.fixture
def action_options(logger) -> ActionOptions:
    """Action options with a recording logger."""
    return ActionOptions(logger=logger)


@pytest.fixture
def kill_tracker() -> dict:
    """
    A small contract-style state machine.

    Start:
        Kill of a target -> count it, remember it
        Kill of anyone else -> count a non-target kill
        Exit with Kills >= Goal -> Success
        anything else -> counted under Ignored
    Success:
        $timer -> after 10 seconds go to Done
    """
    return state_machine(
        context={"Kills": 0, "NonTargetKills": 0, "Ignored": 0, "Killed": []},
        constants={"Goal": 2},
        states={
            "Start": {
                "Kill": [
                    handler(
                        condition={"$eq": ["$Value.IsTarget", True]},
                        actions=[
                            {"$inc": "Kills"},
                            {"$push": ["Killed", "$Value.Name"]},
                        ],
                    ),
                    handler(actions={"$inc": "NonTargetKills"}),
                ],
                "Exit": handler(
                    condition={"$ge": ["$Kills", "$Goal"]},
                    transition="Success",
                ),
                "-": handler(actions={"$inc": "Ignored"}),
            },
            "Success": {
                "$timer": handler(
                    condition={"$after": 10},
                    transition="Done",
                ),
            },
            "Done": {},
        },
    )
