"""
Tests for event dispatch.

Tests:
- Handler selection (first match wins, "-" fallback)
- Event Value and Constants scopes
- Transitions and the Timer Registry
- Usage errors
"""

import pytest

from ..engine_core import (
    DefinitionError,
    EvaluationError,
    EventDispatcher,
    StateMachineDefinition,
    Timer,
    UnknownStateError,
    handle_event,
    tick,
)
from ..engine_core.definition import handler, state_machine


@pytest.fixture
def context(kill_tracker):
    return StateMachineDefinition.from_dict(kill_tracker).initial_context()


class TestHandlerSelection:
    """Which handler runs for an event."""

    def test_first_matching_handler_wins(self, kill_tracker, context, logger):
        result = handle_event(
            kill_tracker, "Start", "Kill", context,
            value={"IsTarget": True, "Name": "Guard"}, logger=logger,
        )

        assert result.handled
        assert result.handler_index == 0
        assert context["Kills"] == 1
        assert context["Killed"] == ["Guard"]
        assert context["NonTargetKills"] == 0

    def test_falls_through_to_next_handler(self, kill_tracker, context, logger):
        result = handle_event(
            kill_tracker, "Start", "Kill", context,
            value={"IsTarget": False, "Name": "Chef"}, logger=logger,
        )

        assert result.handler_index == 1
        assert context["Kills"] == 0
        assert context["NonTargetKills"] == 1

    def test_fallback_event(self, kill_tracker, context, logger):
        result = handle_event(kill_tracker, "Start", "Pickup", context, logger=logger)

        assert result.handled
        assert result.event_key == "-"
        assert context["Ignored"] == 1

    def test_no_listener_is_noop(self, kill_tracker, context, logger, log_entries):
        before = dict(context)
        result = handle_event(kill_tracker, "Done", "Kill", context, logger=logger)

        assert not result.handled
        assert result.state == "Done"
        assert context == before
        assert ("disregard-event", "Done has no listeners for Kill") in log_entries

    def test_no_condition_passes(self, context, logger):
        definition = state_machine(
            states={"Start": {"Go": handler(condition=False, transition="End")}, "End": {}},
        )
        result = handle_event(definition, "Start", "Go", context, logger=logger)

        assert not result.handled
        assert result.state == "Start"
        assert not result.transitioned

    def test_null_condition_passes(self, logger):
        definition = state_machine(
            states={"Start": {"Go": {"Condition": None, "Transition": "End"}}, "End": {}},
        )
        result = handle_event(definition, "Start", "Go", {}, logger=logger)
        assert result.handled
        assert result.state == "End"

    def test_later_handlers_skipped(self, logger):
        definition = state_machine(
            context={"A": 0},
            states={"Start": {"Go": [
                handler(actions={"$inc": "A"}),
                handler(actions={"$inc": "A"}),
            ]}},
        )
        context = {"A": 0}
        handle_event(definition, "Start", "Go", context, logger=logger)
        assert context == {"A": 1}


class TestScopes:
    """Event Value and Constants."""

    def test_value_not_left_in_context(self, kill_tracker, context, logger):
        handle_event(
            kill_tracker, "Start", "Kill", context,
            value={"IsTarget": True, "Name": "Guard"}, logger=logger,
        )
        assert "Value" not in context

    def test_constants_visible_to_conditions(self, kill_tracker, context, logger):
        context["Kills"] = 1
        result = handle_event(kill_tracker, "Start", "Exit", context, logger=logger)
        assert result.state == "Start"

        context["Kills"] = 2
        result = handle_event(kill_tracker, "Start", "Exit", context, logger=logger)
        assert result.state == "Success"
        assert result.transitioned
        assert "Goal" not in context

    def test_constants_visible_to_actions(self, logger):
        definition = state_machine(
            context={"Limit": 0},
            constants={"Max": 7},
            states={"Start": {"Init": handler(actions={"$set": ["Limit", "$Max"]})}},
        )
        context = {"Limit": 0}
        handle_event(definition, "Start", "Init", context, logger=logger)
        assert context == {"Limit": 7}

    def test_context_shadows_constants(self, logger):
        definition = state_machine(
            constants={"Goal": 5},
            states={"Start": {"Check": handler(
                condition={"$eq": ["$Goal", 1]}, transition="Start",
            )}},
        )
        result = handle_event(definition, "Start", "Check", {"Goal": 1}, logger=logger)
        assert result.handled

    def test_reset_uses_definition_context(self, logger):
        definition = state_machine(
            context={"Kills": 0},
            states={"Start": {"Restart": handler(actions={"$reset": "Kills"})}},
        )
        context = {"Kills": 9}
        handle_event(definition, "Start", "Restart", context, logger=logger)
        assert context == {"Kills": 0}


class TestTimers:
    """$timer ticks and the Timer Registry."""

    def test_timer_fires_after_window(self, kill_tracker, context, logger):
        timers = []

        result = tick(kill_tracker, "Success", context, timers, 100, logger=logger)
        assert result.state == "Success"
        assert [t.path for t in timers] == ["Success.$timer[0].Condition.$after"]

        result = tick(kill_tracker, "Success", context, timers, 109, logger=logger)
        assert result.state == "Success"

        result = tick(kill_tracker, "Success", context, timers, 110, logger=logger)
        assert result.state == "Done"
        assert timers == []

    def test_transition_clears_timers(self, kill_tracker, context, logger):
        timers = [Timer("Start.$timer[0].Condition.$after", 0, 100)]
        context["Kills"] = 2

        handle_event(kill_tracker, "Start", "Exit", context, timers, 5, logger=logger)
        assert timers == []

    def test_no_timestamp(self, kill_tracker, context, logger):
        timers = []
        result = handle_event(kill_tracker, "Success", "$timer", context, timers, logger=logger)
        assert result.state == "Success"
        assert timers == []


class TestErrors:
    """Usage errors raise."""

    def test_unknown_state(self, kill_tracker, context):
        with pytest.raises(UnknownStateError) as exc_info:
            handle_event(kill_tracker, "Nowhere", "Kill", context)
        assert exc_info.value.state == "Nowhere"

    def test_missing_context(self, kill_tracker):
        with pytest.raises(EvaluationError):
            handle_event(kill_tracker, "Start", "Kill", None)

    def test_invalid_definition(self):
        with pytest.raises(DefinitionError):
            handle_event({"Context": {}}, "Start", "Kill", {})


class TestMalformedHandlers:
    """Broken handlers are skipped, not fatal."""

    def test_other_state_does_not_block_dispatch(self, logger, log_entries):
        definition = {"States": {
            "Start": {"Go": {"Transition": "Next"}},
            "Next": {},
            "Other": {"Ping": 5},
        }}

        result = handle_event(definition, "Start", "Go", {}, logger=logger)

        assert result.state == "Next"
        assert any(
            category == "validation" and message.startswith("Other.Ping[0]")
            for category, message in log_entries
        )

    def test_bad_transition_elsewhere(self, logger):
        definition = {"States": {
            "Start": {"Go": {"Transition": "Next"}},
            "Next": {"Back": {"Transition": 7}},
        }}
        assert handle_event(definition, "Start", "Go", {}, logger=logger).state == "Next"

    def test_next_handler_in_same_event_runs(self, logger, log_entries):
        definition = {"States": {
            "Start": {"Go": ["broken", {"Actions": {"$inc": "Count"}}]},
        }}
        context = {"Count": 0}

        result = handle_event(definition, "Start", "Go", context, logger=logger)

        assert result.handled
        assert context == {"Count": 1}
        assert ("validation", "Start.Go[0]: handler must be an object, got str") in log_entries

    def test_state_without_event_map(self, logger, log_entries):
        definition = {"States": {"Start": {"Go": {"Transition": "Next"}}, "Next": [1]}}

        result = handle_event(definition, "Start", "Go", {}, logger=logger)

        assert result.state == "Next"
        assert ("validation", "State 'Next' must map events to handlers") in log_entries


class TestDispatcher:
    """EventDispatcher instances."""

    def test_accepts_typed_definition(self, kill_tracker, context, logger):
        definition = StateMachineDefinition.from_dict(kill_tracker)
        dispatcher = EventDispatcher(logger=logger)

        dispatcher.dispatch(definition, "Start", "Kill", context, value={"IsTarget": True, "Name": "A"})
        dispatcher.dispatch(definition, "Start", "Kill", context, value={"IsTarget": True, "Name": "B"})
        result = dispatcher.dispatch(definition, "Start", "Exit", context)

        assert result.state == "Success"
        assert context["Killed"] == ["A", "B"]

    def test_push_unique_callback(self, logger):
        seen = set()

        def push_unique(reference, value):
            if value in seen:
                return False
            seen.add(value)
            return True

        definition = state_machine(
            context={"Unique": 0},
            states={"Start": {"Spot": handler(
                condition={"$pushunique": ["Spotted", "$Value"]},
                actions={"$inc": "Unique"},
            )}},
        )
        dispatcher = EventDispatcher(logger=logger, push_unique=push_unique)
        context = {"Unique": 0}

        for name in ["a", "b", "a"]:
            dispatcher.dispatch(definition, "Start", "Spot", context, value=name)

        assert context == {"Unique": 2}

    def test_trace_paths_include_handler(self, kill_tracker, context, logger, log_entries):
        handle_event(kill_tracker, "Start", "Exit", context, logger=logger)
        visits = [m for c, m in log_entries if c == "visit"]
        assert visits[0] == "Visiting Start.Exit[0].Condition"
