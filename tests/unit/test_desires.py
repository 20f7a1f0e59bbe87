"""Tests for familiar.core.desires."""

from __future__ import annotations

import pytest

from familiar.core.desires import DESIRES, DesireState


class TestDesireState:
    def test_seeds(self, fake_clock):
        state = DesireState(fake_clock)
        assert state.levels() == {
            "observe_room": 0.4, "look_outside": 0.3,
            "greet_companion": 0.3, "explore_object": 0.2,
        }
        assert [d.name for d in DESIRES] == list(state.levels())

    def test_decay_grows_linearly(self, fake_clock):
        state = DesireState(fake_clock)
        fake_clock.advance(10)
        state.decay()
        assert state.level("observe_room") == pytest.approx(0.48)
        assert state.level("explore_object") == pytest.approx(0.22)

    def test_decay_composes(self, fake_clock):
        a, b = DesireState(fake_clock), DesireState(fake_clock)
        fake_clock.advance(20)
        a.decay()
        fake_clock.advance(20)
        a.decay()
        b.decay()
        assert a.levels() == pytest.approx(b.levels())

    def test_clamped_to_one(self, fake_clock):
        state = DesireState(fake_clock)
        fake_clock.advance(10_000)
        state.decay()
        assert set(state.levels().values()) == {1.0}

    def test_explicit_now(self, fake_clock):
        state = DesireState(fake_clock)
        state.decay(now=fake_clock.now + 25)
        assert state.level("observe_room") == pytest.approx(0.6)

    def test_boost_and_satisfy(self, fake_clock):
        state = DesireState(fake_clock)
        state.boost("observe_room", 0.9)
        assert state.level("observe_room") == 1.0
        state.satisfy("look_outside", 0.5)
        assert state.level("look_outside") == 0.0
        state.boost("nap", 1.0)
        assert "nap" not in state.levels()
        assert state.level("nap") == 0.0

    def test_strongest_requires_threshold(self, fake_clock):
        state = DesireState(fake_clock)
        assert state.strongest() is None
        assert state.context_string() is None
        state.boost("greet_companion", 0.3)
        assert state.strongest() == ("greet_companion", pytest.approx(0.6))

    def test_tie_goes_to_first_declared(self, fake_clock):
        state = DesireState(fake_clock)
        state.boost("look_outside", 0.4)
        state.boost("observe_room", 0.3)
        assert state.strongest()[0] == "observe_room"

    @pytest.mark.parametrize(
        ("boost", "word"),
        [(0.2, "slightly"), (0.35, "moderately"), (0.5, "strongly")],
    )
    def test_context_bands(self, fake_clock, boost, word):
        state = DesireState(fake_clock)
        state.boost("observe_room", boost)
        text = state.context_string()
        lines = text.split("\n")
        assert lines[0] == f"Current desire: I {word} want to observe_room."
        assert lines[1].startswith("Why: ")
        assert lines[2].startswith("Suggestion: ")
        assert lines[2].endswith(".")
