"""Unit tests for the RSVP engine state machine.

WHY: The engine is the only component with temporal logic. A stale tick
after pause, a double-armed timer or an off-by-one at the end of the
text would all show up as words flashing at the wrong time or playback
that can't be stopped.

HOW: Every test runs the engine on the FakeScheduler from conftest, so
ticks fire only when the test steps the virtual clock. Tests are
organized by concern:
  - TestLoadContent: tokenization, reset, cancellation
  - TestPlay / TestPause / TestStop: transitions and timer ownership
  - TestTickLoop: per-word delays, completion, restart after completion
  - TestNavigation: skip/rewind/jump_to clamping and rescheduling
  - TestRate: set_wpm / apply_settings
  - TestSnapshots: get_state purity and immutability
  - TestDestroy / TestListener: teardown and listener contract
  - TestThreadingIntegration: a real timer thread plays to completion

RULES:
- Each test builds its own engine through the make_engine fixture
- Delays are asserted in seconds on FakeTimerHandle.delay_s
"""

import dataclasses
import threading

import pytest

from rsvp_reader.core.engine import PlaybackStatus, RSVPEngine
from rsvp_reader.core.scheduler import ThreadingScheduler
from rsvp_reader.core.state import EngineSettings


# ---------------------------------------------------------------------------
# TestLoadContent
# ---------------------------------------------------------------------------


class TestLoadContent:
    """load_content tokenizes, resets and emits once."""

    def test_counts_words(self, make_engine, sample_text):
        engine = make_engine(sample_text)
        assert engine.get_state().total_words == 16

    def test_emits_snapshot(self, make_engine, recorder):
        make_engine("one two three")
        assert len(recorder.snapshots) == 1
        assert recorder.last.current_word == "one"
        assert recorder.last.total_words == 3
        assert recorder.last.is_playing is False

    def test_resets_index(self, make_engine):
        engine = make_engine("a b c d")
        engine.jump_to(3)
        engine.load_content("x y")
        assert engine.current_index == 0
        assert engine.get_state().current_word == "x"

    def test_does_not_auto_start(self, make_engine, scheduler):
        engine = make_engine("a b c")
        assert engine.is_playing is False
        assert scheduler.pending == []

    def test_cancels_running_playback(self, make_engine, scheduler):
        engine = make_engine("a b c")
        engine.play()
        engine.load_content("fresh words here")
        assert engine.is_playing is False
        assert scheduler.pending == []
        scheduler.advance(10)
        assert engine.current_index == 0

    def test_empty_text(self, make_engine, recorder):
        engine = make_engine("   \n ")
        state = engine.get_state()
        assert state.total_words == 0
        assert state.current_word == ""
        assert state.percentage == 0
        assert state.current_index == 0

    def test_newline_normalization(self, make_engine):
        engine = make_engine("line one\r\nline two\rline three")
        assert engine.words == ("line", "one", "line", "two", "line", "three")


# ---------------------------------------------------------------------------
# TestPlay
# ---------------------------------------------------------------------------


class TestPlay:
    """play() arms exactly one timer and emits is_playing=True."""

    def test_play_emits_playing_snapshot(self, make_engine, recorder):
        engine = make_engine("a b c")
        engine.play()
        assert recorder.last.is_playing is True
        assert recorder.last.current_word == "a"
        assert engine.status is PlaybackStatus.PLAYING

    def test_play_schedules_one_timer_for_current_word(self, make_engine, scheduler):
        engine = make_engine("a b c", wpm=1000)
        engine.play()
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay_s == pytest.approx(0.060)

    def test_play_on_empty_is_silent_noop(self, make_engine, recorder, scheduler):
        engine = make_engine("")
        recorder.clear()
        engine.play()
        assert engine.is_playing is False
        assert recorder.snapshots == []
        assert scheduler.pending == []

    def test_play_twice_does_not_double_schedule(self, make_engine, scheduler):
        engine = make_engine("a b c")
        engine.play()
        engine.play()
        assert len(scheduler.pending) == 1

    def test_play_from_middle(self, make_engine, scheduler):
        engine = make_engine("short longerwords.", wpm=300)
        engine.jump_to(1)
        engine.play()
        assert scheduler.pending[0].delay_s == pytest.approx(0.2 * 1.7)


# ---------------------------------------------------------------------------
# TestPause
# ---------------------------------------------------------------------------


class TestPause:
    """pause() cancels the pending tick and keeps the position."""

    def test_pause_cancels_timer(self, make_engine, scheduler):
        engine = make_engine("a b c")
        engine.play()
        engine.pause()
        assert scheduler.pending == []
        scheduler.advance(10)
        assert engine.current_index == 0

    def test_pause_keeps_position(self, make_engine, scheduler):
        engine = make_engine("a b c d")
        engine.play()
        scheduler.run_next()
        engine.pause()
        assert engine.current_index == 1
        assert engine.get_state().current_word == "b"

    def test_pause_twice_is_idempotent(self, make_engine, scheduler, recorder):
        engine = make_engine("a b c")
        engine.play()
        engine.pause()
        first = recorder.last
        engine.pause()
        second = recorder.last
        assert first == second
        assert second.is_playing is False
        assert scheduler.cancel_count == 1

    def test_pause_when_never_played(self, make_engine, scheduler, recorder):
        engine = make_engine("a b")
        engine.pause()
        assert recorder.last.is_playing is False
        assert scheduler.cancel_count == 0

    def test_resume_after_pause_continues(self, make_engine, scheduler, recorder):
        engine = make_engine("a b c")
        engine.play()
        scheduler.run_next()
        engine.pause()
        engine.play()
        scheduler.run_next()
        assert engine.current_index == 2


# ---------------------------------------------------------------------------
# TestStop
# ---------------------------------------------------------------------------


class TestStop:
    """stop() always ends paused at index 0."""

    def test_stop_while_playing(self, make_engine, scheduler):
        engine = make_engine("a b c d")
        engine.play()
        scheduler.run_next()
        scheduler.run_next()
        engine.stop()
        state = engine.get_state()
        assert state.current_index == 0
        assert state.is_playing is False
        assert scheduler.pending == []

    def test_stop_on_fresh_engine(self, make_engine):
        engine = make_engine("a b c")
        engine.stop()
        state = engine.get_state()
        assert state.current_index == 0
        assert state.is_playing is False

    def test_stop_when_paused_mid_text(self, make_engine):
        engine = make_engine("a b c")
        engine.jump_to(2)
        engine.stop()
        assert engine.current_index == 0

    def test_stop_on_empty_engine(self):
        engine = RSVPEngine()
        engine.stop()
        assert engine.get_state().current_index == 0


# ---------------------------------------------------------------------------
# TestTickLoop
# ---------------------------------------------------------------------------


class TestTickLoop:
    """Each tick advances one word and arms the next word's own delay."""

    def test_plays_to_completion(self, make_engine, scheduler, recorder):
        engine = make_engine("a b c", wpm=1000)
        engine.play()
        scheduler.run_until_idle()

        final = recorder.last
        assert final.is_playing is False
        assert final.current_index == 3
        assert final.percentage == 100
        assert final.current_word == ""
        assert final.words_remaining == 0
        assert scheduler.now == pytest.approx(0.180)

    def test_emits_each_word_in_order(self, make_engine, scheduler, recorder):
        engine = make_engine("a b c", wpm=1000)
        recorder.clear()
        engine.play()
        scheduler.run_until_idle()
        assert recorder.words == ["a", "b", "c", ""]

    def test_one_pending_timer_while_playing(self, make_engine, scheduler, sample_text):
        engine = make_engine(sample_text)
        engine.play()
        for _ in range(5):
            assert len(scheduler.pending) == 1
            scheduler.run_next()

    def test_each_word_gets_its_own_delay(self, make_engine, scheduler):
        engine = make_engine("Well, extraordinary things. happen", wpm=300)
        engine.play()
        delays = []
        while scheduler.next_handle() is not None:
            delays.append(scheduler.next_handle().delay_s)
            scheduler.run_next()
        assert delays == pytest.approx([
            0.2 * 1.25,   # "Well,"
            0.2 * 1.2,    # "extraordinary"
            0.2 * 1.5,    # "things."
            0.2,          # "happen"
        ])

    def test_advance_timing(self, make_engine, scheduler):
        engine = make_engine("a b c", wpm=300)
        engine.play()
        scheduler.advance(0.19)
        assert engine.current_index == 0
        scheduler.advance(0.02)
        assert engine.current_index == 1

    def test_no_timer_after_completion(self, make_engine, scheduler):
        engine = make_engine("a b", wpm=1000)
        engine.play()
        scheduler.run_until_idle()
        assert engine.is_playing is False
        assert engine.has_pending_tick is False

    def test_play_after_completion_restarts(self, make_engine, scheduler, recorder):
        engine = make_engine("a b", wpm=1000)
        engine.play()
        scheduler.run_until_idle()
        engine.play()
        assert recorder.last.current_index == 0
        assert recorder.last.current_word == "a"
        assert recorder.last.is_playing is True

    def test_stale_tick_is_dropped(self, make_engine, scheduler):
        engine = make_engine("a b c")
        engine.play()
        handle = scheduler.next_handle()
        engine.pause()
        # The timer thread already woke up before pause() cancelled it.
        handle.fire()
        assert engine.current_index == 0
        assert engine.is_playing is False
        assert scheduler.pending == []


# ---------------------------------------------------------------------------
# TestNavigation
# ---------------------------------------------------------------------------


class TestNavigation:
    """skip/rewind/jump_to clamp and never change is_playing."""

    def test_skip_default_is_one(self, make_engine):
        engine = make_engine("a b c")
        engine.skip()
        assert engine.current_index == 1

    def test_skip_clamps_to_last_word(self, make_engine):
        engine = make_engine("a b c")
        engine.skip(100)
        assert engine.current_index == 2

    def test_rewind_clamps_to_zero(self, make_engine):
        engine = make_engine("a b c")
        engine.skip(2)
        engine.rewind(10)
        assert engine.current_index == 0

    def test_rewind_after_completion(self, make_engine, scheduler):
        engine = make_engine("a b c", wpm=1000)
        engine.play()
        scheduler.run_until_idle()
        engine.rewind()
        assert engine.current_index == 2

    def test_skip_on_empty(self, make_engine):
        engine = make_engine("")
        engine.skip(3)
        engine.rewind(3)
        assert engine.current_index == 0

    @pytest.mark.parametrize("index, expected", [
        (-5, 0),
        (0, 0),
        (2, 2),
        (4, 4),
        (5, 4),
        (1000, 4),
    ])
    def test_jump_to_clamps(self, make_engine, index, expected):
        engine = make_engine("a b c d e")
        engine.jump_to(index)
        assert engine.current_index == expected
        assert engine.current_index == max(0, min(index, 4))

    def test_navigation_emits_without_changing_play_state(self, make_engine, recorder):
        engine = make_engine("a b c")
        recorder.clear()
        engine.skip()
        engine.rewind()
        engine.jump_to(2)
        assert len(recorder.snapshots) == 3
        assert all(s.is_playing is False for s in recorder.snapshots)

    def test_skip_while_playing_reschedules_for_new_word(self, make_engine, scheduler):
        engine = make_engine("a b extraordinarily. d", wpm=300)
        engine.play()
        old = scheduler.next_handle()
        engine.skip(2)

        assert old.cancelled
        assert engine.is_playing is True
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay_s == pytest.approx(0.2 * 1.7)

        scheduler.run_next()
        assert engine.current_index == 3

    def test_jump_while_playing_keeps_playing(self, make_engine, scheduler, recorder):
        engine = make_engine("a b c d")
        engine.play()
        engine.jump_to(3)
        assert recorder.last.is_playing is True
        assert recorder.last.current_word == "d"
        scheduler.run_until_idle()
        assert recorder.last.current_index == 4

    def test_skip_on_last_word_keeps_in_flight_tick(self, make_engine, scheduler, recorder):
        engine = make_engine("a b c", wpm=300)
        engine.jump_to(2)
        engine.play()
        in_flight = scheduler.next_handle()

        scheduler.advance(0.15)
        for _ in range(5):
            engine.skip()

        assert not in_flight.cancelled
        assert recorder.last.current_index == 2
        scheduler.advance(0.05)
        assert engine.current_index == 3
        assert engine.is_playing is False

    def test_rewind_on_first_word_keeps_in_flight_tick(self, make_engine, scheduler):
        engine = make_engine("a b c")
        engine.play()
        in_flight = scheduler.next_handle()
        engine.rewind(3)
        engine.jump_to(-1)
        assert not in_flight.cancelled
        assert scheduler.pending == [in_flight]


# ---------------------------------------------------------------------------
# TestRate
# ---------------------------------------------------------------------------


class TestRate:
    """set_wpm and apply_settings only affect future ticks."""

    @pytest.mark.parametrize("wpm, expected", [
        (-1, 100),
        (0, 100),
        (99, 100),
        (100, 100),
        (450, 450),
        (1000, 1000),
        (1001, 1000),
        (50_000, 1000),
    ])
    def test_set_wpm_clamps(self, make_engine, wpm, expected):
        engine = make_engine("a")
        engine.set_wpm(wpm)
        assert engine.wpm == expected == max(100, min(1000, wpm))

    def test_set_wpm_does_not_touch_in_flight_delay(self, make_engine, scheduler):
        engine = make_engine("a b c", wpm=300)
        engine.play()
        in_flight = scheduler.next_handle()
        engine.set_wpm(1000)

        assert not in_flight.cancelled
        assert in_flight.delay_s == pytest.approx(0.2)

        scheduler.run_next()
        assert scheduler.next_handle().delay_s == pytest.approx(0.06)

    def test_set_wpm_updates_time_remaining(self, make_engine, recorder):
        engine = make_engine(" ".join(["w"] * 900), wpm=300)
        assert engine.get_state().time_remaining == "3m 0s"
        engine.set_wpm(600)
        assert recorder.last.time_remaining == "1m 30s"

    def test_apply_settings_partial(self, make_engine):
        engine = make_engine("a", wpm=300, natural_reading_enabled=True, period_delay=0.5)
        engine.apply_settings({"period_delay": 1.0})
        assert engine.settings.period_delay == 1.0
        assert engine.settings.wpm == 300

    def test_apply_settings_keywords_and_clamp(self, make_engine):
        engine = make_engine("a")
        engine.apply_settings(wpm=5000, comma_delay=0.4)
        assert engine.wpm == 1000
        assert engine.settings.comma_delay == 0.4

    def test_apply_settings_ignores_unknown_keys(self, make_engine):
        engine = make_engine("a", wpm=300)
        engine.apply_settings({"font_size": 72, "wpm": 400})
        assert engine.wpm == 400
        assert not hasattr(engine.settings, "font_size")

    def test_disabling_natural_reading_uses_fixed_delays(self, make_engine, scheduler):
        engine = make_engine(
            "stop. go",
            wpm=300,
            natural_reading_enabled=True,
            period_delay=2.0,
        )
        engine.apply_settings(natural_reading_enabled=False)
        engine.play()
        assert scheduler.next_handle().delay_s == pytest.approx(0.2 * 1.5)

    def test_negative_punctuation_delays_are_clamped(self, make_engine, scheduler):
        engine = make_engine("stop. go", wpm=300, natural_reading_enabled=True)
        engine.apply_settings(period_delay=-3, comma_delay=-1)
        assert engine.settings.period_delay == 0.0
        assert engine.settings.comma_delay == 0.0
        engine.play()
        assert scheduler.next_handle().delay_s == pytest.approx(0.2)

    def test_engine_settings_clamp_on_construction(self):
        settings = EngineSettings(period_delay=-0.5, comma_delay=-0.25)
        assert settings.period_delay == 0.0
        assert settings.comma_delay == 0.0


# ---------------------------------------------------------------------------
# TestSnapshots
# ---------------------------------------------------------------------------


class TestSnapshots:
    """Snapshots are fresh, frozen values; get_state has no side effects."""

    def test_get_state_is_pure(self, make_engine, recorder, scheduler):
        engine = make_engine("a b c")
        recorder.clear()
        first = engine.get_state()
        second = engine.get_state()
        assert first == second
        assert recorder.snapshots == []
        assert scheduler.handles == []

    def test_snapshot_is_frozen(self, make_engine):
        state = make_engine("a b").get_state()
        with pytest.raises(dataclasses.FrozenInstanceError):
            state.current_index = 5

    def test_snapshot_fields(self, make_engine):
        engine = make_engine("a b c d e", wpm=300)
        engine.jump_to(1)
        state = engine.get_state()
        assert state.to_dict() == {
            "current_word": "b",
            "current_index": 1,
            "total_words": 5,
            "percentage": 20,
            "time_remaining": "1s",
            "words_remaining": 4,
            "is_playing": False,
        }

    def test_earlier_snapshots_unchanged(self, make_engine, recorder):
        engine = make_engine("a b c")
        before = recorder.last
        engine.skip()
        assert before.current_index == 0
        assert recorder.last.current_index == 1


# ---------------------------------------------------------------------------
# TestDestroy
# ---------------------------------------------------------------------------


class TestDestroy:
    """destroy() cancels the tick, drops the listener and is idempotent."""

    def test_destroy_cancels_timer(self, make_engine, scheduler):
        engine = make_engine("a b c")
        engine.play()
        engine.destroy()
        assert scheduler.pending == []
        assert engine.is_playing is False

    def test_no_emission_after_destroy(self, make_engine, recorder):
        engine = make_engine("a b c")
        engine.destroy()
        recorder.clear()
        engine.skip()
        engine.pause()
        engine.set_wpm(500)
        engine.load_content("x y")
        assert recorder.snapshots == []

    def test_destroy_twice(self, make_engine, scheduler):
        engine = make_engine("a b")
        engine.play()
        engine.destroy()
        engine.destroy()
        assert scheduler.cancel_count == 1

    def test_play_after_destroy_is_noop(self, make_engine, scheduler):
        engine = make_engine("a b")
        engine.destroy()
        engine.play()
        assert engine.is_playing is False
        assert scheduler.pending == []

    def test_listener_cannot_be_reattached(self, make_engine, recorder):
        engine = make_engine("a b")
        engine.destroy()
        engine.set_listener(recorder)
        recorder.clear()
        engine.skip()
        assert recorder.snapshots == []


# ---------------------------------------------------------------------------
# TestListener
# ---------------------------------------------------------------------------


class TestListener:
    """The single listener is called synchronously and may call back in."""

    def test_engine_without_listener(self, scheduler):
        engine = RSVPEngine(scheduler=scheduler)
        engine.load_content("a b")
        engine.play()
        scheduler.run_until_idle()
        assert engine.current_index == 2

    def test_set_listener_replaces(self, make_engine, recorder):
        engine = make_engine("a b")
        other = []
        engine.set_listener(other.append)
        recorder.clear()
        engine.skip()
        assert recorder.snapshots == []
        assert other[-1].current_index == 1

    def test_failing_listener_does_not_break_playback(self, scheduler, caplog):
        def boom(snapshot):
            raise RuntimeError("listener bug")

        engine = RSVPEngine(boom, scheduler=scheduler, settings=EngineSettings(wpm=1000))
        engine.load_content("a b c")
        engine.play()
        scheduler.run_until_idle()
        assert engine.current_index == 3
        assert "State listener failed" in caplog.text

    def test_listener_can_pause_from_tick(self, scheduler):
        engine = RSVPEngine(scheduler=scheduler, settings=EngineSettings(wpm=1000))

        def pause_on_second_word(snapshot):
            if snapshot.is_playing and snapshot.current_index == 1:
                engine.pause()

        engine.set_listener(pause_on_second_word)
        engine.load_content("a b c d")
        engine.play()
        scheduler.run_until_idle()

        assert engine.current_index == 1
        assert engine.is_playing is False
        assert scheduler.pending == []


# ---------------------------------------------------------------------------
# TestThreadingIntegration
# ---------------------------------------------------------------------------


class TestThreadingIntegration:
    """A real timer-thread scheduler plays a short text to the end."""

    def test_plays_to_completion_on_timer_threads(self):
        done = threading.Event()
        snapshots = []

        def listener(snapshot):
            snapshots.append(snapshot)
            if snapshot.current_index == snapshot.total_words and not snapshot.is_playing:
                done.set()

        engine = RSVPEngine(listener, scheduler=ThreadingScheduler(), settings=EngineSettings(wpm=1000))
        engine.load_content("a b c")
        engine.play()

        assert done.wait(5.0)
        final = snapshots[-1]
        assert final.is_playing is False
        assert final.current_index == 3
        assert final.percentage == 100
        engine.destroy()

    def test_pause_from_other_thread_stops_ticks(self):
        engine = RSVPEngine(scheduler=ThreadingScheduler(), settings=EngineSettings(wpm=100))
        engine.load_content("one two three four")
        engine.play()
        engine.pause()
        index = engine.current_index
        threading.Event().wait(0.8)
        assert engine.current_index == index
        assert engine.has_pending_tick is False
