import io
import threading
import time

import pytest

from barkit.draw_target import (
    MAX_BURST,
    Alignment,
    Drawable,
    DrawState,
    DrawStateWrapper,
    LineAdjust,
    ProgressDrawTarget,
    RateLimiter,
    StreamTerm,
    TermLike,
    measure_text_width,
)


class FakeTerm(TermLike):
    def __init__(self, columns=40):
        self.columns = columns
        self.ops = []

    def width(self):
        return self.columns

    def move_cursor_up(self, n):
        self.ops.append(("up", n))

    def move_cursor_down(self, n):
        self.ops.append(("down", n))

    def clear_line(self):
        self.ops.append(("clear",))

    def write_line(self, line):
        self.ops.append(("line", line))

    def write_str(self, text):
        self.ops.append(("str", text))

    def flush(self):
        self.ops.append(("flush",))


class FakeMulti:
    def __init__(self, hidden=False, columns=33):
        self.lock = threading.RLock()
        self.hidden = hidden
        self.columns = columns
        self.calls = []
        self.state = DrawState(lines=["old"])
        self.orphans = []

    def is_hidden(self):
        return self.hidden

    def width(self):
        return self.columns

    def mark_zombie(self, index):
        self.calls.append(("zombie", index))

    def draw_state(self, idx):
        self.calls.append(("draw_state", idx))
        return DrawStateWrapper.for_multi(self.state, self.orphans)

    def draw(self, force_draw, extra_lines, now):
        self.calls.append(("draw", force_draw, extra_lines, now))


def test_measure_text_width_ignores_ansi():
    assert measure_text_width("abc") == 3
    assert measure_text_width("\x1b[31mabc\x1b[0m") == measure_text_width("abc")
    assert measure_text_width("\x1b[1m\x1b[0m") == 0


def test_measure_text_width_wide_chars():
    assert measure_text_width("日本") == 2 * measure_text_width("日")
    assert measure_text_width("日") > measure_text_width("a")


def test_line_adjust():
    assert LineAdjust.clear(3).apply(2) == 5
    assert LineAdjust.keep(3).apply(5) == 2
    assert LineAdjust.keep(10).apply(2) == 0


def test_rate_limiter_burst_then_limited():
    limiter = RateLimiter(20, now=100.0)
    results = [limiter.allow(100.0) for _ in range(MAX_BURST)]
    assert all(results)
    assert limiter.allow(100.0) is False
    assert limiter.allow(100.05) is True


def test_rate_limiter_rejects_past():
    limiter = RateLimiter(10, now=50.0)
    assert limiter.allow(49.0) is False


@pytest.mark.parametrize("rate", [0, 256, -1])
def test_rate_limiter_bad_rate(rate):
    with pytest.raises(ValueError):
        RateLimiter(rate)


def test_draw_to_term_first_draw():
    term = FakeTerm(columns=10)
    state = DrawState(lines=["a", "b"])
    assert state.draw_to_term(term, 0) == 2
    assert term.ops == [
        ("up", 0),
        ("up", 0),
        ("line", "a"),
        ("str", "b"),
        ("str", " " * 9),
        ("flush",),
    ]


def test_draw_to_term_clears_previous_lines():
    term = FakeTerm()
    state = DrawState()
    assert state.draw_to_term(term, 3) == 0
    assert term.ops == [
        ("up", 2),
        ("clear",),
        ("down", 1),
        ("clear",),
        ("down", 1),
        ("clear",),
        ("up", 2),
        ("flush",),
    ]


def test_draw_to_term_move_cursor():
    term = FakeTerm()
    state = DrawState(lines=["x", "y"], move_cursor=True)
    assert state.draw_to_term(term, 2) == 2
    assert term.ops[0] == ("up", 2)
    assert ("clear",) not in term.ops


def test_draw_to_term_bottom_alignment_shifts():
    term = FakeTerm()
    state = DrawState(lines=["x"], alignment=Alignment.BOTTOM)
    assert state.draw_to_term(term, 3) == 3
    assert term.ops.count(("line", "")) == 2


def test_draw_to_term_counts_wrapped_and_orphan_lines():
    term = FakeTerm(columns=10)
    state = DrawState(lines=["o", "z" * 25, ""], orphan_lines_count=1)
    # "o" takes one row, the long line wraps to three, the empty one takes one
    assert state.draw_to_term(term, 0) == 1 + 3 + 1 - 1


def test_draw_state_reset():
    state = DrawState(lines=["a"], orphan_lines_count=1)
    state.reset()
    assert state.lines == []
    assert state.orphan_lines_count == 0


def test_wrapper_moves_orphan_lines():
    orphans = []
    state = DrawState(lines=["o1", "o2", "bar"], orphan_lines_count=2)
    with DrawStateWrapper.for_multi(state, orphans) as inner:
        assert inner is state
    assert orphans == ["o1", "o2"]
    assert state.lines == ["bar"]
    assert state.orphan_lines_count == 0


def test_wrapper_for_term_keeps_lines():
    state = DrawState(lines=["o1", "bar"], orphan_lines_count=1)
    with DrawStateWrapper.for_term(state):
        pass
    assert state.lines == ["o1", "bar"]


def test_stream_term_buffers_until_flush():
    stream = io.StringIO()
    term = StreamTerm(stream)
    assert term.is_term() is False
    assert term.width() == StreamTerm.DEFAULT_WIDTH
    term.move_cursor_up(2)
    term.write_line("hi")
    assert stream.getvalue() == ""
    term.flush()
    assert stream.getvalue() == "\x1b[2Ahi\n"


def test_stream_term_zero_moves_write_nothing():
    stream = io.StringIO()
    term = StreamTerm(stream)
    term.move_cursor_up(0)
    term.move_cursor_down(0)
    term.write_str("x")
    term.flush()
    assert stream.getvalue() == "x"


def test_term_target_hidden_when_not_tty():
    target = ProgressDrawTarget.term(StreamTerm(io.StringIO()), 20)
    assert target.is_hidden() is True
    assert target.drawable(True, time.monotonic()) is None


def test_term_target_bad_rate():
    with pytest.raises(ValueError):
        ProgressDrawTarget.term(StreamTerm(io.StringIO()), 0)


def test_hidden_target():
    target = ProgressDrawTarget.hidden()
    assert target.is_hidden() is True
    assert target.width() == 0
    assert target.drawable(True, time.monotonic()) is None
    assert target.remote() is None


def test_term_like_target_draw_and_redraw():
    term = FakeTerm(columns=5)
    target = ProgressDrawTarget.term_like(term)
    assert target.is_hidden() is False
    assert target.width() == 5

    drawable = target.drawable(False, time.monotonic())
    assert isinstance(drawable, Drawable)
    with drawable.state() as state:
        state.lines.extend(["one", "two"])
    drawable.draw()
    assert ("line", "one") in term.ops

    term.ops.clear()
    target.drawable(False, time.monotonic()).clear()
    assert term.ops.count(("clear",)) == 2


def test_adjust_last_line_count_changes_next_clear():
    term = FakeTerm()
    target = ProgressDrawTarget.term_like(term)
    target.adjust_last_line_count(LineAdjust.clear(2))
    target.drawable(True, time.monotonic()).clear()
    assert term.ops.count(("clear",)) == 2

    term.ops.clear()
    drawable = target.drawable(True, time.monotonic())
    drawable.adjust_last_line_count(LineAdjust.clear(1))
    drawable.clear()
    assert term.ops.count(("clear",)) == 1


def test_term_like_with_hz_rate_limited():
    term = FakeTerm()
    target = ProgressDrawTarget.term_like_with_hz(term, 1)
    now = time.monotonic() + 0.001
    allowed = [target.drawable(False, now) is not None for _ in range(MAX_BURST)]
    assert all(allowed)
    assert target.drawable(False, now) is None
    assert target.drawable(True, now) is not None


def test_remote_target_delegates():
    multi = FakeMulti(hidden=True, columns=33)
    target = ProgressDrawTarget.remote_target(multi, 3)
    assert target.remote() == (multi, 3)
    assert target.is_hidden() is True
    assert target.width() == 33
    target.mark_zombie()
    assert multi.calls == [("zombie", 3)]


def test_remote_drawable_draws_multi():
    multi = FakeMulti()
    target = ProgressDrawTarget.remote_target(multi, 1)
    drawable = target.drawable(False, 7.0)
    with drawable.state() as state:
        assert state.lines == []
        state.lines.append("bar")
    drawable.draw()
    assert multi.state.lines == ["bar"]
    assert multi.calls == [("draw_state", 1), ("draw", False, None, 7.0)]


def test_remote_disconnect_clears():
    multi = FakeMulti()
    target = ProgressDrawTarget.remote_target(multi, 2)
    target.disconnect(5.0)
    assert multi.state.lines == []
    assert multi.calls == [("draw_state", 2), ("draw", True, None, 5.0)]


def test_drawable_requires_one_kind():
    with pytest.raises(ValueError):
        Drawable()