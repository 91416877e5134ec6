"""Draw targets: where progress output is painted and how often."""

from __future__ import annotations

import abc
import enum
import math
import os
import re
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Any, ContextManager, Optional, Protocol, TextIO

from wcwidth import wcswidth, wcwidth

MAX_BURST = 20

_ANSI_RE = re.compile(
    r"\x1b\[[0-9;?]*[ -/]*[@-~]"  # CSI sequences
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"  # OSC sequences
    r"|\x1b[@-Z\\-_]"  # two-byte escapes
)


def measure_text_width(text: str) -> int:
    """Return the number of terminal columns ``text`` occupies, ignoring ANSI codes."""
    plain = _ANSI_RE.sub("", text)
    width = wcswidth(plain)
    if width >= 0:
        return width
    return sum(max(wcwidth(char), 0) for char in plain)


class Alignment(enum.Enum):
    """Vertical alignment of a multi progress when some of its bars go away."""

    TOP = "top"
    BOTTOM = "bottom"


@dataclass(frozen=True)
class LineAdjust:
    """A change to the number of lines the next draw clears.

    ``LineAdjust.clear(n)`` makes the next draw also clear ``n`` more lines;
    ``LineAdjust.keep(n)`` makes it leave ``n`` lines in place.
    """

    count: int
    retain: bool

    @classmethod
    def clear(cls, count: int) -> LineAdjust:
        return cls(count, retain=False)

    @classmethod
    def keep(cls, count: int) -> LineAdjust:
        return cls(count, retain=True)

    def apply(self, last_line_count: int) -> int:
        """Return ``last_line_count`` after this adjustment."""
        if self.retain:
            return max(last_line_count - self.count, 0)
        return last_line_count + self.count


class TermLike(abc.ABC):
    """Something that behaves like a terminal and can be drawn to."""

    @abc.abstractmethod
    def width(self) -> int:
        """Return the width of the terminal in columns."""

    @abc.abstractmethod
    def move_cursor_up(self, n: int) -> None:
        """Move the cursor up ``n`` lines."""

    @abc.abstractmethod
    def move_cursor_down(self, n: int) -> None:
        """Move the cursor down ``n`` lines."""

    @abc.abstractmethod
    def clear_line(self) -> None:
        """Clear the current line and put the cursor at its start."""

    @abc.abstractmethod
    def write_line(self, line: str) -> None:
        """Write ``line`` followed by a newline."""

    @abc.abstractmethod
    def write_str(self, text: str) -> None:
        """Write ``text`` without a newline."""

    @abc.abstractmethod
    def flush(self) -> None:
        """Push everything written so far to the device."""


class StreamTerm(TermLike):
    """A buffered terminal over a text stream such as ``sys.stderr``."""

    DEFAULT_WIDTH = 80

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self._buffer: list[str] = []
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"StreamTerm({self.stream!r})"

    def is_term(self) -> bool:
        """Return True if the stream is attached to an interactive terminal."""
        try:
            return bool(self.stream.isatty())
        except (AttributeError, ValueError):
            return False

    def width(self) -> int:
        try:
            return os.get_terminal_size(self.stream.fileno()).columns
        except (AttributeError, OSError, ValueError):
            return self.DEFAULT_WIDTH

    def _push(self, text: str) -> None:
        with self._lock:
            self._buffer.append(text)

    def move_cursor_up(self, n: int) -> None:
        if n > 0:
            self._push(f"\x1b[{n}A")

    def move_cursor_down(self, n: int) -> None:
        if n > 0:
            self._push(f"\x1b[{n}B")

    def clear_line(self) -> None:
        self._push("\r\x1b[2K")

    def write_line(self, line: str) -> None:
        self._push(line + "\n")

    def write_str(self, text: str) -> None:
        self._push(text)

    def flush(self) -> None:
        with self._lock:
            pending = "".join(self._buffer)
            self._buffer.clear()
        if pending:
            self.stream.write(pending)
        self.stream.flush()


class _MultiStateLike(Protocol):
    """What a remote draw target needs from the state of a multi progress."""

    lock: Any

    def is_hidden(self) -> bool: ...

    def width(self) -> int: ...

    def mark_zombie(self, index: int) -> None: ...

    def draw_state(self, idx: int) -> DrawStateWrapper: ...

    def draw(self, force_draw: bool, extra_lines: Optional[list[str]], now: float) -> None: ...


def _to_nanos(seconds: float) -> int:
    return int(round(seconds * 1_000_000_000))


class RateLimiter:
    """Limits draws to a rate, allowing occasional bursts above it."""

    def __init__(self, rate: int, now: Optional[float] = None) -> None:
        _check_rate(rate)
        self.interval = 1000 // rate  # milliseconds
        self.capacity = MAX_BURST
        self._prev_ns = _to_nanos(time.monotonic() if now is None else now)

    def __repr__(self) -> str:
        return f"RateLimiter(interval={self.interval}ms, capacity={self.capacity})"

    def allow(self, now: float) -> bool:
        """Return True if a draw at monotonic time ``now`` is allowed."""
        now_ns = _to_nanos(now)
        if now_ns < self._prev_ns:
            return False
        elapsed_ns = now_ns - self._prev_ns
        if self.capacity == 0 and elapsed_ns < self.interval * 1_000_000:
            return False
        new = (elapsed_ns // 1_000_000) // self.interval
        remainder = (elapsed_ns % self.interval) * 1_000_000
        self.capacity = min(MAX_BURST, self.capacity + new - 1)
        self._prev_ns = now_ns - remainder
        return True


def _check_rate(rate: int) -> None:
    if isinstance(rate, bool) or not isinstance(rate, int):
        raise TypeError(f"refresh rate must be an integer, got {rate!r}")
    if not 1 <= rate <= 255:
        raise ValueError(f"refresh rate must be between 1 and 255, got {rate}")


@dataclass
class DrawState:
    """The drawn state of an element."""

    lines: list[str] = field(default_factory=list)
    orphan_lines_count: int = 0
    move_cursor: bool = False
    alignment: Alignment = Alignment.TOP

    def draw_to_term(self, term: TermLike, last_line_count: int) -> int:
        """Paint the lines to ``term`` and return the new count of lines on screen."""
        if self.lines and self.move_cursor:
            term.move_cursor_up(last_line_count)
        else:
            n = last_line_count
            term.move_cursor_up(max(n - 1, 0))
            for i in range(n):
                term.clear_line()
                if i + 1 != n:
                    term.move_cursor_down(1)
            term.move_cursor_up(max(n - 1, 0))

        shift = 0
        if self.alignment is Alignment.BOTTOM and len(self.lines) < last_line_count:
            shift = last_line_count - len(self.lines)
            for _ in range(shift):
                term.write_line("")

        term_width = term.width()
        columns = max(term_width, 1)
        real_len = 0
        last = len(self.lines) - 1
        for idx, line in enumerate(self.lines):
            if not line:
                real_len += 1
            else:
                # A line that only holds escape codes still takes a row.
                real_len += max(math.ceil(measure_text_width(line) / columns), 1)
            if idx != last:
                term.write_line(line)
            else:
                term.write_str(line)
                # Pad to the right edge so later prints start on a new line.
                term.write_str(" " * max(term_width - measure_text_width(line), 0))

        term.flush()
        return real_len - self.orphan_lines_count + shift

    def reset(self) -> None:
        """Forget all lines."""
        self.lines.clear()
        self.orphan_lines_count = 0


class DrawStateWrapper(ContextManager[DrawState]):
    """Gives access to a draw state; for multi bars, hands orphan lines over on exit."""

    def __init__(self, state: DrawState, orphan_lines: Optional[list[str]] = None) -> None:
        self.state = state
        self.orphan_lines = orphan_lines

    @classmethod
    def for_term(cls, state: DrawState) -> DrawStateWrapper:
        return cls(state)

    @classmethod
    def for_multi(cls, state: DrawState, orphan_lines: list[str]) -> DrawStateWrapper:
        return cls(state, orphan_lines)

    def release(self) -> None:
        """Move the leading orphan lines to the owner's orphan list."""
        if self.orphan_lines is not None:
            count = self.state.orphan_lines_count
            self.orphan_lines.extend(self.state.lines[:count])
            del self.state.lines[:count]
            self.state.orphan_lines_count = 0

    def __enter__(self) -> DrawState:
        return self.state

    def __exit__(self, *exc_info: object) -> None:
        self.release()


@dataclass
class _TermKind:
    term: Any
    rate_limiter: Optional[RateLimiter]
    check_tty: bool
    last_line_count: int = 0
    draw_state: DrawState = field(default_factory=DrawState)

    def adjust(self, adjust: LineAdjust) -> None:
        self.last_line_count = adjust.apply(self.last_line_count)


@dataclass
class _MultiKind:
    state: _MultiStateLike
    idx: int


class _HiddenKind:
    def __repr__(self) -> str:
        return "Hidden"


class Drawable:
    """A draw target that is ready to be painted right now."""

    def __init__(
        self,
        *,
        term_kind: Optional[_TermKind] = None,
        multi: Optional[_MultiKind] = None,
        force_draw: bool = False,
        now: float = 0.0,
    ) -> None:
        if (term_kind is None) == (multi is None):
            raise ValueError("a drawable needs exactly one of a terminal or a multi state")
        self._term_kind = term_kind
        self._multi = multi
        self.force_draw = force_draw
        self.now = now

    def adjust_last_line_count(self, adjust: LineAdjust) -> None:
        """Make the next draw keep or clear additional lines."""
        if self._term_kind is not None:
            self._term_kind.adjust(adjust)

    def state(self) -> DrawStateWrapper:
        """Return the reset draw state to fill with lines."""
        if self._term_kind is not None:
            wrapper = DrawStateWrapper.for_term(self._term_kind.draw_state)
        else:
            assert self._multi is not None
            with self._multi.state.lock:
                wrapper = self._multi.state.draw_state(self._multi.idx)
        wrapper.state.reset()
        return wrapper

    def clear(self) -> None:
        """Remove everything this target drew."""
        with self.state():
            pass
        self.draw()

    def draw(self) -> None:
        """Paint the current state."""
        if self._term_kind is not None:
            kind = self._term_kind
            kind.last_line_count = kind.draw_state.draw_to_term(kind.term, kind.last_line_count)
        else:
            assert self._multi is not None
            with self._multi.state.lock:
                self._multi.state.draw(self.force_draw, None, self.now)


class ProgressDrawTarget:
    """Where a progress bar or multi progress paints, and how often."""

    def __init__(self, kind: Any) -> None:
        self._kind = kind

    def __repr__(self) -> str:
        return f"ProgressDrawTarget({self._kind!r})"

    @classmethod
    def stdout(cls) -> ProgressDrawTarget:
        """Draw to standard output at most 20 times a second."""
        return cls.term(StreamTerm(sys.stdout), 20)

    @classmethod
    def stderr(cls) -> ProgressDrawTarget:
        """Draw to standard error at most 20 times a second (the default)."""
        return cls.term(StreamTerm(sys.stderr), 20)

    @classmethod
    def stdout_with_hz(cls, refresh_rate: int) -> ProgressDrawTarget:
        return cls.term(StreamTerm(sys.stdout), refresh_rate)

    @classmethod
    def stderr_with_hz(cls, refresh_rate: int) -> ProgressDrawTarget:
        return cls.term(StreamTerm(sys.stderr), refresh_rate)

    @classmethod
    def term(cls, term: StreamTerm, refresh_rate: int) -> ProgressDrawTarget:
        """Draw to a terminal; nothing is drawn when it is not interactive."""
        return cls(_TermKind(term, RateLimiter(refresh_rate), check_tty=True))

    @classmethod
    def term_like(cls, term_like: TermLike) -> ProgressDrawTarget:
        """Draw to any terminal-like object, without rate limiting."""
        return cls(_TermKind(term_like, None, check_tty=False))

    @classmethod
    def term_like_with_hz(cls, term_like: TermLike, refresh_rate: int) -> ProgressDrawTarget:
        """Draw to any terminal-like object at most ``refresh_rate`` times a second."""
        return cls(_TermKind(term_like, RateLimiter(refresh_rate), check_tty=False))

    @classmethod
    def hidden(cls) -> ProgressDrawTarget:
        """A target that never draws anything."""
        return cls(_HiddenKind())

    @classmethod
    def remote_target(cls, state: _MultiStateLike, idx: int) -> ProgressDrawTarget:
        """A target that forwards to member ``idx`` of a multi progress state."""
        return cls(_MultiKind(state, idx))

    def is_hidden(self) -> bool:
        kind = self._kind
        if isinstance(kind, _HiddenKind):
            return True
        if isinstance(kind, _MultiKind):
            with kind.state.lock:
                return kind.state.is_hidden()
        return kind.check_tty and not kind.term.is_term()

    def width(self) -> int:
        kind = self._kind
        if isinstance(kind, _HiddenKind):
            return 0
        if isinstance(kind, _MultiKind):
            with kind.state.lock:
                return kind.state.width()
        return kind.term.width()

    def mark_zombie(self) -> None:
        """Tell the owning multi progress, if any, that this bar is gone."""
        kind = self._kind
        if isinstance(kind, _MultiKind):
            with kind.state.lock:
                kind.state.mark_zombie(kind.idx)

    def drawable(self, force_draw: bool, now: float) -> Optional[Drawable]:
        """Return a drawable if drawing is due at ``now``, else None."""
        kind = self._kind
        if isinstance(kind, _HiddenKind):
            return None
        if isinstance(kind, _MultiKind):
            return Drawable(multi=kind, force_draw=force_draw, now=now)
        if kind.check_tty and not kind.term.is_term():
            return None
        if force_draw or kind.rate_limiter is None or kind.rate_limiter.allow(now):
            return Drawable(term_kind=kind, force_draw=force_draw, now=now)
        return None

    def disconnect(self, now: float) -> None:
        """Detach cleanly, clearing this bar's lines from a multi progress."""
        kind = self._kind
        if isinstance(kind, _MultiKind):
            Drawable(multi=kind, force_draw=True, now=now).clear()

    def remote(self) -> Optional[tuple[_MultiStateLike, int]]:
        """Return the multi state and index this target forwards to, if any."""
        kind = self._kind
        if isinstance(kind, _MultiKind):
            return kind.state, kind.idx
        return None

    def adjust_last_line_count(self, adjust: LineAdjust) -> None:
        """Make the next draw keep or clear additional lines."""
        if isinstance(self._kind, _TermKind):
            self._kind.adjust(adjust)