"""Shared state behind a multi progress: members, their order and drawing."""

from __future__ import annotations

import enum
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from barkit.draw_target import (
    Alignment,
    DrawState,
    DrawStateWrapper,
    LineAdjust,
    ProgressDrawTarget,
    measure_text_width,
)

R = TypeVar("R")


class _Where(enum.Enum):
    END = "end"
    INDEX = "index"
    INDEX_FROM_BACK = "index_from_back"
    AFTER = "after"
    BEFORE = "before"


@dataclass(frozen=True)
class InsertLocation:
    """Where a new member goes in the visual order of a multi progress."""

    where: _Where
    value: int = 0

    @classmethod
    def end(cls) -> InsertLocation:
        """After every existing member."""
        return cls(_Where.END)

    @classmethod
    def index(cls, pos: int) -> InsertLocation:
        """At visual position ``pos``, or at the end if ``pos`` is past it."""
        return cls(_Where.INDEX, pos)

    @classmethod
    def index_from_back(cls, pos: int) -> InsertLocation:
        """``pos`` places from the end, or at the start if ``pos`` is past it."""
        return cls(_Where.INDEX_FROM_BACK, pos)

    @classmethod
    def after(cls, idx: int) -> InsertLocation:
        """Right after the member with index ``idx``."""
        return cls(_Where.AFTER, idx)

    @classmethod
    def before(cls, idx: int) -> InsertLocation:
        """Right before the member with index ``idx``."""
        return cls(_Where.BEFORE, idx)


@dataclass
class _Member:
    # None for members never drawn and for slots in the free set.
    draw_state: Optional[DrawState] = None
    # True once the owning progress bar has gone away.
    is_zombie: bool = False


def _real_len(lines: list[str], width: int) -> int:
    """Count terminal rows the lines take, allowing for wrapping."""
    columns = max(width, 1)
    return sum(math.ceil(measure_text_width(line) / columns) for line in lines)


def _split_lines(msg: str) -> list[str]:
    if not msg:
        return [""]
    lines = msg.split("\n")
    if msg.endswith("\n"):
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


@dataclass
class MultiState:
    """Members of a multi progress and the target they are drawn to together."""

    draw_target: ProgressDrawTarget
    members: list[_Member] = field(default_factory=list)
    free_set: list[int] = field(default_factory=list)
    ordering: list[int] = field(default_factory=list)
    move_cursor: bool = False
    alignment: Alignment = Alignment.TOP
    orphan_lines: list[str] = field(default_factory=list)
    zombie_lines_count: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def mark_zombie(self, index: int) -> None:
        """Note that the bar at ``index`` is gone; reap it now if it is drawn first."""
        member = self.members[index]
        if index != self.ordering[0]:
            member.is_zombie = True
            return

        line_count = len(member.draw_state.lines) if member.draw_state is not None else 0
        self.zombie_lines_count += line_count
        # The target forgets these lines so they stay on screen.
        self.draw_target.adjust_last_line_count(LineAdjust.keep(line_count))
        self.remove_idx(index)

    def draw(self, force_draw: bool, extra_lines: Optional[list[str]], now: float) -> None:
        """Draw all members, with ``extra_lines`` printed above them."""
        width = self.width()

        reap_indices = []
        adjust = 0
        for index in self.ordering:
            member = self.members[index]
            if not member.is_zombie:
                break
            line_count = (
                _real_len(member.draw_state.lines, width) if member.draw_state is not None else 0
            )
            self.zombie_lines_count += line_count
            adjust += line_count
            reap_indices.append(index)

        # Printed lines must appear above everything, so zombie lines get wiped.
        if extra_lines is not None:
            self.draw_target.adjust_last_line_count(LineAdjust.clear(self.zombie_lines_count))
            self.zombie_lines_count = 0

        orphan_lines_count = _real_len(self.orphan_lines, width)
        force_draw = force_draw or orphan_lines_count > 0
        drawable = self.draw_target.drawable(force_draw, now)
        if drawable is None:
            return

        with drawable.state() as draw_state:
            draw_state.orphan_lines_count = orphan_lines_count
            draw_state.alignment = self.alignment
            if extra_lines is not None:
                draw_state.lines.extend(extra_lines)
                draw_state.orphan_lines_count += _real_len(extra_lines, width)
            draw_state.lines.extend(self.orphan_lines)
            self.orphan_lines.clear()
            for index in self.ordering:
                state = self.members[index].draw_state
                if state is not None:
                    draw_state.lines.extend(state.lines)

        try:
            drawable.draw()
        finally:
            for index in reap_indices:
                self.remove_idx(index)
            # Zombie lines were drawn for the last time; leave them on screen.
            if extra_lines is None:
                self.draw_target.adjust_last_line_count(LineAdjust.keep(adjust))

    def println(self, msg: str, now: float) -> None:
        """Print ``msg`` above all members; an empty message prints an empty line."""
        self.draw(True, _split_lines(msg), now)

    def draw_state(self, idx: int) -> DrawStateWrapper:
        """Return the draw state of member ``idx``, creating it on first use."""
        member = self.members[idx]
        if member.draw_state is None:
            member.draw_state = DrawState(move_cursor=self.move_cursor)
        return DrawStateWrapper.for_multi(member.draw_state, self.orphan_lines)

    def is_hidden(self) -> bool:
        return self.draw_target.is_hidden()

    def suspend(self, func: Callable[[], R], now: float) -> R:
        """Clear the display, run ``func``, redraw, and return what ``func`` returned."""
        self.clear(now)
        result = func()
        self.draw(True, None, time.monotonic())
        return result

    def width(self) -> int:
        return self.draw_target.width()

    def insert(self, location: InsertLocation) -> int:
        """Add a member at ``location`` and return its index."""
        if self.free_set:
            idx = self.free_set.pop()
            self.members[idx] = _Member()
        else:
            self.members.append(_Member())
            idx = len(self.members) - 1

        where = location.where
        if where is _Where.END:
            self.ordering.append(idx)
        elif where is _Where.INDEX:
            self.ordering.insert(min(location.value, len(self.ordering)), idx)
        elif where is _Where.INDEX_FROM_BACK:
            self.ordering.insert(max(len(self.ordering) - location.value, 0), idx)
        elif where is _Where.AFTER:
            self.ordering.insert(self.ordering.index(location.value) + 1, idx)
        else:
            self.ordering.insert(self.ordering.index(location.value), idx)

        self._check_consistent()
        return idx

    def clear(self, now: float) -> None:
        """Wipe everything drawn, zombie lines included."""
        drawable = self.draw_target.drawable(True, now)
        if drawable is None:
            return
        drawable.adjust_last_line_count(LineAdjust.clear(self.zombie_lines_count))
        self.zombie_lines_count = 0
        drawable.clear()

    def remove_idx(self, idx: int) -> None:
        """Remove member ``idx``; removing it again has no effect."""
        if idx in self.free_set:
            return
        self.members[idx] = _Member()
        self.free_set.append(idx)
        self.ordering = [x for x in self.ordering if x != idx]
        self._check_consistent()

    def __len__(self) -> int:
        return len(self.members) - len(self.free_set)

    def _check_consistent(self) -> None:
        if len(self) != len(self.ordering):
            raise RuntimeError("Draw state is inconsistent")