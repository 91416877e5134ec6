"""Several progress bars drawn together as one block."""

from __future__ import annotations

import time
from typing import Callable, Optional, Protocol, TypeVar

from barkit.draw_target import Alignment, ProgressDrawTarget
from barkit.multi_state import InsertLocation, MultiState

R = TypeVar("R")
B = TypeVar("B", bound="BarLike")

MultiProgressAlignment = Alignment


class BarLike(Protocol):
    """What a multi progress needs from a progress bar it manages."""

    draw_target: ProgressDrawTarget

    def set_draw_target(self, target: ProgressDrawTarget) -> None: ...


def _member_index(pb: BarLike) -> int:
    remote = pb.draw_target.remote()
    if remote is None:
        raise ValueError("the progress bar is not a member of a multi progress")
    return remote[1]


class MultiProgress:
    """Manages multiple progress bars, possibly updated from different threads."""

    def __init__(self, draw_target: Optional[ProgressDrawTarget] = None) -> None:
        if draw_target is None:
            draw_target = ProgressDrawTarget.stderr()
        self.state = MultiState(draw_target)

    def __repr__(self) -> str:
        return f"MultiProgress(members={len(self.state)})"

    @classmethod
    def with_draw_target(cls, draw_target: ProgressDrawTarget) -> MultiProgress:
        """Create a multi progress that draws to ``draw_target``."""
        return cls(draw_target)

    def set_draw_target(self, target: ProgressDrawTarget) -> None:
        """Switch to a different draw target, detaching from the old one."""
        with self.state.lock:
            self.state.draw_target.disconnect(time.monotonic())
            self.state.draw_target = target

    def set_move_cursor(self, move_cursor: bool) -> None:
        """Move the cursor instead of clearing lines when redrawing."""
        with self.state.lock:
            self.state.move_cursor = move_cursor

    def set_alignment(self, alignment: Alignment) -> None:
        """Set how the block is aligned when bars are removed."""
        with self.state.lock:
            self.state.alignment = alignment

    def add(self, pb: B) -> B:
        """Add a bar at the end and return it."""
        return self._internalize(InsertLocation.end(), pb)

    def insert(self, index: int, pb: B) -> B:
        """Insert a bar at visual position ``index`` (or at the end) and return it."""
        return self._internalize(InsertLocation.index(index), pb)

    def insert_from_back(self, index: int, pb: B) -> B:
        """Insert a bar ``index`` places from the end (or at the start) and return it."""
        return self._internalize(InsertLocation.index_from_back(index), pb)

    def insert_before(self, before: BarLike, pb: B) -> B:
        """Insert a bar right before the member ``before`` and return it."""
        return self._internalize(InsertLocation.before(_member_index(before)), pb)

    def insert_after(self, after: BarLike, pb: B) -> B:
        """Insert a bar right after the member ``after`` and return it."""
        return self._internalize(InsertLocation.after(_member_index(after)), pb)

    def remove(self, pb: BarLike) -> None:
        """Remove a member bar; bars that are not members are left alone."""
        remote = pb.draw_target.remote()
        if remote is None:
            return
        state, idx = remote
        if state is not self.state:
            raise ValueError("the progress bar belongs to a different multi progress")
        pb.draw_target = ProgressDrawTarget.hidden()
        with self.state.lock:
            self.state.remove_idx(idx)

    def _internalize(self, location: InsertLocation, pb: B) -> B:
        with self.state.lock:
            idx = self.state.insert(location)
        pb.set_draw_target(ProgressDrawTarget.remote_target(self.state, idx))
        return pb

    def println(self, msg: str) -> None:
        """Print a line above all bars; does nothing when the target is hidden."""
        with self.state.lock:
            self.state.println(msg, time.monotonic())

    def suspend(self, func: Callable[[], R]) -> R:
        """Hide all bars, run ``func``, redraw, and return what ``func`` returned."""
        with self.state.lock:
            return self.state.suspend(func, time.monotonic())

    def clear(self) -> None:
        """Remove everything drawn from the screen."""
        with self.state.lock:
            self.state.clear(time.monotonic())

    def is_hidden(self) -> bool:
        with self.state.lock:
            return self.state.is_hidden()