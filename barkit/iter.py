"""Iterables and file objects that report their progress to a progress bar."""

from __future__ import annotations

import io
import operator
from datetime import timedelta
from typing import Any, Generic, Iterable, Iterator, Optional, Protocol, TypeVar

T = TypeVar("T")
P = TypeVar("P", bound="ProgressLike")

_NO_HINT = -1


class ProgressLike(Protocol):
    """What a wrapped iterable or stream needs from its progress bar."""

    def inc(self, delta: int) -> None: ...

    def set_position(self, pos: int) -> None: ...

    def is_finished(self) -> bool: ...

    def finish_using_style(self) -> None: ...

    def with_style(self, style: Any) -> Any: ...

    def with_prefix(self, prefix: str) -> Any: ...

    def with_message(self, message: str) -> Any: ...

    def with_position(self, position: int) -> Any: ...

    def with_elapsed(self, elapsed: timedelta) -> Any: ...

    def with_finish(self, finish: Any) -> Any: ...


class ProgressBarIter(Generic[T]):
    """Wraps an iterable or a file object and advances a progress bar as it is used.

    Iterating advances the bar by one per item and finishes it, using its
    style's finish behaviour, once the items run out. Reading and writing
    advance it by the amount of data moved; seeking sets its position.
    """

    def __init__(self, inner: Any, progress: Any) -> None:
        self.inner = inner
        self.progress = progress
        self._iterator: Optional[Iterator[T]] = None

    def __repr__(self) -> str:
        return f"ProgressBarIter({self.inner!r}, {self.progress!r})"

    def with_style(self, style: Any) -> ProgressBarIter[T]:
        """Set the style of the underlying progress bar and return self."""
        self.progress = self.progress.with_style(style)
        return self

    def with_prefix(self, prefix: str) -> ProgressBarIter[T]:
        """Set the prefix of the underlying progress bar and return self."""
        self.progress = self.progress.with_prefix(prefix)
        return self

    def with_message(self, message: str) -> ProgressBarIter[T]:
        """Set the message of the underlying progress bar and return self."""
        self.progress = self.progress.with_message(message)
        return self

    def with_position(self, position: int) -> ProgressBarIter[T]:
        """Set the position of the underlying progress bar and return self."""
        self.progress = self.progress.with_position(position)
        return self

    def with_elapsed(self, elapsed: timedelta) -> ProgressBarIter[T]:
        """Set the elapsed time of the underlying progress bar and return self."""
        self.progress = self.progress.with_elapsed(elapsed)
        return self

    def with_finish(self, finish: Any) -> ProgressBarIter[T]:
        """Set the finish behaviour of the underlying progress bar and return self."""
        self.progress = self.progress.with_finish(finish)
        return self

    def _items(self) -> Iterator[T]:
        if self._iterator is None:
            self._iterator = iter(self.inner)
        return self._iterator

    def __iter__(self) -> ProgressBarIter[T]:
        return self

    def __next__(self) -> T:
        try:
            item = next(self._items())
        except StopIteration:
            if not self.progress.is_finished():
                self.progress.finish_using_style()
            raise
        self.progress.inc(1)
        return item

    def __len__(self) -> int:
        """Return the number of items still to come."""
        if self._iterator is None:
            return len(self.inner)
        remaining = operator.length_hint(self._iterator, _NO_HINT)
        if remaining < 0:
            raise TypeError(f"the number of remaining items of {self.inner!r} is unknown")
        return remaining

    def read(self, size: int = -1) -> Any:
        """Read from the wrapped stream, advancing by the amount read."""
        data = self.inner.read(size)
        self.progress.inc(len(data))
        return data

    def readline(self, size: int = -1) -> Any:
        """Read a line from the wrapped stream, advancing by its length."""
        line = self.inner.readline(size)
        self.progress.inc(len(line))
        return line

    def write(self, data: Any) -> int:
        """Write to the wrapped stream, advancing by the amount written."""
        written = self.inner.write(data)
        if written is None:
            written = len(data)
        self.progress.inc(written)
        return written

    def flush(self) -> None:
        """Flush the wrapped stream."""
        self.inner.flush()

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Seek in the wrapped stream and move the bar to the new position."""
        pos = self.inner.seek(offset, whence)
        self.progress.set_position(pos)
        return pos

    def tell(self) -> int:
        """Return the position of the wrapped stream without touching the bar."""
        return self.inner.tell()


def progress_with(iterable: Iterable[T], progress: Any) -> ProgressBarIter[T]:
    """Wrap ``iterable`` (or a file object) so that it drives ``progress``."""
    return ProgressBarIter(iterable, progress)