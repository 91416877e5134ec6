import io
from datetime import timedelta

import pytest

from barkit.iter import ProgressBarIter, progress_with


class FakeBar:
    def __init__(self, length=None):
        self.length = length
        self.position = 0
        self.finish_calls = 0
        self.style = None
        self.prefix = ""
        self.message = ""
        self.elapsed = timedelta(0)
        self.finish = None

    def inc(self, delta):
        self.position += delta

    def set_position(self, pos):
        self.position = pos

    def is_finished(self):
        return self.finish_calls > 0

    def finish_using_style(self):
        self.finish_calls += 1

    def with_style(self, style):
        self.style = style
        return self

    def with_prefix(self, prefix):
        self.prefix = prefix
        return self

    def with_message(self, message):
        self.message = message
        return self

    def with_position(self, position):
        self.position = position
        return self

    def with_elapsed(self, elapsed):
        self.elapsed = elapsed
        return self

    def with_finish(self, finish):
        self.finish = finish
        return self


def test_it_can_wrap_an_iterator():
    values = [1, 2, 3]
    bar = FakeBar(len(values))
    wrapped = progress_with(values, bar)
    assert [x * 2 for x in wrapped] == [2, 4, 6]
    assert bar.position == 3
    assert bar.finish_calls == 1


def test_wrap_iterator_object():
    bar = FakeBar(3)
    assert list(progress_with(iter([1, 2, 3]), bar)) == [1, 2, 3]
    assert bar.position == 3


def test_finish_only_once():
    bar = FakeBar()
    wrapped = progress_with([], bar)
    with pytest.raises(StopIteration):
        next(wrapped)
    with pytest.raises(StopIteration):
        next(wrapped)
    assert bar.finish_calls == 1
    assert bar.position == 0


def test_len_tracks_remaining():
    wrapped = progress_with([10, 20, 30], FakeBar())
    assert len(wrapped) == 3
    assert next(wrapped) == 10
    assert len(wrapped) == 2


def test_len_of_generator_raises():
    bar = FakeBar()
    wrapped = progress_with((x for x in range(3)), bar)
    with pytest.raises(TypeError):
        len(wrapped)
    assert list(wrapped) == [0, 1, 2]
    assert bar.position == 3
    assert bar.finish_calls == 1


def test_builders_return_self_and_set_bar():
    bar = FakeBar()
    wrapped = (
        progress_with([1], bar)
        .with_style("style")
        .with_prefix("pre")
        .with_message("msg")
        .with_position(5)
        .with_elapsed(timedelta(seconds=2))
        .with_finish("clear")
    )
    assert isinstance(wrapped, ProgressBarIter)
    assert wrapped.progress is bar
    assert (bar.style, bar.prefix, bar.message, bar.position) == ("style", "pre", "msg", 5)
    assert bar.elapsed == timedelta(seconds=2)
    assert bar.finish == "clear"


def test_read_advances_by_bytes_read():
    bar = FakeBar()
    wrapped = progress_with(io.BytesIO(b"hello world"), bar)
    assert wrapped.read(5) == b"hello"
    assert bar.position == 5
    assert wrapped.read() == b" world"
    assert bar.position == 11


def test_readline_advances_by_line_length():
    bar = FakeBar()
    wrapped = progress_with(io.BytesIO(b"ab\ncd\n"), bar)
    assert wrapped.readline() == b"ab\n"
    assert bar.position == 3


def test_write_advances_by_bytes_written():
    bar = FakeBar()
    target = io.BytesIO()
    wrapped = progress_with(target, bar)
    assert wrapped.write(b"abcd") == 4
    wrapped.flush()
    assert bar.position == 4
    assert target.getvalue() == b"abcd"


def test_seek_sets_position_and_tell_does_not():
    bar = FakeBar()
    wrapped = progress_with(io.BytesIO(b"0123456789"), bar)
    assert wrapped.seek(7) == 7
    assert bar.position == 7
    bar.position = 1
    assert wrapped.tell() == 7
    assert bar.position == 1
    assert wrapped.seek(-2, io.SEEK_END) == 8
    assert bar.position == 8