# barkit

Building blocks for terminal progress reporting:

- `barkit.format`: human-readable formatting of durations, byte sizes and
  counts.
- `barkit.draw_target`: draw targets that repaint a block of lines on a
  terminal, with rate limiting.
- `barkit.multi` and `barkit.multi_state`: a `MultiProgress` that stacks
  several bars and repaints them together.
- `barkit.iter`: a `ProgressBarIter` wrapper that advances a bar as an
  iterable or a file object is used.

## Installation

```
pip install barkit
```

## Human-readable formatting

```python
from datetime import timedelta
from barkit.format import (
    FormattedDuration, HumanBytes, HumanCount, HumanDuration, HumanFloatCount,
)

str(HumanBytes(3 * 1024 * 1024))                  # '3.00 MiB'
str(HumanDuration(timedelta(seconds=8)))          # '8 seconds'
format(HumanDuration(timedelta(minutes=2)), "#")  # '2m'
str(HumanCount(33857009))                         # '33,857,009'
str(HumanFloatCount(33857009.123456))             # '33,857,009.1235'
str(FormattedDuration(timedelta(seconds=3725)))   # '01:02:05'
```

Durations may be given as a `timedelta` or as a number of seconds; negative
durations raise `ValueError`. `HumanDuration` rounds to the most natural unit
and never shows "1 unit" except for seconds, so 89 seconds stays
"89 seconds" rather than "1 minute". `DecimalBytes` uses SI prefixes
(kB, MB, ...), while `HumanBytes` and `BinaryBytes` use binary prefixes
(KiB, MiB, ...). All wrappers work in f-strings with ordinary format specs.

## Draw targets

A `ProgressDrawTarget` says where to paint and how often:

- `ProgressDrawTarget.stderr()` / `ProgressDrawTarget.stdout()`: a terminal
  stream, redrawn at most 20 times a second; `stderr_with_hz` and
  `stdout_with_hz` take another rate (1 to 255).
- `ProgressDrawTarget.term(term, refresh_rate)`: a `StreamTerm` over any text
  stream. When the stream is not a terminal the target is hidden, so piping
  output to a file does not fill it with escape codes.
- `ProgressDrawTarget.term_like(obj)` and `term_like_with_hz(obj, rate)`: any
  `TermLike` implementation (`width`, `move_cursor_up`, `move_cursor_down`,
  `clear_line`, `write_line`, `write_str`, `flush`), without or with rate
  limiting.
- `ProgressDrawTarget.hidden()`: draws nothing.

Painting lines directly:

```python
import sys
import time
from barkit.draw_target import ProgressDrawTarget, StreamTerm

target = ProgressDrawTarget.term_like(StreamTerm(sys.stderr))
drawable = target.drawable(False, time.monotonic())
if drawable is not None:
    with drawable.state() as state:
        state.lines.append("working...")
    drawable.draw()
```

Each draw clears the lines of the previous one first. `measure_text_width`
gives the column width of a string, ignoring ANSI escape codes.

## Several bars at once

`MultiProgress` keeps an ordered stack of members and repaints them together.
By default it draws to standard error. A member is any object with a
`draw_target` attribute and a `set_draw_target(target)` method:

```python
from barkit.draw_target import Alignment, ProgressDrawTarget
from barkit.multi import MultiProgress

class Bar:
    def __init__(self):
        self.draw_target = ProgressDrawTarget.hidden()

    def set_draw_target(self, target):
        self.draw_target = target

multi = MultiProgress()
multi.set_alignment(Alignment.BOTTOM)
first = multi.add(Bar())
second = multi.insert_after(first, Bar())
multi.println("starting!")
multi.suspend(lambda: print("external output"))
multi.remove(second)
multi.clear()
```

Members can be placed with `add`, `insert`, `insert_from_back`,
`insert_before` and `insert_after`. `insert_before` and `insert_after` raise
`ValueError` when the reference bar is not a member; `remove` leaves
non-members alone and raises `ValueError` for a bar of another
`MultiProgress`. `set_move_cursor(True)` moves the cursor instead of clearing
lines on redraw. `println` does nothing when the target is hidden.

## Wrapping iterables and files

```python
from barkit.iter import progress_with

for item in progress_with(range(1000), bar):
    ...
```

Iterating advances the bar by one per item and calls its
`finish_using_style()` when the items run out; `len()` gives the number of
items still to come. The wrapper also passes `read`, `readline`, `write`,
`flush`, `seek` and `tell` through to a wrapped file object, advancing the
bar by the amount of data moved and setting its position on `seek`. The
builder methods `with_style`, `with_prefix`, `with_message`,
`with_position`, `with_elapsed` and `with_finish` configure the bar and
return the wrapper.

## What this package does not include

There is no progress bar class of its own: no templates, spinners, styles or
ETA estimation. `MultiProgress` and `ProgressBarIter` work with bar objects
you supply. For `ProgressBarIter` such an object provides `inc`,
`set_position`, `is_finished` and `finish_using_style`, plus the matching
`with_*` methods if the builder methods are used. There is no command-line
program.

## Running the tests

```
pip install barkit[test]
pytest
```