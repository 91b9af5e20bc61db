"""Progress reporting for batch migrations."""

from __future__ import annotations

import sys
from typing import Iterator, Sequence, TypeVar

from tqdm import tqdm


T = TypeVar("T")


def iter_with_progress(items: Sequence[T], *, desc: str, enabled: bool = True) -> Iterator[T]:
    """Yields `items`, advancing a progress bar on stderr after each one.

    The bar is shown only for interactive stderr and batches of two or more.
    """
    if not enabled or len(items) < 2 or not _is_progress_enabled():
        yield from items
        return

    with tqdm(total=len(items), unit="session", desc=desc, leave=False) as pbar:
        # * Force initial render so the bar appears before the first (slow) session.
        pbar.update(0)
        for item in items:
            yield item
            pbar.update(1)


def _is_progress_enabled() -> bool:
    # * tqdm writes to stderr by default.
    return sys.stderr.isatty()
