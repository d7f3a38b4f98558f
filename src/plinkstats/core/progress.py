"""Progress display for the passes that run on a single worker.

Sample-mode missingness and score accumulation walk the variant range once
on one thread; everything else streams from the worker pool and reports
through loguru instead.
"""

import sys
from collections.abc import Iterable, Iterator

import progressbar


def _widgets(desc: str, total: int) -> list:
    prefix = [f"{desc}: "] if desc else []
    return prefix + [
        progressbar.Counter(),
        f"/{total} ",
        progressbar.Percentage(),
        " ",
        progressbar.Bar(),
        " ",
        progressbar.ETA(),
    ]


def progress_iterator(
    iterable: Iterable, total: int, desc: str = "", enabled: bool = True
) -> Iterator:
    """Yield from iterable while advancing a progressbar2 bar on stdout.

    The bar is always finished, including when the consumer stops early or
    an exception passes through.

    Args:
        iterable: Items to pass through, typically variant indices.
        total: Expected item count, the bar's maximum.
        desc: Label shown before the counter.
        enabled: False yields the items with no bar at all.
    """
    if not enabled:
        yield from iterable
        return

    bar = progressbar.ProgressBar(
        max_value=total, widgets=_widgets(desc, total), fd=sys.stdout
    )
    bar.start()
    try:
        for done, item in enumerate(iterable, start=1):
            yield item
            bar.update(done)
    finally:
        bar.finish()
