"""
Shared globals and utilities for pybioinf modules.

Thread-safety note:
The module-level mutable state (`CONFIG`) is process-global and not
synchronized for concurrent mutation. Configure pybioinf from a single
controlling thread before handing built coverage objects to worker threads.
"""

import sys as _sys
from contextlib import contextmanager

import numpy as _numpy
import pandas as _pandas

# Configuration dictionary
CONFIG = {
    'multitasking': True,           # Allow parallel processing
    'min_processes': 1,             # Min workers for multitasking
    'max_processes': 20,            # Max workers for multitasking
    'fragment_parallel_threshold': 1000000,  # Min tags before forking estimator workers
    'progress': False,              # False, True, 'tqdm', 'rich', 'text', or callable
    'progress_style': 'rich'        # Default when progress=True
}

_CONFIG_KEYS = frozenset(CONFIG)


def load_config(path):
    """
    Update :data:`CONFIG` from a YAML file.

    Only keys already present in :data:`CONFIG` may be set.

    Parameters
    ----------
    path : str or Path
        Path to a YAML mapping.

    Returns
    -------
    dict
        The updated configuration dictionary.

    Raises
    ------
    ValueError
        If the file is not a mapping or contains unknown keys.
    """
    import yaml

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    unknown = sorted(set(data) - _CONFIG_KEYS)
    if unknown:
        raise ValueError(f"Unknown config key(s) in {path}: {', '.join(unknown)}")
    CONFIG.update(data)
    return CONFIG


def _tqdm_bar(total, desc):
    from tqdm.auto import tqdm

    bar = tqdm(total=total, desc=desc)

    def update(done, total, pct):
        if total is not None and bar.total != total:
            bar.total = total
        bar.n = int(done)
        bar.refresh()

    return update, bar.close


def _rich_bar(total, desc):
    from rich.progress import Progress

    bar = Progress()
    bar.start()
    task = bar.add_task(desc or "working", total=total)

    def update(done, total, pct):
        bar.update(task, completed=done, total=total)

    return update, bar.stop


def _text_bar(total, desc):
    label = desc or "progress"
    shown = [-1]

    def update(done, total, pct):
        if pct == shown[0]:
            return
        shown[0] = pct
        _sys.stderr.write(f"\r{label}: {pct}%" + ("\n" if pct >= 100 else ""))
        _sys.stderr.flush()

    return update, None


_PROGRESS_BARS = {
    'tqdm': _tqdm_bar,
    'auto': _tqdm_bar,
    'rich': _rich_bar,
    'text': _text_bar,
}


def _make_progress_callback(progress, total=None, desc=None):
    """
    Resolve a ``progress`` argument into ``(callback, close)``.

    Callables are used as they are. ``True`` picks
    ``CONFIG['progress_style']``. A style whose library is not installed
    falls back to plain text on stderr.
    """
    if progress is None:
        progress = CONFIG.get('progress', False)
    if not progress:
        return None, None
    if callable(progress):
        return progress, None

    style = CONFIG.get('progress_style', 'rich') if progress is True else progress
    factory = _PROGRESS_BARS.get(style)
    if factory is None:
        raise ValueError(f"Unknown progress style: {style!r}")
    try:
        return factory(total, desc)
    except ImportError:
        return _text_bar(total, desc)


@contextmanager
def _progress_context(progress=None, total=None, desc=None):
    cb, close = _make_progress_callback(progress, total=total, desc=desc)
    try:
        yield cb
    finally:
        if close:
            close()


def _report(cb, done, total):
    if cb is None:
        return
    pct = 100 if not total else int(100 * done / total)
    cb(done, total, pct)


def _chunk_slices(n, chunk_size):
    if chunk_size is None or chunk_size <= 0 or chunk_size >= n:
        return [(0, n)]
    return [(i, min(i + chunk_size, n)) for i in range(0, n, chunk_size)]

