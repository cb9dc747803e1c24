"""
Persisting and reloading the citation graph snapshot.

The graph lives in memory as a `networkx.MultiDiGraph`; after every
successful edge replace it is pickled to a single file. Writes go to a
temporary sibling first and are moved into place with `os.replace`, so a
crash mid-write never leaves a truncated snapshot behind.

Writers in different processes serialize on an advisory `flock` held on a
`.lock` sibling of the snapshot (see `snapshot_lock`).
"""

from __future__ import annotations

import fcntl
import os
import pickle
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import networkx as nx

PathLike = Union[str, Path]


def snapshot_path(path: PathLike) -> Path:
    """The file a snapshot for `path` lives in (`.gpickle` added when there is no suffix)."""
    p = Path(path)
    if p.suffix == "":
        p = p.with_suffix(".gpickle")
    return p


@contextmanager
def snapshot_lock(path: PathLike) -> Iterator[Path]:
    """
    Hold an exclusive inter-process lock for the snapshot at `path`.

    Blocks until every other holder (in this or another process) has let go.
    """
    lock_path = snapshot_path(path).with_name(snapshot_path(path).name + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("a+b") as f:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX)
        try:
            yield lock_path
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def save_graph(G: nx.MultiDiGraph, path: PathLike) -> Path:
    """
    Atomically serialize `G` to `path` with pickle and return the path.

    If `path` has no suffix, `.gpickle` is appended. Parent directories are
    created as needed.
    """
    output_path = snapshot_path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
    )
    try:
        with os.fdopen(fd, "wb") as f:
            pickle.dump(G, f, protocol=pickle.HIGHEST_PROTOCOL)
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    return output_path


def load_graph(path: PathLike) -> Optional[nx.MultiDiGraph]:
    """
    Load a pickled graph, or return None if there is no snapshot yet.
    """
    p = snapshot_path(path)
    if not p.exists():
        return None

    with p.open("rb") as f:
        G = pickle.load(f)

    if not isinstance(G, nx.MultiDiGraph):
        raise TypeError(f"{p} does not contain a MultiDiGraph (got {type(G).__name__})")
    return G
