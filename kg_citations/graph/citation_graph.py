# kg_citations/graph/citation_graph.py

from __future__ import annotations

import logging
import math
import os
import pickle
import threading
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import networkx as nx

from kg_citations.graph.schema import EdgeType, NodeType
from kg_citations.graph.storage import load_graph, save_graph, snapshot_lock, snapshot_path
from kg_citations.models import CitationRelationship, MatchMethod, ReferenceSource
from kg_citations.storage.database import PersistenceError

logger = logging.getLogger(__name__)

CO_CITATION_LIMIT = 50


@dataclass
class CitationQueryResult:
    citations: List[CitationRelationship]
    total: int
    has_more: bool


@dataclass
class CoCitedPaper:
    uri: str
    title: Optional[str]
    co_citation_count: int
    # Salton's cosine: co_citations / sqrt(cited_by(query) * cited_by(other))
    strength: float


@dataclass
class CitationCounts:
    cited_by_count: int
    references_count: int


class CitationGraph:
    """
    Directed citation graph over local corpus documents.

    Nodes are document uris; each (citing, cited) pair carries at most one
    PAPER_CITES_PAPER edge. Only `replace_edges` and
    `delete_citations_for_paper` mutate it. Cycles are ordinary data.

    When `path` is given the graph is backed by that snapshot. Every mutation
    takes the snapshot's inter-process lock, reloads the snapshot, applies
    the change and saves, so writers in several processes never drop each
    other's edges. Reads pick up a snapshot that changed on disk.
    """

    def __init__(
        self,
        graph: Optional[nx.MultiDiGraph] = None,
        *,
        path: Optional[Union[str, Path]] = None,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.G: nx.MultiDiGraph = graph if graph is not None else nx.MultiDiGraph()
        self._lock = threading.RLock()
        self._stamp: Optional[Tuple[int, int, int]] = None
        if graph is None:
            self._reload()

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def replace_edges(self, citing_uri: str, edges: Sequence[CitationRelationship]) -> None:
        """
        Drop every outgoing citation edge of `citing_uri`, then upsert `edges`.

        Several edges to the same cited document collapse into one, keeping
        the highest confidence. An edge that already existed before the
        replace keeps its original created_at. Called with an empty sequence,
        this just clears the document's outgoing edges.
        """
        for edge in edges:
            if edge.citing_uri != citing_uri:
                raise ValueError(
                    f"edge from {edge.citing_uri!r} passed to replace_edges({citing_uri!r})"
                )
            if edge.cited_uri == citing_uri:
                raise ValueError(f"self-citation edge for {citing_uri!r}")

        with self._writing():
            previous = self._outgoing(citing_uri)
            first_seen = {v: data.get("created_at") for _, v, _, data in previous}

            self._remove(previous)
            added_nodes: List[str] = []
            now = datetime.now(timezone.utc)
            for edge in self._collapse(edges):
                for uri in (citing_uri, edge.cited_uri):
                    if self._ensure_paper_node(uri):
                        added_nodes.append(uri)
                self.G.add_edge(
                    citing_uri,
                    edge.cited_uri,
                    key=EdgeType.PAPER_CITES_PAPER.value,
                    type=EdgeType.PAPER_CITES_PAPER.value,
                    confidence=edge.confidence,
                    created_at=first_seen.get(edge.cited_uri) or edge.created_at,
                    updated_at=now,
                    source=edge.source.value if edge.source else None,
                    match_method=edge.match_method.value if edge.match_method else None,
                )

            try:
                self._persist()
            except PersistenceError:
                # put the old edge set back so memory and snapshot agree
                self._remove(self._outgoing(citing_uri))
                self.G.remove_nodes_from(added_nodes)
                for u, v, key, data in previous:
                    self.G.add_edge(u, v, key=key, **data)
                raise

        logger.debug("Replaced citation edges for %s: %d edges", citing_uri, len(edges))

    def delete_citations_for_paper(self, paper_uri: str) -> None:
        """Remove every citation edge touching `paper_uri`, in both directions."""
        with self._writing():
            if paper_uri not in self.G:
                return
            incoming = [
                (u, v, k, dict(d))
                for u, v, k, d in self.G.in_edges(paper_uri, keys=True, data=True)
                if d.get("type") == EdgeType.PAPER_CITES_PAPER.value
            ]
            outgoing = self._outgoing(paper_uri)
            self._remove(incoming + outgoing)
            try:
                self._persist()
            except PersistenceError:
                for u, v, key, data in incoming + outgoing:
                    self.G.add_edge(u, v, key=key, **data)
                raise

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def get_references(
        self, paper_uri: str, *, limit: int = 100, offset: int = 0
    ) -> CitationQueryResult:
        """Documents cited by `paper_uri`, most recently discovered first."""
        with self._lock:
            self._refresh()
            if paper_uri not in self.G:
                return CitationQueryResult(citations=[], total=0, has_more=False)
            edges = [
                self._to_relationship(u, v, d)
                for u, v, d in self.G.out_edges(paper_uri, data=True)
                if d.get("type") == EdgeType.PAPER_CITES_PAPER.value
            ]
        return self._page(edges, limit, offset)

    def get_citing_papers(
        self, paper_uri: str, *, limit: int = 100, offset: int = 0
    ) -> CitationQueryResult:
        """Documents that cite `paper_uri`, most recently discovered first."""
        with self._lock:
            self._refresh()
            if paper_uri not in self.G:
                return CitationQueryResult(citations=[], total=0, has_more=False)
            edges = [
                self._to_relationship(u, v, d)
                for u, v, d in self.G.in_edges(paper_uri, data=True)
                if d.get("type") == EdgeType.PAPER_CITES_PAPER.value
            ]
        return self._page(edges, limit, offset)

    def find_co_cited_papers(
        self, paper_uri: str, min_co_citations: int = 2
    ) -> List[CoCitedPaper]:
        """
        Papers cited together with `paper_uri` by at least `min_co_citations`
        distinct citing papers, strongest first.
        """
        with self._lock:
            self._refresh()
            if paper_uri not in self.G:
                return []

            citing = self._citers(paper_uri)
            co_counts: Dict[str, int] = {}
            for citer in citing:
                for other in self._cites(citer):
                    if other != paper_uri:
                        co_counts[other] = co_counts.get(other, 0) + 1

            q_cited_by = len(citing)
            results: List[CoCitedPaper] = []
            for other, count in co_counts.items():
                if count < min_co_citations:
                    continue
                other_cited_by = len(self._citers(other))
                denom = q_cited_by * other_cited_by
                strength = count / math.sqrt(denom) if denom else 0.0
                results.append(
                    CoCitedPaper(
                        uri=other,
                        title=self.G.nodes[other].get("title"),
                        co_citation_count=count,
                        strength=strength,
                    )
                )

        results.sort(key=lambda p: (-p.co_citation_count, -p.strength, p.uri))
        return results[:CO_CITATION_LIMIT]

    def get_citation_counts(self, paper_uri: str) -> CitationCounts:
        with self._lock:
            self._refresh()
            if paper_uri not in self.G:
                return CitationCounts(cited_by_count=0, references_count=0)
            return CitationCounts(
                cited_by_count=len(self._citers(paper_uri)),
                references_count=len(self._cites(paper_uri)),
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @contextmanager
    def _writing(self) -> Iterator[None]:
        """Thread lock, plus the snapshot lock and a fresh reload when file-backed."""
        with self._lock, ExitStack() as stack:
            if self.path is not None:
                try:
                    stack.enter_context(snapshot_lock(self.path))
                except OSError as exc:
                    raise PersistenceError(
                        f"Cannot lock citation graph snapshot {self.path}: {exc}", store="graph"
                    ) from exc
                self._reload()
            yield

    def _snapshot_stamp(self) -> Optional[Tuple[int, int, int]]:
        try:
            st = os.stat(snapshot_path(self.path))
        except FileNotFoundError:
            return None
        return (st.st_mtime_ns, st.st_size, st.st_ino)

    def _reload(self) -> None:
        if self.path is None:
            return
        try:
            stamp = self._snapshot_stamp()
            graph = load_graph(self.path)
        except (OSError, EOFError, TypeError, ValueError, pickle.UnpicklingError) as exc:
            raise PersistenceError(
                f"Cannot load citation graph from {self.path}: {exc}", store="graph"
            ) from exc
        if graph is not None:
            self.G = graph
        self._stamp = stamp

    def _refresh(self) -> None:
        """Reload if another writer replaced the snapshot since we last saw it."""
        if self.path is None:
            return
        try:
            changed = self._snapshot_stamp() != self._stamp
        except OSError as exc:
            raise PersistenceError(
                f"Cannot stat citation graph snapshot {self.path}: {exc}", store="graph"
            ) from exc
        if changed:
            self._reload()

    def _ensure_paper_node(self, uri: str) -> bool:
        """Make `uri` a paper node; True if the node is new."""
        if uri in self.G:
            self.G.nodes[uri].setdefault("type", NodeType.PAPER.value)
            return False
        self.G.add_node(uri, type=NodeType.PAPER.value, uri=uri)
        return True

    def _outgoing(self, uri: str) -> List[Tuple[str, str, str, dict]]:
        if uri not in self.G:
            return []
        return [
            (u, v, k, dict(d))
            for u, v, k, d in self.G.out_edges(uri, keys=True, data=True)
            if d.get("type") == EdgeType.PAPER_CITES_PAPER.value
        ]

    def _remove(self, edges: Sequence[Tuple[str, str, str, dict]]) -> None:
        for u, v, key, _ in edges:
            if self.G.has_edge(u, v, key=key):
                self.G.remove_edge(u, v, key=key)

    def _citers(self, uri: str) -> set:
        return {
            u
            for u, _, d in self.G.in_edges(uri, data=True)
            if d.get("type") == EdgeType.PAPER_CITES_PAPER.value
        }

    def _cites(self, uri: str) -> set:
        return {
            v
            for _, v, d in self.G.out_edges(uri, data=True)
            if d.get("type") == EdgeType.PAPER_CITES_PAPER.value
        }

    @staticmethod
    def _collapse(edges: Sequence[CitationRelationship]) -> List[CitationRelationship]:
        best: Dict[str, CitationRelationship] = {}
        for edge in edges:
            current = best.get(edge.cited_uri)
            if current is None or edge.confidence > current.confidence:
                best[edge.cited_uri] = edge
        return list(best.values())

    def _persist(self) -> None:
        if self.path is None:
            return
        try:
            save_graph(self.G, self.path)
            stamp = self._snapshot_stamp()
        except (OSError, pickle.PicklingError) as exc:
            raise PersistenceError(
                f"Failed to save citation graph to {self.path}: {exc}", store="graph"
            ) from exc
        self._stamp = stamp

    @staticmethod
    def _to_relationship(u: str, v: str, data: dict) -> CitationRelationship:
        source = data.get("source")
        method = data.get("match_method")
        return CitationRelationship(
            citing_uri=u,
            cited_uri=v,
            confidence=float(data.get("confidence", 0.0)),
            created_at=data.get("created_at") or datetime.now(timezone.utc),
            source=ReferenceSource(source) if source else None,
            match_method=MatchMethod(method) if method else None,
        )

    @staticmethod
    def _page(
        edges: List[CitationRelationship], limit: int, offset: int
    ) -> CitationQueryResult:
        edges.sort(key=lambda e: (e.created_at, e.cited_uri, e.citing_uri), reverse=True)
        page = edges[offset : offset + limit]
        return CitationQueryResult(
            citations=page,
            total=len(edges),
            has_more=offset + len(page) < len(edges),
        )
