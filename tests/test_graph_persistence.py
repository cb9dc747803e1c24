# tests/test_graph_persistence.py

import pickle

import networkx as nx
import pytest

from kg_citations.graph.storage import load_graph, save_graph


def test_save_and_load_round_trip(tmp_path):
    G = nx.MultiDiGraph()
    G.add_node("P1", type="paper")
    G.add_edge("P1", "P2", key="PAPER_CITES_PAPER", confidence=1.0)

    path = save_graph(G, tmp_path / "nested" / "citations")

    assert path.name == "citations.gpickle"
    loaded = load_graph(tmp_path / "nested" / "citations")
    assert set(loaded.nodes) == {"P1", "P2"}
    assert loaded["P1"]["P2"]["PAPER_CITES_PAPER"]["confidence"] == 1.0
    # no temporary files left next to the snapshot
    assert [p.name for p in path.parent.iterdir()] == ["citations.gpickle"]


def test_load_missing_snapshot_returns_none(tmp_path):
    assert load_graph(tmp_path / "absent.gpickle") is None


def test_load_rejects_other_graph_types(tmp_path):
    path = tmp_path / "plain.gpickle"
    with path.open("wb") as f:
        pickle.dump(nx.Graph(), f)

    with pytest.raises(TypeError):
        load_graph(path)
