"""Graph builder — constructs the LangGraph incident-analysis topology.

Topology:

    START → fetch_telemetry → assess → narrate
          ├── provider configured → rephrase_narrative → END
          └── otherwise           → END

The graph is compiled once and can be invoked many times.
"""

from __future__ import annotations

from typing import Optional

from langgraph.graph import END, START, StateGraph

from stake_guard.adapters.base import TelemetrySource
from stake_guard.core.scoring import IncidentAnalyzer
from stake_guard.graph.nodes import (
    make_assess,
    make_fetch_telemetry,
    make_rephrase_narrative,
    narrate,
)
from stake_guard.graph.state import IncidentAnalysisState
from stake_guard.providers.base import CompletionProvider


def build_incident_graph(
    source: TelemetrySource,
    analyzer: IncidentAnalyzer,
    provider: Optional[CompletionProvider] = None,
    timeout: Optional[float] = None,
):
    """Construct and compile the incident-analysis graph.

    Args:
        source: Telemetry source used by the fetch node.
        analyzer: Scoring core used by the assess node.
        provider: Optional completion provider for narrative rephrasing.
        timeout: Deadline for the rephrasing call.

    Returns:
        A compiled LangGraph application.
    """
    graph = StateGraph(IncidentAnalysisState)

    # ── Register nodes ───────────────────────────────────────────────────
    graph.add_node("fetch_telemetry", make_fetch_telemetry(source))
    graph.add_node("assess", make_assess(analyzer))
    graph.add_node("narrate", narrate)

    # ── Edges ────────────────────────────────────────────────────────────
    graph.add_edge(START, "fetch_telemetry")
    graph.add_edge("fetch_telemetry", "assess")
    graph.add_edge("assess", "narrate")

    if provider is not None:
        graph.add_node("rephrase_narrative", make_rephrase_narrative(provider, timeout))
        graph.add_edge("narrate", "rephrase_narrative")
        graph.add_edge("rephrase_narrative", END)
    else:
        graph.add_edge("narrate", END)

    return graph.compile()
