"""
Chat turn graph.

Graph Flow:
    START
      │
      ▼
    classify ──── conversational ──▶ converse ─────────────────┐
      │                                                        │
      └── needs query ──▶ generate_query ──▶ execute_query     │
                                               │               │
                                               ├─ ok ──▶ interpret_result ──┤
                                               │                            │
                                               └─ error ─▶ explain_error ───┴──▶ END
"""

from functools import partial

from langgraph.graph import END, START, StateGraph

from dbsage.agents.chat_agent.nodes import (
    TurnDependencies,
    classify_node,
    converse_node,
    execute_query_node,
    explain_error_node,
    generate_query_node,
    get_execution_route,
    get_intent_route,
    interpret_result_node,
)
from dbsage.agents.chat_agent.state import ChatTurnState
from dbsage.logging_config import get_logger

logger = get_logger(__name__)


def build_chat_turn_graph(deps: TurnDependencies) -> StateGraph:
    """
    Build the state graph for one session's turns.
    
    Returns:
        Uncompiled StateGraph
    """
    graph = StateGraph(ChatTurnState)

    # =========================================================================
    # Nodes
    # =========================================================================
    graph.add_node("classify", partial(classify_node, deps=deps))
    graph.add_node("generate_query", partial(generate_query_node, deps=deps))
    graph.add_node("execute_query", partial(execute_query_node, deps=deps))
    graph.add_node("explain_error", partial(explain_error_node, deps=deps))
    graph.add_node("interpret_result", partial(interpret_result_node, deps=deps))
    graph.add_node("converse", partial(converse_node, deps=deps))

    # =========================================================================
    # Edges
    # =========================================================================
    graph.add_edge(START, "classify")
    graph.add_conditional_edges(
        "classify",
        get_intent_route,
        {
            "generate_query": "generate_query",
            "converse": "converse",
        },
    )
    graph.add_edge("generate_query", "execute_query")
    graph.add_conditional_edges(
        "execute_query",
        get_execution_route,
        {
            "explain_error": "explain_error",
            "interpret_result": "interpret_result",
        },
    )
    graph.add_edge("explain_error", END)
    graph.add_edge("interpret_result", END)
    graph.add_edge("converse", END)

    return graph


def compile_chat_turn_graph(deps: TurnDependencies):
    """Build and compile the turn graph for a session."""
    logger.debug("compiling_chat_turn_graph")
    return build_chat_turn_graph(deps).compile()
