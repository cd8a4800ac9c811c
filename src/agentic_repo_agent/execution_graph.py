"""LangGraph wrapper for the agent loop - trace harness only.

This wraps the AgentLoop primitives (initialize/step/finish) in a
LangGraph StateGraph so that each iteration is visible as a node in
LangGraph Studio.

NO new orchestration logic. Same termination rules as AgentLoop.run().
"""

from typing import Any, Optional
from typing_extensions import TypedDict

from langgraph.graph import StateGraph, END

from agentic_repo_agent.execution_loop import AgentLoop
from agentic_repo_agent.summary import RunSummary


class AgentGraphState(TypedDict):
    """State for the agent graph. The loop object carries the real state."""
    goal: str
    iteration: int
    termination: Optional[str]
    summary: Optional[RunSummary]
    # Loop reference (passed through state)
    loop: Any


# --- Graph Nodes ---

async def node_init(state: AgentGraphState) -> dict:
    """Read goal, install dependencies, seed the history."""
    await state["loop"].initialize(state["goal"])
    return {"iteration": 0}


async def node_step(state: AgentGraphState) -> dict:
    """One iteration: request an action and act on it."""
    loop: AgentLoop = state["loop"]
    reason = await loop.step()
    return {
        "iteration": loop.state.iteration.count,
        "termination": reason.value if reason else None,
    }


async def node_finish(state: AgentGraphState) -> dict:
    """Teardown and final summary."""
    summary = await state["loop"].finish()
    return {"summary": summary, "termination": summary.termination.value}


# --- Conditional Edges ---

def should_continue(state: AgentGraphState) -> str:
    if state["loop"].should_continue():
        return "step"
    return "finish"


# --- Graph Builder ---

def build_agent_graph() -> StateGraph:
    """
    Build the agent graph.

    Flow:
        init -> (budget left?) -> step -> (not done, budget left?) -> step ...
                               -> finish -> end
    """
    graph = StateGraph(AgentGraphState)

    graph.add_node("init", node_init)
    graph.add_node("step", node_step)
    graph.add_node("finish", node_finish)

    graph.set_entry_point("init")

    routes = {"step": "step", "finish": "finish"}
    graph.add_conditional_edges("init", should_continue, routes)
    graph.add_conditional_edges("step", should_continue, routes)
    graph.add_edge("finish", END)

    return graph


async def run_agent_graph(loop: AgentLoop, goal: str) -> RunSummary:
    """
    Run the agent graph and return the final summary.

    This is the traced equivalent of AgentLoop.run().
    """
    compiled = build_agent_graph().compile()

    initial_state: AgentGraphState = {
        "goal": goal,
        "iteration": 0,
        "termination": None,
        "summary": None,
        "loop": loop,
    }

    # init + one node per iteration + finish, with headroom
    limit = loop.state.iteration.max + 10
    final_state = await compiled.ainvoke(initial_state, config={"recursion_limit": limit})

    return final_state["summary"]


# Pre-compiled graph for Studio discovery
agent_graph = build_agent_graph().compile()
