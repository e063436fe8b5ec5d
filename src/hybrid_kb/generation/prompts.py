"""Prompt templates for answer synthesis and relevance judging.

Keeping prompts in one place makes them easy to audit, version, and A/B
test.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from hybrid_kb.retrieval.models import Candidate

INSUFFICIENT_CONTEXT = "INSUFFICIENT_CONTEXT"

# ── 1. Answer synthesis ───────────────────────────────────────────────

SYNTHESIS_SYSTEM = f"""\
You are a knowledge-base assistant answering questions for proposal and
questionnaire responses.

Rules:
1. Answer using **only** the knowledge-base context supplied below.
2. Be concise and precise; keep the wording of the context where possible.
3. If the context does not contain the answer, reply with exactly
   {INSUFFICIENT_CONTEXT} and nothing else.
4. Never invent figures, commitments, or certifications.
"""


def build_synthesis_prompt(
    query: str,
    contexts: list[str],
    history: list[dict[str, str]] | None = None,
) -> list[BaseMessage]:
    """Build the messages for one synthesis call.

    Parameters
    ----------
    query:
        The user's question.
    contexts:
        Context passages, already ordered and truncated.
    history:
        Earlier ``{"role", "content"}`` turns of a conversation, oldest
        first.  System turns are ignored.
    """
    context = "\n---\n".join(contexts)
    messages: list[BaseMessage] = [
        SystemMessage(content=f"{SYNTHESIS_SYSTEM}\nKB context follows:\n{context}")
    ]
    for turn in history or []:
        role = turn.get("role")
        if role == "user":
            messages.append(HumanMessage(content=turn.get("content", "")))
        elif role == "assistant":
            messages.append(AIMessage(content=turn.get("content", "")))
    messages.append(HumanMessage(content=query))
    return messages


# ── 2. Relevance judging ──────────────────────────────────────────────

JUDGE_SYSTEM = """\
You are a relevance judge for a question-answering knowledge base.

Given a user question and a numbered list of candidate entries, decide
which entries are truly on-topic for the question.

Respond with a JSON object:

  "relevant" – list of the 0-based indices of on-topic entries

Respond with **only** valid JSON.
"""


def build_judge_prompt(query: str, candidates: list[Candidate]) -> list[BaseMessage]:
    """Build the prompt for the relevance judge."""
    listing = "\n\n".join(
        f"[{i}] Q: {c.item.question}\nA: {c.item.answer[:500]}"
        for i, c in enumerate(candidates)
    )
    return [
        SystemMessage(content=JUDGE_SYSTEM),
        HumanMessage(content=f"Question: {query}\n\nCandidates:\n{listing}"),
    ]


# ── 3. Questionnaire next steps ───────────────────────────────────────

NEXT_STEPS_QUESTION_LIMIT = 20


def build_next_steps_prompt(questions: list[str]) -> list[BaseMessage]:
    """Ask for follow-up actions on a questionnaire (first 20 questions)."""
    listing = "\n".join(questions[:NEXT_STEPS_QUESTION_LIMIT])
    return [HumanMessage(content=f"Propose next actions based on these questions:\n{listing}")]
