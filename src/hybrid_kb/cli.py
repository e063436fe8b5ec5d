"""Command-line entry point.

    python -m hybrid_kb ingest faq.csv security.pdf
    python -m hybrid_kb query "What is your uptime SLA?"
    python -m hybrid_kb answer "Do you encrypt data at rest?"
    python -m hybrid_kb report questionnaire.txt
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from hybrid_kb.config import settings
from hybrid_kb.errors import HybridKBError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hybrid-kb", description="Hybrid retrieval knowledge base")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest CSV / PDF files as one batch")
    ingest.add_argument("paths", nargs="+", type=Path)
    ingest.add_argument("--batch-id", default=None)

    query = sub.add_parser("query", help="Show ranked candidates for a question")
    query.add_argument("text")
    query.add_argument("-k", type=int, default=None)

    answer = sub.add_parser("answer", help="Answer a question from the knowledge base")
    answer.add_argument("text")

    report = sub.add_parser("report", help="Match every question in a text file")
    report.add_argument("path", type=Path)
    report.add_argument("--next-steps", action="store_true", help="Add LLM-suggested follow-up actions")
    return parser


def _run(args: argparse.Namespace) -> dict:
    from hybrid_kb.storage.chroma_store import ChromaTableStore

    store = ChromaTableStore()

    if args.command == "ingest":
        from hybrid_kb.ingestion.loader import load_path
        from hybrid_kb.ingestion.pipeline import IngestionPipeline

        items = [item for path in args.paths for item in load_path(path)]
        return IngestionPipeline(store).ingest(items, batch_id=args.batch_id).model_dump()

    from hybrid_kb.retrieval.retriever import HybridRetriever

    retriever = HybridRetriever(store)
    if args.command == "query":
        result = retriever.retrieve(args.text, k=args.k)
        return {
            "query": result.query,
            "confident": result.confident,
            "candidates": [
                {
                    "ref": c.short_ref(),
                    "hybrid": round(c.hybrid_score, 3),
                    "semantic": c.semantic_score,
                    "lexical": c.lexical_score,
                    "question": c.item.question,
                }
                for c in result.candidates
            ],
        }

    if args.command == "answer":
        from hybrid_kb.generation.synthesizer import AnswerService, AnswerSynthesizer

        service = AnswerService(retriever, AnswerSynthesizer(), store=store)
        return service.answer(args.text).model_dump(include={"query", "answer", "insufficient_context"})

    from hybrid_kb.retrieval.report import extract_questions, match_questions, suggest_next_steps

    questions = extract_questions(args.path.read_text(encoding="utf-8"))
    report = match_questions(retriever, questions)
    if args.next_steps:
        report.next_steps = suggest_next_steps(questions)
    return {
        "answered": [
            {"question": m.question, "answer": m.best.item.answer, "score": round(m.best.hybrid_score, 3)}
            for m in report.answered
        ],
        "unanswered": report.unanswered,
        "next_steps": report.next_steps,
    }


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())
    try:
        output = _run(args)
    except (HybridKBError, ValueError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    print(json.dumps(output, indent=2, ensure_ascii=False, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
