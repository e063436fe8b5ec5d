"""Record loaders: turn spreadsheet rows and documents into knowledge items.

Spreadsheets (CSV, XLSX, XLS) yield one item per row with a question.
PDF and DOCX files yield a single item holding the extracted text.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterable

from hybrid_kb.ingestion.models import KnowledgeItem

QUESTION_KEYS = ("Q", "Question", "question", "prompt", "Prompt")
ANSWER_KEYS = ("A", "Answer", "answer", "response", "Response")
MAX_DOCUMENT_CHARS = 20000


def _first_present(row: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return str(value).strip()
    return ""


def normalize_row(row: dict[str, Any]) -> tuple[str, str]:
    """Return ``(question, answer)`` from a row using common header aliases."""
    return _first_present(row, QUESTION_KEYS), _first_present(row, ANSWER_KEYS)


def items_from_rows(
    rows: Iterable[dict[str, Any]],
    source: str | None = None,
    batch_id: str = "",
) -> list[KnowledgeItem]:
    """Convert spreadsheet-style rows into items, skipping rows without a question."""
    items: list[KnowledgeItem] = []
    for row in rows:
        question, answer = normalize_row(row)
        if not question:
            continue
        items.append(KnowledgeItem(question=question, answer=answer, source=source, batch_id=batch_id))
    return items


def load_csv(path: str | Path, batch_id: str = "") -> list[KnowledgeItem]:
    """Load Q/A rows from a CSV file with a header row."""
    path = Path(path)
    with path.open(newline="", encoding="utf-8-sig") as fh:
        return items_from_rows(csv.DictReader(fh), source=path.name, batch_id=batch_id)


def load_excel(path: str | Path, batch_id: str = "") -> list[KnowledgeItem]:
    """Load Q/A rows from every sheet of an Excel workbook."""
    import pandas as pd

    path = Path(path)
    sheets = pd.read_excel(path, sheet_name=None, dtype=str, keep_default_na=False)
    items: list[KnowledgeItem] = []
    for frame in sheets.values():
        items.extend(items_from_rows(frame.to_dict("records"), source=path.name, batch_id=batch_id))
    return items


def _document_item(text: str, path: Path, batch_id: str) -> list[KnowledgeItem]:
    text = text.strip()
    if not text:
        return []
    kind = path.suffix.lstrip(".").upper()
    return [
        KnowledgeItem(
            question=f"{kind} content from {path.name}",
            answer=text[:MAX_DOCUMENT_CHARS],
            source=path.name,
            batch_id=batch_id,
        )
    ]


def load_pdf(path: str | Path, batch_id: str = "") -> list[KnowledgeItem]:
    """Load a PDF as a single item whose answer is the extracted text."""
    from langchain_community.document_loaders import PyPDFLoader

    path = Path(path)
    pages = PyPDFLoader(str(path)).load()
    return _document_item("\n".join(page.page_content for page in pages), path, batch_id)


def load_docx(path: str | Path, batch_id: str = "") -> list[KnowledgeItem]:
    """Load a Word document as a single item of its paragraph text."""
    import docx

    path = Path(path)
    document = docx.Document(str(path))
    return _document_item(
        "\n".join(p.text for p in document.paragraphs if p.text.strip()), path, batch_id
    )


_LOADERS = {
    ".csv": load_csv,
    ".xlsx": load_excel,
    ".xls": load_excel,
    ".pdf": load_pdf,
    ".docx": load_docx,
}


def load_path(path: str | Path, batch_id: str = "") -> list[KnowledgeItem]:
    """Dispatch on file extension (CSV, XLSX/XLS, PDF, DOCX)."""
    suffix = Path(path).suffix.lower()
    loader = _LOADERS.get(suffix)
    if loader is None:
        raise ValueError(f"Unsupported file type: {suffix or '<none>'}. Use CSV/XLSX/PDF/DOCX.")
    return loader(path, batch_id)
