"""Period summaries and JSON/CSV exports of budget entries."""

from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Sequence

from ..domain.entities import EXPENSE, INCOME, BudgetEntry

CSV_HEADERS = ["id", "date", "description", "category", "type", "amount", "budget_id"]


def filter_entries_by_month(entries: Iterable[BudgetEntry], month: str) -> list[BudgetEntry]:
    """Entries whose ISO date falls in ``month`` (``YYYY-MM``)."""
    datetime.strptime(month, "%Y-%m")
    return [entry for entry in entries if entry.date[:7] == month]


def summarize_entries(entries: Sequence[BudgetEntry]) -> dict[str, float]:
    income = sum(e.amount for e in entries if e.type == INCOME)
    expenses = abs(sum(e.amount for e in entries if e.type == EXPENSE))
    return {
        "income": income,
        "expenses": expenses,
        "balance": income - expenses,
        "count": len(entries),
    }


def export_entries_json(
    entries: Sequence[BudgetEntry],
    *,
    budget_name: str,
    period_label: str,
) -> str:
    """Render a period export document.

    Raises ``ValueError`` when there is nothing to export.
    """
    if not entries:
        raise ValueError("No entries to export for the selected period")
    document = {
        "sheet": budget_name,
        "period": period_label,
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "summary": summarize_entries(entries),
        "entries": [
            {
                "date": e.date,
                "description": e.description,
                "category": e.category,
                "type": e.type,
                "amount": e.amount,
            }
            for e in entries
        ],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def export_filename(period_label: str, suffix: str = ".json") -> str:
    slug = "-".join(period_label.lower().split())
    return f"plannerfin-{slug}{suffix}"


def export_entries_csv(*, entries: Iterable[BudgetEntry], output_path: Path) -> Path:
    """Write entries to CSV at `output_path`.

    Columns are deterministic: id, date, description, category, type, amount, budget_id.
    Returns the path written.
    """

    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Use newline='' for csv on Windows
    with output_path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(
            fh, fieldnames=CSV_HEADERS, extrasaction="ignore", quoting=csv.QUOTE_MINIMAL
        )
        writer.writeheader()
        for entry in entries:
            writer.writerow(
                {
                    "id": entry.id,
                    "date": entry.date,
                    "description": entry.description,
                    "category": entry.category,
                    "type": entry.type,
                    "amount": f"{entry.amount:.2f}",
                    "budget_id": entry.budget_id,
                }
            )

    return output_path
