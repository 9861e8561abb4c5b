"""
Reads batch questions from CSV or JSON files.
"""

import csv
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from mcp_lite.batch.models import BatchQuestion
from mcp_lite.exceptions import ConfigurationError


def _first(record: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _to_question(record: Dict[str, Any], number: int) -> BatchQuestion:
    return BatchQuestion(
        id=_first(record, "id") or f"Q{number}",
        question=_first(record, "question", "Question") or "",
        context=_first(record, "context", "Context"),
        expected_result=_first(record, "expectedResult", "expected_result", "Expected"),
    )


def load_questions(path: Union[str, Path]) -> List[BatchQuestion]:
    """
    Load questions from a ``.json`` file or, for any other suffix, a CSV file
    with a header row.

    JSON input is either a list of question objects or ``{"questions": [...]}``.
    Blank CSV rows are skipped and every value is trimmed.
    """
    path = Path(path)
    if path.suffix.lower() == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("questions")
        if not isinstance(data, list):
            raise ConfigurationError(
                f"Expected a list of questions or {{\"questions\": [...]}} in {path}"
            )
        records = data
    else:
        with open(path, newline="", encoding="utf-8") as f:
            records = [
                row
                for row in csv.DictReader(f, skipinitialspace=True)
                if any(value and value.strip() for value in row.values() if isinstance(value, str))
            ]

    return [_to_question(record, index + 1) for index, record in enumerate(records)]
