"""
Writers for batch results.
"""

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Protocol, Union

from mcp_lite.batch.models import BatchResult, BatchSummary
from mcp_lite.utils.logging import get_logger

logger = get_logger(__name__)


class BatchSink(Protocol):
    """Receives the summary and results of a batch exactly once."""

    def write(self, summary: BatchSummary, results: List[BatchResult]) -> None:
        ...


class JsonBatchSink:
    """Writes ``{"metadata": ..., "results": [...]}`` as indented JSON."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def write(self, summary: BatchSummary, results: List[BatchResult]) -> None:
        output = {
            "metadata": summary.model_dump(mode="json", by_alias=True),
            "results": [result.model_dump(mode="json", by_alias=True) for result in results],
        }
        self.path.write_text(json.dumps(output, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info(f"Results saved to: {self.path}")


class CsvBatchSink:
    """
    Writes one row per result. When any tool calls were recorded, a second
    file ``<stem>-tool-calls.csv`` next to it receives one row per call.
    """

    RESULT_FIELDS = [
        "id",
        "question",
        "response",
        "success",
        "error",
        "processingTime",
        "toolCallCount",
        "toolCallsSummary",
    ]
    CONTEXT_FIELDS = ["context", "expectedResult"]
    TOOL_CALL_FIELDS = [
        "questionId",
        "question",
        "toolName",
        "toolCallId",
        "input",
        "output",
        "success",
        "error",
        "timestamp",
    ]

    def __init__(self, path: Union[str, Path], include_context: bool = True):
        self.path = Path(path)
        self.include_context = include_context

    @property
    def tool_calls_path(self) -> Path:
        return self.path.with_name(f"{self.path.stem}-tool-calls.csv")

    def write(self, summary: BatchSummary, results: List[BatchResult]) -> None:
        fields = list(self.RESULT_FIELDS)
        if self.include_context:
            fields += self.CONTEXT_FIELDS

        with open(self.path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=fields, quoting=csv.QUOTE_NONNUMERIC)
            writer.writeheader()
            for result in results:
                row = {
                    "id": result.id,
                    "question": result.question,
                    "response": result.response,
                    "success": str(result.success).lower(),
                    "error": result.error or "",
                    "processingTime": result.processing_time_ms,
                    "toolCallCount": len(result.tool_calls),
                    "toolCallsSummary": "; ".join(call.tool_name for call in result.tool_calls),
                }
                if self.include_context:
                    row["context"] = result.context or ""
                    row["expectedResult"] = result.expected_result or ""
                writer.writerow(row)
        logger.info(f"Results saved to: {self.path}")

        tool_rows = [
            {
                "questionId": result.id,
                "question": result.question,
                "toolName": call.tool_name,
                "toolCallId": call.tool_call_id,
                "input": call.input,
                "output": call.output,
                "success": str(call.success).lower(),
                "error": call.error or "",
                "timestamp": datetime.fromtimestamp(
                    call.timestamp / 1000, tz=timezone.utc
                ).isoformat(),
            }
            for result in results
            for call in result.tool_calls
        ]
        if not tool_rows:
            return

        with open(self.tool_calls_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=self.TOOL_CALL_FIELDS, quoting=csv.QUOTE_NONNUMERIC)
            writer.writeheader()
            writer.writerows(tool_rows)
        logger.info(f"Tool calls saved to: {self.tool_calls_path}")


def create_sink(path: Union[str, Path], output_format: str, include_context: bool = True) -> BatchSink:
    if output_format == "json":
        return JsonBatchSink(path)
    if output_format == "csv":
        return CsvBatchSink(path, include_context=include_context)
    raise ValueError(f"Unsupported output format: {output_format}")
