"""
Batch processing of independent questions for mcp-lite.
"""

from .loader import load_questions
from .models import (
    BatchOptions,
    BatchQuestion,
    BatchReport,
    BatchResult,
    BatchSummary,
    ToolCallRecord,
)
from .processor import BatchProcessor, ToolCallRecorder
from .sinks import BatchSink, CsvBatchSink, JsonBatchSink, create_sink

__all__ = [
    "BatchProcessor",
    "BatchOptions",
    "BatchQuestion",
    "BatchReport",
    "BatchResult",
    "BatchSummary",
    "BatchSink",
    "CsvBatchSink",
    "JsonBatchSink",
    "ToolCallRecord",
    "ToolCallRecorder",
    "create_sink",
    "load_questions",
]
