"""
Runs many independent conversations against one shared ConnectionHub.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from mcp_lite.batch.models import (
    BatchOptions,
    BatchQuestion,
    BatchReport,
    BatchResult,
    BatchSummary,
    ToolCallRecord,
)
from mcp_lite.batch.sinks import BatchSink
from mcp_lite.chat.engine import ChatEngine
from mcp_lite.chat.types import ToolExecutionEvent
from mcp_lite.utils.logging import get_logger

logger = get_logger(__name__)

EngineFactory = Callable[[], ChatEngine]


def _now_ms() -> int:
    return int(time.time() * 1000)


class ToolCallRecorder:
    """
    Observer that turns tool execution events into ToolCallRecords,
    correlated by tool call id.
    """

    def __init__(self):
        self._records: Dict[str, ToolCallRecord] = {}

    def __call__(self, event: ToolExecutionEvent) -> None:
        if not event.tool_call_id:
            # batch_start / batch_complete
            return

        record = self._records.get(event.tool_call_id)
        if event.type == "tool_start":
            if record is None:
                self._records[event.tool_call_id] = ToolCallRecord(
                    tool_name=event.tool_name or "",
                    tool_call_id=event.tool_call_id,
                    input=event.input or "",
                    timestamp=_now_ms(),
                )
        elif event.type == "tool_complete" and record is not None:
            record.output = event.output or ""
            record.success = True
        elif event.type == "tool_error":
            if record is None:
                # Calls rejected before they started (e.g. malformed arguments)
                record = ToolCallRecord(
                    tool_name=event.tool_name or "",
                    tool_call_id=event.tool_call_id,
                    input=event.input or "",
                    timestamp=_now_ms(),
                )
                self._records[event.tool_call_id] = record
            record.output = event.output or ""
            record.error = event.message
            record.success = False

    @property
    def records(self) -> List[ToolCallRecord]:
        return list(self._records.values())


class BatchProcessor:
    """
    Process a list of questions, each as an isolated conversation.

    With ``max_concurrency == 1`` a single engine is reused and cleared before
    each question. Otherwise questions run in fixed-size chunks; every question
    gets its own engine and a chunk must settle before the next one starts.
    """

    def __init__(self, engine_factory: EngineFactory):
        """
        Args:
            engine_factory: Returns a fresh ChatEngine sharing the hub and LLM.
        """
        self._engine_factory = engine_factory

    async def process(
        self,
        questions: Sequence[BatchQuestion],
        options: Optional[BatchOptions] = None,
        sink: Optional[BatchSink] = None,
    ) -> BatchReport:
        options = options or BatchOptions()
        logger.info(
            f"Starting batch of {len(questions)} question(s) "
            f"with concurrency {options.max_concurrency}"
        )

        if options.max_concurrency == 1:
            results = await self._process_sequential(questions, options)
        else:
            results = await self._process_chunked(questions, options)

        success_count = sum(1 for result in results if result.success)
        summary = BatchSummary(
            timestamp=datetime.now(timezone.utc).isoformat(),
            total_questions=len(results),
            success_count=success_count,
            error_count=len(results) - success_count,
            options=options,
        )
        logger.info(
            f"Batch completed: {summary.success_count} succeeded, {summary.error_count} failed"
        )

        if sink is not None:
            sink.write(summary, results)

        return BatchReport(metadata=summary, results=results)

    async def _process_sequential(
        self, questions: Sequence[BatchQuestion], options: BatchOptions
    ) -> List[BatchResult]:
        engine = self._engine_factory()
        results: List[BatchResult] = []

        for index, question in enumerate(questions):
            logger.info(
                f"Processing {index + 1}/{len(questions)}: {question.question[:50]}"
            )
            # No question may see another question's transcript
            engine.clear()
            result = await self._process_question(engine, question, index + 1, options)
            results.append(result)

            if result.success:
                logger.info(f"{result.id}: Completed in {result.processing_time_ms}ms")
            else:
                logger.error(f"{result.id}: Failed: {result.error}")
                if not options.continue_on_error:
                    logger.warning("Stopping batch after first failure")
                    break

        return results

    async def _process_chunked(
        self, questions: Sequence[BatchQuestion], options: BatchOptions
    ) -> List[BatchResult]:
        results: List[BatchResult] = []
        size = options.max_concurrency

        async def settle(question: BatchQuestion, number: int) -> None:
            try:
                engine = self._engine_factory()
                result = await self._process_question(engine, question, number, options)
            except Exception as e:
                logger.error(f"Concurrent processing error: {e}")
                result = _failed_result(question, number, str(e) or type(e).__name__, 0)
            # Arrival order, not submission order
            results.append(result)

        for start in range(0, len(questions), size):
            chunk = questions[start:start + size]
            logger.info(f"Running questions {start + 1}-{start + len(chunk)} concurrently")
            await asyncio.gather(
                *(settle(question, start + offset + 1) for offset, question in enumerate(chunk))
            )

        return results

    async def _process_question(
        self,
        engine: ChatEngine,
        question: BatchQuestion,
        number: int,
        options: BatchOptions,
    ) -> BatchResult:
        started = time.perf_counter()
        recorder = ToolCallRecorder()
        chat_options = options.chat_options()
        chat_options.observer = recorder

        if question.context:
            engine.add_message(question.context, role="system")

        try:
            response = await engine.chat(question.question, chat_options)
        except Exception as e:
            return _failed_result(
                question, number, str(e) or type(e).__name__, _elapsed_ms(started), recorder.records
            )

        return BatchResult(
            id=question.id or f"Q{number}",
            question=question.question,
            context=question.context,
            expected_result=question.expected_result,
            response=response.content,
            tool_calls=recorder.records,
            success=True,
            processing_time_ms=_elapsed_ms(started),
            max_turns_reached=response.max_turns_reached,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _failed_result(
    question: BatchQuestion,
    number: int,
    error: str,
    processing_time_ms: int,
    tool_calls: Optional[List[ToolCallRecord]] = None,
) -> BatchResult:
    return BatchResult(
        id=question.id or f"Q{number}",
        question=question.question,
        context=question.context,
        expected_result=question.expected_result,
        tool_calls=tool_calls or [],
        success=False,
        error=error,
        processing_time_ms=processing_time_ms,
    )
