"""Tests for batch question loading and result sinks."""

import csv
import json

import pytest

from mcp_lite.batch import (
    BatchOptions,
    BatchResult,
    BatchSummary,
    CsvBatchSink,
    JsonBatchSink,
    ToolCallRecord,
    create_sink,
    load_questions,
)
from mcp_lite.exceptions import ConfigurationError


@pytest.fixture
def summary():
    return BatchSummary(
        timestamp="2024-01-01T00:00:00+00:00",
        total_questions=2,
        success_count=1,
        error_count=1,
        options=BatchOptions(),
    )


@pytest.fixture
def results():
    return [
        BatchResult(
            id="Q1",
            question="What is 2+3?",
            context="Use the calculator",
            expected_result="5",
            response="5",
            tool_calls=[
                ToolCallRecord(
                    tool_name="add",
                    tool_call_id="c1",
                    input='{"a": 2, "b": 3}',
                    output="5",
                    success=True,
                    timestamp=1704067200000,
                )
            ],
            success=True,
            processing_time_ms=42,
        ),
        BatchResult(id="Q2", question="Broken?", success=False, error="model overloaded"),
    ]


class TestLoadQuestions:
    def test_csv_with_aliases_blank_rows_and_whitespace(self, tmp_path):
        path = tmp_path / "questions.csv"
        path.write_text(
            "id,Question,Context,Expected\n"
            "first,  What is MCP? ,Be brief,A protocol\n"
            ",,,\n"
            ",Second question,,\n",
            encoding="utf-8",
        )

        loaded = load_questions(path)

        assert [q.id for q in loaded] == ["first", "Q2"]
        assert loaded[0].question == "What is MCP?"
        assert loaded[0].context == "Be brief"
        assert loaded[0].expected_result == "A protocol"
        assert loaded[1].question == "Second question"
        assert loaded[1].context is None

    def test_json_list_and_wrapped_object(self, tmp_path):
        as_list = tmp_path / "list.json"
        as_list.write_text(json.dumps([{"question": "a"}, {"id": "x", "question": "b"}]))
        wrapped = tmp_path / "wrapped.json"
        wrapped.write_text(json.dumps({"questions": [{"question": "c", "expectedResult": "d"}]}))

        assert [(q.id, q.question) for q in load_questions(as_list)] == [("Q1", "a"), ("x", "b")]
        assert load_questions(wrapped)[0].expected_result == "d"

    def test_json_without_questions_is_rejected(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"items": []}))

        with pytest.raises(ConfigurationError):
            load_questions(path)


class TestSinks:
    def test_json_sink(self, tmp_path, summary, results):
        path = tmp_path / "out.json"

        JsonBatchSink(path).write(summary, results)

        data = json.loads(path.read_text())
        assert data["metadata"]["totalQuestions"] == 2
        assert data["metadata"]["options"]["maxConcurrency"] == 1
        assert data["results"][0]["processingTime"] == 42
        assert data["results"][0]["toolCalls"][0]["toolName"] == "add"
        assert data["results"][1]["error"] == "model overloaded"

    def test_csv_sink_writes_results_and_tool_calls(self, tmp_path, summary, results):
        path = tmp_path / "out.csv"

        CsvBatchSink(path).write(summary, results)

        with open(path, newline="") as f:
            rows = list(csv.DictReader(f))
        assert [row["id"] for row in rows] == ["Q1", "Q2"]
        assert rows[0]["toolCallCount"] == "1"
        assert rows[0]["toolCallsSummary"] == "add"
        assert rows[0]["context"] == "Use the calculator"
        assert rows[1]["success"] == "false"
        assert rows[1]["error"] == "model overloaded"

        with open(tmp_path / "out-tool-calls.csv", newline="") as f:
            tool_rows = list(csv.DictReader(f))
        assert len(tool_rows) == 1
        assert tool_rows[0]["questionId"] == "Q1"
        assert tool_rows[0]["timestamp"].startswith("2024-01-01T00:00:00")

    def test_csv_sink_without_context_or_tool_calls(self, tmp_path, summary, results):
        path = tmp_path / "plain.csv"

        CsvBatchSink(path, include_context=False).write(summary, results[1:])

        with open(path, newline="") as f:
            reader = csv.DictReader(f)
            assert "context" not in reader.fieldnames
            assert len(list(reader)) == 1
        assert not (tmp_path / "plain-tool-calls.csv").exists()

    def test_create_sink(self, tmp_path):
        assert isinstance(create_sink(tmp_path / "a.json", "json"), JsonBatchSink)
        assert isinstance(create_sink(tmp_path / "a.csv", "csv"), CsvBatchSink)
        with pytest.raises(ValueError):
            create_sink(tmp_path / "a.xml", "xml")
