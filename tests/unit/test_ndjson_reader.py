"""Unit tests for fhirbulk.ndjson.reader.

Covers:
- count_rows vs first_n_rows: row counting is line counting, decoding skips
- parse_ndjson full materialization
- stream_rows: ordering, indices, max_rows cutoff, stream closure on every exit path
- preview_ndjson through a transport
"""

from __future__ import annotations

import json

import pytest

from fhirbulk.clients.base import TransportError
from fhirbulk.ndjson.reader import (
    count_rows,
    first_n_rows,
    parse_ndjson,
    preview_ndjson,
    stream_rows,
)
from tests.doubles import RecordingStream, ScriptedTransport, accepted

_SCENARIO = '{"a":1}\n{"a":2}\n\n{bad json}\n{"a":3}'


def _byte_chunks(text, size=5):
    data = text.encode("utf-8")
    return [data[i:i + size] for i in range(0, len(data), size)]


# ── count_rows / first_n_rows / parse_ndjson ─────────────────────────────────────

class TestCountAndFirstN:
    def test_scenario_counts_malformed_line(self):
        assert count_rows(_SCENARIO) == 4

    def test_scenario_first_n_skips_malformed_line(self):
        assert first_n_rows(_SCENARIO, 10) == [{"a": 1}, {"a": 2}, {"a": 3}]

    def test_failures_do_not_count_toward_n(self):
        assert first_n_rows(_SCENARIO, 3) == [{"a": 1}, {"a": 2}, {"a": 3}]

    def test_first_n_truncates(self):
        assert first_n_rows(_SCENARIO, 2) == [{"a": 1}, {"a": 2}]

    def test_first_zero_rows(self):
        assert first_n_rows(_SCENARIO, 0) == []

    def test_negative_n_raises(self):
        with pytest.raises(ValueError):
            first_n_rows(_SCENARIO, -1)

    def test_unbounded_equals_count_when_all_lines_decode(self):
        text = '{"a":1}\n{"a":2}\n"scalar"\nnull\n'
        assert count_rows(text) == len(first_n_rows(text, None)) == 4

    def test_empty_input(self):
        assert count_rows("") == 0
        assert first_n_rows("", 10) == []
        assert parse_ndjson("") == []

    def test_whitespace_only_input(self):
        assert count_rows("\n  \n\t\n") == 0

    def test_errors_are_collected(self):
        errors = []
        first_n_rows(_SCENARIO, 10, errors=errors)
        assert len(errors) == 1
        assert errors[0].line == "{bad json}"
        assert errors[0].line_number == 3

    def test_preview_length_bounded(self, patients_ndjson):
        rows = first_n_rows(patients_ndjson, 10)
        assert len(rows) <= min(10, count_rows(patients_ndjson))

    def test_fixture_counts(self, patients_ndjson):
        assert count_rows(patients_ndjson) == 6

    def test_parse_ndjson_returns_every_decodable_record(self, patients_ndjson):
        records = parse_ndjson(patients_ndjson)
        assert [r["id"] for r in records] == ["pat-001", "pat-002", "pat-003", "pat-005", "pat-006"]


# ── stream_rows ──────────────────────────────────────────────────────────────────

class TestStreamRows:
    def test_delivers_rows_in_order_with_indices(self):
        stream = RecordingStream(_byte_chunks(_SCENARIO))
        seen = []
        summary = stream_rows(stream, lambda row, index: seen.append((index, row)))
        assert seen == [(0, {"a": 1}), (1, {"a": 2}), (2, {"a": 3})]
        assert summary.rows_delivered == 3
        assert not summary.stopped_early
        assert [e.line for e in summary.skipped] == ["{bad json}"]
        assert stream.closed

    def test_unterminated_final_line_is_delivered(self):
        stream = RecordingStream(['{"a":1}\n{"a":', "2}"])
        seen = []
        stream_rows(stream, lambda row, index: seen.append(row))
        assert seen == [{"a": 1}, {"a": 2}]

    @pytest.mark.parametrize("max_rows", [1, 2, 3, 5])
    def test_max_rows_delivers_min_of_cap_and_decodable(self, max_rows):
        stream = RecordingStream(_byte_chunks(_SCENARIO))
        seen = []
        summary = stream_rows(stream, lambda row, index: seen.append(index), max_rows=max_rows)
        assert seen == list(range(min(max_rows, 3)))
        assert summary.rows_delivered == min(max_rows, 3)
        assert stream.closed

    def test_max_rows_stops_reading_and_closes(self):
        """Reaching max_rows must close the stream without reading the rest."""
        chunks = ['{"n":%d}\n' % i for i in range(100)]
        stream = RecordingStream(chunks)
        summary = stream_rows(stream, lambda row, index: None, max_rows=5)
        assert summary.rows_delivered == 5
        assert summary.stopped_early
        assert stream.chunks_read == 5
        assert stream.close_calls == 1

    def test_cap_on_last_row_reports_cap_without_reading_ahead(self):
        """Hitting max_rows on the final row still counts as stopping at the cap."""
        stream = RecordingStream(['{"a":1}\n', '{"a":2}\n', '{"a":3}\n'])
        summary = stream_rows(stream, lambda row, index: None, max_rows=3)
        assert summary.rows_delivered == 3
        assert summary.stopped_early
        assert stream.chunks_read == 3
        assert stream.closed

    def test_fewer_rows_than_cap_is_not_stopped_early(self):
        stream = RecordingStream(['{"a":1}\n', '{"a":2}\n'])
        summary = stream_rows(stream, lambda row, index: None, max_rows=3)
        assert summary.rows_delivered == 2
        assert not summary.stopped_early

    def test_max_rows_zero_delivers_nothing_and_closes(self):
        stream = RecordingStream(['{"a":1}\n'])
        calls = []
        summary = stream_rows(stream, lambda row, index: calls.append(row), max_rows=0)
        assert calls == []
        assert summary.rows_delivered == 0
        assert stream.chunks_read == 0
        assert stream.closed

    def test_negative_max_rows_raises(self):
        with pytest.raises(ValueError):
            stream_rows(RecordingStream([]), lambda row, index: None, max_rows=-1)

    def test_empty_stream(self):
        stream = RecordingStream([])
        summary = stream_rows(stream, lambda row, index: None)
        assert summary.rows_delivered == 0
        assert summary.skipped == []
        assert stream.closed

    def test_callback_exception_propagates_and_closes(self):
        stream = RecordingStream(['{"a":1}\n{"a":2}\n'])

        def on_row(row, index):
            raise KeyError("consumer failed")

        with pytest.raises(KeyError):
            stream_rows(stream, on_row)
        assert stream.closed

    def test_stream_read_failure_propagates_and_closes(self):
        stream = RecordingStream(['{"a":1}\n', '{"a":2}\n', '{"a":3}\n'], fail_after=1)
        seen = []
        with pytest.raises(TransportError):
            stream_rows(stream, lambda row, index: seen.append(row))
        assert seen == [{"a": 1}]
        assert stream.closed

    def test_line_split_across_chunks_is_never_truncated(self):
        stream = RecordingStream(['{"resourceType":"Pat', 'ient","id":"p1"}\n'])
        seen = []
        summary = stream_rows(stream, lambda row, index: seen.append(row))
        assert seen == [{"resourceType": "Patient", "id": "p1"}]
        assert summary.skipped == []

    def test_plain_iterable_without_close(self):
        seen = []
        stream_rows(iter(['{"a":1}\n']), lambda row, index: seen.append(row))
        assert seen == [{"a": 1}]

    def test_generator_source_is_closed(self):
        """A generator stream must be closed (GeneratorExit raised inside it)."""
        state = {"closed": False}

        def source():
            try:
                for i in range(10):
                    yield '{"n":%d}\n' % i
            finally:
                state["closed"] = True

        stream_rows(source(), lambda row, index: None, max_rows=2)
        assert state["closed"]

    def test_stream_matches_first_n_on_fixture(self, patients_ndjson):
        seen = []
        stream_rows(RecordingStream(_byte_chunks(patients_ndjson, 11)), lambda r, i: seen.append(r))
        assert seen == first_n_rows(patients_ndjson, None)


# ── preview_ndjson ───────────────────────────────────────────────────────────────

class TestPreviewNdjson:
    def test_builds_preview_from_fetched_text(self, patients_ndjson):
        transport = ScriptedTransport(ack=accepted(), files={"L1": patients_ndjson})
        preview = preview_ndjson(transport, "L1", n=3)
        assert preview.source_locator == "L1"
        assert preview.total_row_count == 6
        assert [r["id"] for r in preview.preview_rows] == ["pat-001", "pat-002", "pat-003"]
        assert preview.raw_text == patients_ndjson

    def test_default_preview_size_is_ten(self, patients_ndjson):
        transport = ScriptedTransport(ack=accepted(), files={"L1": patients_ndjson})
        preview = preview_ndjson(transport, "L1")
        assert len(preview.preview_rows) == 5
        assert len(preview.skipped) == 1

    def test_fetch_failure_propagates(self):
        transport = ScriptedTransport(ack=accepted(), files={})
        with pytest.raises(TransportError):
            preview_ndjson(transport, "missing")


# ── Oversized values ─────────────────────────────────────────────────────────────

class TestOversizedValues:
    _HUGE = '{"n":' + "9" * 5000 + "}"

    def test_stream_skips_line_that_json_refuses(self, monkeypatch):
        real_loads = json.loads

        def limited_loads(line):
            if len(line) > 4300:
                raise ValueError("Exceeds the limit (4300 digits) for integer string conversion")
            return real_loads(line)

        monkeypatch.setattr("fhirbulk.ndjson.decoder.json.loads", limited_loads)
        stream = RecordingStream(['{"a":1}\n', self._HUGE + "\n", '{"a":2}\n'])
        seen = []
        summary = stream_rows(stream, lambda row, index: seen.append(row))
        assert seen == [{"a": 1}, {"a": 2}]
        assert [e.line_number for e in summary.skipped] == [2]
        assert stream.closed

    def test_first_n_rows_never_raises_on_huge_integer(self):
        """Whether or not the interpreter caps integer digits, the read completes."""
        rows = first_n_rows('{"a":1}\n' + self._HUGE + '\n{"a":2}\n', None)
        assert rows[0] == {"a": 1}
        assert rows[-1] == {"a": 2}
        assert count_rows('{"a":1}\n' + self._HUGE + '\n{"a":2}\n') == 3
