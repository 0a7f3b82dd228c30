"""Tests for JSON extraction from LLM output."""

import pytest

from agentflow.llm_json import extract_json, extract_json_array, extract_json_object


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_plain_array(self):
        assert extract_json("[1, 2]") == [1, 2]

    def test_fenced_block(self):
        text = 'Here you go:\n```json\n{"tools": ["web_search"]}\n```\nGood luck.'
        assert extract_json(text) == {"tools": ["web_search"]}

    def test_prose_around_object(self):
        text = 'I think the answer is {"confidence": 0.7, "note": "has {braces}"} overall.'
        assert extract_json(text) == {"confidence": 0.7, "note": "has {braces}"}

    def test_array_inside_prose(self):
        assert extract_json('Tasks: [{"id": "a"}, {"id": "b"}] done') == [{"id": "a"}, {"id": "b"}]

    def test_trailing_commas_repaired(self):
        assert extract_json('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    def test_single_quotes_repaired(self):
        assert extract_json("{'goal_achieved': true}") == {"goal_achieved": True}

    def test_scalar_is_not_accepted(self):
        with pytest.raises(ValueError):
            extract_json("42")

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            extract_json("no json here")


class TestTypedExtraction:
    def test_object_rejects_array(self):
        with pytest.raises(ValueError):
            extract_json_object("[1]")

    def test_array_rejects_object(self):
        with pytest.raises(ValueError):
            extract_json_array('{"a": 1}')

    def test_array_unwraps_key(self):
        assert extract_json_array('{"tasks": [{"id": "x"}]}', key="tasks") == [{"id": "x"}]


class TestCandidateSelection:
    def test_object_after_bracketed_prose(self):
        text = 'Looking at step [1] of the results, my evaluation is: {"confidence": 0.9}'
        assert extract_json_object(text) == {"confidence": 0.9}

    def test_array_after_braced_prose(self):
        text = 'Using the {goal} template, the plan is [{"id": "a"}]'
        assert extract_json_array(text) == [{"id": "a"}]

    def test_untyped_extraction_takes_first_container(self):
        assert extract_json('see [1] then {"a": 2}') == [1]

    def test_wrapped_array_behind_unrelated_object(self):
        text = 'Context {"note": "x"} and result {"tasks": [{"id": "a"}]}'
        assert extract_json_array(text, key="tasks") == [{"id": "a"}]

    def test_rejected_types_are_reported(self):
        with pytest.raises(ValueError, match="list"):
            extract_json_object("only [1, 2] here")
