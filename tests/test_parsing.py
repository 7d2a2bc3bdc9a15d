"""
Test structured-output extraction from free text.
"""

from typing import List

from pydantic import BaseModel

from housing_multi_agent.parsing import find_json, parse_structured


class Score(BaseModel):
    index: int
    score: float


class TestParseStructured:
    """Test JSON extraction into typed shapes."""

    def test_object_embedded_in_prose(self):
        text = 'Sure! Here is the result:\n{"index": 2, "score": 81}\nLet me know if you need more.'
        result = parse_structured(text, Score)

        assert result.ok
        assert result.value == Score(index=2, score=81)

    def test_array_shape(self):
        text = '```json\n[{"index": 1, "score": 90}, {"index": 3, "score": 70}]\n```'
        result = parse_structured(text, List[Score])

        assert result.ok
        assert [entry.index for entry in result.value] == [1, 3]

    def test_skips_candidates_that_do_not_fit(self):
        text = 'Notes: {"comment": "ignore me"} Answer: {"index": 4, "score": 65}'
        result = parse_structured(text, Score)

        assert result.value.index == 4

    def test_empty_response(self):
        result = parse_structured("   ", Score)

        assert not result.ok
        assert result.value is None
        assert result.error == "Empty response"

    def test_no_json(self):
        result = parse_structured("I could not rate these listings.", Score)
        assert result.error == "No JSON object or array found in response"

    def test_wrong_shape(self):
        result = parse_structured('{"index": "first"}', Score)

        assert not result.ok
        assert "did not match expected shape" in result.error

    def test_find_json_recovers_from_broken_braces(self):
        values = list(find_json('{broken {"a": 1} [2, 3]'))
        assert values == [{"a": 1}, [2, 3]]
