"""
Test cases for the noise-removal steps.

Each step is exercised on its own so a failure points at a single rule.
"""

import unittest

from jsonsalve.core.scanner import StringMap
from jsonsalve.preprocessing.extractors import (
    DuplicateObjectCollapser,
    LargestSpanExtractor,
    MarkdownFenceStripper,
    PreambleRemover,
    StrayPropertyPrefixRemover,
    TruncationSentinelRemover,
    WhitespaceTrimmer,
)
from jsonsalve.utils.config import RepairConfig


class ExtractorTestCase(unittest.TestCase):
    step_class = None

    def setUp(self):
        self.config = RepairConfig()
        self.step = self.step_class()

    def run_step(self, text):
        return self.step.process(text, self.config)


class TestWhitespaceTrimmer(ExtractorTestCase):
    """Test whitespace trimming."""

    step_class = WhitespaceTrimmer

    def test_trims(self):
        outcome = self.run_step('  {"a": 1}\n')
        self.assertEqual(outcome.content, '{"a": 1}')
        self.assertTrue(outcome.changed)
        self.assertEqual(outcome.diagnostics, ["Trimmed surrounding whitespace"])

    def test_unchanged_has_no_diagnostics(self):
        outcome = self.run_step('{"a": 1}')
        self.assertFalse(outcome.changed)
        self.assertEqual(outcome.diagnostics, [])


class TestMarkdownFenceStripper(ExtractorTestCase):
    """Test code fence removal."""

    step_class = MarkdownFenceStripper

    def test_matched_fences(self):
        outcome = self.run_step('```json\n{"a": 1}\n```')
        self.assertEqual(outcome.content, '{"a": 1}')
        self.assertEqual(outcome.diagnostics, ["Removed 2 markdown code fence(s)"])

    def test_unmatched_fence(self):
        outcome = self.run_step('```JSON\n{"a": 1}')
        self.assertEqual(outcome.content, '{"a": 1}')

    def test_no_fence(self):
        self.assertFalse(self.run_step('{"a": 1}').changed)


class TestPreambleRemover(ExtractorTestCase):
    """Test thought markers, introducers and leading prose."""

    step_class = PreambleRemover

    def test_thought_line(self):
        outcome = self.run_step('thought\n{"a": 1}')
        self.assertEqual(outcome.content, '{"a": 1}')
        self.assertIn("Removed leading thought line", outcome.diagnostics)

    def test_control_token_thought(self):
        outcome = self.run_step('<ctrl95>thought\n{"a": 1}')
        self.assertEqual(outcome.content, '{"a": 1}')

    def test_introducer_word(self):
        outcome = self.run_step('json: {"a": 1}')
        self.assertEqual(outcome.content, '{"a": 1}')
        self.assertEqual(
            outcome.diagnostics, ["Removed introducer 'json' before opening brace"]
        )

    def test_unquoted_key_is_not_an_introducer(self):
        text = '{\n  data: {"x": 1}}'
        self.assertFalse(self.run_step(text).changed)

    def test_unknown_word_is_kept(self):
        text = 'banana {"a": 1}'
        self.assertFalse(self.run_step(text).changed)

    def test_leading_prose(self):
        outcome = self.run_step('Sure, here is the result:\n{"a": 1}')
        self.assertEqual(outcome.content, '{"a": 1}')
        self.assertEqual(
            outcome.diagnostics,
            ["Removed leading commentary: Sure, here is the result:"],
        )


class TestStrayPropertyPrefixRemover(ExtractorTestCase):
    """Test stray text glued onto property names."""

    step_class = StrayPropertyPrefixRemover

    def test_stray_prefix(self):
        outcome = self.run_step('{"a": 1,\n  xyz"name": "b"}')
        self.assertEqual(outcome.content, '{"a": 1,\n  "name": "b"}')
        self.assertEqual(
            outcome.diagnostics, ["Removed stray text 'xyz' before property \"name\""]
        )

    def test_missing_object_opener_in_array(self):
        outcome = self.run_step('[{"name": "a"},\n  name": "b"}]')
        self.assertEqual(outcome.content, '[{"name": "a"},\n  {"name": "b"}]')

    def test_clean_json_unchanged(self):
        self.assertFalse(self.run_step('{"a": 1,\n  "name": "b"}').changed)


class TestLargestSpanExtractor(ExtractorTestCase):
    """Test isolating the JSON span."""

    step_class = LargestSpanExtractor

    def test_trailing_commentary(self):
        outcome = self.run_step('Sure! {"a": 1} hope this helps')
        self.assertEqual(outcome.content, '{"a": 1}')
        self.assertTrue(outcome.changed)

    def test_span_after_long_prose(self):
        outcome = self.run_step("The model says the answer is below.\n\n[1, 2, 3] done")
        self.assertEqual(outcome.content, "[1, 2, 3]")

    def test_short_trailing_text_after_long_span(self):
        payload = '{"description": "' + "x" * 300 + '"}'
        outcome = self.run_step(payload + "\nDone.")
        self.assertEqual(outcome.content, payload)
        self.assertTrue(outcome.changed)

    def test_whole_input_is_the_span(self):
        self.assertFalse(self.run_step('{"a": 1}').changed)

    def test_unbalanced_leading_candidate_is_left_alone(self):
        self.assertFalse(self.run_step('{"a": [1, 2').changed)

    def test_first_value_is_kept(self):
        outcome = self.run_step('{"a": 1}\n{"b": 2}')
        self.assertEqual(outcome.content, '{"a": 1}')

    def test_brace_glued_to_word_is_not_a_candidate(self):
        text = 'else{ x } then [1]'
        candidates = LargestSpanExtractor.find_candidates(text)
        self.assertEqual(candidates, [text.index("[")])

    def test_span_end_ignores_strings(self):
        text = '{"a": "}"} tail'
        end = LargestSpanExtractor.find_span_end(text, 0, StringMap(text))
        self.assertEqual(end, 9)


class TestDuplicateObjectCollapser(ExtractorTestCase):
    """Test whole-object echo collapsing."""

    step_class = DuplicateObjectCollapser

    def test_echoed_object(self):
        outcome = self.run_step('{"a": 1}\n{"a": 1}')
        self.assertEqual(outcome.content, '{"a": 1}')
        self.assertEqual(outcome.diagnostics, ["Collapsed duplicated JSON object"])

    def test_different_objects(self):
        self.assertFalse(self.run_step('{"a": 1} {"b": 2}').changed)

    def test_arrays_are_ignored(self):
        self.assertFalse(self.run_step("[1] [1]").changed)


class TestTruncationSentinelRemover(ExtractorTestCase):
    """Test removal of elision markers."""

    step_class = TruncationSentinelRemover

    def test_marker_line(self):
        outcome = self.run_step('{"a": 1,\n...\n}')
        self.assertEqual(outcome.content, '{"a": 1,\n}')
        self.assertEqual(outcome.diagnostics, ['Removed truncation marker: "..."'])

    def test_marker_before_array_closer(self):
        outcome = self.run_step('{"items": ["a", "b", ...\n]}')
        self.assertEqual(outcome.content, '{"items": ["a", "b"\n]}')
        self.assertEqual(
            outcome.diagnostics, ["Removed truncation marker before array closure"]
        )

    def test_inline_marker_before_closer(self):
        self.assertEqual(self.run_step("[1, 2, ...]").content, "[1, 2]")
        outcome = self.run_step('{"a": [1, 2, (truncated)]}')
        self.assertEqual(outcome.content, '{"a": [1, 2]}')
        self.assertEqual(
            outcome.diagnostics, ["Removed truncation marker before array closure"]
        )
        self.assertEqual(self.run_step('{"a": 1, [...]}').content, '{"a": 1}')

    def test_incomplete_string(self):
        outcome = self.run_step('{"desc": "The value is...\n}')
        self.assertEqual(outcome.content, '{"desc": "The value is"\n}')
        self.assertEqual(
            outcome.diagnostics, ["Fixed incomplete string before object closure"]
        )

    def test_uppercase_marker(self):
        outcome = self.run_step('[{"a": 1}, _TRUNCATED_]')
        self.assertEqual(outcome.content, '[{"a": 1},\n]')

    def test_ellipsis_inside_string_is_kept(self):
        text = '{"a": "wait...\n"}'
        self.assertFalse(self.run_step(text).changed)


if __name__ == "__main__":
    unittest.main()
