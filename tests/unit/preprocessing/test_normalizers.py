"""
Test cases for the value and token normalization steps.
"""

import json
import unittest

from jsonsalve.preprocessing.normalizers import (
    AssignmentOperatorFixer,
    ConcatenationCollapser,
    EscapeRepairer,
    LiteralRepairer,
    StrayTokenCleaner,
    ValueQuotingRepairer,
)
from jsonsalve.utils.config import RepairConfig, RepairLimits

VALID_JSON = '{"a": "b", "c": [1, 2.5, -3e2], "d": {"e": null, "f": true}}'


class TestConcatenationCollapser(unittest.TestCase):
    """Test collapsing of + chains."""

    def setUp(self):
        self.step = ConcatenationCollapser()
        self.config = RepairConfig()

    def test_merges_literals(self):
        outcome = self.step.process('{"a": "x" + "y"}', self.config)
        self.assertEqual(outcome.content, '{"a": "xy"}')
        self.assertEqual(
            outcome.diagnostics, ['Collapsed concatenation of 2 part(s) into "xy"']
        )

    def test_drops_identifiers(self):
        outcome = self.step.process('{"a": "x" + name.length + "y"}', self.config)
        self.assertEqual(outcome.content, '{"a": "xy"}')
        self.assertTrue(outcome.diagnostics[0].endswith("dropped 1 identifier(s)"))

    def test_identifier_only_chain(self):
        outcome = self.step.process('{"a": foo + bar}', self.config)
        self.assertEqual(outcome.content, '{"a": ""}')

    def test_chain_in_array(self):
        outcome = self.step.process('["a" + "b", "c"]', self.config)
        self.assertEqual(outcome.content, '["ab", "c"]')

    def test_key_chain_is_left_alone(self):
        text = '{"a": 1, "b" + "c": 2}'
        self.assertFalse(self.step.process(text, self.config).changed)

    def test_plus_inside_string(self):
        self.assertFalse(self.step.process('{"a": "1 + 2"}', self.config).changed)

    def test_chain_limit(self):
        config = RepairConfig(limits=RepairLimits(max_concat_chain=2))
        text = '{"a": "x" + "y" + "z"}'
        self.assertFalse(self.step.process(text, config).changed)


class TestAssignmentOperatorFixer(unittest.TestCase):
    """Test := replacement."""

    def test_fixes_assignment(self):
        outcome = AssignmentOperatorFixer().process('{"a" := 1}', RepairConfig())
        self.assertEqual(outcome.content, '{"a": 1}')
        self.assertEqual(outcome.diagnostics, ['Fixed assignment operator after "a"'])

    def test_inside_string(self):
        outcome = AssignmentOperatorFixer().process('{"a": "x := y"}', RepairConfig())
        self.assertFalse(outcome.changed)


class TestLiteralRepairer(unittest.TestCase):
    """Test invalid literal replacement."""

    def setUp(self):
        self.step = LiteralRepairer()
        self.config = RepairConfig()

    def test_undefined(self):
        outcome = self.step.process('{"a": undefined, "b": [undefined]}', self.config)
        self.assertEqual(outcome.content, '{"a": null, "b": [null]}')
        self.assertEqual(outcome.diagnostics, ["Replaced undefined with null"] * 2)

    def test_underscore_number(self):
        outcome = self.step.process('{"count": _123}', self.config)
        self.assertEqual(outcome.content, '{"count": 123}')
        self.assertEqual(outcome.diagnostics, ["Fixed corrupted number _123 -> 123"])

    def test_encoded_number(self):
        outcome = self.step.process('{"linesOfCode":_CODE`4}', self.config)
        self.assertEqual(outcome.content, '{"linesOfCode":4}')

    def test_inside_string(self):
        text = '{"a": "x: undefined"}'
        self.assertFalse(self.step.process(text, self.config).changed)


class TestValueQuotingRepairer(unittest.TestCase):
    """Test quoting of bare and half-quoted values."""

    def setUp(self):
        self.step = ValueQuotingRepairer()
        self.config = RepairConfig()

    def repair(self, text):
        return self.step.process(text, self.config)

    def test_missing_opening_quote(self):
        outcome = self.repair('{"a": hello world", "b": 1}')
        self.assertEqual(outcome.content, '{"a": "hello world", "b": 1}')
        self.assertEqual(
            outcome.diagnostics, ['Added missing opening quote to value: hello world"']
        )

    def test_missing_closing_quote(self):
        outcome = self.repair('{\n"a": "hello,\n"b": 1}')
        self.assertEqual(outcome.content, '{\n"a": "hello",\n"b": 1}')

    def test_bare_value(self):
        outcome = self.repair('{"a": hello, "b": true, "c": NaN}')
        self.assertEqual(outcome.content, '{"a": "hello", "b": true, "c": NaN}')
        self.assertEqual(outcome.diagnostics, ["Quoted bare value: hello"])

    def test_array_element_missing_quote(self):
        outcome = self.repair('["alpha", beta", "gamma"]')
        self.assertEqual(outcome.content, '["alpha", "beta", "gamma"]')

    def test_valid_values_untouched(self):
        self.assertFalse(self.repair(VALID_JSON).changed)
        self.assertFalse(self.repair('{"a": null,\n"b": "x"}').changed)


class TestEscapeRepairer(unittest.TestCase):
    """Test escaping of stray quotes inside values."""

    def setUp(self):
        self.step = EscapeRepairer()
        self.config = RepairConfig()

    def test_attribute_quotes(self):
        text = '{\n  "html": "<div class="main">x</div>",\n  "a": 1\n}'
        outcome = self.step.process(text, self.config)
        self.assertEqual(
            json.loads(outcome.content), {"html": '<div class="main">x</div>', "a": 1}
        )
        self.assertEqual(
            outcome.diagnostics, ['Escaped quotes in value: <div class="main">x</div>']
        )

    def test_already_escaped(self):
        text = '{\n  "html": "<div class=\\"main\\">x</div>"\n}'
        self.assertFalse(self.step.process(text, self.config).changed)

    def test_unfixable_line_left_alone(self):
        text = '{\n  "q": "he said "hi" to me"\n}'
        self.assertFalse(self.step.process(text, self.config).changed)


class TestStrayTokenCleaner(unittest.TestCase):
    """Test the long-tail stray token rules."""

    def setUp(self):
        self.step = StrayTokenCleaner()
        self.config = RepairConfig()

    def clean(self, text):
        return self.step.process(text, self.config)

    def test_binary_marker(self):
        self.assertEqual(self.clean('{"a": <y_bin_12>1}').content, '{"a": 1}')

    def test_disclaimer_line(self):
        outcome = self.clean('{\nNote: values are estimates\n"a": 1\n}')
        self.assertEqual(outcome.content, '{\n"a": 1\n}')
        self.assertEqual(
            outcome.diagnostics, ["Removed disclaimer line: Note: values are estimates"]
        )

    def test_prose_line_between_elements(self):
        outcome = self.clean('[\n{"a": 1},\nand then\n{"b": 2}\n]')
        self.assertEqual(outcome.content, '[\n{"a": 1},\n{"b": 2}\n]')
        self.assertEqual(outcome.diagnostics, ['Removed stray text: "and then"'])

    def test_duplicate_entry(self):
        outcome = self.clean('["org.a.B",\n extra.org.a.B",\n "org.c.D"]')
        self.assertEqual(outcome.content, '["org.a.B",\n "org.c.D"]')

    def test_stray_before_value(self):
        outcome = self.clean('{"a": xyz "value", "b": 1}')
        self.assertEqual(outcome.content, '{"a": "value", "b": 1}')
        self.assertEqual(outcome.diagnostics, ["Removed stray text 'xyz' before value"])

    def test_corrupted_pair(self):
        outcome = self.clean('{"name":ICCID": "89014"}')
        self.assertEqual(outcome.content, '{"name": "ICCID", "ICCID": "89014"}')
        self.assertEqual(outcome.diagnostics, [
            'Fixed corrupted property pair: "name":ICCID" -> "name": "ICCID", "ICCID"'
        ])

    def test_lowercase_word_is_not_a_corrupted_pair(self):
        text = '{"name": type": "function"}'
        self.assertNotIn('"type", "type"', self.clean(text).content)

    def test_stray_after_value(self):
        outcome = self.clean('{"name": "foo"bar}')
        self.assertEqual(outcome.content, '{"name": "foo"}')
        self.assertEqual(
            outcome.diagnostics, ["Removed stray characters 'bar' after value"]
        )

    def test_dangling_property(self):
        self.assertEqual(
            self.clean('{"a": 1, "name "}').content, '{"a": 1, "name": null}'
        )

    def test_dangling_property_before_next_key(self):
        self.assertEqual(
            self.clean('{"name "\n"b": 1}').content, '{"name": null,\n"b": 1}'
        )

    def test_package_typo(self):
        outcome = self.clean('{"pkg": "orgah.foo"}')
        self.assertEqual(outcome.content, '{"pkg": "org.foo"}')
        self.assertEqual(outcome.diagnostics, ["Fixed package name typo: orgah -> org"])

    def test_custom_package_typos(self):
        step = StrayTokenCleaner(package_typos=[(r'"comm\.', '"com.', "comm -> com")])
        outcome = step.process('{"pkg": "comm.x", "b": "orgah.y"}', self.config)
        self.assertEqual(outcome.content, '{"pkg": "com.x", "b": "orgah.y"}')

    def test_valid_json_untouched(self):
        self.assertFalse(self.clean(VALID_JSON).changed)

    def test_disabled_in_conservative_mode(self):
        self.assertFalse(self.step.should_apply(RepairConfig.conservative()))
        self.assertTrue(self.step.should_apply(self.config))


if __name__ == "__main__":
    unittest.main()
