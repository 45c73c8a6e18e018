import unittest

from studybridge.errors import EmptyProviderResponse, ParseFailure
from studybridge.parsing import EXCERPT_LIMIT, parse_balanced_object, parse_response, strip_fences


class TestParseResponse(unittest.TestCase):
    def test_plain_json(self):
        self.assertEqual(parse_response('{"a": 1}'), {"a": 1})

    def test_fenced_with_language_tag(self):
        self.assertEqual(parse_response('```json\n{"flashcards":[]}\n```'), {"flashcards": []})

    def test_fenced_without_language_tag(self):
        self.assertEqual(parse_response('```\n{"a": [1, 2]}\n```'), {"a": [1, 2]})

    def test_fences_inside_string_values_survive(self):
        reply = '{"content": "```python\\nprint(1)\\n```"}'
        self.assertEqual(parse_response(reply), {"content": "```python\nprint(1)\n```"})

    def test_fenced_reply_keeps_inner_fences(self):
        reply = '```json\n{"content": "## 1. Intro\\n```sql\\nSELECT 1;\\n```"}\n```'
        self.assertEqual(parse_response(reply), {"content": "## 1. Intro\n```sql\nSELECT 1;\n```"})

    def test_fenced_array(self):
        self.assertEqual(parse_response("```json\n[1, 2]\n```"), [1, 2])

    def test_brace_extraction_fallback(self):
        self.assertEqual(parse_response('noise {"a":1} trailing'), {"a": 1})

    def test_first_balanced_object_wins(self):
        self.assertEqual(parse_response('here: {"a": {"b": 2}} and also {"c": 3}'), {"a": {"b": 2}})

    def test_braces_inside_strings_are_ignored(self):
        text = 'Result: {"front": "What does } mean?", "back": "a \\"brace\\" {"} done'
        self.assertEqual(parse_response(text), {"front": "What does } mean?", "back": 'a "brace" {'})

    def test_later_object_after_stray_braces(self):
        self.assertEqual(parse_response('see {note} then {"a": 1}'), {"a": 1})
        self.assertEqual(parse_response('use { to open: {"a": 1}'), {"a": 1})

    def test_empty_input(self):
        with self.assertRaises(EmptyProviderResponse):
            parse_response("")
        with self.assertRaises(EmptyProviderResponse):
            parse_response("   \n")
        with self.assertRaises(EmptyProviderResponse):
            parse_response(None)

    def test_empty_is_not_generic_parse_failure(self):
        with self.assertRaises(EmptyProviderResponse) as ctx:
            parse_response("")
        self.assertNotIsInstance(ctx.exception, ParseFailure)

    def test_plain_text_fails(self):
        with self.assertRaises(ParseFailure) as ctx:
            parse_response("not json at all")
        self.assertEqual(ctx.exception.excerpt, "not json at all")

    def test_scalar_is_not_structured(self):
        with self.assertRaises(ParseFailure):
            parse_response("42")

    def test_excerpt_is_bounded(self):
        with self.assertRaises(ParseFailure) as ctx:
            parse_response("x" * 5000, provider="openai")
        self.assertLessEqual(len(ctx.exception.excerpt), EXCERPT_LIMIT)
        self.assertEqual(ctx.exception.provider, "openai")

    def test_strip_fences(self):
        self.assertEqual(strip_fences("```python\nprint()\n```"), "print()")

    def test_balanced_object_without_close(self):
        self.assertIsNone(parse_balanced_object('{"a": 1'))


if __name__ == "__main__":
    unittest.main()
