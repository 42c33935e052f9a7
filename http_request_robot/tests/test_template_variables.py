"""
Property-based tests for unresolved template variable detection.
"""

from hypothesis import given, strategies as st, settings

from http_request_robot.services.template_variables import (
    collect_unresolved,
    extract_variables,
    has_unresolved_variables,
)


# Strategy for generating workflow template parts (word characters)
word_strategy = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_"),
    min_size=1,
    max_size=15,
)

plain_text_strategy = st.text(max_size=50).filter(lambda s: "{" not in s and "}" not in s)


class TestExtractVariables:
    """Placeholder extraction from single strings."""

    @given(source=word_strategy, field=word_strategy, prefix=plain_text_strategy, suffix=plain_text_strategy)
    @settings(max_examples=100)
    def test_extracts_workflow_template_regardless_of_surrounding_text(self, source, field, prefix, suffix):
        template = f"{prefix}{{={source}:{field}}}{suffix}"
        assert extract_variables(template) == [f"{{={source}:{field}}}"]

    @given(text=plain_text_strategy)
    @settings(max_examples=100)
    def test_returns_empty_for_no_placeholders(self, text):
        assert extract_variables(text) == []

    def test_extracts_both_kinds_in_order(self):
        template = "Deal {=Document:TITLE} for {{Client name}}"
        assert extract_variables(template) == ["{=Document:TITLE}", "{{Client name}}"]

    def test_json_braces_are_not_placeholders(self):
        assert extract_variables('{"a":{"b":{"c":1}}}') == []

    def test_empty_template(self):
        assert extract_variables("") == []


class TestUnresolvedDetection:
    """Detection across nested configurations."""

    def test_nested_structure(self):
        config = {"url": "https://x.example", "formData": [{"key": "id", "value": "{=Document:ID}"}]}
        assert collect_unresolved(config) == ["{=Document:ID}"]

    def test_clean_configuration(self):
        assert not has_unresolved_variables({"url": "https://x.example", "rawBody": '{"id":1}'})

    def test_json_string_input(self):
        assert has_unresolved_variables('{"rawBody": "{{Deal amount}}"}')

    def test_non_string_leaves_are_ignored(self):
        assert collect_unresolved({"timeout": 30000, "flag": True, "nothing": None}) == []
