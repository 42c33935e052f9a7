"""
Tests for compiling a RequestConfig into the outbound request.

Covers body priority, Content-Type defaulting, auth injection and test
mode substitution.
"""

import base64
import json
from urllib.parse import parse_qs, urlsplit

from hypothesis import given, strategies as st, settings

from http_request_robot.services.config_normalizer import normalize_config
from http_request_robot.services.request_compiler import (
    apply_test_data,
    build_body,
    build_headers,
    compile_request,
    get_header,
)


URL = "https://api.example.com/items"

field_key_strategy = st.text(alphabet="abcdefghij_", min_size=1, max_size=8)
field_value_strategy = st.text(alphabet="abcdefghij 0123456789&=", max_size=15)
form_data_strategy = st.lists(
    st.fixed_dictionaries({"key": field_key_strategy, "value": field_value_strategy}),
    min_size=1,
    max_size=5,
)
raw_body_strategy = st.text(min_size=1, max_size=50)


def config(**properties):
    return normalize_config({"url": URL, **properties})


class TestBodyPriority:
    """First matching body source wins."""

    @given(raw_body=raw_body_strategy, form_data=form_data_strategy)
    @settings(max_examples=100)
    def test_raw_body_always_wins_over_form_data(self, raw_body, form_data):
        compiled = compile_request(config(method="POST", bodyType="raw", rawBody=raw_body, formData=form_data))
        assert compiled.body == raw_body

    @given(form_data=form_data_strategy)
    @settings(max_examples=100)
    def test_form_data_defaults_to_json(self, form_data):
        compiled = compile_request(config(method="POST", bodyType="form-data", formData=form_data))
        expected = {}
        for field in form_data:
            expected[field["key"]] = field["value"]
        assert json.loads(compiled.body) == expected
        assert compiled.headers["Content-Type"] == "application/json"

    @given(form_data=form_data_strategy)
    @settings(max_examples=100)
    def test_urlencoded_content_type_encodes_form(self, form_data):
        compiled = compile_request(config(
            method="POST",
            bodyType="form-data",
            formData=form_data,
            headers=[{"key": "content-type", "value": "application/x-www-form-urlencoded"}],
        ))
        decoded = {k: v[-1] for k, v in parse_qs(compiled.body, keep_blank_values=True).items()}
        expected = {}
        for field in form_data:
            expected[field["key"]] = field["value"]
        assert decoded == expected
        assert "Content-Type" not in compiled.headers

    def test_existing_content_type_is_not_overwritten(self):
        compiled = compile_request(config(
            method="POST",
            formData=[{"key": "a", "value": "1"}],
            headers={"content-type": "application/vnd.api+json"},
        ))
        assert compiled.headers == {"content-type": "application/vnd.api+json"}
        assert compiled.body == '{"a":"1"}'

    def test_legacy_body_used_last(self):
        compiled = compile_request(config(method="POST", body="plain text"))
        assert compiled.body == "plain text"

    def test_body_type_none_ignores_editors(self):
        compiled = compile_request(config(method="POST", bodyType="none", rawBody="ignored", body="legacy"))
        assert compiled.body == "legacy"

    def test_no_body(self):
        assert compile_request(config()).body is None


class TestHeaders:
    """Header ordering and case handling."""

    def test_later_duplicate_wins(self):
        headers = build_headers(config(headers=[{"key": "X-A", "value": "1"}, {"key": "X-A", "value": "2"}]))
        assert headers == {"X-A": "2"}

    def test_case_is_preserved_with_case_insensitive_lookup(self):
        headers = build_headers(config(headers={"x-Custom-Header": "v"}))
        assert list(headers) == ["x-Custom-Header"]
        assert get_header(headers, "X-CUSTOM-HEADER") == "v"


class TestAuthInjection:
    """Authentication is injected after the body is built."""

    def test_bearer_overwrites_existing_authorization(self):
        compiled = compile_request(config(
            headers={"authorization": "Token old"},
            authType="bearer",
            bearerToken="new-token",
        ))
        assert compiled.headers == {"Authorization": "Bearer new-token"}

    def test_basic(self):
        compiled = compile_request(config(authType="basic", basicUsername="user", basicPassword="pa:ss"))
        expected = base64.b64encode(b"user:pa:ss").decode()
        assert compiled.headers["Authorization"] == f"Basic {expected}"

    def test_api_key_header(self):
        compiled = compile_request(config(authType="api-key", apiKeyName="X-Api-Key", apiKeyValue="k1"))
        assert compiled.headers["X-Api-Key"] == "k1"
        assert compiled.url == URL

    def test_api_key_query_is_appended_and_encoded(self):
        compiled = normalize_config({
            "url": URL + "?page=2",
            "authType": "api-key",
            "apiKeyName": "api key",
            "apiKeyValue": "a&b=c",
            "apiKeyLocation": "query",
        })
        url = compile_request(compiled).url
        query = parse_qs(urlsplit(url).query)
        assert query == {"page": ["2"], "api key": ["a&b=c"]}
        assert "X-Api-Key" not in compile_request(compiled).headers

    def test_incomplete_credentials_inject_nothing(self):
        compiled = compile_request(config(authType="basic", basicUsername="user"))
        assert "Authorization" not in compiled.headers

    def test_none_auth(self):
        assert compile_request(config(authType="none", bearerToken="unused")).headers == {}


class TestTestMode:
    """Test values replace production values before compilation."""

    def test_form_test_data_replaces_values(self):
        cfg = config(method="POST", formData=[
            {"key": "id", "value": "{=Document:ID}", "testData": "42"},
            {"key": "name", "value": "fixed", "testData": ""},
        ])
        compiled = compile_request(cfg, test_mode=True)
        assert json.loads(compiled.body) == {"id": "42", "name": "fixed"}

    def test_raw_body_test_data_replaces_raw_body(self):
        cfg = config(method="POST", bodyType="raw", rawBody="{=Document:BODY}", rawBodyTestData='{"x":1}')
        assert compile_request(cfg, test_mode=True).body == '{"x":1}'
        assert compile_request(cfg).body == "{=Document:BODY}"

    def test_blank_raw_body_test_data_is_ignored(self):
        cfg = config(method="POST", bodyType="raw", rawBody="production", rawBodyTestData="   ")
        assert apply_test_data(cfg).raw_body == "production"

    def test_substitution_happens_before_content_type_decision(self):
        cfg = config(
            method="POST",
            formData=[{"key": "a", "value": "prod", "testData": "test"}],
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert compile_request(cfg, test_mode=True).body == "a=test"

    def test_original_config_is_untouched(self):
        cfg = config(method="POST", formData=[{"key": "a", "value": "prod", "testData": "test"}])
        apply_test_data(cfg)
        assert cfg.form_data[0].value == "prod"


def test_build_body_sets_header_only_when_absent():
    cfg = config(method="POST", formData=[{"key": "a", "value": "1"}])
    headers = {}
    build_body(cfg, headers)
    assert headers == {"Content-Type": "application/json"}
