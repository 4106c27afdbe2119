from libs.llm import DEFAULT_TAGS, TagParser


def test_json_array_is_lowercased_and_capped() -> None:
    parser = TagParser()
    raw = '["Python", "AI", "Notes", "Search", "Cloud", "Extra"]'
    assert parser.parse(raw) == ["python", "ai", "notes", "search", "cloud"]


def test_quoted_strings_used_when_not_json() -> None:
    parser = TagParser()
    assert parser.parse('Tags: "alpha" "beta"') == ["alpha", "beta"]


def test_valid_json_that_is_not_a_list_gives_defaults() -> None:
    parser = TagParser()
    # Valid JSON never falls through to quote extraction
    assert parser.parse('{"tags": "x"}') == list(DEFAULT_TAGS)


def test_non_string_items_give_defaults() -> None:
    assert TagParser().parse('["ok", 3]') == ["general", "note"]


def test_empty_or_missing_output_gives_defaults() -> None:
    parser = TagParser()
    assert parser.parse(None) == ["general", "note"]
    assert parser.parse("") == ["general", "note"]
    assert parser.parse("[]") == ["general", "note"]
    assert parser.parse("no tags here") == ["general", "note"]


def test_parse_strict_distinguishes_invalid_json() -> None:
    parser = TagParser()
    assert parser.parse_strict("not json") is None
    assert parser.parse_strict("42") == []


def test_defaults_are_fresh_lists() -> None:
    parser = TagParser()
    tags = parser.defaults()
    tags.append("mutated")
    assert parser.defaults() == ["general", "note"]
