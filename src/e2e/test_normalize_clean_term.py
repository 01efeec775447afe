import re

import pytest

from triage.normalize import clean_term, highlight_issues


def test_examples():
    assert clean_term('"lillies  bunch') == "lilies bunch"
    assert clean_term('"rose') == "rose"
    assert clean_term("hydrangea") == "hydrangea"
    assert clean_term("  Lavendar   sprigs ") == "lavender sprigs"
    assert clean_term("Ranun.") == "ranunculus"


def test_quotes_inside_the_term_are_kept():
    assert clean_term('6" pot') == '6" pot'


@pytest.mark.parametrize("term", [
    "a  b", "roses   red    white", "x \t y", " lots   of    space ",
])
def test_whitespace_runs_collapse_to_one_space(term):
    out = clean_term(term)
    assert not re.search(r"\s{2,}", out)
    assert out == out.strip()


@pytest.mark.parametrize("term", [
    "",
    '"',
    '" "x"',
    '  "lillies  bunch" ',
    "ranun ranun",
    "hydra\t\tbloom",
    '""  "" lavendar ""',
    "alstro alstro alstro",
    "Lisian!",
])
def test_idempotent(term):
    once = clean_term(term)
    assert clean_term(once) == once


def test_highlight_wraps_problem_characters():
    out = highlight_issues('"tulips (red <b>')
    assert out.count('class="issue-highlight"') == 2
    assert "&lt;b&gt;" in out
