import logging

import pytest

from trivia.services.rounds.errors import FilterSyntaxError
from trivia.services.rounds.tag_filter import (
    AndNode,
    NotNode,
    OrNode,
    TagFilterEngine,
    TagNode,
    WildcardNode,
    parse_expression,
    tokenize,
)

BROKEN_EXPRESSIONS = ['(', 'rock &', '& rock', 'rock)', 'rock $ pop', '!!', '()', 'rock pop']


@pytest.fixture()
def engine(catalog):
    return TagFilterEngine(catalog)


def _filter_errors(caplog):
    return [r for r in caplog.records if r.levelno == logging.ERROR and '[tag-filter]' in r.getMessage()]


def test_precedence():
    assert parse_expression('a | b & !c') == OrNode(TagNode('a'), AndNode(TagNode('b'), NotNode(TagNode('c'))))
    assert parse_expression('(a | b) & c') == AndNode(OrNode(TagNode('a'), TagNode('b')), TagNode('c'))
    assert parse_expression('  *  ') == WildcardNode()


def test_tokenize_lowercases_tags_and_reports_position():
    tokens = tokenize('Rock & only-kanye')
    assert [t.value for t in tokens[:3]] == ['rock', '&', 'only-kanye']
    with pytest.raises(FilterSyntaxError) as excinfo:
        tokenize('rock # pop')
    assert excinfo.value.position == 5


@pytest.mark.parametrize('expression', ['*', '', '  ', None])
def test_match_all_expressions(engine, catalog, expression):
    assert engine.compile(expression) == catalog.all_ids()


@pytest.mark.parametrize('expression', BROKEN_EXPRESSIONS)
def test_broken_expressions_fail_open_and_log_once(engine, catalog, caplog, expression):
    with caplog.at_level(logging.ERROR):
        result = engine.compile(expression)
    assert result == catalog.all_ids()
    assert len(_filter_errors(caplog)) == 1


@pytest.mark.parametrize('expression', BROKEN_EXPRESSIONS)
def test_validate_reports_errors(engine, expression):
    validation = engine.validate(expression)
    assert not validation.valid
    assert validation.error


def test_basic_operators(engine):
    assert engine.compile('rap') == {'ft-kanye', 'ft-literal'}
    assert engine.compile('artist & rock') == {'tf-beatles', 'me-beatles'}
    assert engine.compile('rap | festival') == {'ft-kanye', 'ft-literal', 'mc-capital'}
    assert engine.compile('unknown-tag') == set()
    assert engine.compile('RAP') == engine.compile('rap')


@pytest.mark.parametrize('tag', ['artist', 'rock', 'rap', 'album', 'festival'])
def test_negation_complements(engine, catalog, tag):
    positive = engine.compile(tag)
    negative = engine.compile(f"!{tag}")
    assert positive | negative == catalog.all_ids()
    assert positive & negative == set()


@pytest.mark.parametrize('a,b', [('artist', 'rock'), ('rap', 'lyrics'), ('album', 'festival')])
def test_de_morgan(engine, a, b):
    assert engine.compile(f"!({a} & {b})") == engine.compile(f"!{a} | !{b}")
    assert engine.compile(f"!({a} | {b})") == engine.compile(f"!{a} & !{b}")


def test_compile_returns_fresh_sets(engine):
    engine.compile('rock').clear()
    assert len(engine.compile('rock')) == 3


def test_statistics(engine):
    assert engine.statistics('rock & !artist') == {'total': 1, 'expression': 'rock & !artist'}


DEEP_EXPRESSIONS = [
    '(' * 40 + 'rock' + ')' * 40,
    '!' * 40 + 'rock',
    '(' * 400 + 'rock' + ')' * 400,
    '!' * 1200 + 'rock',
    'rock | ' * 100 + 'rap',
]


@pytest.mark.parametrize('expression', DEEP_EXPRESSIONS)
def test_deeply_nested_expressions_fail_open(engine, catalog, caplog, expression):
    with caplog.at_level(logging.ERROR):
        result = engine.compile(expression)
    assert result == catalog.all_ids()
    assert len(_filter_errors(caplog)) == 1

    validation = engine.validate(expression)
    assert not validation.valid
    assert validation.error


def test_nesting_within_limit_still_parses(engine):
    assert engine.compile('!!rock') == engine.compile('rock')
    assert engine.compile('(' * 10 + 'rock' + ')' * 10) == engine.compile('rock')
    assert engine.validate('!' * 4 + '(' * 4 + 'rap' + ')' * 4).valid


def test_tokenize_rejects_overlong_expressions():
    with pytest.raises(FilterSyntaxError):
        tokenize('a' * 501)
