import pytest

from trivia.services.rounds.evaluator import evaluate, proximity_band
from trivia.services.rounds.validation import MAX_ANSWER_LENGTH, validate_submission


@pytest.mark.parametrize('value', ['Kanye West', 'kanye west', '  Kanye West  ', 'KANYE WEST.', 'Ye', 'kanye'])
def test_free_text_accepts_normalized_aliases(catalog, value):
    result = evaluate(catalog.by_id('ft-kanye'), value)
    assert result.correct
    assert result.matched == 'Kanye West'


def test_free_text_trim_and_case_insensitive(catalog):
    question = catalog.by_id('ft-kanye')
    assert evaluate(question, '  Kanye West  ').correct == evaluate(question, 'kanye west').correct


@pytest.mark.parametrize('value', ['Kanye East', '', '   ', None])
def test_free_text_rejects(catalog, value):
    assert not evaluate(catalog.by_id('ft-kanye'), value).correct


def test_literal_answer_ignores_aliases(catalog):
    question = catalog.by_id('ft-literal')
    assert evaluate(question, 'stronger').correct
    assert not evaluate(question, 'strong').correct


def test_choice_evaluation(catalog):
    question = catalog.by_id('mc-capital')
    right = evaluate(question, 'b')
    assert right.correct and right.matched == 'Tinley Park'
    assert not evaluate(question, 'a').correct
    assert not evaluate(question, 'z').correct

    tf = catalog.by_id('tf-beatles')
    assert evaluate(tf, 'true').correct
    assert not evaluate(tf, 'false').correct


def test_numeric_evaluation_and_proximity(catalog):
    question = catalog.by_id('num-thriller')
    exact = evaluate(question, 1982)
    assert exact.correct and exact.proximity == 'exact' and exact.score == 0

    assert evaluate(question, 1983).proximity == 'very-close'
    assert evaluate(question, 1986).proximity == 'close'
    assert evaluate(question, 1972).proximity == 'near'
    far = evaluate(question, 1950)
    assert not far.correct and far.proximity == 'far' and far.score == 32
    assert proximity_band(question.key, 1981.5) == 'very-close'


def test_multi_entry_never_credits_an_answer_twice(catalog):
    question = catalog.by_id('me-beatles')
    first = evaluate(question, 'lennon')
    assert first.correct and first.matched_answer_id == 'john'

    again = evaluate(question, 'John Lennon', found={'john'})
    assert not again.correct
    assert again.matched_answer_id == 'john'

    other = evaluate(question, 'Ringo Starr', found={'john'})
    assert other.correct and other.matched_answer_id == 'ringo'
    assert not evaluate(question, 'Mick Jagger').correct


def test_ordered_list_scores_positions(catalog):
    question = catalog.by_id('ol-queen')
    perfect = evaluate(question, ('bohemian', 'champions', 'radio'))
    assert perfect.correct and perfect.score == 3

    partial = evaluate(question, ('bohemian', 'radio', 'champions'))
    assert not partial.correct and partial.score == 1


def test_validation_by_input_shape(catalog):
    assert validate_submission(catalog.by_id('ft-kanye'), '  Ye ') == 'Ye'
    assert validate_submission(catalog.by_id('ft-kanye'), {'answer': 'Ye'}) == 'Ye'
    assert validate_submission(catalog.by_id('ft-kanye'), '   ') is None
    assert len(validate_submission(catalog.by_id('ft-kanye'), 'x' * 900)) == MAX_ANSWER_LENGTH

    assert validate_submission(catalog.by_id('mc-capital'), 'b') == 'b'
    assert validate_submission(catalog.by_id('mc-capital'), {'choiceId': 'c'}) == 'c'
    assert validate_submission(catalog.by_id('mc-capital'), 'z') is None

    numeric = catalog.by_id('num-thriller')
    assert validate_submission(numeric, '1982') == 1982.0
    assert validate_submission(numeric, True) is None
    assert validate_submission(numeric, 'nan') is None
    assert validate_submission(numeric, 'soon') is None

    ordered = catalog.by_id('ol-queen')
    assert validate_submission(ordered, ['radio', 'bohemian', 'champions']) == ('radio', 'bohemian', 'champions')
    assert validate_submission(ordered, ['radio', 'bohemian']) is None
    assert validate_submission(ordered, 'radio') is None
