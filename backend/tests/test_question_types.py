import pytest

from trivia.services.rounds.evaluator import EVALUATORS
from trivia.services.rounds.question_types import (
    QUESTION_TYPE_CONFIG,
    InputShape,
    QuestionKind,
    config_for,
    is_choice_kind,
)


def test_every_kind_has_config_and_evaluator():
    for kind in QuestionKind:
        assert kind in QUESTION_TYPE_CONFIG
        assert kind in EVALUATORS


@pytest.mark.parametrize('kind,retry,reveal,all_correct,all_submitted', [
    (QuestionKind.FREE_TEXT, True, True, True, False),
    (QuestionKind.MULTIPLE_CHOICE, False, False, False, True),
    (QuestionKind.TRUE_FALSE, False, False, False, True),
    (QuestionKind.MULTI_ENTRY, True, True, True, False),
    (QuestionKind.NUMERIC, False, False, False, True),
    (QuestionKind.ORDERED_LIST, False, False, False, True),
])
def test_policy_table(kind, retry, reveal, all_correct, all_submitted):
    cfg = config_for(kind)
    assert cfg.allows_retry is retry
    assert cfg.reveals_on_submit is reveal
    assert cfg.ends_on_all_correct is all_correct
    assert cfg.ends_on_all_submitted is all_submitted


def test_unknown_kind_behaves_like_free_text():
    assert QuestionKind.parse('crossword') is QuestionKind.FREE_TEXT
    assert QuestionKind.parse(None) is QuestionKind.FREE_TEXT
    assert config_for('crossword') == config_for(QuestionKind.FREE_TEXT)


def test_parse_is_case_insensitive():
    assert QuestionKind.parse(' Multiple-Choice ') is QuestionKind.MULTIPLE_CHOICE


def test_choice_kinds():
    assert is_choice_kind(QuestionKind.TRUE_FALSE)
    assert is_choice_kind('multiple-choice')
    assert not is_choice_kind(QuestionKind.NUMERIC)
    assert config_for(QuestionKind.TRUE_FALSE).input_shape is InputShape.CHOICE
    assert config_for(QuestionKind.TRUE_FALSE).max_choices == 2
