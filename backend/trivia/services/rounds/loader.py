"""Build question records from JSON data.

A catalog is either one aggregate file (a list, or an object with a
``questions`` list) or a directory of per-generator files. A directory may
carry a ``_manifest.json`` with ``loadOrder`` and ``disabled`` lists.
Anything malformed raises ``CatalogLoadError``: there is no safe default
question set to fall back to.
"""

import json
import logging
import math
from pathlib import Path

from trivia.models import (
    Answer,
    Choice,
    ChoiceKey,
    Content,
    FreeTextKey,
    MultiEntryKey,
    NumericKey,
    OrderedItem,
    OrderedListKey,
    ProximityBand,
    Question,
    true_false_key,
)
from .errors import CatalogLoadError
from .normalization import normalize_for_comparison, resolve_match_mode
from .question_types import QuestionKind, config_for

logger = logging.getLogger(__name__)

MANIFEST_NAME = '_manifest.json'
DEFAULT_MAX_GUESSES = 15


def _ensure_list(value):
    if value is None or value == '':
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _text(value, default=''):
    if value is None:
        return default
    return str(value).strip() or default


def _build_content(raw, question_id):
    if not isinstance(raw, dict):
        return Content()
    content_type = raw.get('type') or 'text'
    if content_type in ('image', 'audio'):
        url = raw.get('url') or raw.get('audioUrl')
        if not url:
            logger.warning(f"[catalog] question={question_id} has {content_type} content without a url")
        return Content(type=content_type, text=_text(raw.get('text')), url=url, alt=raw.get('alt'))
    return Content(type='text', text=_text(raw.get('text')))


def _build_answer(entry, index, question_id, match_mode):
    if isinstance(entry, str):
        entry = {'display': entry}
    if not isinstance(entry, dict):
        raise CatalogLoadError(f"question {question_id}: answer #{index} must be an object or string")
    raw_aliases = _ensure_list(entry.get('aliases'))
    display = _text(entry.get('display')) or (str(raw_aliases[0]) if raw_aliases else f"Answer {index + 1}")

    # Only entity-backed answers carry trusted aliases; literal answers accept
    # their display form alone.
    aliases = [display]
    if entry.get('entityRef'):
        for alias in raw_aliases:
            alias = _text(alias)
            if alias and alias not in aliases:
                aliases.append(alias)

    normalized = []
    for alias in aliases:
        value = normalize_for_comparison(alias, match_mode)
        if value and value not in normalized:
            normalized.append(value)

    return Answer(
        id=_text(entry.get('id')) or f"{question_id}-answer-{index}",
        display=display,
        aliases=tuple(aliases),
        normalized_aliases=tuple(normalized),
    )


def _build_answers(raw, question_id, match_mode):
    entries = _ensure_list(raw.get('answers'))
    if not entries and raw.get('answer'):
        entries = [raw['answer']]
    answers = tuple(_build_answer(entry, i, question_id, match_mode) for i, entry in enumerate(entries))
    if not answers:
        raise CatalogLoadError(f"question {question_id}: requires at least one answer")

    alias_map = {}
    for answer in answers:
        for alias in answer.normalized_aliases:
            alias_map.setdefault(alias, answer)
    return answers, alias_map


def _build_choice_key(raw, question_id):
    cfg = config_for(QuestionKind.MULTIPLE_CHOICE)
    raw_choices = raw.get('choices')
    if not isinstance(raw_choices, list):
        raise CatalogLoadError(f"question {question_id}: multiple-choice requires a choices array")
    if len(raw_choices) < cfg.min_choices:
        raise CatalogLoadError(f"question {question_id}: multiple-choice needs at least {cfg.min_choices} choices")
    if len(raw_choices) > cfg.max_choices:
        logger.warning(f"[catalog] question={question_id} has more than {cfg.max_choices} choices")

    choices = []
    for index, entry in enumerate(raw_choices):
        entry = entry if isinstance(entry, dict) else {'text': entry}
        choices.append(Choice(
            id=_text(entry.get('id')) or f"{question_id}-choice-{index}",
            text=_text(entry.get('text'), f"Choice {index + 1}"),
            correct=entry.get('correct') is True,
        ))

    ids = [c.id for c in choices]
    if len(set(ids)) != len(ids):
        raise CatalogLoadError(f"question {question_id}: duplicate choice ids")
    correct = [c for c in choices if c.correct]
    if not correct:
        raise CatalogLoadError(f"question {question_id}: multiple-choice needs a correct choice")
    if len(correct) > 1:
        logger.warning(f"[catalog] question={question_id} has multiple correct choices, using the first")
    return ChoiceKey(choices=tuple(choices), correct_choice_id=correct[0].id)


def _to_number(value, question_id, field_name, required=False):
    if value is None:
        if required:
            raise CatalogLoadError(f"question {question_id}: numeric question requires {field_name}")
        return None
    if isinstance(value, bool):
        raise CatalogLoadError(f"question {question_id}: {field_name} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise CatalogLoadError(f"question {question_id}: {field_name} must be a number")


def _build_numeric_key(raw, question_id):
    correct = _to_number(raw.get('correctAnswer'), question_id, 'correctAnswer', required=True)
    bands = raw.get('proximityBands')
    kwargs = {}
    if bands:
        try:
            parsed = tuple(ProximityBand(str(b['label']), float(b['maxDistance'])) for b in bands)
        except (KeyError, TypeError, ValueError):
            raise CatalogLoadError(f"question {question_id}: proximityBands entries need label and maxDistance")
        kwargs['bands'] = tuple(sorted(parsed, key=lambda b: b.max_distance))
    if raw.get('tolerance') is not None:
        kwargs['tolerance'] = abs(_to_number(raw.get('tolerance'), question_id, 'tolerance'))
    return NumericKey(
        correct_value=correct,
        min_value=_to_number(raw.get('min'), question_id, 'min'),
        max_value=_to_number(raw.get('max'), question_id, 'max'),
        unit=raw.get('unit') or None,
        **kwargs,
    )


def _build_ordered_key(raw, question_id):
    raw_items = raw.get('items')
    if not isinstance(raw_items, list) or not raw_items:
        raise CatalogLoadError(f"question {question_id}: ordered-list requires items")
    items = []
    for index, entry in enumerate(raw_items):
        entry = entry if isinstance(entry, dict) else {'text': entry}
        items.append(OrderedItem(
            id=_text(entry.get('id')) or f"{question_id}-item-{index}",
            text=_text(entry.get('text'), f"Item {index + 1}"),
        ))
    item_ids = [i.id for i in items]
    correct_order = tuple(str(x) for x in _ensure_list(raw.get('correctOrder'))) or tuple(item_ids)
    if sorted(correct_order) != sorted(item_ids):
        raise CatalogLoadError(f"question {question_id}: correctOrder must be a permutation of the item ids")
    return OrderedListKey(items=tuple(items), correct_order=correct_order)


def build_question(raw) -> Question:
    """Turn one raw record into a ``Question``; raises ``CatalogLoadError``."""
    if not isinstance(raw, dict):
        raise CatalogLoadError('question records must be objects')
    question_id = _text(raw.get('id'))
    if not question_id:
        raise CatalogLoadError('question missing required field: id')

    kind = QuestionKind.parse(raw.get('type'))
    match_mode = resolve_match_mode(raw.get('matchMode'), raw.get('generatorType'))
    title = _text(raw.get('title'), 'Untitled Question')
    tags = frozenset(t for t in (_text(tag).lower() for tag in _ensure_list(raw.get('tags'))) if t)

    if kind is QuestionKind.FREE_TEXT:
        answers, alias_map = _build_answers(raw, question_id, match_mode)
        key = FreeTextKey(answers=answers, alias_map=alias_map)
    elif kind is QuestionKind.MULTI_ENTRY:
        answers, alias_map = _build_answers(raw, question_id, match_mode)
        max_guesses = _to_number(raw.get('maxGuesses'), question_id, 'maxGuesses')
        if max_guesses is None:
            max_guesses = DEFAULT_MAX_GUESSES
        elif not math.isfinite(max_guesses) or max_guesses < 1:
            raise CatalogLoadError(f"question {question_id}: maxGuesses must be a positive number")
        max_guesses = int(max_guesses)
        key = MultiEntryKey(answers=answers, alias_map=alias_map, max_guesses=max(max_guesses, len(answers)))
    elif kind is QuestionKind.MULTIPLE_CHOICE:
        key = _build_choice_key(raw, question_id)
    elif kind is QuestionKind.TRUE_FALSE:
        if not isinstance(raw.get('correctAnswer'), bool):
            raise CatalogLoadError(f"question {question_id}: true-false requires a boolean correctAnswer")
        key = true_false_key(raw['correctAnswer'])
    elif kind is QuestionKind.NUMERIC:
        key = _build_numeric_key(raw, question_id)
    elif kind is QuestionKind.ORDERED_LIST:
        key = _build_ordered_key(raw, question_id)
    else:
        raise CatalogLoadError(f"question {question_id}: unsupported type {kind!r}")

    return Question(
        id=question_id,
        kind=kind,
        title=title,
        key=key,
        content=_build_content(raw.get('content'), question_id),
        tags=tags,
        match_mode=match_mode,
        generator_type=raw.get('generatorType') or None,
    )


def build_questions(records):
    questions = []
    seen = set()
    for raw in records:
        question = build_question(raw)
        if question.id in seen:
            raise CatalogLoadError(f"duplicate question id {question.id}")
        seen.add(question.id)
        questions.append(question)
    return questions


def _read_json(path: Path):
    try:
        with path.open('r', encoding='utf-8') as fh:
            return json.load(fh)
    except OSError as exc:
        raise CatalogLoadError(f"cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise CatalogLoadError(f"malformed JSON in {path}: {exc}") from exc


def _records_from(parsed, path: Path):
    records = parsed if isinstance(parsed, list) else (parsed or {}).get('questions')
    if not isinstance(records, list):
        raise CatalogLoadError(f"no questions array in {path}")
    return records


def load_from_file(path) -> list:
    path = Path(path)
    questions = build_questions(_records_from(_read_json(path), path))
    logger.info(f"[catalog] loaded {len(questions)} questions from {path}")
    return questions


def _directory_files(dir_path: Path):
    manifest = {}
    manifest_path = dir_path / MANIFEST_NAME
    if manifest_path.exists():
        manifest = _read_json(manifest_path)
        if not isinstance(manifest, dict):
            raise CatalogLoadError(f"{manifest_path} must contain an object")

    files = [str(f) for f in manifest.get('loadOrder') or []]
    if files:
        logger.info(f"[catalog] using manifest with {len(files)} files")
    else:
        files = sorted(p.name for p in dir_path.glob('*.json') if p.name != MANIFEST_NAME)
        logger.info(f"[catalog] auto-discovered {len(files)} question files")

    disabled = set(manifest.get('disabled') or [])
    return [f for f in files if f not in disabled]


def load_from_directory(dir_path) -> list:
    dir_path = Path(dir_path)
    records = []
    for name in _directory_files(dir_path):
        path = dir_path / name
        if not path.exists():
            logger.warning(f"[catalog] manifest lists missing file {path}")
            continue
        file_records = _records_from(_read_json(path), path)
        logger.info(f"[catalog] {name}: {len(file_records)} questions")
        records.extend(file_records)
    questions = build_questions(records)
    logger.info(f"[catalog] loaded {len(questions)} questions from {dir_path}")
    return questions


def load_questions(path) -> list:
    """Load every question under ``path`` (file or directory)."""
    path = Path(path)
    if path.is_dir():
        questions = load_from_directory(path)
    elif path.exists():
        questions = load_from_file(path)
    else:
        raise CatalogLoadError(f"question data not found at {path}")
    if not questions:
        raise CatalogLoadError(f"no questions resolved from {path}")
    return questions
