from trivia.services.rounds.normalization import (
    MatchMode,
    normalize_for_comparison,
    resolve_match_mode,
)


def test_normal_mode_strips_case_and_minor_punctuation():
    assert normalize_for_comparison('  Kanye West.  ') == 'kanye west'
    assert normalize_for_comparison('"Hey, Jude!"') == 'hey jude'
    assert normalize_for_comparison('AC/DC') == 'ac/dc'


def test_loose_mode_strips_all_punctuation():
    assert normalize_for_comparison('AC/DC', MatchMode.LOOSE) == 'acdc'
    assert normalize_for_comparison("believin'  now", MatchMode.LOOSE) == 'believin now'


def test_strict_and_exact_modes():
    assert normalize_for_comparison('  Hey, Jude ', MatchMode.STRICT) == 'hey, jude'
    assert normalize_for_comparison('  Hey, Jude ', MatchMode.EXACT) == 'Hey, Jude'
    assert normalize_for_comparison('hey jude', MatchMode.EXACT) != normalize_for_comparison('Hey Jude', MatchMode.EXACT)
    assert normalize_for_comparison('hey jude', MatchMode.STRICT) == normalize_for_comparison('Hey Jude', MatchMode.STRICT)


def test_non_string_input_normalizes_to_empty():
    assert normalize_for_comparison(None) == ''
    assert normalize_for_comparison(42) == ''
    assert normalize_for_comparison('   ') == ''


def test_unknown_mode_falls_back_to_normal():
    assert normalize_for_comparison('Hey, Jude', 'fuzzy') == 'hey jude'


def test_resolve_match_mode_precedence():
    assert resolve_match_mode('strict', 'next-line') is MatchMode.STRICT
    assert resolve_match_mode(None, 'next-line') is MatchMode.LOOSE
    assert resolve_match_mode(None, 'fill-missing-word') is MatchMode.LOOSE
    assert resolve_match_mode(None, 'song-title') is MatchMode.NORMAL
    assert resolve_match_mode('bogus', None) is MatchMode.NORMAL
