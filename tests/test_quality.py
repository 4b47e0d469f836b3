from __future__ import annotations

import allure
import pytest

from pharmacentral.translation.quality import QualityEvaluator

pytestmark = [
    allure.epic("Translation"),
    allure.feature("Quality Gate"),
]

ORIGINAL = "New drug approved"
ARABIC = "تمت الموافقة على عقار جديد"


def test_pure_arabic_translation_reaches_threshold() -> None:
    evaluator = QualityEvaluator()

    assert evaluator.score(ORIGINAL, ARABIC) == 0.7
    assert evaluator.accepts(ORIGINAL, ARABIC)


def test_mixed_script_translation_scores_full_marks() -> None:
    evaluator = QualityEvaluator()

    assert evaluator.score("FDA approves drug", "إدارة FDA توافق على الدواء") == 1.0


def test_untranslated_english_is_rejected() -> None:
    evaluator = QualityEvaluator()

    assert evaluator.score(ORIGINAL, "New drug approved today") == 0.5
    assert not evaluator.accepts(ORIGINAL, "New drug approved today")


def test_repeated_single_letter_is_rejected() -> None:
    evaluator = QualityEvaluator()

    assert evaluator.score(ORIGINAL, "a" * 50) < 0.7
    assert not evaluator.accepts(ORIGINAL, "a" * 50)


def test_empty_translation_scores_zero() -> None:
    assert QualityEvaluator().score(ORIGINAL, "") == 0.0


@pytest.mark.parametrize(
    "translated",
    ["عقار", "1234 5678", "!!! ???"],
)
def test_degenerate_translations_never_pass(translated: str) -> None:
    assert not QualityEvaluator().accepts(ORIGINAL, translated)


def test_score_never_decreases_when_a_criterion_is_added() -> None:
    evaluator = QualityEvaluator()

    too_short = "عقار"
    right_length = "عقار جديد معتمد"
    with_latin = "عقار FDA جديد معتمد"

    assert evaluator.score(ORIGINAL, too_short) <= evaluator.score(ORIGINAL, right_length)
    assert evaluator.score(ORIGINAL, right_length) <= evaluator.score(ORIGINAL, with_latin)


def test_arabic_script_only_counts_for_arabic_target() -> None:
    french = QualityEvaluator(target_language="fr")

    assert french.score("New drug approved", "Nouveau médicament approuvé") == 0.8


def test_length_signal_compares_shorter_to_longer_text() -> None:
    evaluator = QualityEvaluator()
    translated = "أخبار الأدوية اليوم جديدة جدا"

    assert len(translated) / len("Drug news") > 3
    assert evaluator.score("Drug news", translated) == 0.7
    assert evaluator.accepts("Drug news", translated)
    assert evaluator.score("Drug news", "أخبار الأدوية FDA اليوم جديدة") == 1.0


def test_symbol_runs_separated_by_spaces_are_flagged() -> None:
    evaluator = QualityEvaluator()

    assert evaluator.score(ORIGINAL, "!!! ???") == 0.5
    assert evaluator.score(ORIGINAL, "... --- ,,,") == 0.5


def test_target_language_can_be_given_per_call() -> None:
    french = QualityEvaluator(target_language="fr")

    assert french.score(ORIGINAL, ARABIC) == 0.5
    assert french.score(ORIGINAL, ARABIC, "ar") == 0.7
    assert french.accepts(ORIGINAL, ARABIC, target_language="ar")
