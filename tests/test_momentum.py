"""Test keyword extraction and momentum scoring."""
import pytest

from momentum import (
    STOP_WORDS, MomentumUpdate, calculate_score, extract_keywords, fallback_score,
    momentum_band, score_queue,
)


class TestExtractKeywords:
    def test_empty_text(self):
        assert extract_keywords("") == set()

    def test_none_is_empty(self):
        assert extract_keywords(None) == set()

    def test_stop_words_removed(self):
        assert extract_keywords("the quick fox and the lazy dog") == {"quick", "fox", "lazy", "dog"}

    def test_deterministic(self):
        text = "Refactor the billing service, then deploy billing to staging"
        assert extract_keywords(text) == extract_keywords(text)

    def test_punctuation_and_short_tokens(self):
        kws = extract_keywords("Fix bug #42: login-page crash!")
        assert kws == {"fix", "bug", "login", "page", "crash"}

    def test_lowercases_and_dedupes(self):
        assert extract_keywords("Deploy DEPLOY deploy") == {"deploy"}

    def test_only_stop_words(self):
        assert extract_keywords("it is all about that") == set()

    def test_stop_word_list_is_lowercase(self):
        assert all(w == w.lower() for w in STOP_WORDS)


class TestCalculateScore:
    def test_empty_corpus_scores_zero(self):
        assert calculate_score({"deploy"}, set()) == 0

    def test_both_empty(self):
        assert calculate_score(set(), set()) == 0

    def test_no_task_keywords(self):
        assert calculate_score(set(), {"deploy", "server"}) == 0

    def test_full_overlap(self):
        kws = {"deploy", "staging", "server"}
        assert calculate_score(kws, set(kws)) == 100

    def test_no_overlap(self):
        assert calculate_score({"write", "docs"}, {"deploy", "server"}) == 0

    def test_partial_overlap(self):
        # 2 shared out of 4 unique
        assert calculate_score({"deploy", "production", "server"}, {"deploy", "staging", "server"}) == 50

    def test_rounds_half_up(self):
        corpus = {"alpha", "bravo", "charlie", "delta", "echo", "foxtrot", "golf", "hotel"}
        # 1/8 = 12.5
        assert calculate_score({"alpha"}, corpus) == 13

    def test_rounds_thirds(self):
        assert calculate_score({"alpha"}, {"alpha", "bravo", "charlie"}) == 33
        assert calculate_score({"alpha", "bravo"}, {"alpha", "bravo", "charlie"}) == 67

    @pytest.mark.parametrize("task,corpus", [
        ({"a1x"}, {"b2y"}),
        ({"one", "two", "three"}, {"two"}),
        ({"x" * 5}, {"x" * 5, "y" * 5, "z" * 5}),
        (set(), {"lonely"}),
    ])
    def test_bounds(self, task, corpus):
        score = calculate_score(task, corpus)
        assert isinstance(score, int)
        assert 0 <= score <= 100


class TestFallback:
    def test_priority_defaults(self):
        assert fallback_score("high") == 80
        assert fallback_score("medium") == 50
        assert fallback_score("low") == 20

    def test_unknown_priority_scores_low(self):
        assert fallback_score(None) == 20
        assert fallback_score("urgent") == 20


class TestMomentumBand:
    def test_bands(self):
        assert momentum_band(100) == "high"
        assert momentum_band(70) == "high"
        assert momentum_band(69) == "medium"
        assert momentum_band(40) == "medium"
        assert momentum_band(39) == "low"
        assert momentum_band(0) == "low"


class TestScoreQueue:
    def test_cold_start_ignores_text(self):
        queued = [
            {"id": "a", "title": "Deploy server", "description": "", "priority": "high"},
            {"id": "b", "title": "Deploy server", "description": "", "priority": "low"},
        ]
        scores = {u.task_id: u.momentum_score for u in score_queue(queued, [])}
        assert scores == {"a": 80, "b": 20}

    def test_corpus_is_merged(self):
        done = [
            {"id": "d1", "title": "Deploy staging", "description": None},
            {"id": "d2", "title": "Rotate server keys", "description": ""},
        ]
        queued = [{"id": "q", "title": "Deploy server", "description": "", "priority": "low"}]
        # {deploy, server} vs {deploy, staging, rotate, server, keys}
        assert score_queue(queued, done)[0].momentum_score == 40

    def test_update_dict_omits_empty_error(self):
        assert MomentumUpdate("a", 50).to_dict() == {"task_id": "a", "momentum_score": 50}
        assert MomentumUpdate("a", 50, "boom").to_dict()["error"] == "boom"
