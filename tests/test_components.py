"""
Unit tests for individual classification components.
"""

import numpy as np
import pytest

from retention.components import (
    CancelReasonClassifier,
    IntentClassifier,
    InterventionDecider,
    SentimentAnalyzer,
    UrgencyResolver,
    best_match,
    score_keywords,
)
from retention.domain import (
    CancelReason,
    CustomerContext,
    DetectionContext,
    IntentCategory,
    SentimentLevel,
    UrgencyLevel,
)
from retention.rules import KeywordRule, load_rules, parse_rules

FOUR_KEYWORDS = ["cancel", "stop", "quit", "end"]


class TestKeywordScorer:
    """Tests for the shared keyword match score."""

    def test_empty_keyword_set_scores_zero(self):
        """Empty keyword set always yields 0."""
        assert score_keywords("cancel everything now", []) == 0.0
        assert score_keywords("", []) == 0.0

    def test_substring_match_counts_once(self):
        """Embedded keyword counts its weight without the whole-word bonus."""
        assert score_keywords("cancellation", FOUR_KEYWORDS) == pytest.approx(0.5)

    def test_whole_word_bonus(self):
        """Space-bounded keyword counts 1.5 matches."""
        assert score_keywords("please cancel now", FOUR_KEYWORDS) == pytest.approx(0.75)

    def test_whole_word_at_string_edges(self):
        """Text equal to the keyword is a whole-word match."""
        assert score_keywords("cancel", FOUR_KEYWORDS) == pytest.approx(0.75)

    def test_score_capped_at_one(self):
        """Many matches never push the score above 1."""
        assert score_keywords("cancel stop quit end", FOUR_KEYWORDS) == 1.0

    def test_keyword_weight_scales_matches(self):
        """Weighted keyword counts weight x (1 + bonus)."""
        keywords = [KeywordRule("refund", 0.5), "invoice", "receipt", "statement"]
        assert score_keywords("refund please", keywords) == pytest.approx(0.375)

    def test_score_always_in_unit_interval(self, rules):
        """Property: random texts over the intent vocabulary score within [0, 1]."""
        vocabulary = [rule.keyword for _, kws in rules.intents for rule in kws]
        vocabulary += ["the", "a", "my", "please", "now", "really"]
        rng = np.random.default_rng(7)

        for _ in range(200):
            words = rng.choice(vocabulary, size=rng.integers(0, 12))
            text = " ".join(words)
            for _, keywords in rules.intents:
                score = score_keywords(text, keywords)
                assert 0.0 <= score <= 1.0

    def test_best_match_prefers_earliest_on_tie(self):
        """Strict > keeps the first declared category on ties."""
        scores = [("A", 0.4), ("B", 0.4), ("C", 0.1)]
        assert best_match(scores) == ("A", 0.4)

    def test_best_match_none_when_nothing_scores(self):
        assert best_match([("A", 0.0), ("B", 0.0)]) == (None, 0.0)


class TestSentimentAnalyzer:
    """Tests for keyword-tier sentiment."""

    @pytest.mark.parametrize("score,level", [
        (-1.0, SentimentLevel.VERY_NEGATIVE),
        (-0.5, SentimentLevel.VERY_NEGATIVE),
        (-0.49, SentimentLevel.NEGATIVE),
        (-0.2, SentimentLevel.NEGATIVE),
        (-0.19, SentimentLevel.NEUTRAL),
        (0.0, SentimentLevel.NEUTRAL),
        (0.19, SentimentLevel.NEUTRAL),
        (0.2, SentimentLevel.POSITIVE),
        (0.49, SentimentLevel.POSITIVE),
        (0.5, SentimentLevel.VERY_POSITIVE),
        (1.0, SentimentLevel.VERY_POSITIVE),
    ])
    def test_threshold_boundaries(self, default_config, score, level):
        """Boundary values -0.5, -0.2, 0.2, 0.5 map exactly."""
        analyzer = SentimentAnalyzer(default_config)
        assert analyzer.sentiment_level(score) == level

    def test_no_keywords_is_neutral(self, default_config):
        result = SentimentAnalyzer(default_config).analyze("where is my parcel")
        assert result.score == 0.0
        assert result.level == SentimentLevel.NEUTRAL

    def test_single_negative_keyword_hits_boundary(self, default_config):
        """One negative match lands exactly on -0.2."""
        result = SentimentAnalyzer(default_config).analyze("that was bad")
        assert result.score == -0.2
        assert result.level == SentimentLevel.NEGATIVE

    def test_tiers_are_additive(self, default_config):
        """hate (-0.4) + bad (-0.2) = -0.6."""
        result = SentimentAnalyzer(default_config).analyze("I hate it, bad service")
        assert result.score == pytest.approx(-0.6)
        assert result.level == SentimentLevel.VERY_NEGATIVE

    def test_positive_tiers(self, default_config):
        """love (+0.4) + good (+0.2) = +0.6."""
        result = SentimentAnalyzer(default_config).analyze("Love it, really good")
        assert result.score == pytest.approx(0.6)
        assert result.level == SentimentLevel.VERY_POSITIVE

    def test_substring_matches_count(self, default_config):
        """'unhappy' matches both unhappy (-0.2) and happy (+0.2)."""
        result = SentimentAnalyzer(default_config).analyze("unhappy")
        assert result.score == 0.0
        assert result.level == SentimentLevel.NEUTRAL

    def test_score_clamped(self, default_config):
        """Score never leaves [-1, 1]."""
        text = "hate terrible awful worst horrible disgusting furious"
        result = SentimentAnalyzer(default_config).analyze(text)
        assert result.score == -1.0
        assert result.level == SentimentLevel.VERY_NEGATIVE


class TestIntentClassifier:
    """Tests for primary/secondary intent classification."""

    def test_cancel_keyword_alone(self, default_config):
        """Only 'cancel' gives CANCEL with confidence in (0, 0.95]."""
        result = IntentClassifier(default_config).classify("cancel")
        assert result.primary == IntentCategory.CANCEL
        assert 0.0 < result.confidence <= 0.95

    def test_no_matches_is_neutral(self, default_config):
        """Zero keyword matches give exactly (NEUTRAL, 0.5)."""
        result = IntentClassifier(default_config).classify("xyzzy plugh")
        assert result.primary == IntentCategory.NEUTRAL
        assert result.confidence == 0.5
        assert result.secondaries == ()

    def test_empty_text_is_neutral(self, default_config):
        result = IntentClassifier(default_config).classify("")
        assert (result.primary, result.confidence) == (IntentCategory.NEUTRAL, 0.5)

    def test_weak_match_below_threshold_is_neutral(self, default_config):
        """A lone substring match in a big category stays under 0.3."""
        result = IntentClassifier(default_config).classify("stopwatch")
        # 'stop' embedded, CANCEL has 12 keywords: 1 / sqrt(12) = 0.289
        assert result.primary == IntentCategory.NEUTRAL
        assert result.confidence == 0.5
        assert [s.intent for s in result.secondaries] == [IntentCategory.CANCEL]

    def test_cancel_page_short_circuit(self, default_config):
        """Cancel page wins regardless of text."""
        context = DetectionContext(current_page="account/cancel-subscription")
        result = IntentClassifier(default_config).classify(
            "I love it, please upgrade me to premium", context
        )
        assert result.primary == IntentCategory.CANCEL
        assert result.confidence == 0.9

    def test_pause_page_short_circuit(self, default_config):
        context = DetectionContext(current_page="/subscription/Skip-Delivery")
        result = IntentClassifier(default_config).classify("", context)
        assert result.primary == IntentCategory.PAUSE
        assert result.confidence == 0.85

    def test_unrelated_page_falls_back_to_keywords(self, default_config):
        context = DetectionContext(current_page="/account/profile")
        result = IntentClassifier(default_config).classify("please refund me", context)
        assert result.primary == IntentCategory.PAYMENT_ISSUE

    def test_secondary_intents_exclude_primary(self, default_config):
        """Scenario text: COMPLAINT ('terrible') is the only secondary."""
        text = "I want to cancel my subscription, it's terrible"
        result = IntentClassifier(default_config).classify(text)

        assert result.primary == IntentCategory.CANCEL
        assert [s.intent for s in result.secondaries] == [IntentCategory.COMPLAINT]
        assert result.secondaries[0].confidence == pytest.approx(1.5 / np.sqrt(10) * 0.8)

    def test_declaration_order_breaks_ties(self, default_config):
        """Equal scores: the category declared first becomes primary."""
        table = parse_rules({"intents": {"PAUSE": ["zzz"], "CANCEL": ["zzz"]}})
        result = IntentClassifier(default_config, table).classify("zzz")

        assert result.primary == IntentCategory.PAUSE
        assert result.confidence == 0.95
        assert [s.intent for s in result.secondaries] == [IntentCategory.CANCEL]

    def test_secondaries_capped_and_stable(self, default_config):
        """At most three secondaries at <= 0.7, ties in declaration order."""
        table = parse_rules({"intents": {
            "DOWNGRADE": ["zzz"],
            "UPGRADE": ["zzz"],
            "COMPLAINT": ["zzz"],
            "QUESTION": ["zzz"],
            "FEEDBACK": ["zzz"],
        }})
        result = IntentClassifier(default_config, table).classify("zzz")

        assert result.primary == IntentCategory.DOWNGRADE
        assert [s.intent for s in result.secondaries] == [
            IntentCategory.UPGRADE,
            IntentCategory.COMPLAINT,
            IntentCategory.QUESTION,
        ]
        assert all(s.confidence == 0.7 for s in result.secondaries)

    def test_neutral_and_unknown_never_scored(self, default_config):
        """Keywords listed under NEUTRAL/UNKNOWN are ignored."""
        table = parse_rules({"intents": {"NEUTRAL": ["hello"], "UNKNOWN": ["hello"]}})
        result = IntentClassifier(default_config, table).classify("hello")
        assert result.primary == IntentCategory.NEUTRAL
        assert result.secondaries == ()


class TestCancelReasonClassifier:
    """Tests for cancel reason classification."""

    def test_price_reason(self, default_config):
        result = CancelReasonClassifier(default_config).classify("it's too expensive")
        assert result.reason == CancelReason.TOO_EXPENSIVE
        assert result.confidence == pytest.approx(1.5 / np.sqrt(10))

    def test_no_match_is_other_with_zero(self, default_config):
        result = CancelReasonClassifier(default_config).classify("just because")
        assert result.reason == CancelReason.OTHER
        assert result.confidence == 0.0

    def test_confidence_capped_at_point_nine(self, default_config):
        """MOVING scores 2.25 raw, reported as 0.9."""
        text = "relocating to a new address, moving"
        result = CancelReasonClassifier(default_config).classify(text)
        assert result.reason == CancelReason.MOVING
        assert result.confidence == 0.9


class TestUrgencyResolver:
    """Tests for the ordered urgency rules."""

    @pytest.fixture
    def resolver(self, default_config):
        return UrgencyResolver(default_config)

    @pytest.fixture
    def vip_context(self):
        return DetectionContext(customer=CustomerContext(tenure_months=12, lifetime_value=600.0))

    @pytest.mark.parametrize("context", [
        None,
        DetectionContext(),
        DetectionContext(customer=CustomerContext(lifetime_value=10_000.0)),
    ])
    def test_cancel_very_negative_is_critical(self, resolver, context):
        """(CANCEL, VERY_NEGATIVE, any context) is CRITICAL."""
        urgency = resolver.resolve(IntentCategory.CANCEL, SentimentLevel.VERY_NEGATIVE, context)
        assert urgency == UrgencyLevel.CRITICAL

    def test_cancel_otherwise_high(self, resolver):
        for sentiment in (SentimentLevel.NEGATIVE, SentimentLevel.NEUTRAL, SentimentLevel.VERY_POSITIVE):
            assert resolver.resolve(IntentCategory.CANCEL, sentiment) == UrgencyLevel.HIGH

    @pytest.mark.parametrize("sentiment", list(SentimentLevel))
    def test_payment_issue_high_without_context(self, resolver, sentiment):
        """(PAYMENT_ISSUE, any sentiment, no context) is HIGH."""
        assert resolver.resolve(IntentCategory.PAYMENT_ISSUE, sentiment, None) == UrgencyLevel.HIGH

    def test_high_value_complaint_escalates(self, resolver, vip_context):
        """Lifetime value > 500 lifts a neutral complaint from MEDIUM to HIGH."""
        assert resolver.resolve(IntentCategory.COMPLAINT, SentimentLevel.NEUTRAL) == UrgencyLevel.MEDIUM
        assert (
            resolver.resolve(IntentCategory.COMPLAINT, SentimentLevel.NEUTRAL, vip_context)
            == UrgencyLevel.HIGH
        )

    def test_high_value_pause_escalates(self, resolver, vip_context):
        assert resolver.resolve(IntentCategory.PAUSE, SentimentLevel.NEUTRAL) == UrgencyLevel.MEDIUM
        assert (
            resolver.resolve(IntentCategory.PAUSE, SentimentLevel.NEUTRAL, vip_context)
            == UrgencyLevel.HIGH
        )

    def test_lifetime_value_threshold_is_strict(self, resolver):
        context = DetectionContext(customer=CustomerContext(lifetime_value=500.0))
        assert (
            resolver.resolve(IntentCategory.COMPLAINT, SentimentLevel.NEUTRAL, context)
            == UrgencyLevel.MEDIUM
        )

    def test_very_negative_complaint_high(self, resolver):
        assert (
            resolver.resolve(IntentCategory.COMPLAINT, SentimentLevel.VERY_NEGATIVE)
            == UrgencyLevel.HIGH
        )

    def test_downgrade_medium(self, resolver, vip_context):
        """High value does not escalate a downgrade."""
        assert (
            resolver.resolve(IntentCategory.DOWNGRADE, SentimentLevel.NEUTRAL, vip_context)
            == UrgencyLevel.MEDIUM
        )

    @pytest.mark.parametrize("intent", [
        IntentCategory.QUESTION,
        IntentCategory.UPGRADE,
        IntentCategory.NEUTRAL,
        IntentCategory.RENEW,
    ])
    def test_everything_else_low(self, resolver, intent):
        assert resolver.resolve(intent, SentimentLevel.VERY_NEGATIVE) == UrgencyLevel.LOW


class TestInterventionDecider:
    """Tests for the intervention trigger table."""

    @pytest.fixture
    def decider(self, default_config):
        return InterventionDecider(default_config)

    def test_cancel_above_half_triggers(self, decider):
        """(CANCEL, 0.51) triggers save_flow."""
        for sentiment in SentimentLevel:
            decision = decider.decide_for(IntentCategory.CANCEL, 0.51, sentiment)
            assert decision.should_trigger is True
            assert decision.intervention_type == "save_flow"

    def test_cancel_boundary_is_strict(self, decider):
        """(CANCEL, 0.5) does not trigger."""
        for sentiment in SentimentLevel:
            decision = decider.decide_for(IntentCategory.CANCEL, 0.5, sentiment)
            assert decision.should_trigger is False
            assert decision.intervention_type is None

    def test_pause_and_downgrade_boundary(self, decider):
        assert not decider.should_trigger(IntentCategory.PAUSE, 0.6, SentimentLevel.NEUTRAL)
        assert decider.decide_for(IntentCategory.PAUSE, 0.61, SentimentLevel.NEUTRAL).intervention_type == "pause_offer"
        assert not decider.should_trigger(IntentCategory.DOWNGRADE, 0.6, SentimentLevel.NEUTRAL)
        assert decider.decide_for(IntentCategory.DOWNGRADE, 0.61, SentimentLevel.NEUTRAL).intervention_type == "retention_offer"

    def test_complaint_needs_negative_sentiment(self, decider):
        assert not decider.should_trigger(IntentCategory.COMPLAINT, 0.95, SentimentLevel.NEUTRAL)
        decision = decider.decide_for(IntentCategory.COMPLAINT, 0.1, SentimentLevel.NEGATIVE)
        assert decision.should_trigger
        assert decision.intervention_type == "support_escalation"

    def test_payment_issue_always_triggers(self, decider):
        decision = decider.decide_for(IntentCategory.PAYMENT_ISSUE, 0.0, SentimentLevel.POSITIVE)
        assert decision.should_trigger
        assert decision.intervention_type == "payment_recovery"

    @pytest.mark.parametrize("intent", [
        IntentCategory.QUESTION,
        IntentCategory.UPGRADE,
        IntentCategory.BILLING_QUESTION,
        IntentCategory.NEUTRAL,
    ])
    def test_other_intents_never_trigger(self, decider, intent):
        assert not decider.should_trigger(intent, 0.95, SentimentLevel.VERY_NEGATIVE)

    def test_unmapped_intent_type_is_general(self, default_config):
        assert default_config.detection.intervention_type(IntentCategory.QUESTION) == "general"


class TestDefaultRules:
    """Sanity checks on the packaged keyword tables."""

    def test_rules_loaded_once(self):
        assert load_rules() is load_rules()
