"""Tests for confidence, quality and relevance scoring."""

from contactmine.models import QualityFactors, SocialProfile
from contactmine.scoring import (
    ConfidenceScorer,
    contact_completeness,
    has_title_contamination,
    is_generic_email,
    is_professional_email,
    is_realistic_name,
)


class TestNameHeuristics:
    """Tests for the pure name and email checks."""

    def test_realistic_names(self) -> None:
        """Test ordinary names pass."""
        assert is_realistic_name("Jane Doe")
        assert is_realistic_name("Mary-Ann O'Neil")

    def test_unrealistic_names(self) -> None:
        """Test digits, caps, lowercase, test names and initials fail."""
        for name in ("Jane Doe 2", "JANE DOE", "jane doe", "Test User", "J.", "A" * 30):
            assert not is_realistic_name(name), name

    def test_title_contamination(self) -> None:
        """Test honorifics and trailing job titles are spotted."""
        assert has_title_contamination("Dr. Jane Doe")
        assert has_title_contamination("Jane Doe Jr")
        assert not has_title_contamination("Jane Doe")

    def test_email_kinds(self) -> None:
        """Test professional versus generic mailboxes."""
        assert is_professional_email("jane.doe@outlet.com")
        assert is_generic_email("info@outlet.com")
        assert not is_professional_email("info@outlet.com")


class TestConfidence:
    """Tests for calculate_confidence_score."""

    def test_complete_contact_scores_high(self, sample_contact) -> None:
        """Test a complete newsroom contact beats a bare name."""
        scorer = ConfidenceScorer()
        full = scorer.calculate_confidence_score(sample_contact, source_credibility=0.9)
        assert full.score >= 0.6
        assert "Credible email domain" in full.reasoning
        assert set(full.factors) == {"name", "email", "title", "bio", "social", "source_authority"}

    def test_bare_name_scores_low(self, make_contact) -> None:
        """Test a name alone stays low confidence."""
        result = ConfidenceScorer().calculate_confidence_score(make_contact(), 0.5)
        assert result.score < 0.5
        assert "Low confidence contact" in result.reasoning
        assert "Find a direct email address" in result.recommendations

    def test_unknown_name_has_no_name_credit(self, make_contact) -> None:
        """Test the placeholder name earns nothing."""
        result = ConfidenceScorer().calculate_confidence_score(make_contact(name="Unknown"))
        assert result.factors["name"] == 0.0

    def test_score_bounded(self, make_contact) -> None:
        """Test even a maximal contact stays within [0, 1]."""
        contact = make_contact(
            title="Senior Technology News Editor",
            email="jane.doe@nytimes.com",
            bio=(
                "Award-winning editor with experience and background in tech. "
                "Published at the New York Times; covers and writes about AI. Contact via email."
            ),
            social_profiles=[
                SocialProfile(
                    platform="twitter", handle="janedoe", url="u", description="d",
                    verified=True, followers=20000,
                ),
                SocialProfile(
                    platform="linkedin", handle="janedoe", url="u", description="d", followers=1
                ),
            ],
        )
        result = ConfidenceScorer().calculate_confidence_score(contact, 1.0)
        assert 0.0 <= result.score <= 1.0
        assert result.score >= 0.8

    def test_metadata_shape(self, make_contact) -> None:
        """Test as_metadata exposes score, factors and reasoning."""
        metadata = ConfidenceScorer().calculate_confidence_score(make_contact()).as_metadata()
        assert set(metadata) == {"score", "factors", "reasoning"}


class TestQuality:
    """Tests for calculate_quality_score."""

    def test_weak_factors_are_floored(self, make_contact) -> None:
        """Test weak source factors cannot sink a record below the floor."""
        contact = make_contact(email="jane.doe@outlet.com", title="Reporter")
        weak = QualityFactors(
            source_credibility=0.0, content_freshness=0.0, information_consistency=0.0
        )
        result = ConfidenceScorer().calculate_quality_score(contact, weak)
        assert result.factors["credibility"] == 0.3
        assert result.factors["freshness"] == 0.3
        # 0.2*0.3 + 0.25*0.3 + 0.2*0.3 + 0.2*0.6 + 0.15*0.7
        assert result.score == 0.42

    def test_completeness(self, sample_contact, make_contact) -> None:
        """Test completeness counts filled fields out of five."""
        assert contact_completeness(sample_contact) == 1.0
        assert contact_completeness(make_contact(name="Unknown")) == 0.0


class TestRelevance:
    """Tests for calculate_relevance_score."""

    def test_byline_and_email_in_content(self, sample_content, make_contact) -> None:
        """Test signals from the source page raise relevance."""
        contact = make_contact(title="Tech Reporter", email="jane.doe@outlet.com")
        result = ConfidenceScorer().calculate_relevance_score(contact, sample_content)
        assert result.factors["byline"] == 0.15
        assert result.factors["email_in_content"] == 0.1
        assert result.score == 1.0

    def test_targets(self, make_contact) -> None:
        """Test beat and outlet targets add relevance."""
        contact = make_contact(bio="Covers climate policy for Reuters.")
        result = ConfidenceScorer().calculate_relevance_score(
            contact, target_beats=["climate"], target_outlets=["reuters"]
        )
        assert "beat_match" in result.factors
        assert "outlet_match" in result.factors
