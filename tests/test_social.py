"""Tests for social profile detection and validation."""

from contactmine.models import SocialProfile
from contactmine.social import (
    ProfileEnricher,
    ProfileEnrichment,
    SocialProfileDetector,
    calculate_activity_score,
    detect_from_html,
    detect_social_profiles,
    extract_social_mentions,
    get_platform_stats,
    group_profiles_by_platform,
    validate_profile,
)


class StaticEnricher(ProfileEnricher):
    """Enricher returning fixed facts."""

    def enrich(self, profile: SocialProfile) -> ProfileEnrichment:
        return ProfileEnrichment(verified=True, followers=50000, description="Reporter")


class TestDetection:
    """Tests for detect_social_profiles."""

    def test_bare_twitter_handle(self) -> None:
        """Test an @handle in prose is read as Twitter."""
        profiles = detect_social_profiles("Follow me on Twitter @realjourno for updates")
        assert len(profiles) == 1
        assert profiles[0].platform == "twitter"
        assert profiles[0].handle == "realjourno"
        assert profiles[0].url == "https://twitter.com/realjourno"

    def test_email_is_not_handle(self) -> None:
        """Test the domain part of an email is not a handle."""
        assert detect_social_profiles("Write to jane@outlet.com today") == []

    def test_profile_urls(self) -> None:
        """Test URLs for several platforms, in order of appearance."""
        text = (
            "See linkedin.com/in/janedoe and https://www.instagram.com/jane.doe "
            "or https://x.com/janedoe"
        )
        profiles = detect_social_profiles(text)
        assert [(p.platform, p.handle) for p in profiles] == [
            ("linkedin", "janedoe"),
            ("instagram", "jane.doe"),
            ("twitter", "janedoe"),
        ]
        assert profiles[0].url == "https://linkedin.com/in/janedoe"

    def test_deduplicated_case_insensitive(self) -> None:
        """Test one profile per platform and handle."""
        text = "twitter.com/JaneDoe and again @janedoe."
        assert len(detect_social_profiles(text)) == 1

    def test_reserved_paths_skipped(self) -> None:
        """Test share links are not profiles."""
        assert detect_social_profiles("https://twitter.com/intent/tweet?text=hi") == []

    def test_empty_text(self) -> None:
        """Test no text, no profiles."""
        assert detect_social_profiles("") == []

    def test_from_html_reads_hrefs(self) -> None:
        """Test anchors contribute profiles even with unrelated link text."""
        html = '<p>Find me <a href="https://facebook.com/jane.doe.news">here</a></p>'
        profiles = detect_from_html(html)
        assert [(p.platform, p.handle) for p in profiles] == [("facebook", "jane.doe.news")]

    def test_mentions_carry_context(self) -> None:
        """Test mentions include surrounding text."""
        mentions = extract_social_mentions("Reach the editor @deskchief on Twitter")
        assert mentions[0].handle == "deskchief"
        assert "editor" in mentions[0].context


class TestValidation:
    """Tests for validate_profile."""

    def test_valid_handle(self) -> None:
        """Test a clean handle passes."""
        result = validate_profile(SocialProfile(platform="twitter", handle="janedoe"))
        assert result.is_valid is True
        assert result.activity_score == 0.5

    def test_too_long_twitter_handle(self) -> None:
        """Test a 16 character Twitter handle is rejected."""
        result = validate_profile(SocialProfile(platform="twitter", handle="a" * 10 + "bcdefg"))
        assert result.is_valid is False

    def test_spam_numbers(self) -> None:
        """Test handles full of digits are rejected."""
        result = validate_profile(SocialProfile(platform="instagram", handle="deals12345"))
        assert result.is_valid is False
        assert "Contains multiple numbers" in result.indicators

    def test_unsupported_platform(self) -> None:
        """Test unknown platforms are not valid."""
        result = validate_profile(SocialProfile(platform="myspace", handle="janedoe"))
        assert result.is_valid is False

    def test_wrong_url(self) -> None:
        """Test a URL pointing at another site is flagged."""
        profile = SocialProfile(
            platform="twitter", handle="janedoe", url="https://example.com/janedoe"
        )
        assert "Incorrect URL format" in validate_profile(profile).indicators

    def test_activity_score(self) -> None:
        """Test verified, followers and description raise activity."""
        profile = SocialProfile(
            platform="twitter", handle="janedoe", verified=True, followers=10000, description="x"
        )
        assert calculate_activity_score(profile) == 1.0


class TestDetector:
    """Tests for SocialProfileDetector."""

    def test_detect_and_validate_enriches(self) -> None:
        """Test profiles are enriched before validation."""
        detector = SocialProfileDetector(enricher=StaticEnricher())
        profiles = detector.detect_and_validate("Follow @janedoe for news.")
        assert len(profiles) == 1
        assert profiles[0].verified is True
        assert profiles[0].followers == 50000

    def test_detect_and_validate_drops_spam(self) -> None:
        """Test spammy handles are dropped."""
        detector = SocialProfileDetector()
        assert detector.detect_and_validate("Follow @fakebot999 now") == []

    def test_heuristic_enricher_is_stable(self) -> None:
        """Test the default enricher gives the same answer twice."""
        detector = SocialProfileDetector()
        profile = SocialProfile(platform="twitter", handle="janedoe")
        assert detector.enrich_profile(profile) == detector.enrich_profile(profile)

    def test_platform_stats(self) -> None:
        """Test grouping and per-platform statistics."""
        profiles = [
            SocialProfile(platform="twitter", handle="a_one", verified=True, followers=100),
            SocialProfile(platform="twitter", handle="b_two", followers=300),
            SocialProfile(platform="linkedin", handle="jane-doe"),
        ]
        grouped = group_profiles_by_platform(profiles)
        assert len(grouped["twitter"]) == 2
        stats = get_platform_stats(profiles)
        assert stats["twitter"]["count"] == 2
        assert stats["twitter"]["verified"] == 1
