"""Tests for duplicate detection."""

from datetime import UTC, datetime

from contactmine.dedupe import (
    DuplicateDetector,
    calculate_similarity,
    deduplicate_social_profiles,
    determine_duplicate_type,
    emails_match,
    merge_duplicate_group,
    name_similarity,
    normalize_domain,
    outlet_similarity,
    title_similarity,
)
from contactmine.models import SocialProfile


class TestNormalization:
    """Tests for normalization helpers."""

    def test_normalize_domain(self) -> None:
        """Test URLs and bare domains normalize the same way."""
        assert normalize_domain("https://www.NYTimes.com/section") == "nytimes.com"
        assert normalize_domain("www.bbc.com") == "bbc.com"
        assert normalize_domain("") == ""

    def test_emails_match(self) -> None:
        """Test case, plus tags and dot/underscore swaps match."""
        assert emails_match("Jane.Doe@outlet.com", "jane.doe@outlet.com")
        assert emails_match("jane.doe+tips@outlet.com", "jane.doe@outlet.com")
        assert emails_match("jane_doe@outlet.com", "jane.doe@outlet.com")
        assert not emails_match("jane.doe@outlet.com", "jane.doe@other.com")
        assert not emails_match(None, "jane.doe@outlet.com")


class TestSimilarity:
    """Tests for pairwise similarity signals."""

    def test_name_similarity(self) -> None:
        """Test name variants score high and different people low."""
        assert name_similarity("Jane Doe", "jane doe") == 1.0
        assert name_similarity("Doe Jane", "Jane Doe") == 0.95
        assert name_similarity("Jane Q Doe", "Jane Doe") == 0.9
        assert name_similarity("Bill Smith", "William Smith") > 0.8
        assert name_similarity("Unknown", "Unknown") == 0.0
        assert name_similarity("Jane Doe", "Carlos Mendez") < 0.5

    def test_outlet_similarity(self) -> None:
        """Test subdomains and known aliases count as the same outlet."""
        assert outlet_similarity("nytimes.com", "nytimes.com") == 1.0
        assert outlet_similarity("news.bbc.com", "bbc.com") == 0.9
        assert outlet_similarity("nytimes.com", "nyt.com") == 0.95
        assert outlet_similarity("nytimes.com", "wsj.com") == 0.0

    def test_title_similarity(self) -> None:
        """Test title families match."""
        assert title_similarity("Reporter", "reporter") == 1.0
        assert title_similarity("Editor of Politics", "Editor Politics") == 0.9
        assert title_similarity("Staff Writer", "Reporter") == 0.85
        assert title_similarity(None, "Reporter") == 0.0


class TestDuplicateType:
    """Tests for the duplicate rules."""

    def test_same_email(self, make_contact) -> None:
        """Test an identical email is always a duplicate."""
        a = make_contact(name="Jane Doe", email="jane.doe@outlet.com")
        b = make_contact(name="J. Doe", email="jane.doe@outlet.com")
        assert determine_duplicate_type(calculate_similarity(a, b)) == "EMAIL"

    def test_same_name_same_outlet(self, make_contact) -> None:
        """Test matching names at one outlet are duplicates."""
        a = make_contact(name="Jane Doe", email="jane.doe@outlet.com")
        b = make_contact(name="Jane Doe", email="jdoe@outlet.com")
        assert determine_duplicate_type(calculate_similarity(a, b)) == "NAME_OUTLET"

    def test_colleagues_not_duplicates(self, make_contact) -> None:
        """Test two reporters at one outlet stay apart."""
        a = make_contact(name="Jane Doe", title="Reporter", email="jane.doe@outlet.com")
        b = make_contact(name="Carlos Mendez", title="Reporter", email="carlos.mendez@outlet.com")
        assert determine_duplicate_type(calculate_similarity(a, b)) is None

    def test_shared_verified_handle(self, make_contact) -> None:
        """Test one verified handle links contacts whose names and outlets differ."""
        verified = [SocialProfile(platform="twitter", handle="janedoe", verified=True)]
        a = make_contact(
            name="Jane Doe", source_url="https://www.nytimes.com/a", social_profiles=verified
        )
        b = make_contact(
            name="Carlos Mendez", source_url="https://www.wsj.com/b", social_profiles=verified
        )
        assert determine_duplicate_type(calculate_similarity(a, b)) == "SOCIAL_MEDIA"

        result = DuplicateDetector().detect_duplicates([a, b])
        assert len(result.duplicate_groups) == 1
        assert result.duplicate_groups[0].duplicate_type == "SOCIAL_MEDIA"

    def test_unverified_handle_needs_name(self, make_contact) -> None:
        """Test an unverified shared handle alone does not link different names."""
        profiles = [SocialProfile(platform="twitter", handle="janedoe")]
        a = make_contact(
            name="Jane Doe", source_url="https://www.nytimes.com/a", social_profiles=profiles
        )
        b = make_contact(
            name="Carlos Mendez", source_url="https://www.wsj.com/b", social_profiles=profiles
        )
        assert determine_duplicate_type(calculate_similarity(a, b)) is None


class TestDuplicateDetector:
    """Tests for DuplicateDetector.detect_duplicates."""

    def test_single_contact(self, make_contact) -> None:
        """Test fewer than two contacts means nothing to do."""
        result = DuplicateDetector().detect_duplicates([make_contact()])
        assert len(result.unique_contacts) == 1
        assert result.duplicate_groups == []

    def test_identical_emails_form_one_group(self, make_contact) -> None:
        """Test contacts sharing an email collapse to one canonical member."""
        contacts = [
            make_contact(name="Jane Doe", email="jane.doe@outlet.com", confidence_score=0.6),
            make_contact(name="Jane Doe", email="jane.doe@outlet.com", confidence_score=0.9),
            make_contact(name="Jane D.", email="JANE.DOE@outlet.com", confidence_score=0.7),
        ]
        result = DuplicateDetector().detect_duplicates(contacts)

        assert len(result.duplicate_groups) == 1
        group = result.duplicate_groups[0]
        assert group.duplicate_type == "EMAIL"
        assert group.selected_contact == contacts[1].id
        assert group.confidence_score == 0.9
        assert len(group.contacts) == 3
        assert [c.id for c in result.unique_contacts] == [contacts[1].id]
        assert [c.is_duplicate for c in contacts] == [True, False, True]
        assert contacts[0].duplicate_of == contacts[1].id
        assert [c.id for c in result.duplicate_contacts] == [contacts[0].id, contacts[2].id]
        assert result.total_duplicates == 2
        assert result.duplicate_rate == 0.67

    def test_tie_broken_by_created_at(self, make_contact) -> None:
        """Test the earliest contact wins a confidence tie."""
        email = "jane.doe@outlet.com"
        late = make_contact(email=email, created_at=datetime(2024, 3, 1, tzinfo=UTC))
        early = make_contact(email=email, created_at=datetime(2024, 1, 1, tzinfo=UTC))
        result = DuplicateDetector().detect_duplicates([late, early])
        assert result.duplicate_groups[0].selected_contact == early.id

    def test_transitive_grouping(self, make_contact) -> None:
        """Test A~B and B~C put all three in one group."""
        a = make_contact(name="Jane Doe", email="jane.doe@outlet.com")
        b = make_contact(name="Jane Doe", email="jdoe@outlet.com")
        c = make_contact(name="Janet Smith", email="jdoe@outlet.com")
        result = DuplicateDetector().detect_duplicates([a, b, c])
        assert len(result.duplicate_groups) == 1
        assert len(result.duplicate_groups[0].contacts) == 3

    def test_distinct_people_untouched(self, make_contact) -> None:
        """Test unrelated contacts are all unique."""
        contacts = [
            make_contact(name="Jane Doe", email="jane.doe@outlet.com"),
            make_contact(name="Carlos Mendez", email="carlos@other.org"),
        ]
        result = DuplicateDetector().detect_duplicates(contacts)
        assert len(result.unique_contacts) == 2
        assert result.duplicate_rate == 0.0


class TestMerge:
    """Tests for merging and social profile dedupe."""

    def test_deduplicate_social_profiles_prefers_verified(self) -> None:
        """Test one profile per platform and handle, verified copy kept."""
        profiles = [
            SocialProfile(platform="twitter", handle="JaneDoe"),
            SocialProfile(platform="twitter", handle="janedoe", verified=True),
            SocialProfile(platform="linkedin", handle="janedoe"),
        ]
        deduped = deduplicate_social_profiles(profiles)
        assert len(deduped) == 2
        assert deduped[0].verified is True

    def test_merge_fills_missing_fields(self, make_contact) -> None:
        """Test the merged contact takes missing fields from other members."""
        canonical = make_contact(email="jane.doe@outlet.com", confidence_score=0.9)
        other = make_contact(
            email="jane.doe@outlet.com",
            title="Reporter",
            confidence_score=0.6,
            quality_score=0.8,
            social_profiles=[SocialProfile(platform="twitter", handle="janedoe")],
        )
        result = DuplicateDetector().detect_duplicates([canonical, other])
        merged = merge_duplicate_group(result.duplicate_groups[0], [canonical, other])

        assert merged.id == canonical.id
        assert merged.title == "Reporter"
        assert merged.quality_score == 0.8
        assert len(merged.social_profiles) == 1
        assert merged.metadata["merged_from"] == [other.id]
