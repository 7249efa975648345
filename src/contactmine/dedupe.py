"""
Contactmine dedupe - cluster contacts that represent the same person.

Signals (weighted): email .35, name .25, outlet .15, title .10, bio .10, social .05.
Typed rules decide whether a pair is a duplicate; an equivalent email always is.
Clusters are transitive; the canonical member is the highest confidence contact,
ties broken by earliest created_at, then id.
"""

import hashlib
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from .models import (
    DuplicateDetectionResult,
    DuplicateGroup,
    DuplicateType,
    ExtractedContact,
    SocialProfile,
    contact_sort_key,
)

SIMILARITY_THRESHOLDS = {
    "email": 0.95,
    "name_outlet": 0.85,
    "name_title": 0.80,
    "outlet": 0.90,
    "title": 0.80,
    "outlet_title": 0.75,
    "similar_bio": 0.70,
    "social_media": 0.80,
    "overall": 0.75,
}

SIMILARITY_WEIGHTS = {
    "email": 0.35,
    "name": 0.25,
    "outlet": 0.15,
    "title": 0.10,
    "bio": 0.10,
    "social": 0.05,
}

NEWS_ORG_ALIASES = (
    {"nytimes.com", "nyt.com"},
    {"washingtonpost.com", "washpost.com"},
    {"wsj.com", "wallstreetjournal.com"},
    {"cnn.com", "cnnnews.com"},
    {"bbc.co.uk", "bbc.com"},
    {"reuters.com", "reuters.net"},
)

NICKNAMES = {
    "william": {"will", "bill", "liam"},
    "james": {"jim", "jimmy"},
    "robert": {"bob", "bobby", "rob"},
    "michael": {"mike", "mikey"},
    "john": {"johnny", "jack"},
    "david": {"dave"},
    "richard": {"rick", "dick"},
    "joseph": {"joe", "joey"},
    "thomas": {"tom", "tommy"},
    "charles": {"charlie", "chuck"},
    "elizabeth": {"beth", "liz", "lizzy", "betty"},
    "jennifer": {"jen", "jenny"},
    "margaret": {"maggie", "peggy"},
    "susan": {"sue", "suzie"},
    "patricia": {"pat", "patty"},
    "jessica": {"jess", "jessie"},
}

TITLE_FAMILIES = (
    ("editor", "managing editor", "executive editor", "senior editor"),
    ("reporter", "journalist", "correspondent", "staff writer"),
    ("producer", "senior producer", "executive producer"),
    ("director", "head", "manager"),
    ("writer", "author", "contributor", "columnist"),
)

DUPLICATE_REASONS: dict[str, str] = {
    "EMAIL": "Email addresses match or are equivalent",
    "NAME_OUTLET": "Name and media outlet match",
    "NAME_TITLE": "Name and title match",
    "OUTLET_TITLE": "Same outlet and title",
    "SIMILAR_BIO": "Biographies are highly similar",
    "SOCIAL_MEDIA": "Shared social media handles",
}


def normalize_domain(url_or_domain: str) -> str:
    """Normalize a domain for comparison."""
    if not url_or_domain:
        return ""
    if url_or_domain.startswith("http"):
        domain = urlparse(url_or_domain).netloc
    else:
        domain = url_or_domain
    domain = domain.lower().strip()
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def normalize_name(name: str) -> str:
    name = re.sub(r"[^\w\s-]", " ", (name or "").lower())
    return " ".join(name.split())


# =============================================================================
# PAIRWISE SIMILARITY (pure)
# =============================================================================


def emails_match(email1: str | None, email2: str | None) -> bool:
    """Exact match, or same mailbox modulo case, +tags and dot/underscore swaps."""
    if not email1 or not email2:
        return False
    e1, e2 = email1.strip().lower(), email2.strip().lower()
    if e1 == e2:
        return True
    local1, _, domain1 = e1.partition("@")
    local2, _, domain2 = e2.partition("@")
    if domain1 != domain2:
        return False
    local1 = local1.split("+")[0]
    local2 = local2.split("+")[0]
    return local1.replace("_", ".") == local2.replace("_", ".")


def levenshtein_similarity(a: str, b: str) -> float:
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    distance = previous[-1]
    return 1.0 - distance / max(len(a), len(b))


def _name_variation(name1: str, name2: str) -> float:
    """Hyphenation and nickname variants of the same name."""
    if name1.replace("-", " ") == name2.replace("-", " "):
        return 0.9
    parts1, parts2 = name1.split(), name2.split()
    if len(parts1) != len(parts2):
        return 0.0
    nickname_hit = False
    for p1, p2 in zip(parts1, parts2):
        if p1 == p2:
            continue
        if p2 in NICKNAMES.get(p1, set()) or p1 in NICKNAMES.get(p2, set()):
            nickname_hit = True
            continue
        return 0.0
    return 0.85 if nickname_hit else 0.0


def name_similarity(name1: str | None, name2: str | None) -> float:
    n1, n2 = normalize_name(name1 or ""), normalize_name(name2 or "")
    if not n1 or not n2 or n1 == "unknown" or n2 == "unknown":
        return 0.0
    if n1 == n2:
        return 1.0
    parts1, parts2 = n1.split(), n2.split()
    if len(parts1) >= 2 and len(parts2) >= 2 and parts1 == list(reversed(parts2)):
        return 0.95
    # Same first and last name, one with a middle name or initial
    if len(parts1) == 3 and len(parts2) == 2 and [parts1[0], parts1[2]] == parts2:
        return 0.9
    if len(parts2) == 3 and len(parts1) == 2 and [parts2[0], parts2[2]] == parts1:
        return 0.9
    variation = _name_variation(n1, n2)
    if variation > 0.8:
        return variation
    return round(levenshtein_similarity(n1, n2), 2)


def contact_outlet(contact: ExtractedContact) -> str:
    """The outlet a contact writes for: email domain when present, else source domain."""
    if contact.email and "@" in contact.email:
        return normalize_domain(contact.email.split("@")[1])
    return normalize_domain(contact.source_url)


def outlet_similarity(domain1: str, domain2: str) -> float:
    if not domain1 or not domain2:
        return 0.0
    if domain1 == domain2:
        return 1.0
    if domain1.endswith("." + domain2) or domain2.endswith("." + domain1):
        return 0.9
    for aliases in NEWS_ORG_ALIASES:
        if domain1 in aliases and domain2 in aliases:
            return 0.95
    parts1, parts2 = set(domain1.split(".")), set(domain2.split("."))
    tlds = {"com", "org", "net", "co", "uk", "io"}
    common = (parts1 & parts2) - tlds
    if not common:
        return 0.0
    return round(len(common) / len(parts1 | parts2), 2)


def title_similarity(title1: str | None, title2: str | None) -> float:
    if not title1 or not title2:
        return 0.0
    t1, t2 = title1.lower().strip(), title2.lower().strip()
    if t1 == t2:
        return 1.0

    def strip_connectors(title: str) -> str:
        return " ".join(re.sub(r"\b(and|&|for|of|in|at)\b", " ", title).split())

    if strip_connectors(t1) == strip_connectors(t2):
        return 0.9
    for family in TITLE_FAMILIES:
        if any(v in t1 for v in family) and any(v in t2 for v in family):
            return 0.85
    words1, words2 = set(t1.split()), set(t2.split())
    common = words1 & words2
    return round(len(common) / len(words1 | words2), 2) if common else 0.0


def _phrases(text: str) -> set[str]:
    words = [w for w in text.split() if len(w) > 2]
    phrases = {" ".join(words[i : i + 2]) for i in range(len(words) - 1)}
    phrases |= {" ".join(words[i : i + 3]) for i in range(len(words) - 2)}
    return phrases


def bio_similarity(bio1: str | None, bio2: str | None) -> float:
    """max(word Jaccard, key-phrase Jaccard)."""
    if not bio1 or not bio2:
        return 0.0
    b1, b2 = bio1.lower().strip(), bio2.lower().strip()
    if b1 == b2:
        return 1.0
    words1 = {w for w in b1.split() if len(w) > 2}
    words2 = {w for w in b2.split() if len(w) > 2}
    union = words1 | words2
    jaccard = len(words1 & words2) / len(union) if union else 0.0
    phrases1, phrases2 = _phrases(b1), _phrases(b2)
    phrase_union = phrases1 | phrases2
    phrase_jaccard = len(phrases1 & phrases2) / len(phrase_union) if phrase_union else 0.0
    return round(max(jaccard, phrase_jaccard), 2)


def social_similarity(profiles1: list[SocialProfile], profiles2: list[SocialProfile]) -> float:
    """Share of platforms on which both contacts have the same handle."""
    if not profiles1 or not profiles2:
        return 0.0
    handles1 = {p.platform.lower(): p.handle.lower() for p in profiles1}
    handles2 = {p.platform.lower(): p.handle.lower() for p in profiles2}
    common = sum(1 for platform, handle in handles1.items() if handles2.get(platform) == handle)
    return round(common / max(len(profiles1), len(profiles2)), 2)


def shares_verified_handle(profiles1: list[SocialProfile], profiles2: list[SocialProfile]) -> bool:
    """True when both contacts carry the same verified platform:handle."""
    verified1 = {(p.platform.lower(), p.handle.lower()) for p in profiles1 if p.verified}
    return any((p.platform.lower(), p.handle.lower()) in verified1 for p in profiles2 if p.verified)


@dataclass
class PairSimilarity:
    """Per-signal similarity for a pair of contacts."""

    email: float
    name: float
    outlet: float
    title: float
    bio: float
    social: float
    overall: float
    verified_social: bool = False


def calculate_similarity(a: ExtractedContact, b: ExtractedContact) -> PairSimilarity:
    scores = {
        "email": 1.0 if emails_match(a.email, b.email) else 0.0,
        "name": name_similarity(a.name, b.name),
        "outlet": outlet_similarity(contact_outlet(a), contact_outlet(b)),
        "title": title_similarity(a.title, b.title),
        "bio": bio_similarity(a.bio, b.bio),
        "social": social_similarity(a.social_profiles, b.social_profiles),
    }
    overall = round(sum(scores[k] * SIMILARITY_WEIGHTS[k] for k in SIMILARITY_WEIGHTS), 2)
    return PairSimilarity(
        overall=overall,
        verified_social=shares_verified_handle(a.social_profiles, b.social_profiles),
        **scores,
    )


def determine_duplicate_type(sim: PairSimilarity) -> DuplicateType | None:
    """Strongest rule that fires for a pair, or None if they are different people."""
    t = SIMILARITY_THRESHOLDS
    if sim.email >= t["email"]:
        return "EMAIL"
    if sim.name >= t["name_outlet"] and sim.outlet >= t["outlet"]:
        return "NAME_OUTLET"
    if sim.name >= t["name_title"] and sim.title >= t["title"]:
        return "NAME_TITLE"
    if sim.verified_social:
        return "SOCIAL_MEDIA"
    # Rules below need some name agreement so colleagues at one outlet stay apart
    if sim.name < 0.5:
        return None
    if sim.outlet >= t["outlet"] and sim.title >= t["outlet_title"]:
        return "OUTLET_TITLE"
    if sim.bio >= t["similar_bio"]:
        return "SIMILAR_BIO"
    if sim.social >= t["social_media"]:
        return "SOCIAL_MEDIA"
    if sim.overall >= t["overall"]:
        return "NAME_OUTLET"
    return None


# =============================================================================
# CLUSTERING
# =============================================================================


def generate_group_id(contact_ids: list[str]) -> str:
    digest = hashlib.md5("|".join(sorted(contact_ids)).encode()).hexdigest()
    return f"dup_{digest[:12]}"


class DuplicateDetector:
    """Pairwise comparison plus union-find clustering."""

    def detect_duplicates(self, contacts: list[ExtractedContact]) -> DuplicateDetectionResult:
        if len(contacts) < 2:
            return DuplicateDetectionResult(unique_contacts=list(contacts))

        parent = list(range(len(contacts)))

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        pair_types: dict[tuple[int, int], DuplicateType] = {}
        pair_scores: dict[tuple[int, int], float] = {}
        for i in range(len(contacts)):
            for j in range(i + 1, len(contacts)):
                sim = calculate_similarity(contacts[i], contacts[j])
                dup_type = determine_duplicate_type(sim)
                if dup_type is None:
                    continue
                pair_types[(i, j)] = dup_type
                pair_scores[(i, j)] = sim.overall
                root_i, root_j = find(i), find(j)
                if root_i != root_j:
                    parent[root_j] = root_i

        clusters: dict[int, list[int]] = {}
        for i in range(len(contacts)):
            clusters.setdefault(find(i), []).append(i)

        groups: list[DuplicateGroup] = []
        duplicate_ids: set[str] = set()
        for members in clusters.values():
            if len(members) < 2:
                continue
            group = self._build_group(contacts, members, pair_types, pair_scores)
            groups.append(group)
            for index in members:
                contact = contacts[index]
                if contact.id == group.selected_contact:
                    contact.is_duplicate = False
                    contact.duplicate_of = None
                else:
                    contact.is_duplicate = True
                    contact.duplicate_of = group.selected_contact
                    duplicate_ids.add(contact.id)

        unique = [c for c in contacts if c.id not in duplicate_ids]
        groups.sort(key=lambda g: g.id)
        return DuplicateDetectionResult(
            unique_contacts=unique,
            duplicate_contacts=[c for c in contacts if c.id in duplicate_ids],
            duplicate_groups=groups,
            total_duplicates=len(duplicate_ids),
            duplicate_rate=round(len(duplicate_ids) / len(contacts), 2),
        )

    @staticmethod
    def _build_group(
        contacts: list[ExtractedContact],
        members: list[int],
        pair_types: dict[tuple[int, int], DuplicateType],
        pair_scores: dict[tuple[int, int], float],
    ) -> DuplicateGroup:
        member_set = set(members)
        linked = [(pair, t) for pair, t in pair_types.items() if set(pair) <= member_set]
        type_counts: dict[str, int] = {}
        for _, dup_type in linked:
            type_counts[dup_type] = type_counts.get(dup_type, 0) + 1
        # Most common rule; EMAIL wins ties as the strongest signal
        order = list(DUPLICATE_REASONS)
        dup_type = min(type_counts, key=lambda t: (-type_counts[t], order.index(t)))

        scores = [pair_scores[pair] for pair, _ in linked]
        similarity = round(sum(scores) / len(scores), 2) if scores else 0.0

        ranked = sorted((contacts[i] for i in members), key=contact_sort_key)
        canonical = ranked[0]
        ids = [c.id for c in ranked]
        return DuplicateGroup(
            id=generate_group_id(ids),
            contacts=ids,
            similarity_score=min(max(similarity, 0.0), 1.0),
            duplicate_type=dup_type,  # type: ignore[arg-type]
            confidence_score=canonical.confidence_score,
            selected_contact=canonical.id,
            reasoning=f"{DUPLICATE_REASONS[dup_type]} (average similarity {similarity:.2f}, "
            f"{len(ids)} contacts)",
        )


def deduplicate_social_profiles(profiles: list[SocialProfile]) -> list[SocialProfile]:
    """Keep the first profile per platform:handle, preferring verified copies."""
    by_key: dict[str, SocialProfile] = {}
    for profile in profiles:
        key = f"{profile.platform.lower()}:{profile.handle.lower()}"
        existing = by_key.get(key)
        if existing is None or (profile.verified and not existing.verified):
            by_key[key] = profile
    return list(by_key.values())


def merge_duplicate_group(
    group: DuplicateGroup, contacts: list[ExtractedContact]
) -> ExtractedContact:
    """
    Merge a group into its canonical contact.

    Missing fields are filled from the other members in rank order; social
    profiles are unioned; scores take the highest member value.
    """
    by_id = {c.id: c for c in contacts}
    members = [by_id[i] for i in group.contacts if i in by_id]
    canonical = by_id[group.selected_contact]
    merged = canonical.model_copy(deep=True)

    for other in members:
        if other.id == canonical.id:
            continue
        if not merged.email and other.email:
            merged.email = other.email
        if not merged.title and other.title:
            merged.title = other.title
        if other.bio and len(other.bio) > len(merged.bio or ""):
            merged.bio = other.bio
        if not merged.contact_info.phone and other.contact_info.phone:
            merged.contact_info.phone = other.contact_info.phone
        if not merged.contact_info.website and other.contact_info.website:
            merged.contact_info.website = other.contact_info.website
        merged.social_profiles.extend(p.model_copy() for p in other.social_profiles)
        merged.confidence_score = max(merged.confidence_score, other.confidence_score)
        merged.quality_score = max(merged.quality_score, other.quality_score)
        merged.relevance_score = max(merged.relevance_score, other.relevance_score)

    merged.social_profiles = deduplicate_social_profiles(merged.social_profiles)
    merged.metadata["merged_from"] = [m.id for m in members if m.id != canonical.id]
    return merged
