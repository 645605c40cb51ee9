"""Relevance filter: does a web result really concern the target entity?

Company names collide across unrelated startups, so a hit is only accepted
with corroboration (domain, founder, description keywords) or, failing that,
when nothing marks it as being about a different entity.

Rules are evaluated in RELEVANCE_RULES order; the first rule whose test
returns True decides. The table is data so each rule can be tested alone:

  1. domain_in_url        accept  high
  2. company_and_founder  accept  high
  3. company_and_keywords accept  medium
  4. different_entity     reject
  5. company_name_only    accept  low
  6. founder_name_only    accept  low
  7. no_match             reject
"""

from __future__ import annotations

import enum
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from dealflow.rag.websearch import WebResult

MIN_KEYWORD_MATCHES = 2


class Verdict(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass(frozen=True)
class EntityProfile:
    """What we know about the entity a retrieval is scoped to.

    Attributes:
        company_name: Display name of the company, if known.
        domain: Bare host parsed from the company website (no scheme, no www.).
        keywords: Output of extract_keywords() on the company description.
        founder_name: Full founder name; only the first name is matched.
    """

    company_name: str | None = None
    domain: str | None = None
    keywords: tuple[str, ...] = ()
    founder_name: str | None = None

    @property
    def company(self) -> str:
        return (self.company_name or "").strip().lower()

    @property
    def founder_first_name(self) -> str:
        parts = (self.founder_name or "").strip().lower().split()
        return parts[0] if parts else ""

    @property
    def keyword_text(self) -> str:
        return " ".join(self.keywords).lower()


@dataclass(frozen=True)
class Candidate:
    """Lowercased view of a web result used by the rule tests."""

    url: str
    combined: str  # title + text

    @classmethod
    def from_result(cls, result: WebResult) -> Candidate:
        return cls(
            url=(result.url or "").lower(),
            combined=f"{result.title or ''} {result.body}".lower(),
        )


@dataclass(frozen=True)
class DifferentEntityPattern:
    """A text pattern suggesting the hit is about a same-name, different entity."""

    name: str
    pattern: re.Pattern[str]
    description: str


# Acquisitions and funding rounds dated 2015 or earlier point to an older
# namesake rather than the early-stage company being researched.
DIFFERENT_ENTITY_PATTERNS: tuple[DifferentEntityPattern, ...] = (
    DifferentEntityPattern(
        name="old_acquisition",
        pattern=re.compile(r"acquired (?:on |in )?(?:19\d\d|200\d|201[0-5])\b"),
        description="Mentions an acquisition dated 2015 or earlier.",
    ),
    DifferentEntityPattern(
        name="other_industry",
        pattern=re.compile(r"therapeutics|pharmaceutical|biotech|medical"),
        description="Life-science industry terms absent from the entity's own description.",
    ),
    DifferentEntityPattern(
        name="stale_funding",
        pattern=re.compile(r"(?:raised|funding).*\$\d+[mb].*\b(?:19\d\d|200\d|201[0-5])\b"),
        description="Funding amount reported with a 2015-or-earlier year.",
    ),
)


def matching_different_entity_pattern(
    candidate: Candidate, entity: EntityProfile
) -> DifferentEntityPattern | None:
    """Return the first pattern that flags *candidate* as a different entity.

    A pattern that also matches the entity's own keywords is skipped: a biotech
    company's results legitimately mention biotech.
    """
    own_text = entity.keyword_text
    for item in DIFFERENT_ENTITY_PATTERNS:
        if not item.pattern.search(candidate.combined):
            continue
        if item.pattern.search(own_text):
            continue
        return item
    return None


# ---------------------------------------------------------------------------
# Rule tests
# ---------------------------------------------------------------------------


def _domain_in_url(c: Candidate, e: EntityProfile) -> bool:
    return bool(e.domain) and e.domain.lower() in c.url


def _company_and_founder(c: Candidate, e: EntityProfile) -> bool:
    return bool(e.company and e.founder_first_name) and (
        e.company in c.combined and e.founder_first_name in c.combined
    )


def _company_and_keywords(c: Candidate, e: EntityProfile) -> bool:
    if not e.company or not e.keywords or e.company not in c.combined:
        return False
    matches = sum(1 for kw in e.keywords if kw in c.combined)
    return matches >= MIN_KEYWORD_MATCHES


def _different_entity(c: Candidate, e: EntityProfile) -> bool:
    return matching_different_entity_pattern(c, e) is not None


def _company_name_only(c: Candidate, e: EntityProfile) -> bool:
    return bool(e.company) and e.company in c.combined


def _founder_name_only(c: Candidate, e: EntityProfile) -> bool:
    return bool(e.founder_first_name) and e.founder_first_name in c.combined


def _always(c: Candidate, e: EntityProfile) -> bool:
    return True


@dataclass(frozen=True)
class RelevanceRule:
    name: str
    verdict: Verdict
    confidence: str  # high | medium | low | none
    description: str
    test: Callable[[Candidate, EntityProfile], bool] = field(repr=False)


RELEVANCE_RULES: tuple[RelevanceRule, ...] = (
    RelevanceRule(
        "domain_in_url", Verdict.ACCEPT, "high",
        "Result URL contains the company's domain.", _domain_in_url,
    ),
    RelevanceRule(
        "company_and_founder", Verdict.ACCEPT, "high",
        "Company name and founder first name both appear.", _company_and_founder,
    ),
    RelevanceRule(
        "company_and_keywords", Verdict.ACCEPT, "medium",
        f"Company name plus at least {MIN_KEYWORD_MATCHES} description keywords appear.",
        _company_and_keywords,
    ),
    RelevanceRule(
        "different_entity", Verdict.REJECT, "none",
        "Text matches a same-name, different-entity pattern.", _different_entity,
    ),
    RelevanceRule(
        "company_name_only", Verdict.ACCEPT, "low",
        "Only the company name appears.", _company_name_only,
    ),
    RelevanceRule(
        "founder_name_only", Verdict.ACCEPT, "low",
        "Only the founder first name appears.", _founder_name_only,
    ),
    RelevanceRule(
        "no_match", Verdict.REJECT, "none",
        "No corroborating signal.", _always,
    ),
)


@dataclass(frozen=True)
class RelevanceDecision:
    accepted: bool
    rule: str
    confidence: str


def judge(result: WebResult, entity: EntityProfile) -> RelevanceDecision:
    """Evaluate RELEVANCE_RULES in order against *result*; first match decides."""
    candidate = Candidate.from_result(result)
    for rule in RELEVANCE_RULES:
        if rule.test(candidate, entity):
            return RelevanceDecision(
                accepted=rule.verdict is Verdict.ACCEPT,
                rule=rule.name,
                confidence=rule.confidence,
            )
    # Unreachable: the table ends with an always-true rule.
    return RelevanceDecision(accepted=False, rule="no_match", confidence="none")


def is_relevant(result: WebResult, entity: EntityProfile) -> bool:
    return judge(result, entity).accepted
