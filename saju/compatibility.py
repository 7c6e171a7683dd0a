"""
Elemental compatibility between people and balance inside a group.

Both entry points are pure functions over already computed profiles:

    compare(a, b)            -> CompatibilityResult
    analyze_group(profiles)  -> GroupBalanceResult

A profile here is anything with a main element, an optional secondary
element and a polarity: a chart.Profile or an ElementalProfile.
"""

from dataclasses import dataclass
from enum import Enum
from itertools import combinations
from typing import Optional

from saju.cycle import ELEMENT_ORDER, Element, Polarity, generates, overcomes
from saju.errors import InvalidInput


class CompatibilityLevel(Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    NEUTRAL = "neutral"
    CHALLENGING = "challenging"
    DIFFICULT = "difficult"


# Lower bound of each band on the 1-5 scale, best first.
LEVEL_BANDS = [
    (4.5, CompatibilityLevel.EXCELLENT),
    (3.5, CompatibilityLevel.GOOD),
    (2.5, CompatibilityLevel.NEUTRAL),
    (1.5, CompatibilityLevel.CHALLENGING),
]

MAIN_WEIGHT = 0.7
SECONDARY_WEIGHT = 0.2
POLARITY_WEIGHT = 0.1

SAME_POLARITY_RATING = 3
MIXED_POLARITY_RATING = 4


@dataclass(frozen=True)
class ElementalProfile:
    main_element: Element
    polarity: Polarity
    secondary_element: Optional[Element] = None
    label: Optional[str] = None

    @classmethod
    def of(cls, profile) -> "ElementalProfile":
        if isinstance(profile, ElementalProfile):
            return profile
        try:
            return cls(
                main_element=profile.main_element,
                polarity=profile.polarity,
                secondary_element=profile.secondary_element,
            )
        except AttributeError:
            raise InvalidInput(f"Not a profile: {type(profile).__name__}") from None


@dataclass(frozen=True)
class CompatibilityResult:
    level: CompatibilityLevel
    score: int  # 0-100
    total: float  # weighted rating on the 1-5 scale
    main_relation: str
    strengths: tuple
    challenges: tuple

    def to_dict(self):
        return {
            "level": self.level.value,
            "score": self.score,
            "main_relation": self.main_relation,
            "strengths": list(self.strengths),
            "challenges": list(self.challenges),
        }


# ============================================================
# PAIRWISE
# ============================================================

def relation(a: Element, b: Element) -> str:
    """Relation between two elements, read from a's side."""
    if a == b:
        return "same"
    if generates(a, b):
        return "generates"
    if generates(b, a):
        return "generated_by"
    if overcomes(a, b):
        return "overcomes"
    return "overcome_by"


def relation_rating(a: Element, b: Element) -> int:
    """
    1-5 rating of the unordered relation between two elements.

    A generating pair rates 5 whichever side feeds the other, an
    overcoming pair 1, the same element 3.
    """
    kind = relation(a, b)
    if kind in ("generates", "generated_by"):
        return 5
    if kind in ("overcomes", "overcome_by"):
        return 1
    return 3


def level_for(total: float) -> CompatibilityLevel:
    for lower, level in LEVEL_BANDS:
        if total >= lower:
            return level
    return CompatibilityLevel.DIFFICULT


_STRENGTHS = {
    "generating": [
        "Each side helps the other grow",
        "Cooperation comes naturally",
        "Favors a long-term relationship",
    ],
    "same": [
        "Shared values and goals come easily",
        "Intuitive understanding of each other",
        "Similar working styles make cooperation efficient",
    ],
    "overcoming": [
        "Each side brings a fresh perspective",
        "Problems get approached from several angles",
        "Each can make up for the other's weak spots",
    ],
    "mixed_polarity": [
        "A balanced energy emerges",
        "Problems are solved from different viewpoints",
        "Each fills in what the other lacks",
    ],
    "same_polarity": [
        "Similar communication styles",
        "Decisions tend to point the same way",
    ],
}

_CHALLENGES = {
    "generating": [
        "One side may come to depend on the other",
        "Roles tend to become fixed",
    ],
    "same": [
        "Weak spots and blind spots may be shared",
        "Fresh perspectives can run short",
        "Rivalry arises easily",
    ],
    "overcomes": [
        "The power balance tends to tilt",
        "Criticism of the other can slip out unintentionally",
    ],
    "overcome_by": [
        "Confidence and self-expression may feel restricted",
        "Disagreements escalate into conflict easily",
    ],
    "mixed_polarity": [
        "Friction from different paces of action and decision",
        "Misunderstandings from different communication styles",
    ],
    "same_polarity": [
        "Energy leans to one side",
        "Shared tendencies can go too far",
    ],
}


def _strengths_and_challenges(a: ElementalProfile, b: ElementalProfile):
    kind = relation(a.main_element, b.main_element)
    strengths, challenges = [], []

    if kind in ("generates", "generated_by"):
        strengths += _STRENGTHS["generating"]
        challenges += _CHALLENGES["generating"]
    elif kind == "same":
        strengths += _STRENGTHS["same"]
        challenges += _CHALLENGES["same"]
    else:
        strengths += _STRENGTHS["overcoming"]
        held_back = b.main_element if kind == "overcomes" else a.main_element
        challenges.append(f"{held_back.value.capitalize()} traits may be held back")
        challenges += _CHALLENGES[kind]

    polarity_key = "same_polarity" if a.polarity == b.polarity else "mixed_polarity"
    strengths += _STRENGTHS[polarity_key]
    challenges += _CHALLENGES[polarity_key]
    return tuple(strengths), tuple(challenges)


def compare(profile_a, profile_b) -> CompatibilityResult:
    """
    Pairwise compatibility of two profiles.

    total = main * 0.7 + secondary * 0.2 + polarity * 0.1 on a 1-5 scale.
    When either side has no secondary element its 0.2 moves onto the main
    relation (0.9). Scoring the missing term as zero would cap every such
    pair below excellent, so a missing month element never drags a pair
    down a band. The score is total / 5 scaled to 0-100 and
    does not depend on argument order.
    """
    a = ElementalProfile.of(profile_a)
    b = ElementalProfile.of(profile_b)

    main = relation_rating(a.main_element, b.main_element)
    polarity = SAME_POLARITY_RATING if a.polarity == b.polarity else MIXED_POLARITY_RATING

    if a.secondary_element is not None and b.secondary_element is not None:
        secondary = relation_rating(a.secondary_element, b.secondary_element)
        total = main * MAIN_WEIGHT + secondary * SECONDARY_WEIGHT + polarity * POLARITY_WEIGHT
    else:
        total = main * (MAIN_WEIGHT + SECONDARY_WEIGHT) + polarity * POLARITY_WEIGHT

    strengths, challenges = _strengths_and_challenges(a, b)
    return CompatibilityResult(
        level=level_for(total),
        score=round(total / 5 * 100),
        total=total,
        main_relation=relation(a.main_element, b.main_element),
        strengths=strengths,
        challenges=challenges,
    )


# ============================================================
# GROUP
# ============================================================

class GroupBalance(Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    INCOMPLETE = "incomplete"
    IMBALANCED = "imbalanced"


@dataclass(frozen=True)
class PairScore:
    first: int  # positions in the input list
    second: int
    level: CompatibilityLevel
    score: int

    def to_dict(self):
        return {"first": self.first, "second": self.second,
                "level": self.level.value, "score": self.score}


@dataclass(frozen=True)
class GroupBalanceResult:
    element_distribution: dict
    yin: int
    yang: int
    missing_elements: list
    dominant_element: Element
    balance: GroupBalance
    recommendations: list
    strengths: list
    weaknesses: list
    best_pairs: list

    def to_dict(self):
        return {
            "element_distribution": {e.value: n for e, n in self.element_distribution.items()},
            "yin_yang": {"yin": self.yin, "yang": self.yang},
            "missing_elements": [e.value for e in self.missing_elements],
            "dominant_element": self.dominant_element.value,
            "balance": self.balance.value,
            "recommendations": self.recommendations,
            "strengths": self.strengths,
            "weaknesses": self.weaknesses,
            "best_pairs": [p.to_dict() for p in self.best_pairs],
        }


ELEMENT_TRAITS = {
    Element.WOOD: ("Creative thinking", "Growth orientation"),
    Element.FIRE: ("Passionate communication", "Ability to motivate others"),
    Element.EARTH: ("Steady execution", "Building trust"),
    Element.METAL: ("Precise work", "Analytical thinking"),
    Element.WATER: ("Deep knowledge and insight", "Strategic thinking"),
}

ELEMENT_GAPS = {
    Element.WOOD: "Concrete follow-through",
    Element.FIRE: "Planning",
    Element.EARTH: "Openness to change",
    Element.METAL: "Empathy",
    Element.WATER: "Drive to execute",
}


def balance_for(missing: int, yin: int, yang: int) -> GroupBalance:
    if missing == 0 and abs(yin - yang) <= 1:
        return GroupBalance.EXCELLENT
    if missing <= 1:
        return GroupBalance.GOOD
    if missing <= 2:
        return GroupBalance.INCOMPLETE
    return GroupBalance.IMBALANCED


def analyze_group(profiles: list, top_k: int = 5) -> GroupBalanceResult:
    """
    Element and polarity balance of a group, plus its best pairings.

    Main elements count 1, secondary elements 0.5. Pairs are ranked by
    score with a stable sort, so ties keep input order.
    """
    if top_k < 0:
        raise InvalidInput(f"top_k must not be negative, got {top_k}")
    members = [ElementalProfile.of(p) for p in profiles]
    if not members:
        raise InvalidInput("A group needs at least one profile")

    distribution = {e: 0.0 for e in ELEMENT_ORDER}
    yin = yang = 0
    for member in members:
        distribution[member.main_element] += 1
        if member.secondary_element is not None:
            distribution[member.secondary_element] += 0.5
        if member.polarity == Polarity.YIN:
            yin += 1
        else:
            yang += 1

    missing = [e for e in ELEMENT_ORDER if distribution[e] == 0]
    dominant = max(ELEMENT_ORDER, key=lambda e: distribution[e])  # first maximum wins
    balance = balance_for(len(missing), yin, yang)

    size = len(members)
    recommendations = []
    if missing:
        names = ", ".join(e.value for e in missing)
        recommendations.append(
            f"The group lacks {names}. Adding members with these elements, or having "
            f"existing members consciously draw on these traits, would improve balance."
        )
    if distribution[dominant] > size * 0.5:
        recommendations.append(
            f"{dominant.value.capitalize()} is especially strong in this group. "
            f"Seek out minority opinions when making decisions."
        )
    if abs(yin - yang) > size * 0.3:
        leaning = "yin" if yin > yang else "yang"
        recommendations.append(
            f"The group leans {leaning}. Deliberately bring in the opposite tendency "
            f"when planning and deciding."
        )

    strengths = [ELEMENT_TRAITS[dominant][0]]
    weaknesses = []
    if distribution[dominant] / size > 0.4:
        strengths.append(f"Strong {dominant.value}: {ELEMENT_TRAITS[dominant][1].lower()}")
        weaknesses.append(f"Leans heavily on {dominant.value}: {ELEMENT_GAPS[dominant].lower()} may suffer")
    for element in missing:
        weaknesses.append(f"Missing {element.value}: {ELEMENT_GAPS[element].lower()} may fall short")
    if missing:
        weaknesses.append("The generating cycle is broken; work may stall somewhere along the way")
    else:
        strengths.append("The generating cycle is complete; the group can carry projects through")
    if abs(yin - yang) / size < 0.2:
        strengths.append("Yin and yang are balanced between action and reflection")
    elif yin > yang:
        strengths.append("Reflective strength: planning and deep thought")
        weaknesses.append("Short on drive and outward communication")
    else:
        strengths.append("Active strength: quick decisions and execution")
        weaknesses.append("Short on deep analysis and deliberation")

    pairs = []
    for i, j in combinations(range(size), 2):
        result = compare(members[i], members[j])
        pairs.append(PairScore(first=i, second=j, level=result.level, score=result.score))
    pairs = sorted(pairs, key=lambda p: p.score, reverse=True)

    return GroupBalanceResult(
        element_distribution=distribution,
        yin=yin,
        yang=yang,
        missing_elements=missing,
        dominant_element=dominant,
        balance=balance,
        recommendations=recommendations,
        strengths=strengths,
        weaknesses=weaknesses,
        best_pairs=pairs[:top_k],
    )
