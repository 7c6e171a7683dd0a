"""
Cycle primitives for the Four Pillars engine.

Handles:
- The 10 heavenly stems and 12 earthly branches
- Element and polarity of every stem and branch
- The generating and overcoming cycles between elements
- The 60-term sexagenary index (0 = 甲子, 59 = 癸亥)

Everything here is a total function over fixed tables. The only failure
path is looking up a name that is not a stem or branch.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from saju.errors import InvalidInput


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "yang"
    YIN = "yin"


class Element(Enum):
    WOOD = "wood"
    FIRE = "fire"
    EARTH = "earth"
    METAL = "metal"
    WATER = "water"


@dataclass(frozen=True)
class HeavenlyStem:
    chinese: str
    pinyin: str
    element: Element
    polarity: Polarity
    index: int  # 0-9 in the cycle

    def __str__(self):
        return f"{self.chinese} {self.pinyin} ({self.polarity.value} {self.element.value})"


@dataclass(frozen=True)
class EarthlyBranch:
    chinese: str
    pinyin: str
    animal: str
    element: Element  # season element
    polarity: Polarity
    index: int  # 0-11 in the cycle

    def __str__(self):
        return f"{self.chinese} {self.pinyin} ({self.animal})"


@dataclass(frozen=True)
class Pillar:
    stem: HeavenlyStem
    branch: EarthlyBranch
    position: str  # "year", "month", "day", "hour"

    @property
    def index(self) -> int:
        return sexagenary_index(self.stem, self.branch)

    @property
    def name(self) -> str:
        return self.stem.chinese + self.branch.chinese

    def __str__(self):
        return f"{self.name} {self.stem.pinyin} {self.branch.pinyin} ({self.branch.animal})"

    def to_dict(self):
        return {
            "position": self.position,
            "name": self.name,
            "index": self.index,
            "stem": {
                "chinese": self.stem.chinese,
                "pinyin": self.stem.pinyin,
                "element": self.stem.element.value,
                "polarity": self.stem.polarity.value,
            },
            "branch": {
                "chinese": self.branch.chinese,
                "pinyin": self.branch.pinyin,
                "animal": self.branch.animal,
                "element": self.branch.element.value,
                "polarity": self.branch.polarity.value,
            },
        }


# ============================================================
# STEM AND BRANCH DEFINITIONS
# ============================================================

HEAVENLY_STEMS = [
    HeavenlyStem("甲", "Jia", Element.WOOD, Polarity.YANG, 0),
    HeavenlyStem("乙", "Yi", Element.WOOD, Polarity.YIN, 1),
    HeavenlyStem("丙", "Bing", Element.FIRE, Polarity.YANG, 2),
    HeavenlyStem("丁", "Ding", Element.FIRE, Polarity.YIN, 3),
    HeavenlyStem("戊", "Wu", Element.EARTH, Polarity.YANG, 4),
    HeavenlyStem("己", "Ji", Element.EARTH, Polarity.YIN, 5),
    HeavenlyStem("庚", "Geng", Element.METAL, Polarity.YANG, 6),
    HeavenlyStem("辛", "Xin", Element.METAL, Polarity.YIN, 7),
    HeavenlyStem("壬", "Ren", Element.WATER, Polarity.YANG, 8),
    HeavenlyStem("癸", "Gui", Element.WATER, Polarity.YIN, 9),
]

EARTHLY_BRANCHES = [
    EarthlyBranch("子", "Zi", "Rat", Element.WATER, Polarity.YANG, 0),
    EarthlyBranch("丑", "Chou", "Ox", Element.EARTH, Polarity.YIN, 1),
    EarthlyBranch("寅", "Yin", "Tiger", Element.WOOD, Polarity.YANG, 2),
    EarthlyBranch("卯", "Mao", "Rabbit", Element.WOOD, Polarity.YIN, 3),
    EarthlyBranch("辰", "Chen", "Dragon", Element.EARTH, Polarity.YANG, 4),
    EarthlyBranch("巳", "Si", "Snake", Element.FIRE, Polarity.YIN, 5),
    EarthlyBranch("午", "Wu", "Horse", Element.FIRE, Polarity.YANG, 6),
    EarthlyBranch("未", "Wei", "Goat", Element.EARTH, Polarity.YIN, 7),
    EarthlyBranch("申", "Shen", "Monkey", Element.METAL, Polarity.YANG, 8),
    EarthlyBranch("酉", "You", "Rooster", Element.METAL, Polarity.YIN, 9),
    EarthlyBranch("戌", "Xu", "Dog", Element.EARTH, Polarity.YANG, 10),
    EarthlyBranch("亥", "Hai", "Pig", Element.WATER, Polarity.YIN, 11),
]

# Lookup helpers. Pinyin "Wu" names both 戊 and 午, so the maps stay separate.
STEM_BY_NAME = {s.chinese: s for s in HEAVENLY_STEMS}
STEM_BY_NAME.update({s.pinyin: s for s in HEAVENLY_STEMS})
BRANCH_BY_NAME = {b.chinese: b for b in EARTHLY_BRANCHES}
BRANCH_BY_NAME.update({b.pinyin: b for b in EARTHLY_BRANCHES})

ELEMENT_ORDER = [Element.WOOD, Element.FIRE, Element.EARTH, Element.METAL, Element.WATER]


# ============================================================
# ELEMENT CYCLES
# ============================================================

# Generating cycle: Wood → Fire → Earth → Metal → Water → Wood
GENERATING_CYCLE = {
    Element.WOOD: Element.FIRE,
    Element.FIRE: Element.EARTH,
    Element.EARTH: Element.METAL,
    Element.METAL: Element.WATER,
    Element.WATER: Element.WOOD,
}

# Overcoming cycle: Wood → Earth → Water → Fire → Metal → Wood
OVERCOMING_CYCLE = {
    Element.WOOD: Element.EARTH,
    Element.EARTH: Element.WATER,
    Element.WATER: Element.FIRE,
    Element.FIRE: Element.METAL,
    Element.METAL: Element.WOOD,
}


def element_of(item: Union[HeavenlyStem, EarthlyBranch]) -> Element:
    return item.element


def polarity_of(item: Union[HeavenlyStem, EarthlyBranch]) -> Polarity:
    return item.polarity


def generates(a: Element, b: Element) -> bool:
    """True when element a feeds element b."""
    return GENERATING_CYCLE[a] == b


def overcomes(a: Element, b: Element) -> bool:
    """True when element a restrains element b."""
    return OVERCOMING_CYCLE[a] == b


# ============================================================
# SEXAGENARY CYCLE
# ============================================================

def sexagenary_index(stem: HeavenlyStem, branch: EarthlyBranch) -> int:
    """
    Position of a stem-branch pair in the 60-term cycle.

    Only pairs of equal polarity exist in the cycle. The index is the
    unique n in 0..59 with n % 10 == stem and n % 12 == branch.
    """
    if stem.polarity != branch.polarity:
        raise InvalidInput(
            f"{stem.chinese}{branch.chinese} is not a sexagenary pair",
            detail={"stem": stem.chinese, "branch": branch.chinese},
        )
    # 6 * stem - 5 * branch solves both congruences
    return (6 * stem.index - 5 * branch.index) % 60


def pillar_from_index(index: int, position: str) -> Pillar:
    index %= 60
    return Pillar(
        stem=HEAVENLY_STEMS[index % 10],
        branch=EARTHLY_BRANCHES[index % 12],
        position=position,
    )


def stem_by_name(name: str) -> HeavenlyStem:
    try:
        return STEM_BY_NAME[name]
    except KeyError:
        raise InvalidInput(f"Unknown heavenly stem: {name!r}") from None


def branch_by_name(name: str) -> EarthlyBranch:
    try:
        return BRANCH_BY_NAME[name]
    except KeyError:
        raise InvalidInput(f"Unknown earthly branch: {name!r}") from None


def parse_pillar(name: str, position: str = "") -> Pillar:
    """Parse a two-glyph pillar such as "甲子"."""
    if not isinstance(name, str) or len(name) != 2:
        raise InvalidInput(f"Pillar must be two glyphs, got {name!r}")
    stem = stem_by_name(name[0])
    branch = branch_by_name(name[1])
    sexagenary_index(stem, branch)
    return Pillar(stem=stem, branch=branch, position=position)


def pillar_index(name: str) -> int:
    return parse_pillar(name).index
