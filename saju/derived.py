"""
Derived attributes of a Four Pillars chart.

Handles:
- Ten Gods (十神) of visible and hidden stems relative to the Day Master
- Hidden stems (藏干) of every branch
- Twelve stages (十二運) of each branch for the Day Master
- Void branches (空亡) of a pillar's ten-day block
- Twelve spirits (十二神殺) keyed by the year branch
- Branch interactions (combinations, clashes, harms, ...)
- Element distribution across the chart

This module COMPUTES and FLAGS. It does not interpret.
"""

from enum import Enum

from saju.cycle import (
    EARTHLY_BRANCHES,
    Element,
    GENERATING_CYCLE,
    OVERCOMING_CYCLE,
    EarthlyBranch,
    HeavenlyStem,
    Pillar,
    Polarity,
    stem_by_name,
)


# ============================================================
# TEN GODS (十神)
# ============================================================

class TenGod(Enum):
    COMPANION = "比肩"
    ROB_WEALTH = "劫財"
    EATING_GOD = "食神"
    HURTING_OFFICER = "傷官"
    INDIRECT_WEALTH = "偏財"
    DIRECT_WEALTH = "正財"
    SEVEN_KILLINGS = "偏官"  # also 七殺
    DIRECT_OFFICER = "正官"
    INDIRECT_RESOURCE = "偏印"
    DIRECT_RESOURCE = "正印"  # also 印綬


TEN_GODS = {
    # (relationship, same_polarity): god
    ("same", True): TenGod.COMPANION,
    ("same", False): TenGod.ROB_WEALTH,
    ("produces_me", True): TenGod.INDIRECT_RESOURCE,
    ("produces_me", False): TenGod.DIRECT_RESOURCE,
    ("i_produce", True): TenGod.EATING_GOD,
    ("i_produce", False): TenGod.HURTING_OFFICER,
    ("i_control", True): TenGod.INDIRECT_WEALTH,
    ("i_control", False): TenGod.DIRECT_WEALTH,
    ("controls_me", True): TenGod.SEVEN_KILLINGS,
    ("controls_me", False): TenGod.DIRECT_OFFICER,
}


def element_relationship(day_master_element: Element, other_element: Element) -> str:
    """Determine the elemental relationship from the Day Master's perspective."""
    if day_master_element == other_element:
        return "same"
    if GENERATING_CYCLE[other_element] == day_master_element:
        return "produces_me"
    if GENERATING_CYCLE[day_master_element] == other_element:
        return "i_produce"
    if OVERCOMING_CYCLE[day_master_element] == other_element:
        return "i_control"
    return "controls_me"


def ten_god(day_master: HeavenlyStem, other: HeavenlyStem) -> TenGod:
    relationship = element_relationship(day_master.element, other.element)
    same_polarity = day_master.polarity == other.polarity
    return TEN_GODS[(relationship, same_polarity)]


# ============================================================
# HIDDEN STEMS (藏干)
# ============================================================

# Ordered main qi first.
HIDDEN_STEMS = {
    "子": ["癸"],
    "丑": ["己", "辛", "癸"],
    "寅": ["甲", "丙", "戊"],
    "卯": ["乙"],
    "辰": ["戊", "乙", "癸"],
    "巳": ["丙", "庚", "戊"],
    "午": ["丁", "己"],
    "未": ["己", "乙", "丁"],
    "申": ["庚", "壬", "戊"],
    "酉": ["辛"],
    "戌": ["戊", "辛", "丁"],
    "亥": ["壬", "甲"],
}


def hidden_stems(branch: EarthlyBranch) -> list[HeavenlyStem]:
    return [stem_by_name(name) for name in HIDDEN_STEMS[branch.chinese]]


def map_ten_gods(day_master: HeavenlyStem, pillars: list[Pillar]) -> dict:
    """
    Ten Gods of the year, month and hour stems, and of every hidden stem.

    Returns a dict keyed by position plus "hidden_stems_by_pillar".
    """
    result = {}
    by_pillar = {}
    for pillar in pillars:
        if pillar.position != "day":
            result[pillar.position] = ten_god(day_master, pillar.stem).value
        by_pillar[pillar.position] = [
            {"stem": hidden.chinese, "ten_god": ten_god(day_master, hidden).value}
            for hidden in hidden_stems(pillar.branch)
        ]
    result["hidden_stems_by_pillar"] = by_pillar
    return result


# ============================================================
# TWELVE STAGES (十二運)
# ============================================================

class TwelveStage(Enum):
    LONG_LIFE = "長生"
    BATH = "沐浴"
    CROWN = "冠帯"
    OFFICE = "臨官"
    PEAK = "帝旺"
    DECLINE = "衰"
    SICKNESS = "病"
    DEATH = "死"
    TOMB = "墓"
    EXTINCTION = "絶"
    CONCEPTION = "胎"
    NURTURE = "養"


STAGE_ORDER = list(TwelveStage)

# Branch index where each stem's Long Life stage sits.
LONG_LIFE_BRANCH = {
    0: 11,  # 甲 → 亥
    1: 6,   # 乙 → 午
    2: 2,   # 丙 → 寅
    3: 9,   # 丁 → 酉
    4: 2,   # 戊 → 寅
    5: 9,   # 己 → 酉
    6: 5,   # 庚 → 巳
    7: 0,   # 辛 → 子
    8: 8,   # 壬 → 申
    9: 3,   # 癸 → 卯
}


def twelve_stage(day_master: HeavenlyStem, branch: EarthlyBranch) -> TwelveStage:
    """Yang stems walk the branches forward from Long Life, yin stems backward."""
    start = LONG_LIFE_BRANCH[day_master.index]
    if day_master.polarity == Polarity.YANG:
        steps = (branch.index - start) % 12
    else:
        steps = (start - branch.index) % 12
    return STAGE_ORDER[steps]


# ============================================================
# VOID BRANCHES (空亡)
# ============================================================

# By ten-day block of the 60-cycle: 甲子 block, 甲戌 block, ...
VOID_PAIRS = [
    (10, 11),  # 戌亥
    (8, 9),    # 申酉
    (6, 7),    # 午未
    (4, 5),    # 辰巳
    (2, 3),    # 寅卯
    (0, 1),    # 子丑
]


def void_pair(pillar: Pillar) -> list[EarthlyBranch]:
    first, second = VOID_PAIRS[(pillar.index // 10) % 6]
    return [EARTHLY_BRANCHES[first], EARTHLY_BRANCHES[second]]


# ============================================================
# TWELVE SPIRITS (十二神殺)
# ============================================================

class TwelveSpirit(Enum):
    ROBBERY = "劫殺"
    DISASTER = "災殺"
    HEAVEN = "天殺"
    EARTH = "地殺"
    YEAR = "年殺"
    MONTH = "月殺"
    LOSS = "亡身殺"
    GENERAL_STAR = "將星殺"
    SADDLE = "攀鞍殺"
    POST_HORSE = "驛馬殺"
    SIX_HARM = "六害殺"
    CANOPY = "華蓋殺"


SPIRIT_ORDER = list(TwelveSpirit)

# Three-harmony group of the year branch → branch where 劫殺 falls.
ROBBERY_START = {
    frozenset((8, 0, 4)): 5,    # 申子辰 → 巳
    frozenset((2, 6, 10)): 11,  # 寅午戌 → 亥
    frozenset((5, 9, 1)): 2,    # 巳酉丑 → 寅
    frozenset((11, 3, 7)): 8,   # 亥卯未 → 申
}


def twelve_spirit(year_branch: EarthlyBranch, branch: EarthlyBranch) -> TwelveSpirit:
    start = next(s for group, s in ROBBERY_START.items() if year_branch.index in group)
    return SPIRIT_ORDER[(branch.index - start) % 12]


# ============================================================
# BRANCH INTERACTIONS
# ============================================================

# Six Combinations (六合)
SIX_COMBINATIONS = {
    (0, 1): Element.EARTH,    # 子丑
    (2, 11): Element.WOOD,    # 寅亥
    (3, 10): Element.FIRE,    # 卯戌
    (4, 9): Element.METAL,    # 辰酉
    (5, 8): Element.WATER,    # 巳申
    (6, 7): Element.FIRE,     # 午未
}

# Three Harmony Combinations (三合)
THREE_HARMONY = {
    (2, 6, 10): Element.FIRE,     # 寅午戌
    (8, 0, 4): Element.WATER,     # 申子辰
    (5, 9, 1): Element.METAL,     # 巳酉丑
    (11, 3, 7): Element.WOOD,     # 亥卯未
}

SIX_CLASHES = [(0, 6), (1, 7), (2, 8), (3, 9), (4, 10), (5, 11)]  # 六冲
SIX_HARMS = [(0, 7), (1, 6), (2, 5), (3, 4), (8, 11), (9, 10)]  # 六害
DESTRUCTIONS = [(0, 9), (1, 4), (2, 11), (3, 6), (5, 8), (7, 10)]  # 相破

# Punishments (刑)
PUNISHMENTS = {
    "ungrateful": [2, 5, 8],       # 寅巳申
    "uncivilized": [1, 10, 7],     # 丑戌未
    "rude": [0, 3],                # 子卯
    "self": [4, 6, 9, 11],         # 辰午酉亥 with itself
}


def _label(label: str, branch: EarthlyBranch) -> str:
    return f"{label}:{branch.chinese}"


def find_branch_interactions(branches: list[EarthlyBranch],
                             labels: list[str] = None) -> list[dict]:
    """
    Find every branch interaction among a set of branches.

    Args:
        branches: EarthlyBranch objects to check
        labels: optional labels for each branch (e.g., "year", "month")

    Returns:
        List of interaction dicts with type, branches involved, and result
    """
    if labels is None:
        labels = [f"branch_{i}" for i in range(len(branches))]

    interactions = []
    n = len(branches)

    pair_tables = [
        ("six_combination", {frozenset(p): e for p, e in SIX_COMBINATIONS.items()}),
        ("six_clash", {frozenset(p): None for p in SIX_CLASHES}),
        ("six_harm", {frozenset(p): None for p in SIX_HARMS}),
        ("destruction", {frozenset(p): None for p in DESTRUCTIONS}),
    ]

    for i in range(n):
        for j in range(i + 1, n):
            b1, b2 = branches[i], branches[j]
            pair = frozenset((b1.index, b2.index))
            for kind, table in pair_tables:
                if pair in table:
                    entry = {
                        "type": kind,
                        "branches": [_label(labels[i], b1), _label(labels[j], b2)],
                    }
                    if table[pair] is not None:
                        entry["result_element"] = table[pair].value
                    interactions.append(entry)

    # First occurrence of each branch index
    present = {}
    for i, b in enumerate(branches):
        present.setdefault(b.index, i)

    for triple, element in THREE_HARMONY.items():
        found = [idx for idx in triple if idx in present]
        if len(found) < 2:
            continue
        entry = {
            "type": "three_harmony",
            "complete": len(found) == 3,
            "branches": [_label(labels[present[idx]], branches[present[idx]]) for idx in found],
            "result_element": element.value,
        }
        if len(found) == 2:
            missing = next(idx for idx in triple if idx not in present)
            entry["missing"] = EARTHLY_BRANCHES[missing].chinese
        interactions.append(entry)

    for kind, members in PUNISHMENTS.items():
        if kind == "self":
            for idx in members:
                same = [i for i in range(n) if branches[i].index == idx]
                if len(same) >= 2:
                    interactions.append({
                        "type": "self_punishment",
                        "branches": [_label(labels[i], branches[i]) for i in same],
                    })
            continue
        found = [idx for idx in members if idx in present]
        if len(found) >= 2:
            interactions.append({
                "type": f"punishment_{kind}",
                "complete": len(found) == len(members),
                "branches": [_label(labels[present[idx]], branches[present[idx]]) for idx in found],
            })

    return interactions


# ============================================================
# ELEMENT DISTRIBUTION
# ============================================================

HIDDEN_WEIGHTS = [0.7, 0.5, 0.3]


def element_distribution(pillars: list[Pillar], include_hidden: bool = True) -> dict:
    """
    Count element presence across all pillars.

    Visible stems weigh 1.0; hidden stems 0.7 (main qi), 0.5 (middle qi)
    and 0.3 (residual qi).
    """
    distribution = {e.value: 0.0 for e in Element}

    for pillar in pillars:
        distribution[pillar.stem.element.value] += 1.0
        if include_hidden:
            for weight, hidden in zip(HIDDEN_WEIGHTS, hidden_stems(pillar.branch)):
                distribution[hidden.element.value] += weight

    return {k: round(v, 2) for k, v in distribution.items()}
