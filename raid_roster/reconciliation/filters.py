from typing import Callable, Dict, List, Optional, Sequence, TypeVar, Union

from loguru import logger

from raid_roster.models.enums import FilterCriterion
from raid_roster.models.player import Player

P = TypeVar("P", bound=Player)

# Half-open percentile ranges: (low inclusive, high exclusive)
RANKING_BUCKETS: Dict[FilterCriterion, tuple] = {
    FilterCriterion.RANK_95_PLUS: (95.0, None),
    FilterCriterion.RANK_90_94: (90.0, 95.0),
    FilterCriterion.RANK_75_89: (75.0, 90.0),
    FilterCriterion.RANK_50_74: (50.0, 75.0),
}


def _ranking(member: Player) -> Optional[float]:
    value = member.overall_ranking
    if value is None:
        return None
    try:
        ranking = float(value)
    except (TypeError, ValueError):
        return None
    # NaN never compares true, but be explicit about it
    return None if ranking != ranking else ranking


def _in_range(low: float, high: Optional[float]) -> Callable[[Player], bool]:
    def check(member: Player) -> bool:
        ranking = _ranking(member)
        if ranking is None:
            return False
        return ranking >= low and (high is None or ranking < high)

    return check


def _difficulty_contains(word: str) -> Callable[[Player], bool]:
    def check(member: Player) -> bool:
        return word in (member.highest_boss_kill_difficulty or "").lower()

    return check


def parse_criterion(criterion: Union[FilterCriterion, str, None]) -> FilterCriterion:
    if criterion is None or criterion == "":
        return FilterCriterion.ALL
    if isinstance(criterion, FilterCriterion):
        return criterion
    try:
        return FilterCriterion(str(criterion).strip().lower())
    except ValueError:
        logger.warning(f"Unknown member filter '{criterion}', showing all members")
        return FilterCriterion.ALL


def filter_members(
    members: Sequence[P], criterion: Union[FilterCriterion, str, None] = FilterCriterion.ALL
) -> List[P]:
    """Members matching one named performance/activity bucket, order preserved."""
    criterion = parse_criterion(criterion)

    if criterion == FilterCriterion.ALL:
        return list(members)
    if criterion in RANKING_BUCKETS:
        predicate = _in_range(*RANKING_BUCKETS[criterion])
    elif criterion == FilterCriterion.MYTHIC:
        predicate = _difficulty_contains("mythic")
    elif criterion == FilterCriterion.HEROIC:
        predicate = _difficulty_contains("heroic")
    else:
        predicate = lambda member: member.warcraft_logs_available is True  # noqa: E731

    return [member for member in members if predicate(member)]
