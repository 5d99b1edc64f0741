from app import db  # noqa: F401 - imported for model imports

from .admin import Admin
from .historical_champion import HistoricalChampion
from .magic_link import MagicLink
from .pick import Pick, PickItem
from .reminder_log import ReminderLog
from .round import Round, RoundResult, RoundTeam
from .score_detail import ScoreDetail
from .scoring_rule import ScoringRule
from .season import Season
from .season_participant import SeasonParticipant
from .season_winner import SeasonWinner
from .setting import NumericSetting, TextSetting
from .team import Team
from .user import User

__all__ = [
    "Admin",
    "User",
    "Season",
    "SeasonParticipant",
    "Team",
    "Round",
    "RoundTeam",
    "RoundResult",
    "Pick",
    "PickItem",
    "ScoreDetail",
    "ScoringRule",
    "SeasonWinner",
    "HistoricalChampion",
    "MagicLink",
    "ReminderLog",
    "TextSetting",
    "NumericSetting",
]
