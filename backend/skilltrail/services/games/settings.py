from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .roster import TeamLimits


@dataclass(frozen=True)
class GameSettings:
    min_players_team: int = 2
    max_teams: int = 5
    max_team_size: int = 6
    inter_round_pause_sec: float = 7.0
    finished_room_linger_sec: float = 60.0
    chat_capacity: int = 100
    max_message_length: int = 500
    # None means use the rules' seconds_per_round
    round_duration_sec: Optional[float] = None

    @property
    def team_limits(self) -> TeamLimits:
        return TeamLimits(max_teams=self.max_teams, max_team_size=self.max_team_size)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'GameSettings':
        return cls(
            min_players_team=int(config.get('MIN_PLAYERS_TEAM', 2)),
            max_teams=int(config.get('MAX_TEAMS', 5)),
            max_team_size=int(config.get('MAX_TEAM_SIZE', 6)),
            inter_round_pause_sec=float(config.get('INTER_ROUND_PAUSE_SEC', 7)),
            finished_room_linger_sec=float(config.get('FINISHED_ROOM_LINGER_SEC', 60)),
            chat_capacity=int(config.get('CHAT_CAPACITY', 100)),
            max_message_length=int(config.get('MAX_MESSAGE_LENGTH', 500)),
            round_duration_sec=config.get('ROUND_DURATION_SEC'),
        )
