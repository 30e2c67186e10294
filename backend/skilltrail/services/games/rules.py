import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import RulesError


@dataclass(frozen=True)
class Skill:
    id: str
    name: str
    description: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'description': self.description}


@dataclass(frozen=True)
class Situation:
    id: str
    text: str


@dataclass(frozen=True)
class Rules:
    """Static game data, loaded once at startup and never mutated."""

    skills: Tuple[Skill, ...]
    situations: Tuple[Situation, ...]
    scoring: Mapping[str, Mapping[str, int]]
    number_of_rounds: int = 20
    seconds_per_round: int = 300
    trail_bonus: int = 10

    @property
    def skill_ids(self) -> List[str]:
        return [s.id for s in self.skills]

    @property
    def skill_names(self) -> Dict[str, str]:
        return {s.id: s.name for s in self.skills}

    def has_skill(self, skill_id: Any) -> bool:
        return isinstance(skill_id, str) and skill_id in self.skill_names

    def situation(self, situation_id: str) -> Optional[Situation]:
        for s in self.situations:
            if s.id == situation_id:
                return s
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            'skills': [s.to_dict() for s in self.skills],
            'situation_count': len(self.situations),
            'number_of_rounds': self.number_of_rounds,
            'seconds_per_round': self.seconds_per_round,
            'trail_bonus': self.trail_bonus,
        }


def _require(cond: bool, message: str) -> None:
    if not cond:
        raise RulesError(message)


def parse_rules(data: Dict[str, Any]) -> Rules:
    """Build a validated Rules object from the decoded rules document.

    - skill and situation ids must be unique
    - every situation needs a scoring row; rows may only name known skills
    - points and numeric parameters must be non-negative integers
    """
    _require(isinstance(data, dict), 'rules document must be an object')
    raw_skills = data.get('skills') or []
    raw_situations = data.get('situations') or []
    raw_scoring = data.get('scoring') or {}
    params = data.get('params') or {}

    _require(raw_skills, 'at least one skill is required')
    _require(raw_situations, 'at least one situation is required')

    skills = []
    for raw in raw_skills:
        _require(isinstance(raw, dict) and raw.get('id') and raw.get('name'), f'malformed skill entry: {raw!r}')
        skills.append(Skill(id=str(raw['id']), name=str(raw['name']), description=str(raw.get('description') or '')))
    skill_ids = [s.id for s in skills]
    _require(len(set(skill_ids)) == len(skill_ids), 'duplicate skill id')

    situations = []
    for raw in raw_situations:
        _require(isinstance(raw, dict) and raw.get('id') and raw.get('text'), f'malformed situation entry: {raw!r}')
        situations.append(Situation(id=str(raw['id']), text=str(raw['text'])))
    situation_ids = [s.id for s in situations]
    _require(len(set(situation_ids)) == len(situation_ids), 'duplicate situation id')

    scoring = {}
    for sid in situation_ids:
        row = raw_scoring.get(sid)
        _require(isinstance(row, dict), f'missing scoring row for situation {sid}')
        for skill_id, points in row.items():
            _require(skill_id in skill_ids, f'scoring row {sid} references unknown skill {skill_id}')
            _require(isinstance(points, int) and not isinstance(points, bool) and points >= 0,
                     f'scoring {sid}/{skill_id} must be a non-negative integer')
        scoring[sid] = MappingProxyType(dict(row))

    numbers = {}
    for key, default in (('number_of_rounds', 20), ('seconds_per_round', 300), ('trail_bonus', 10)):
        value = params.get(key, default)
        _require(isinstance(value, int) and not isinstance(value, bool) and value >= 0,
                 f'param {key} must be a non-negative integer')
        numbers[key] = value
    _require(numbers['number_of_rounds'] >= 1, 'param number_of_rounds must be at least 1')
    _require(numbers['seconds_per_round'] >= 1, 'param seconds_per_round must be at least 1')

    return Rules(
        skills=tuple(skills),
        situations=tuple(situations),
        scoring=MappingProxyType(scoring),
        **numbers,
    )


def load_rules(path: str) -> Rules:
    try:
        with open(path, encoding='utf-8') as fh:
            data = json.load(fh)
    except OSError as exc:
        raise RulesError(f'cannot read rules file {path}: {exc}') from exc
    except json.JSONDecodeError as exc:
        raise RulesError(f'rules file {path} is not valid JSON: {exc}') from exc
    return parse_rules(data)
