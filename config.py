import ast
import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict


@dataclass(frozen=True)
class EngineConfig:
    """Tunable constants of the rating, pairing and scheduling engine."""

    # Form learner (logistic expected score)
    sensitivity: float = 1.2
    k_factor: float = 0.18
    legacy_rating_threshold: float = 20.0
    default_rating: float = 3.0

    # Pairing cost
    support_cutoff: float = 2.6
    target_diff: float = 1.4
    similar_diff: float = 0.6
    similar_penalty: float = 1.5
    broken_diff: float = 2.0
    broken_penalty: float = 3.0
    support_pair_penalty: float = 10.0
    synergy_threshold: float = 0.35
    synergy_weight: float = 2.0
    repeat_pair_penalty: float = 15.0

    # Match cost
    strength_weight: float = 1.0
    structure_weight: float = 0.7
    repeat_match_penalty: float = 50.0
    candidate_cost_weight: float = 0.5

    # Search and context windows
    local_search_iterations: int = 200
    matchmaker_recent_window: int = 20
    query_recent_window: int = 50
    top_matchups: int = 10
    max_brute_force_pool: int = 50
    exact_time_limit_seconds: float = 10.0


DEFAULT_CONFIG = EngineConfig()
DEFAULT_CONFIG_PATH = Path("engine.json")


def _parse_text(text: str) -> Dict[str, Any]:
    # JSON first, Python dict literal as fallback
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    try:
        return ast.literal_eval(text)
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Could not parse engine config: {exc}") from exc


def load_config_from_text(text: str) -> EngineConfig:
    """Build an EngineConfig from JSON or a Python dict literal.

    Keys override the defaults; unknown keys are rejected so a typo never
    silently falls back to a default.
    """
    text = text.strip()
    if not text:
        return DEFAULT_CONFIG

    data = _parse_text(text)
    if not isinstance(data, dict):
        raise ValueError("Engine config must define a JSON/dict object at top level.")

    known = {f.name for f in dataclasses.fields(EngineConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown engine config keys: {', '.join(unknown)}")

    return dataclasses.replace(DEFAULT_CONFIG, **data)


def load_config_from_file(path: Path = DEFAULT_CONFIG_PATH) -> EngineConfig:
    path = Path(path)
    if not path.exists():
        return DEFAULT_CONFIG
    return load_config_from_text(path.read_text(encoding="utf-8"))
