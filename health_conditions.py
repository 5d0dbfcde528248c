"""
health_conditions.py — the health-condition rule table.

The rules live in a versioned JSON file (rules/health_conditions.json by
default, CONDITIONS_FILE to override). get_rule_table() loads it once per
process; after that everything is read-only: mappings are MappingProxyType,
sequences are tuples, records are frozen dataclasses.

The analyzer takes a RuleTable as a constructor argument rather than
reaching for the global, so tests can hand it a hand-built table.

Avoid-rule entries may be written as a bare keyword string; those load as
MODERATE rules with a generic "Avoid with <condition>" rationale.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import config

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    CRITICAL = "critical"   # avoid completely
    HIGH     = "high"       # limit strictly
    MODERATE = "moderate"   # consume with caution

    @property
    def rank(self) -> int:
        """Sort key: CRITICAL first."""
        return _RANK[self]

    @property
    def penalty(self) -> int:
        """Points deducted from the 100-point score per match."""
        return _PENALTY[self]


_RANK    = {Severity.CRITICAL: 0,  Severity.HIGH: 1,  Severity.MODERATE: 2}
_PENALTY = {Severity.CRITICAL: 30, Severity.HIGH: 20, Severity.MODERATE: 10}


# ── Rule records ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AvoidRule:
    keyword: str
    severity: Severity
    rationale: str
    citation: Optional[str] = None


@dataclass(frozen=True)
class PositiveRule:
    keyword: str
    benefit: str


@dataclass(frozen=True)
class NutrientLimit:
    key: str            # nutriment key, e.g. "sugar_100g"
    max: float
    unit: str
    label: str
    rationale: str


@dataclass(frozen=True)
class HealthCondition:
    id: str
    name: str
    icon: str
    description: str
    avoid: tuple[AvoidRule, ...]
    positive: tuple[PositiveRule, ...]
    nutrient_limits: tuple[NutrientLimit, ...]
    recommendations: tuple[str, ...]
    citations: tuple[str, ...]


@dataclass(frozen=True)
class AdditiveCategory:
    """Condition-independent additive family used by screen_additives()."""
    id: str
    label: str
    keywords: tuple[str, ...]
    severity: Severity
    rationale: str


@dataclass(frozen=True)
class RuleTable:
    version: int
    default_condition: str
    conditions: Mapping[str, HealthCondition]
    additives: tuple[AdditiveCategory, ...]

    def get(self, condition_id: str) -> Optional[HealthCondition]:
        return self.conditions.get(condition_id)


# ── Loading ───────────────────────────────────────────────────────────────────

def _severity(value: Any, where: str) -> Severity:
    try:
        return Severity(str(value).lower())
    except ValueError:
        raise ValueError(f"{where}: unknown severity {value!r}") from None


def _avoid_rule(entry: Any, condition_name: str, where: str) -> AvoidRule:
    if isinstance(entry, str):
        return AvoidRule(
            keyword=entry,
            severity=Severity.MODERATE,
            rationale=f"Avoid with {condition_name}",
        )
    if not isinstance(entry, dict) or not entry.get("keyword"):
        raise ValueError(f"{where}: avoid rule needs a keyword, got {entry!r}")
    return AvoidRule(
        keyword=entry["keyword"],
        severity=_severity(entry.get("severity", "moderate"), where),
        rationale=entry.get("rationale") or f"Avoid with {condition_name}",
        citation=entry.get("citation"),
    )


def _condition(cid: str, raw: dict) -> HealthCondition:
    where = f"condition '{cid}'"
    name = raw.get("name") or cid
    limits = tuple(
        NutrientLimit(
            key=key,
            max=float(entry["max"]),
            unit=entry.get("unit", ""),
            label=entry.get("label", key),
            rationale=entry.get("rationale", ""),
        )
        for key, entry in (raw.get("nutrient_limits") or {}).items()
    )
    return HealthCondition(
        id=cid,
        name=name,
        icon=raw.get("icon", ""),
        description=raw.get("description", ""),
        avoid=tuple(_avoid_rule(e, name, where) for e in raw.get("avoid") or []),
        positive=tuple(
            PositiveRule(keyword=p["keyword"], benefit=p.get("benefit", ""))
            for p in raw.get("positive") or []
        ),
        nutrient_limits=limits,
        recommendations=tuple(raw.get("recommendations") or []),
        citations=tuple(raw.get("citations") or []),
    )


def parse_rule_table(data: dict) -> RuleTable:
    """Build a RuleTable from the decoded JSON document. Raises ValueError if malformed."""
    if not isinstance(data, dict) or not isinstance(data.get("conditions"), dict):
        raise ValueError("rule table must be an object with a 'conditions' mapping")

    try:
        conditions = {cid: _condition(cid, raw) for cid, raw in data["conditions"].items()}
        additives = tuple(
            AdditiveCategory(
                id=aid,
                label=raw.get("label", aid),
                keywords=tuple(raw.get("keywords") or []),
                severity=_severity(raw.get("severity", "moderate"), f"additive '{aid}'"),
                rationale=raw.get("rationale", ""),
            )
            for aid, raw in (data.get("additive_categories") or {}).items()
        )
    except (KeyError, TypeError) as exc:
        raise ValueError(f"malformed rule table: {exc!r}") from exc

    default = data.get("default_condition", "general_health")
    if default not in conditions:
        raise ValueError(f"default condition {default!r} is not defined")

    return RuleTable(
        version=int(data.get("version", 1)),
        default_condition=default,
        conditions=MappingProxyType(conditions),
        additives=additives,
    )


def load_rule_table(path: Optional[str] = None) -> RuleTable:
    path = Path(path or config.CONDITIONS_FILE)
    with path.open(encoding="utf-8") as fh:
        table = parse_rule_table(json.load(fh))
    logger.info(
        "Loaded %d health conditions (rules v%d) from %s",
        len(table.conditions), table.version, path,
    )
    return table


# Module-level cache: loaded on first use, never mutated afterwards
_table: Optional[RuleTable] = None


def get_rule_table() -> RuleTable:
    global _table
    if _table is None:
        _table = load_rule_table()
    return _table


def list_conditions(table: Optional[RuleTable] = None) -> list[HealthCondition]:
    """All conditions in file order, for pickers and --conditions output."""
    table = table or get_rule_table()
    return list(table.conditions.values())
