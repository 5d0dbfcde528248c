"""
analyzer.py — personalised risk scoring of a product against health conditions.

Scoring starts at 100 and, per selected condition:
  +5   per positive ingredient found
  -30  per CRITICAL avoid ingredient found
  -20  per HIGH
  -10  per MODERATE
  -10  per nutrient over the condition's per-100g limit
The total is clamped to [0, 100] only at the end.

Matching is a case-insensitive substring test. A keyword also matches when
its whitespace-free form appears ("olive oil" matches "oliveoil").

Warnings for the same ingredient from several conditions collapse to one:
the most severe wins, ties keep the earlier condition. The list is then
stably sorted CRITICAL → HIGH → MODERATE, so equal severities stay in the
order they were found.

Missing data is not an error: a product with no ingredients and no
nutrients scores 0 with a single "Unknown" warning and no_data=True.
"""
from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Iterable, Optional

from catalog.base import ProductRecord
from health_conditions import RuleTable, Severity, get_rule_table

logger = logging.getLogger(__name__)

BASELINE_SCORE = 100
POSITIVE_BONUS = 5
NUTRIENT_PENALTY = 10

_WS = re.compile(r"\s+")


# ── Result types ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class IngredientWarning:
    ingredient: str             # display form, e.g. "Sodium nitrite"
    severity: Severity
    rationale: str
    citation: Optional[str]
    condition: str              # condition name (or additive category label)


@dataclass(frozen=True)
class NutrientAlert:
    nutrient: str               # nutriment key, e.g. "sugar_100g"
    label: str                  # e.g. "Total Sugars"
    value: float
    limit: float
    unit: str
    rationale: str
    condition: str


@dataclass(frozen=True)
class PositiveFinding:
    ingredient: str
    benefit: str
    condition: str


@dataclass(frozen=True)
class ScoreBand:
    key: str                    # good | moderate | poor
    label: str


@dataclass
class AnalysisResult:
    score: int
    warnings: list[IngredientWarning] = field(default_factory=list)
    nutrient_alerts: list[NutrientAlert] = field(default_factory=list)
    positives: list[PositiveFinding] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    citations: list[str] = field(default_factory=list)
    conditions: list[str] = field(default_factory=list)    # ids actually applied
    no_data: bool = False

    @property
    def band(self) -> ScoreBand:
        return score_band(self.score)

    def to_dict(self) -> dict:
        data = asdict(self)
        for w in data["warnings"]:
            w["severity"] = w["severity"].value
        data["band"] = asdict(self.band)
        return data


@dataclass
class AdditiveScreen:
    score: int
    warnings: list[IngredientWarning] = field(default_factory=list)


# ── Helpers ───────────────────────────────────────────────────────────────────

def score_band(score: int) -> ScoreBand:
    if score >= 80:
        return ScoreBand("good", "Good Choice")
    if score >= 50:
        return ScoreBand("moderate", "Use Caution")
    return ScoreBand("poor", "Not Recommended")


def contains_keyword(text_lower: str, keyword: str) -> bool:
    kw = keyword.lower()
    if kw in text_lower:
        return True
    compact = _WS.sub("", kw)
    return compact != kw and compact in text_lower


def _display(keyword: str) -> str:
    return keyword[:1].upper() + keyword[1:]


def _clamp(score: int) -> int:
    return max(0, min(100, score))


def _unknown_warning(rationale: str) -> IngredientWarning:
    return IngredientWarning(
        ingredient="Unknown",
        severity=Severity.MODERATE,
        rationale=rationale,
        citation=None,
        condition="general",
    )


def merge_warnings(warnings: Iterable[IngredientWarning]) -> list[IngredientWarning]:
    """
    One warning per ingredient (most severe wins, ties keep the first),
    then a stable sort by severity.
    """
    merged: dict[str, IngredientWarning] = {}
    for w in warnings:
        key = w.ingredient.lower()
        held = merged.get(key)
        # Reassigning an existing key keeps its original insertion position
        if held is None or w.severity.rank < held.severity.rank:
            merged[key] = w
    return sorted(merged.values(), key=lambda w: w.severity.rank)


# ── Analyzer ──────────────────────────────────────────────────────────────────

class RiskAnalyzer:
    """Stateless apart from the read-only rule table; safe to share."""

    def __init__(self, rules: RuleTable) -> None:
        self.rules = rules

    def analyze(self, product: ProductRecord, condition_ids: Iterable[str] = ()) -> AnalysisResult:
        ids = list(condition_ids) or [self.rules.default_condition]

        if not product.has_data:
            return AnalysisResult(
                score=0,
                warnings=[_unknown_warning("Product information not available")],
                conditions=[cid for cid in ids if self.rules.get(cid) is not None],
                no_data=True,
            )

        text = (product.ingredients_text or "").lower()
        nutriments = product.nutriments or {}

        score = BASELINE_SCORE
        warnings: list[IngredientWarning] = []
        alerts: list[NutrientAlert] = []
        positives: list[PositiveFinding] = []
        recommendations: dict[str, None] = {}   # ordered sets
        citations: dict[str, None] = {}
        applied: list[str] = []

        for cid in ids:
            condition = self.rules.get(cid)
            if condition is None:
                logger.warning("Unknown health condition %r — skipped", cid)
                continue
            applied.append(cid)

            recommendations.update(dict.fromkeys(condition.recommendations))
            citations.update(dict.fromkeys(condition.citations))

            for rule in condition.positive:
                if contains_keyword(text, rule.keyword):
                    positives.append(PositiveFinding(_display(rule.keyword), rule.benefit, condition.name))
                    score += POSITIVE_BONUS

            for rule in condition.avoid:
                if contains_keyword(text, rule.keyword):
                    warnings.append(IngredientWarning(
                        ingredient=_display(rule.keyword),
                        severity=rule.severity,
                        rationale=rule.rationale,
                        citation=rule.citation,
                        condition=condition.name,
                    ))
                    score -= rule.severity.penalty

            for limit in condition.nutrient_limits:
                value = nutriments.get(limit.key)
                if value is not None and value > limit.max:
                    alerts.append(NutrientAlert(
                        nutrient=limit.key,
                        label=limit.label,
                        value=value,
                        limit=limit.max,
                        unit=limit.unit,
                        rationale=limit.rationale,
                        condition=condition.name,
                    ))
                    score -= NUTRIENT_PENALTY

        result = AnalysisResult(
            score=_clamp(score),
            warnings=merge_warnings(warnings),
            nutrient_alerts=alerts,
            positives=positives,
            recommendations=list(recommendations),
            citations=list(citations),
            conditions=applied,
        )
        logger.debug(
            "Analysed %s for %s → score=%d warnings=%d alerts=%d",
            product.barcode, applied, result.score, len(result.warnings), len(alerts),
        )
        return result

    def screen_additives(self, product: ProductRecord) -> AdditiveScreen:
        """Condition-independent scan for common problem additives."""
        if not (product.ingredients_text and product.ingredients_text.strip()):
            return AdditiveScreen(
                score=0,
                warnings=[_unknown_warning("Ingredient information not available")],
            )

        text = product.ingredients_text.lower()
        score = BASELINE_SCORE
        warnings: list[IngredientWarning] = []
        for category in self.rules.additives:
            for keyword in category.keywords:
                if contains_keyword(text, keyword):
                    warnings.append(IngredientWarning(
                        ingredient=_display(keyword),
                        severity=category.severity,
                        rationale=category.rationale,
                        citation=None,
                        condition=category.label,
                    ))
                    score -= category.severity.penalty
        return AdditiveScreen(score=_clamp(score), warnings=warnings)


# ── Module-level convenience ──────────────────────────────────────────────────

def analyze(product: ProductRecord, condition_ids: Iterable[str] = ()) -> AnalysisResult:
    return RiskAnalyzer(get_rule_table()).analyze(product, condition_ids)


def screen_additives(product: ProductRecord) -> AdditiveScreen:
    return RiskAnalyzer(get_rule_table()).screen_additives(product)
