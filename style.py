"""
style.py — text formatting for scan results.

Design language (carried over from the card layout we use everywhere):
  • Structured cards with consistent emoji icons
  • Unicode box-drawing dividers
  • Clear visual hierarchy: header → body → footer

All text the CLI prints goes through this module. Nothing here decides
anything; it only renders ProductRecord / AnalysisResult / errors.
"""
from __future__ import annotations

from typing import Optional

from analyzer import AdditiveScreen, AnalysisResult, IngredientWarning
from barcode import BarcodeError
from catalog.base import (
    CatalogError,
    CatalogTimeoutError,
    MaxRetriesExceededError,
    OfflineError,
    ProductNotFoundError,
    ProductRecord,
    SearchPage,
    ServerError,
)
from health_conditions import HealthCondition, Severity

# ── Visual constants ──────────────────────────────────────────────────────────

DIV   = "━━━━━━━━━━━━━━━━━━━━━━━━━━"    # thick divider
SDIV  = "┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄"    # subtle divider

SEVERITY_ICON = {
    Severity.CRITICAL: "⛔",
    Severity.HIGH:     "🔴",
    Severity.MODERATE: "🟠",
}
BAND_ICON = {"good": "🟢", "moderate": "🟡", "poor": "🔴"}
GRADE_ICON = {"a": "🟩", "b": "🟢", "c": "🟨", "d": "🟧", "e": "🟥"}

BAR_WIDTH = 10


def score_bar(score: int) -> str:
    """▰▰▰▰▰▰▱▱▱▱ 60/100"""
    filled = round(max(0, min(100, score)) / 100 * BAR_WIDTH)
    return f"{'▰' * filled}{'▱' * (BAR_WIDTH - filled)} {score}/100"


def fmt_number(value: float) -> str:
    if value == int(value):
        return str(int(value))
    return f"{value:.1f}"


def fmt_nutrient(value: float, unit: str) -> str:
    return f"{fmt_number(value)}{unit}"


# ══════════════════════════════════════════════════════════════════════════════
# PRODUCT
# ══════════════════════════════════════════════════════════════════════════════

def product_card(product: ProductRecord) -> str:
    lines = [f"🛒 {product.name.upper()}"]
    if product.brand:
        lines.append(f"🏷️  {product.brand}")
    lines.append(f"🔢 {product.barcode}")
    if product.nutrition_grade:
        grade = product.nutrition_grade.lower()
        lines.append(f"{GRADE_ICON.get(grade, '⬜')} Nutri-Score {grade.upper()}")
    if product.serving_size:
        lines.append(f"🍽️  Serving: {product.serving_size}")
    if product.ingredients_text:
        text = product.ingredients_text
        if len(text) > 240:
            text = text[:237] + "…"
        lines += ["", "📋 Ingredients", text]
    return "\n".join(lines)


# ══════════════════════════════════════════════════════════════════════════════
# ANALYSIS
# ══════════════════════════════════════════════════════════════════════════════

def warning_line(w: IngredientWarning) -> str:
    line = f"{SEVERITY_ICON[w.severity]} {w.ingredient} [{w.severity.value}] — {w.rationale}"
    if w.citation:
        line += f" ({w.citation})"
    return line


def analysis_report(
    product: ProductRecord,
    result: AnalysisResult,
    additives: Optional[AdditiveScreen] = None,
) -> str:
    band = result.band
    parts = [
        DIV,
        product_card(product),
        DIV,
        f"{BAND_ICON[band.key]} {band.label.upper()}",
        score_bar(result.score),
    ]

    if result.no_data:
        parts += ["", "ℹ️  Not enough product information to analyse.", DIV]
        return "\n".join(parts)

    if result.warnings:
        parts += ["", SDIV, "⚠️  Ingredients to watch"]
        parts += [f"  {warning_line(w)}" for w in result.warnings]

    if result.nutrient_alerts:
        parts += ["", SDIV, "📊 Nutrients over your limits (per 100g)"]
        for a in result.nutrient_alerts:
            parts.append(
                f"  ▸ {a.label}: {fmt_nutrient(a.value, a.unit)} "
                f"(limit {fmt_nutrient(a.limit, a.unit)}) — {a.condition}"
            )

    if result.positives:
        parts += ["", SDIV, "💚 Good stuff"]
        parts += [f"  ▸ {p.ingredient} — {p.benefit}" for p in result.positives]

    if additives and additives.warnings and not result.no_data:
        parts += ["", SDIV, f"🧪 Additive screen: {additives.score}/100"]
        parts += [f"  ▸ {w.ingredient} ({w.condition})" for w in additives.warnings]

    if result.recommendations:
        parts += ["", SDIV, "💡 Tips"]
        parts += [f"  {r}" for r in result.recommendations]

    if result.citations:
        parts += ["", SDIV, "📚 Sources"]
        parts += [f"  • {c}" for c in result.citations]

    parts.append(DIV)
    return "\n".join(parts)


def conditions_list(conditions: list[HealthCondition]) -> str:
    lines = ["🩺 AVAILABLE CONDITIONS", DIV]
    for c in conditions:
        lines.append(f"{c.icon} {c.id:<22} {c.name}")
    lines.append(DIV)
    return "\n".join(lines)


def search_results(page: SearchPage) -> str:
    if not page.products:
        return f"🔍 No products found for “{page.query}”."
    lines = [f"🔍 {page.count} results for “{page.query}” — page {page.page}", DIV]
    for p in page.products:
        brand = f" · {p.brand}" if p.brand else ""
        grade = f" [{p.nutrition_grade.upper()}]" if p.nutrition_grade else ""
        lines.append(f"{p.barcode}  {p.name}{brand}{grade}")
    lines.append(DIV)
    return "\n".join(lines)


# ══════════════════════════════════════════════════════════════════════════════
# ERRORS
# ══════════════════════════════════════════════════════════════════════════════

def error_message(exc: Exception) -> str:
    if isinstance(exc, BarcodeError):
        return f"❌ {exc.message}"
    if isinstance(exc, OfflineError):
        return "📡 You're offline. Connect to the internet and scan again."
    if isinstance(exc, CatalogTimeoutError):
        return f"⏱️ The product database didn't answer within {exc.timeout:g}s. Try again."
    if isinstance(exc, ProductNotFoundError):
        return f"🤷 Product {exc.barcode} isn't in the database yet."
    if isinstance(exc, MaxRetriesExceededError):
        return f"⚠️ The product database is having trouble ({exc.attempts} attempts). Try again later."
    if isinstance(exc, ServerError):
        return f"⚠️ The product database returned an error ({exc.status})."
    if isinstance(exc, CatalogError):
        return f"⚠️ Couldn't load the product: {exc}"
    return f"⚠️ Something went wrong: {exc}"
