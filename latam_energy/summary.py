"""
latam_energy.summary — Report facts for one country of a snapshot.

Derives the quantitative facts a narrative report is written from.
Text templating is left to the presentation layer; everything here is
numbers, rankings and categorical stances.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from latam_energy.constants import RENEWABLE_TECHNOLOGIES, TRANSITION_TECHNOLOGIES
from latam_energy.models import InvestmentMix, ScenarioSnapshot

REPORT_TECHNOLOGY_ORDER: tuple[str, ...] = ("Solar", "Wind", "BESS", "Gas", "Diesel", "Coal")
"""Row order of the investment breakdown."""

RENEWABLE_MAJORITY_PCT: float = 60.0
RENEWABLE_BALANCED_PCT: float = 30.0
SOLAR_ALIGNED_PP: float = 10.0
"""Country vs regional Solar share within this many percentage points
counts as aligned."""

TradePosition = Literal["importer", "exporter", "balanced"]
TrustStance = Literal["not_applicable", "distrust", "trust"]
CoalStance = Literal["new_coal", "divesting", "avoiding"]
MixProfile = Literal["none", "renewable_majority", "balanced", "stability_first"]
SolarAlignment = Literal["none", "aligned", "above", "below"]


def _share(part: float, total: float) -> float:
    return (part / total) * 100.0 if total > 0 else 0.0


@dataclass(frozen=True, slots=True)
class BreakdownRow:
    technology: str
    country_mw: float
    country_share_pct: float
    regional_mw: float
    regional_share_pct: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "technology": self.technology,
            "countryMW": self.country_mw,
            "countrySharePct": round(self.country_share_pct, 1),
            "regionalMW": self.regional_mw,
            "regionalSharePct": round(self.regional_share_pct, 1),
        }


@dataclass(frozen=True, slots=True)
class CountrySummary:
    country: str
    scenario_key: str
    total_investment_mw: float
    ranked_investments: tuple[tuple[str, float], ...]
    top_technology: str | None
    renewable_focused: bool
    renewable_share_pct: float
    mix_profile: MixProfile
    regional_total_investment_mw: float
    country_solar_share_pct: float
    regional_solar_share_pct: float
    solar_share_diff_pp: float
    solar_alignment: SolarAlignment
    trade_position: TradePosition
    net_trade_gwh: float
    trust_stance: TrustStance
    loss_to_trust: float
    loss_to_not_trust: float
    coal_stance: CoalStance
    policy: str
    breakdown: tuple[BreakdownRow, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "country": self.country,
            "scenarioKey": self.scenario_key,
            "totalInvestmentMW": self.total_investment_mw,
            "rankedInvestments": [
                {"technology": t, "mw": v} for t, v in self.ranked_investments
            ],
            "topTechnology": self.top_technology,
            "renewableFocused": self.renewable_focused,
            "renewableSharePct": round(self.renewable_share_pct, 1),
            "mixProfile": self.mix_profile,
            "regionalTotalInvestmentMW": self.regional_total_investment_mw,
            "countrySolarSharePct": round(self.country_solar_share_pct, 1),
            "regionalSolarSharePct": round(self.regional_solar_share_pct, 1),
            "solarShareDiffPP": round(self.solar_share_diff_pp, 1),
            "solarAlignment": self.solar_alignment,
            "tradePosition": self.trade_position,
            "netTradeGWh": self.net_trade_gwh,
            "trustStance": self.trust_stance,
            "lossToTrust": self.loss_to_trust,
            "lossToNotTrust": self.loss_to_not_trust,
            "coalStance": self.coal_stance,
            "policy": self.policy,
            "breakdown": [row.to_dict() for row in self.breakdown],
        }


def ranked_investments(mix: InvestmentMix) -> tuple[tuple[str, float], ...]:
    """Positive investments, largest first. Ties keep technology order."""
    positive = [(t, v) for t, v in mix.to_dict().items() if v > 0]
    return tuple(sorted(positive, key=lambda item: -item[1]))


def investment_breakdown(country: InvestmentMix, regional: InvestmentMix) -> tuple[BreakdownRow, ...]:
    country_total, regional_total = country.total, regional.total
    return tuple(
        BreakdownRow(
            technology=t,
            country_mw=country.get(t),
            country_share_pct=_share(country.get(t), country_total),
            regional_mw=regional.get(t),
            regional_share_pct=_share(regional.get(t), regional_total),
        )
        for t in REPORT_TECHNOLOGY_ORDER
        if country.get(t) > 0 or regional.get(t) > 0
    )


def _mix_profile(total: float, renewable_pct: float) -> MixProfile:
    if total <= 0:
        return "none"
    if renewable_pct > RENEWABLE_MAJORITY_PCT:
        return "renewable_majority"
    if renewable_pct > RENEWABLE_BALANCED_PCT:
        return "balanced"
    return "stability_first"


def _solar_alignment(total: float, diff_pp: float) -> SolarAlignment:
    if total <= 0:
        return "none"
    if abs(diff_pp) < SOLAR_ALIGNED_PP:
        return "aligned"
    return "above" if diff_pp > 0 else "below"


def country_summary(snapshot: ScenarioSnapshot, country: str) -> CountrySummary:
    """Report facts for ``country`` (canonical name).

    Raises:
        KeyError: if the country has no generation, KPI or investment
            entry in the snapshot.
    """
    missing = [
        part for part, countries in (
            ("generation", snapshot.generation.countries),
            ("kpi", snapshot.kpi.countries),
            ("investment", snapshot.investment.countries),
        )
        if country not in countries
    ]
    if missing:
        raise KeyError(f"No {', '.join(missing)} data for country '{country}' in {snapshot.key}.")

    config = snapshot.config
    generation = snapshot.generation.countries[country]
    kpi = snapshot.kpi.countries[country]
    investment = snapshot.investment.countries[country]
    regional = snapshot.investment.regional

    total = investment.total
    ranked = ranked_investments(investment)
    top = ranked[0][0] if ranked else None

    renewable_pct = _share(sum(investment.get(t) for t in RENEWABLE_TECHNOLOGIES), total)
    country_solar = _share(investment.Solar, total)
    regional_solar = _share(regional.Solar, regional.total)
    diff_pp = country_solar - regional_solar

    balance = kpi.energy_balance
    if balance.imports > balance.exports:
        trade: TradePosition = "importer"
    elif balance.exports > balance.imports:
        trade = "exporter"
    else:
        trade = "balanced"

    if config.transmission == "Isolated":
        trust: TrustStance = "not_applicable"
    elif kpi.loss_to_trust > kpi.loss_to_not_trust:
        trust = "distrust"
    else:
        trust = "trust"

    if investment.Coal > 0:
        coal: CoalStance = "new_coal"
    elif generation.Coal > 0:
        coal = "divesting"
    else:
        coal = "avoiding"

    return CountrySummary(
        country=country,
        scenario_key=snapshot.key,
        total_investment_mw=total,
        ranked_investments=ranked,
        top_technology=top,
        renewable_focused=top in TRANSITION_TECHNOLOGIES,
        renewable_share_pct=renewable_pct,
        mix_profile=_mix_profile(total, renewable_pct),
        regional_total_investment_mw=snapshot.kpi.regional.total_investment,
        country_solar_share_pct=country_solar,
        regional_solar_share_pct=regional_solar,
        solar_share_diff_pp=diff_pp,
        solar_alignment=_solar_alignment(total, diff_pp),
        trade_position=trade,
        net_trade_gwh=abs(balance.imports - balance.exports),
        trust_stance=trust,
        loss_to_trust=kpi.loss_to_trust,
        loss_to_not_trust=kpi.loss_to_not_trust,
        coal_stance=coal,
        policy=(
            "energy sovereignty"
            if config.sovereignty == "WithSovereignty"
            else "regional integration"
        ),
        breakdown=investment_breakdown(investment, regional),
    )
