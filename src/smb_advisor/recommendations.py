# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Recommendation rule engine for SMB Advisor.

This module turns one year of financial figures into a prioritized list of
recommendations. It works in three steps:

1. Ratios
   ------
   The FinancialRecord is converted into FinancialRatios by ratios.py.
   Invalid records (revenue <= 0, negative amounts) are rejected there with
   InvalidInputError: rules are never evaluated on non-finite values.

2. Rules
   -----
   A fixed, ordered set of independent threshold rules is evaluated against
   the ratios and a SectorBenchmark:

       #  id               trigger                                 impact  effort
       1  margin           margin < benchmark.margin - 5           high    medium
       2  cost-ratio       cost_ratio > benchmark.cost_ratio + 5   high    medium
       3  payroll          payroll_ratio > benchmark.payroll + 5   high    high
       4  cash-flow        cash_flow_ratio < benchmark.cash - 5    high    medium
       5  fixed-costs      fixed_cost_ratio > 35                   medium  medium
       6  profitability    profitability < 10                      high    high
       7  growth           revenue < 100 000                       high    high
       8  purchasing       variable_cost_ratio > 50                medium  medium
       9  financing        always                                  medium  low
      10  marketing        always                                  medium  medium
      11  payroll-charges  always                                  medium  low
      12  opex             always                                  low     low

   Each triggered rule produces a Recommendation whose description and
   potential gain are templated with the user's numbers, and which carries a
   static list of suggested actions.

3. Ordering
   --------
   Recommendations are sorted by descending priority, where

       priority = IMPACT_WEIGHTS[impact] * EFFORT_WEIGHTS[effort]

   and the effort weight is inverted (low effort weighs more) so that quick
   wins come first. The sort is stable: equal priorities keep the rule
   evaluation order.

The whole module is a pure function of (record, benchmark, profile).
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Literal, Optional

from .benchmarks import DEFAULT_BENCHMARK, SectorBenchmark, get_benchmark
from .formatting import format_currency, format_percent, format_points
from .models import CompanyProfile, FinancialRecord
from .ratios import FinancialRatios, compute_ratios

Level = Literal["high", "medium", "low"]
GainKind = Literal["ebe", "cash", "revenue"]

IMPACT_WEIGHTS: dict[str, int] = {"high": 3, "medium": 2, "low": 1}
EFFORT_WEIGHTS: dict[str, int] = {"high": 1, "medium": 2, "low": 3}

# Fixed thresholds (percent of revenue, or euros for revenue)
BENCHMARK_TOLERANCE = 5.0
FIXED_COST_RATIO_MAX = 35.0
FIXED_COST_RATIO_TARGET = 30.0
PROFITABILITY_MIN = 10.0
PROFITABILITY_TARGET = 15.0
REVENUE_MIN = 100_000.0
VARIABLE_COST_RATIO_MAX = 50.0
VARIABLE_COST_RATIO_TARGET = 45.0


@dataclass(frozen=True)
class ActionItem:
    """A concrete suggested action attached to a recommendation."""

    title: str
    description: str


@dataclass(frozen=True)
class Recommendation:
    """
    One triggered rule, ready for display.

    Attributes:
        id: Stable rule identifier (e.g. 'cost-ratio').
        title: Short title.
        description: Text templated with the user's figures.
        impact: 'high' | 'medium' | 'low'.
        effort: 'high' | 'medium' | 'low'.
        category: Category label (e.g. 'Trésorerie').
        current_value: Current value of the monitored indicator.
        target_value: Value to reach.
        unit: '%' or '€'.
        potential_gain: Templated description of the expected gain.
        benchmark: Label of the benchmark used for comparison, if any.
        actions: Ordered suggested actions.
        estimated_gain: Gain in euros behind ``potential_gain``, if any.
        gain_kind: What ``estimated_gain`` measures: an EBE improvement
            ('ebe'), a cash shortfall ('cash') or missing revenue
            ('revenue').
    """

    id: str
    title: str
    description: str
    impact: Level
    effort: Level
    category: str
    current_value: float
    target_value: float
    unit: str
    potential_gain: str
    benchmark: Optional[str]
    actions: tuple[ActionItem, ...]
    estimated_gain: Optional[float] = None
    gain_kind: GainKind = "ebe"

    @property
    def priority(self) -> int:
        return priority_score(self.impact, self.effort)

    @property
    def is_quick_win(self) -> bool:
        return self.impact == "high" and self.effort == "low"


@dataclass(frozen=True)
class RecommendationsSummary:
    """
    Aggregated view of a list of recommendations.

    EBE gains of the threshold rules overlap (the cost-ratio gain already
    contains the purchasing, payroll and fixed-cost savings), so
    ``estimated_gain`` is the largest single EBE improvement, not a sum. Cash
    and revenue gaps are reported separately.
    """

    total: int
    by_impact: dict[str, int]
    quick_wins: int
    estimated_gain: float
    cash_gap: float = 0.0
    revenue_gap: float = 0.0


@dataclass(frozen=True)
class _Context:
    record: FinancialRecord
    ratios: FinancialRatios
    benchmark: SectorBenchmark

    @property
    def reference(self) -> str:
        """Phrase naming the comparison baseline inside a sentence."""
        if self.benchmark.sector:
            return f"la référence du secteur {self.benchmark.sector}"
        return "la référence des PME"


def priority_score(impact: str, effort: str) -> int:
    """Return impact_weight * effort_weight (effort weight is inverted)."""
    try:
        return IMPACT_WEIGHTS[impact] * EFFORT_WEIGHTS[effort]
    except KeyError as exc:
        raise ValueError(f"Unknown impact/effort level: {exc.args[0]!r}") from exc


def _actions(*items: tuple[str, str]) -> tuple[ActionItem, ...]:
    return tuple(ActionItem(title=t, description=d) for t, d in items)


def _gain_on_revenue(points: float, revenue: float) -> float:
    return max(points, 0.0) / 100 * revenue


# ---------------------------------------------------------------------------
# Threshold rules
# ---------------------------------------------------------------------------


def _rule_margin(ctx: _Context) -> Optional[Recommendation]:
    margin = ctx.ratios.margin
    target = ctx.benchmark.margin
    if not margin < target - BENCHMARK_TOLERANCE:
        return None

    gap = target - margin
    gain = _gain_on_revenue(gap, ctx.record.revenue)
    return Recommendation(
        id="margin",
        title="Améliorer la marge commerciale",
        description=(
            f"Votre taux de marge est de {format_percent(margin)}, soit "
            f"{format_points(gap)} sous {ctx.reference} ({format_percent(target)}). "
            "Envisagez d'optimiser vos prix de vente ou de négocier vos achats."
        ),
        impact="high",
        effort="medium",
        category="Rentabilité/Pricing",
        current_value=margin,
        target_value=target,
        unit="%",
        potential_gain=f"+{format_currency(gain)} de marge par an",
        benchmark=ctx.benchmark.label,
        actions=_actions(
            (
                "Revoir la grille tarifaire",
                "Comparez vos prix à ceux de vos concurrents et ajustez les "
                "offres les moins rentables.",
            ),
            (
                "Renégocier avec les fournisseurs",
                "Demandez des remises sur volume ou des conditions de paiement "
                "plus favorables.",
            ),
            (
                "Analyser la rentabilité par produit",
                "Identifiez les produits ou services à faible marge et "
                "repositionnez-les.",
            ),
        ),
        estimated_gain=gain,
    )


def _rule_cost_ratio(ctx: _Context) -> Optional[Recommendation]:
    cost_ratio = ctx.ratios.cost_ratio
    target = ctx.benchmark.cost_ratio
    if not cost_ratio > target + BENCHMARK_TOLERANCE:
        return None

    gap = cost_ratio - target
    gain = _gain_on_revenue(gap, ctx.record.revenue)
    return Recommendation(
        id="cost-ratio",
        title="Réduire le poids des charges",
        description=(
            f"Vos charges représentent {format_percent(cost_ratio)} de votre CA, "
            f"soit {format_points(gap)} au-dessus de {ctx.reference} "
            f"({format_percent(target)}). Identifiez les postes de dépenses non "
            "essentiels et envisagez des alternatives moins coûteuses."
        ),
        impact="high",
        effort="medium",
        category="Coûts",
        current_value=cost_ratio,
        target_value=target,
        unit="%",
        potential_gain=f"{format_currency(gain)} d'économies par an",
        benchmark=ctx.benchmark.label,
        actions=_actions(
            (
                "Cartographier les dépenses",
                "Classez vos charges par poste et repérez les trois plus lourds.",
            ),
            (
                "Mettre en concurrence les prestataires",
                "Lancez des appels d'offres sur les contrats récurrents.",
            ),
            (
                "Supprimer les abonnements inutiles",
                "Résiliez les services peu ou pas utilisés.",
            ),
        ),
        estimated_gain=gain,
    )


def _rule_payroll(ctx: _Context) -> Optional[Recommendation]:
    payroll_ratio = ctx.ratios.payroll_ratio
    target = ctx.benchmark.payroll_ratio
    if not payroll_ratio > target + BENCHMARK_TOLERANCE:
        return None

    gap = payroll_ratio - target
    gain = _gain_on_revenue(gap, ctx.record.revenue)
    return Recommendation(
        id="payroll",
        title="Optimiser la masse salariale",
        description=(
            f"Votre masse salariale représente {format_percent(payroll_ratio)} de "
            f"votre CA, contre {format_percent(target)} pour {ctx.reference}. "
            "Analysez la productivité de vos équipes et envisagez l'automatisation "
            "de certaines tâches."
        ),
        impact="high",
        effort="high",
        category="RH",
        current_value=payroll_ratio,
        target_value=target,
        unit="%",
        potential_gain=f"{format_currency(gain)} de masse salariale optimisable",
        benchmark=ctx.benchmark.label,
        actions=_actions(
            (
                "Mesurer la productivité",
                "Suivez le CA par salarié et comparez-le à celui du secteur.",
            ),
            (
                "Automatiser les tâches répétitives",
                "Outillez la facturation, la saisie et le reporting.",
            ),
            (
                "Revoir l'organisation du travail",
                "Ajustez les plannings à l'activité réelle.",
            ),
            (
                "Recourir à l'externalisation",
                "Confiez les fonctions non stratégiques à des prestataires.",
            ),
        ),
        estimated_gain=gain,
    )


def _rule_cash_flow(ctx: _Context) -> Optional[Recommendation]:
    cash_ratio = ctx.ratios.cash_flow_ratio
    target = ctx.benchmark.cash_flow_ratio
    if not cash_ratio < target - BENCHMARK_TOLERANCE:
        return None

    gap = target - cash_ratio
    gain = _gain_on_revenue(gap, ctx.record.revenue)
    return Recommendation(
        id="cash-flow",
        title="Améliorer la trésorerie",
        description=(
            f"Votre trésorerie représente {format_percent(cash_ratio)} de votre CA, "
            f"soit {format_points(gap)} sous {ctx.reference} "
            f"({format_percent(target)}). Optimisez vos délais de paiement clients "
            "et négociez avec vos fournisseurs."
        ),
        impact="high",
        effort="medium",
        category="Trésorerie",
        current_value=cash_ratio,
        target_value=target,
        unit="%",
        potential_gain=f"+{format_currency(gain)} de trésorerie disponible",
        benchmark=ctx.benchmark.label,
        actions=_actions(
            (
                "Réduire les délais clients",
                "Facturez dès la livraison et relancez systématiquement les "
                "retards.",
            ),
            (
                "Négocier les délais fournisseurs",
                "Alignez vos échéances fournisseurs sur vos encaissements.",
            ),
            (
                "Établir un plan de trésorerie",
                "Prévoyez vos flux sur 12 mois glissants.",
            ),
        ),
        estimated_gain=gain,
        gain_kind="cash",
    )


def _rule_fixed_costs(ctx: _Context) -> Optional[Recommendation]:
    ratio = ctx.ratios.fixed_cost_ratio
    if not ratio > FIXED_COST_RATIO_MAX:
        return None

    gain = _gain_on_revenue(ratio - FIXED_COST_RATIO_TARGET, ctx.record.revenue)
    return Recommendation(
        id="fixed-costs",
        title="Réduire les charges fixes",
        description=(
            f"Vos charges fixes représentent {format_percent(ratio)} de votre CA "
            f"(seuil d'alerte : {format_percent(FIXED_COST_RATIO_MAX)}). Étudiez la "
            "possibilité de renégocier vos contrats (loyer, assurances, "
            "abonnements) ou de mutualiser certaines ressources."
        ),
        impact="medium",
        effort="medium",
        category="Structure de coûts",
        current_value=ratio,
        target_value=FIXED_COST_RATIO_TARGET,
        unit="%",
        potential_gain=f"{format_currency(gain)} de charges fixes en moins",
        benchmark=None,
        actions=_actions(
            (
                "Renégocier le bail",
                "Demandez une révision du loyer ou une réduction de surface.",
            ),
            (
                "Comparer les assurances",
                "Faites jouer la concurrence sur vos contrats d'assurance.",
            ),
            (
                "Mutualiser les ressources",
                "Partagez locaux, matériel ou services avec d'autres entreprises.",
            ),
        ),
        estimated_gain=gain,
    )


def _rule_profitability(ctx: _Context) -> Optional[Recommendation]:
    profitability = ctx.ratios.profitability
    if not profitability < PROFITABILITY_MIN:
        return None

    gain = _gain_on_revenue(PROFITABILITY_TARGET - profitability, ctx.record.revenue)
    return Recommendation(
        id="profitability",
        title="Restaurer la rentabilité",
        description=(
            f"Votre rentabilité est de {format_percent(profitability)} pour un EBE "
            f"de {format_currency(ctx.ratios.ebe)}. En dessous de "
            f"{format_percent(PROFITABILITY_MIN)}, votre capacité à investir et à "
            "absorber les imprévus est limitée."
        ),
        impact="high",
        effort="high",
        category="Rentabilité",
        current_value=profitability,
        target_value=PROFITABILITY_TARGET,
        unit="%",
        potential_gain=f"+{format_currency(gain)} d'EBE par an",
        benchmark=None,
        actions=_actions(
            (
                "Identifier les activités déficitaires",
                "Calculez la contribution de chaque activité à l'EBE.",
            ),
            (
                "Augmenter les prix",
                "Répercutez la hausse de vos coûts sur vos tarifs.",
            ),
            (
                "Piloter mensuellement",
                "Suivez marge, charges et EBE chaque mois.",
            ),
        ),
        estimated_gain=gain,
    )


def _rule_growth(ctx: _Context) -> Optional[Recommendation]:
    revenue = ctx.record.revenue
    if not revenue < REVENUE_MIN:
        return None

    gain = REVENUE_MIN - revenue
    return Recommendation(
        id="growth",
        title="Développer le chiffre d'affaires",
        description=(
            f"Votre chiffre d'affaires de {format_currency(revenue)} reste "
            f"inférieur à {format_currency(REVENUE_MIN)}. Un volume d'activité plus "
            "important permettrait de mieux absorber vos charges fixes."
        ),
        impact="high",
        effort="high",
        category="Croissance",
        current_value=revenue,
        target_value=REVENUE_MIN,
        unit="€",
        potential_gain=f"+{format_currency(gain)} de CA à conquérir",
        benchmark=None,
        actions=_actions(
            (
                "Prospecter de nouveaux clients",
                "Définissez un objectif hebdomadaire de prises de contact.",
            ),
            (
                "Élargir l'offre",
                "Proposez des services complémentaires à vos clients actuels.",
            ),
            (
                "Explorer de nouveaux canaux",
                "Testez la vente en ligne ou les partenariats.",
            ),
        ),
        estimated_gain=gain,
        gain_kind="revenue",
    )


def _rule_purchasing(ctx: _Context) -> Optional[Recommendation]:
    ratio = ctx.ratios.variable_cost_ratio
    if not ratio > VARIABLE_COST_RATIO_MAX:
        return None

    gain = _gain_on_revenue(ratio - VARIABLE_COST_RATIO_TARGET, ctx.record.revenue)
    return Recommendation(
        id="purchasing",
        title="Optimiser les achats",
        description=(
            f"Vos charges variables représentent {format_percent(ratio)} de votre "
            f"CA (seuil : {format_percent(VARIABLE_COST_RATIO_MAX)}). Une politique "
            "d'achats plus structurée améliorerait directement votre marge."
        ),
        impact="medium",
        effort="medium",
        category="Achats",
        current_value=ratio,
        target_value=VARIABLE_COST_RATIO_TARGET,
        unit="%",
        potential_gain=f"{format_currency(gain)} d'économies sur les achats",
        benchmark=None,
        actions=_actions(
            (
                "Regrouper les commandes",
                "Centralisez les achats pour obtenir de meilleurs prix.",
            ),
            (
                "Référencer des fournisseurs alternatifs",
                "Évitez la dépendance à un fournisseur unique.",
            ),
            (
                "Réduire la sous-traitance",
                "Internalisez les prestations récurrentes lorsque c'est rentable.",
            ),
        ),
        estimated_gain=gain,
    )


# ---------------------------------------------------------------------------
# Generic recommendations (always emitted)
# ---------------------------------------------------------------------------


def _rule_financing(ctx: _Context) -> Optional[Recommendation]:
    target = ctx.benchmark.cash_flow_ratio
    return Recommendation(
        id="financing",
        title="Sécuriser les financements",
        description=(
            "Anticipez vos besoins de financement : une ligne de crédit négociée "
            "en période favorable coûte moins cher qu'un découvert subi. Votre "
            f"trésorerie représente {format_percent(ctx.ratios.cash_flow_ratio)} de "
            "votre CA."
        ),
        impact="medium",
        effort="low",
        category="Financement",
        current_value=ctx.ratios.cash_flow_ratio,
        target_value=target,
        unit="%",
        potential_gain="Réduction des frais bancaires et des agios",
        benchmark=ctx.benchmark.label,
        actions=_actions(
            (
                "Rencontrer votre banquier",
                "Présentez vos comptes et vos projets une fois par an.",
            ),
            (
                "Étudier les aides publiques",
                "Consultez les dispositifs Bpifrance et régionaux.",
            ),
            (
                "Comparer les offres bancaires",
                "Faites jouer la concurrence sur vos frais et taux.",
            ),
        ),
    )


def _rule_marketing(ctx: _Context) -> Optional[Recommendation]:
    revenue = ctx.record.revenue
    gain = revenue * 0.10
    return Recommendation(
        id="marketing",
        title="Développer de nouvelles sources de revenus",
        description=(
            "Diversifiez vos offres ou explorez de nouveaux marchés pour augmenter "
            "votre chiffre d'affaires et diluer vos charges fixes. Une croissance "
            f"de 10 % représenterait {format_currency(gain)} de CA supplémentaire."
        ),
        impact="medium",
        effort="medium",
        category="Marketing",
        current_value=revenue,
        target_value=revenue + gain,
        unit="€",
        potential_gain=f"+{format_currency(gain)} de CA",
        benchmark=None,
        actions=_actions(
            (
                "Soigner la présence en ligne",
                "Mettez à jour votre site et vos fiches d'établissement.",
            ),
            (
                "Fidéliser les clients",
                "Mettez en place un programme de fidélité ou des offres dédiées.",
            ),
            (
                "Mesurer l'acquisition",
                "Suivez le coût d'acquisition par canal.",
            ),
        ),
        estimated_gain=None,
    )


def _rule_payroll_charges(ctx: _Context) -> Optional[Recommendation]:
    payroll = ctx.record.payroll
    gain = payroll * 0.05
    return Recommendation(
        id="payroll-charges",
        title="Optimiser les charges sociales",
        description=(
            f"Sur une masse salariale de {format_currency(payroll)}, les dispositifs "
            "d'allègement de charges et d'épargne salariale peuvent réduire le coût "
            "employeur sans baisser les rémunérations."
        ),
        impact="medium",
        effort="low",
        category="Charges sociales",
        current_value=payroll,
        target_value=payroll - gain,
        unit="€",
        potential_gain=f"Jusqu'à {format_currency(gain)} d'économies",
        benchmark=None,
        actions=_actions(
            (
                "Vérifier les allègements",
                "Contrôlez l'application des réductions générales de cotisations.",
            ),
            (
                "Mettre en place l'épargne salariale",
                "Intéressement et participation sont exonérés de charges sociales.",
            ),
            (
                "Faire auditer la paie",
                "Un audit détecte souvent des erreurs de taux.",
            ),
        ),
        estimated_gain=None,
    )


def _rule_opex(ctx: _Context) -> Optional[Recommendation]:
    fixed_costs = ctx.record.fixed_costs
    gain = fixed_costs * 0.10
    return Recommendation(
        id="opex",
        title="Maîtriser les frais généraux",
        description=(
            f"Vos frais fixes s'élèvent à {format_currency(fixed_costs)}. Une revue "
            "annuelle des contrats permet généralement d'en réduire une partie."
        ),
        impact="low",
        effort="low",
        category="Frais généraux",
        current_value=fixed_costs,
        target_value=fixed_costs - gain,
        unit="€",
        potential_gain=f"Jusqu'à {format_currency(gain)} d'économies",
        benchmark=None,
        actions=_actions(
            (
                "Lister les contrats",
                "Recensez les échéances de chaque contrat récurrent.",
            ),
            (
                "Dématérialiser",
                "Réduisez les frais d'impression et d'envoi.",
            ),
            (
                "Suivre les dépenses",
                "Définissez un budget par poste et suivez-le chaque trimestre.",
            ),
        ),
        estimated_gain=None,
    )


RULES: tuple[Callable[[_Context], Optional[Recommendation]], ...] = (
    _rule_margin,
    _rule_cost_ratio,
    _rule_payroll,
    _rule_cash_flow,
    _rule_fixed_costs,
    _rule_profitability,
    _rule_growth,
    _rule_purchasing,
    _rule_financing,
    _rule_marketing,
    _rule_payroll_charges,
    _rule_opex,
)


def sort_by_priority(recommendations: Sequence[Recommendation]) -> list[Recommendation]:
    """Sort by descending priority; equal priorities keep their input order."""
    return sorted(recommendations, key=lambda r: r.priority, reverse=True)


def generate_recommendations(
    record: Optional[FinancialRecord],
    benchmark: Optional[SectorBenchmark] = None,
    profile: Optional[CompanyProfile] = None,
) -> list[Recommendation]:
    """
    Evaluate all rules for a FinancialRecord and return sorted recommendations.

    Args:
        record: Latest financial figures, or None when the user has not
            entered any data yet.
        benchmark: Explicit benchmark. When omitted, the benchmark of the
            profile's sector is used, or the default benchmark.
        profile: Optional company profile (used to select the benchmark).

    Returns:
        Recommendations sorted by descending priority (stable). An empty list
        when ``record`` is None.

    Raises:
        InvalidInputError: if the record cannot produce finite ratios.
    """
    if record is None:
        return []

    if benchmark is None:
        benchmark = get_benchmark(profile.sector) if profile else DEFAULT_BENCHMARK

    ctx = _Context(record=record, ratios=compute_ratios(record), benchmark=benchmark)

    triggered: list[Recommendation] = []
    for rule in RULES:
        rec = rule(ctx)
        if rec is not None:
            triggered.append(rec)

    return sort_by_priority(triggered)


def summarize_recommendations(
    recommendations: Sequence[Recommendation],
) -> RecommendationsSummary:
    """Count recommendations per impact level and keep the largest gain of each kind."""
    by_impact = {"high": 0, "medium": 0, "low": 0}
    largest = {"ebe": 0.0, "cash": 0.0, "revenue": 0.0}
    quick_wins = 0
    for rec in recommendations:
        by_impact[rec.impact] += 1
        if rec.is_quick_win:
            quick_wins += 1
        if rec.estimated_gain is not None:
            largest[rec.gain_kind] = max(largest[rec.gain_kind], rec.estimated_gain)

    return RecommendationsSummary(
        total=len(recommendations),
        by_impact=by_impact,
        quick_wins=quick_wins,
        estimated_gain=largest["ebe"],
        cash_gap=largest["cash"],
        revenue_gap=largest["revenue"],
    )
