"""Ingredient substitution engine."""

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace

from nutrition_planner.domain.ingredient_catalog import build_ingredient_lookup
from nutrition_planner.domain.nutrition import (
    IngredientData,
    Macros,
    round_half_up,
    round_tenth,
)
from nutrition_planner.domain.restrictions import (
    ClientIngredientRestrictions,
    Recipe,
    RecipeIngredient,
    SubstitutionRule,
)

_logger = logging.getLogger(__name__)

# (attribute, difference scale, weight)
_SIMILARITY_AXES = (
    ("protein_g", 30.0, 0.4),
    ("carbs_g", 50.0, 0.2),
    ("fat_g", 30.0, 0.2),
    ("calories", 200.0, 0.2),
)
_SIMILARITY_WEIGHT = 0.7
_TAG_OVERLAP_WEIGHT = 0.3
_UNSCORED_SIMILARITY = 0.5

# Scale factors are ordered calories, protein, carbs, fat; protein weighs double.
_PROTEIN_POSITION = 1
_PROTEIN_SCALE_WEIGHT = 0.4
_DEFAULT_SCALE_WEIGHT = 0.2

_ACCURACY_WEIGHTS = (
    ("calories", 0.25),
    ("protein_g", 0.35),
    ("carbs_g", 0.2),
    ("fat_g", 0.2),
)

MATRIX_SIZE = 3
MATRIX_MIN_SIMILARITY = 0.3


@dataclass(frozen=True)
class RecipeAdaptation:
    """Recipe rewritten around a client's blocked ingredients."""

    recipe: Recipe
    substitutions: tuple[SubstitutionRule, ...]
    macro_adjustment: float


@dataclass(frozen=True)
class RecipeScaling:
    """Recipe scaled toward macro targets."""

    recipe: Recipe
    scale_factor: float
    macro_accuracy: float


def calculate_macro_similarity(first: IngredientData, second: IngredientData) -> float:
    """Score how closely two ingredients' per-100g macros match, in [0, 1]."""
    score = 0.0
    for attribute, scale, weight in _SIMILARITY_AXES:
        difference = abs(
            getattr(first.macros, attribute) - getattr(second.macros, attribute)
        )
        score += max(0.0, 1 - difference / scale) * weight
    return score


def calculate_tag_overlap(blocked: IngredientData, candidate: IngredientData) -> float:
    """Return the share of the blocked ingredient's tags the candidate carries."""
    if not blocked.tags:
        return 0.0
    shared = sum(1 for tag in blocked.tags if tag in candidate.tags)
    return shared / len(blocked.tags)


def conversion_ratio(blocked: IngredientData, substitute: IngredientData) -> float:
    """Mass multiplier that keeps calories equal; 1 for calorie-free substitutes."""
    if substitute.macros.calories == 0:
        return 1.0
    return blocked.macros.calories / substitute.macros.calories


@dataclass
class SubstitutionService:
    """Find and apply ingredient substitutes against a reference table."""

    ingredients: Mapping[str, IngredientData] = field(
        default_factory=build_ingredient_lookup
    )

    def __post_init__(self) -> None:
        self._by_name = {
            ingredient.name.lower(): ingredient
            for ingredient in self.ingredients.values()
        }

    def get_ingredient(self, ingredient_id: str) -> IngredientData | None:
        return self.ingredients.get(ingredient_id)

    def find_by_name(self, name: str) -> IngredientData | None:
        """Match an ingredient by name, ignoring case."""
        return self._by_name.get(name.lower())

    def find_best_substitute(
        self,
        blocked_id: str,
        restrictions: ClientIngredientRestrictions,
        preserve_macros: bool = True,
    ) -> SubstitutionRule | None:
        """Return the best-ranked substitute for a blocked ingredient.

        Candidates come from the first non-empty source: the client's own
        preference list (first entry only), then non-blocked ingredients in the
        same category, then every non-blocked ingredient. When any candidate is
        preferred by the client, only preferred candidates are ranked.
        Returns None when the ingredient is unknown or nothing qualifies.
        """
        blocked = self.ingredients.get(blocked_id)
        if blocked is None:
            return None

        preference_list = restrictions.substitution_rules.get(blocked_id) or ()
        if preference_list:
            preferred = self.ingredients.get(preference_list[0])
            if (
                preferred is not None
                and preferred.id not in restrictions.blocked_ingredients
            ):
                return SubstitutionRule(
                    original_id=blocked_id,
                    substitute_id=preferred.id,
                    conversion_ratio=conversion_ratio(blocked, preferred),
                    macro_similarity=calculate_macro_similarity(blocked, preferred),
                )

        allowed = [
            ingredient
            for ingredient in self.ingredients.values()
            if ingredient.id != blocked_id
            and ingredient.id not in restrictions.blocked_ingredients
        ]
        candidates = [item for item in allowed if item.category == blocked.category]
        if not candidates:
            candidates = allowed
        preferred_candidates = [
            item for item in candidates if item.id in restrictions.preferred_ingredients
        ]
        if preferred_candidates:
            candidates = preferred_candidates
        if not candidates:
            return None

        scored = []
        for candidate in candidates:
            similarity = (
                calculate_macro_similarity(blocked, candidate)
                if preserve_macros
                else _UNSCORED_SIMILARITY
            )
            overlap = calculate_tag_overlap(blocked, candidate)
            rank = similarity * _SIMILARITY_WEIGHT + overlap * _TAG_OVERLAP_WEIGHT
            scored.append((rank, similarity, candidate))
        # sorted() is stable, so equal ranks keep reference-table order.
        scored.sort(key=lambda item: item[0], reverse=True)
        _, similarity, best = scored[0]
        return SubstitutionRule(
            original_id=blocked_id,
            substitute_id=best.id,
            conversion_ratio=conversion_ratio(blocked, best) if preserve_macros else 1.0,
            macro_similarity=similarity,
        )

    def adapt_recipe(
        self,
        recipe: Recipe,
        restrictions: ClientIngredientRestrictions,
        preserve_macros: bool = True,
    ) -> RecipeAdaptation:
        """Replace blocked ingredients in a recipe and recompute its macros."""
        substitutions: list[SubstitutionRule] = []
        adapted: list[RecipeIngredient] = []
        adjustment = 0.0
        for line in recipe.ingredients:
            data = self.find_by_name(line.name)
            if data is None or data.id not in restrictions.blocked_ingredients:
                adapted.append(line)
                continue
            rule = self.find_best_substitute(data.id, restrictions, preserve_macros)
            substitute = self.ingredients.get(rule.substitute_id) if rule else None
            if rule is None or substitute is None:
                _logger.warning(
                    "No substitute found for blocked ingredient: recipe=%s ingredient=%s",
                    recipe.id,
                    line.name,
                )
                continue
            substitutions.append(rule)
            adapted.append(
                replace(
                    line,
                    name=substitute.name,
                    amount=round_tenth(line.amount * rule.conversion_ratio),
                )
            )
            adjustment += abs(1 - rule.macro_similarity)

        return RecipeAdaptation(
            recipe=replace(
                recipe,
                ingredients=tuple(adapted),
                macros_per_serving=self.recalculate_macros(adapted),
            ),
            substitutions=tuple(substitutions),
            macro_adjustment=adjustment / max(1, len(substitutions)),
        )

    def recalculate_macros(self, lines: Iterable[RecipeIngredient]) -> Macros:
        """Sum per-100g macros over gram amounts, rounding only the totals."""
        calories = protein = carbs = fat = fiber = 0.0
        for line in lines:
            data = self.find_by_name(line.name)
            if data is None:
                continue
            ratio = line.amount / 100
            calories += data.macros.calories * ratio
            protein += data.macros.protein_g * ratio
            carbs += data.macros.carbs_g * ratio
            fat += data.macros.fat_g * ratio
            fiber += (data.macros.fiber_g or 0.0) * ratio
        return Macros(
            calories=round_half_up(calories),
            protein_g=round_half_up(protein),
            carbs_g=round_half_up(carbs),
            fat_g=round_half_up(fat),
            fiber_g=round_half_up(fiber),
        )

    def scale_recipe_to_macros(
        self,
        recipe: Recipe,
        target: Macros,
        restrictions: ClientIngredientRestrictions,
    ) -> RecipeScaling:
        """Adapt a recipe for restrictions, then scale it toward macro targets.

        Per-axis factors (target / current) are combined with positional
        weights over the factors that survive; the weights are not
        renormalized when an axis drops out.
        """
        adapted = self.adapt_recipe(recipe, restrictions, preserve_macros=True).recipe
        current = adapted.macros_per_serving
        factors = [
            factor
            for factor in (
                _ratio(target.calories, current.calories),
                _ratio(target.protein_g, current.protein_g),
                _ratio(target.carbs_g, current.carbs_g),
                _ratio(target.fat_g, current.fat_g),
            )
            if math.isfinite(factor)
        ]
        scale_factor = sum(
            factor
            * (
                _PROTEIN_SCALE_WEIGHT
                if position == _PROTEIN_POSITION
                else _DEFAULT_SCALE_WEIGHT
            )
            for position, factor in enumerate(factors)
        )

        scaled_lines = tuple(
            replace(line, amount=round_tenth(line.amount * scale_factor))
            for line in adapted.ingredients
        )
        scaled_macros = self.recalculate_macros(scaled_lines)
        error = sum(
            _relative_error(getattr(scaled_macros, axis), getattr(target, axis))
            * weight
            for axis, weight in _ACCURACY_WEIGHTS
        )
        return RecipeScaling(
            recipe=replace(
                adapted, ingredients=scaled_lines, macros_per_serving=scaled_macros
            ),
            scale_factor=scale_factor,
            macro_accuracy=max(0.0, 1 - error),
        )

    def generate_substitution_matrix(
        self,
        ingredient_ids: Iterable[str],
        restrictions: ClientIngredientRestrictions,
    ) -> dict[str, list[SubstitutionRule]]:
        """Return up to three close substitutes per ingredient.

        Each round blocks the previous winners; weak matches are dropped.
        Ingredients with no qualifying substitute are omitted.
        """
        matrix: dict[str, list[SubstitutionRule]] = {}
        for ingredient_id in ingredient_ids:
            found: list[SubstitutionRule] = []
            for _ in range(MATRIX_SIZE):
                round_restrictions = ClientIngredientRestrictions(
                    client_id=restrictions.client_id,
                    blocked_ingredients=restrictions.blocked_ingredients
                    | {rule.substitute_id for rule in found},
                    preferred_ingredients=restrictions.preferred_ingredients
                    - {rule.substitute_id for rule in found},
                    substitution_rules=restrictions.substitution_rules,
                )
                rule = self.find_best_substitute(ingredient_id, round_restrictions)
                if rule is not None and rule.macro_similarity > MATRIX_MIN_SIMILARITY:
                    found.append(rule)
            if found:
                matrix[ingredient_id] = found
        return matrix


def _ratio(target: float, current: float) -> float:
    if current == 0:
        return math.nan
    return target / current


def _relative_error(actual: float, target: float) -> float:
    if target == 0:
        return 0.0 if actual == 0 else 1.0
    return abs(actual - target) / target
