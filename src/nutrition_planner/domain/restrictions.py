"""Client ingredient restrictions and recipe models."""

from dataclasses import dataclass, field

from nutrition_planner.domain.nutrition import Macros


@dataclass(frozen=True)
class ClientIngredientRestrictions:
    """Blocked and preferred ingredients for a client."""

    client_id: str
    blocked_ingredients: frozenset[str] = frozenset()
    preferred_ingredients: frozenset[str] = frozenset()
    substitution_rules: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        overlap = self.blocked_ingredients & self.preferred_ingredients
        if overlap:
            raise ValueError(
                f"Ingredients cannot be both blocked and preferred: {sorted(overlap)}"
            )


@dataclass(frozen=True)
class SubstitutionRule:
    """Chosen replacement for a blocked ingredient."""

    original_id: str
    substitute_id: str
    conversion_ratio: float
    macro_similarity: float


@dataclass(frozen=True)
class RecipeIngredient:
    """Ingredient line of a recipe, amount in grams."""

    name: str
    amount: float
    unit: str = "g"


@dataclass(frozen=True)
class Recipe:
    """Recipe with per-serving macros."""

    id: str
    name: str
    ingredients: tuple[RecipeIngredient, ...]
    macros_per_serving: Macros
    servings: int = 1
