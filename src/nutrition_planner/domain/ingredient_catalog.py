"""Reference ingredient table with macros per 100g."""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from nutrition_planner.domain.nutrition import IngredientCategory, IngredientData, Macros

_B = "breakfast"
_L = "lunch"
_D = "dinner"
_S = "snack"


def _ingredient(  # noqa: PLR0913
    ingredient_id: str,
    name: str,
    category: IngredientCategory,
    macros: tuple[float, float, float, float, float],
    serving_g: float,
    meals: tuple[str, ...],
    tags: tuple[str, ...],
) -> IngredientData:
    protein, carbs, fat, calories, fiber = macros
    return IngredientData(
        id=ingredient_id,
        name=name,
        category=category,
        macros=Macros(
            calories=calories,
            protein_g=protein,
            carbs_g=carbs,
            fat_g=fat,
            fiber_g=fiber,
        ),
        typical_serving_size_g=serving_g,
        tags=tags,
        allowed_meals=meals,
    )


# macros tuples are (protein, carbs, fat, calories, fiber)
CORE_INGREDIENTS: tuple[IngredientData, ...] = (
    # Proteins
    _ingredient("chicken-breast", "Chicken Breast", "protein", (31, 0, 3.6, 165, 0), 150, (_L, _D), ("lean", "high-protein", "versatile", "budget")),
    _ingredient("eggs", "Eggs (whole)", "protein", (13, 1.1, 11, 155, 0), 100, (_B, _L, _S), ("complete-protein", "vegetarian", "budget", "versatile")),
    _ingredient("salmon", "Salmon", "protein", (25, 0, 13, 208, 0), 120, (_L, _D), ("omega-3", "heart-healthy", "premium")),
    _ingredient("tofu", "Tofu (firm)", "protein", (8, 2, 4.8, 76, 0.3), 150, (_L, _D), ("vegetarian", "vegan", "plant-based", "budget")),
    _ingredient("greek-yogurt", "Greek Yogurt (0% fat)", "protein", (10, 3.6, 0.4, 59, 0), 170, (_B, _S), ("high-protein", "probiotic", "vegetarian", "low-fat")),
    _ingredient("lentils", "Lentils (cooked)", "protein", (9, 20, 0.4, 116, 7.9), 200, (_L, _D), ("vegetarian", "vegan", "high-fiber", "budget", "plant-based")),
    _ingredient("turkey-breast", "Turkey Breast", "protein", (29, 0, 1, 135, 0), 120, (_L, _D), ("lean", "high-protein", "low-fat")),
    _ingredient("cottage-cheese", "Cottage Cheese (2% fat)", "protein", (11, 3.4, 2.3, 81, 0), 200, (_B, _S), ("high-protein", "vegetarian", "budget")),
    _ingredient("tuna", "Tuna (canned in water)", "protein", (25, 0, 0.8, 116, 0), 100, (_L, _D, _S), ("lean", "high-protein", "budget", "convenient")),
    _ingredient("black-beans", "Black Beans (cooked)", "protein", (8.9, 23, 0.5, 132, 8.7), 170, (_L, _D), ("vegetarian", "vegan", "high-fiber", "budget", "plant-based")),
    # Carbohydrates
    _ingredient("brown-rice", "Brown Rice (cooked)", "carbohydrate", (2.6, 23, 0.9, 111, 1.8), 150, (_L, _D), ("whole-grain", "gluten-free", "budget", "staple")),
    _ingredient("oats", "Oats (rolled)", "carbohydrate", (13.2, 67, 6.5, 379, 10.1), 40, (_B, _S), ("whole-grain", "high-fiber", "budget", "breakfast")),
    _ingredient("sweet-potato", "Sweet Potato", "carbohydrate", (1.6, 20, 0.1, 86, 3), 200, (_L, _D), ("whole-food", "high-fiber", "budget", "nutrient-dense")),
    _ingredient("quinoa", "Quinoa (cooked)", "carbohydrate", (4.4, 21, 1.9, 120, 2.8), 150, (_L, _D), ("complete-protein", "gluten-free", "whole-grain")),
    _ingredient("whole-wheat-pasta", "Whole Wheat Pasta (cooked)", "carbohydrate", (5.3, 26, 0.9, 124, 4.5), 150, (_L, _D), ("whole-grain", "high-fiber", "budget")),
    _ingredient("white-potato", "White Potato", "carbohydrate", (2, 17, 0.1, 77, 2.2), 200, (_L, _D), ("budget", "versatile", "staple", "gluten-free")),
    _ingredient("whole-wheat-bread", "Whole Wheat Bread", "carbohydrate", (9, 43, 3.4, 247, 6.5), 60, (_B, _L, _S), ("whole-grain", "convenient", "breakfast")),
    _ingredient("barley", "Barley (cooked)", "carbohydrate", (2.3, 28, 0.4, 123, 3.8), 150, (_L, _D), ("whole-grain", "high-fiber", "budget")),
    # Fats
    _ingredient("olive-oil", "Extra Virgin Olive Oil", "fat", (0, 0, 100, 884, 0), 15, (_B, _L, _D), ("heart-healthy", "monounsaturated", "mediterranean")),
    _ingredient("avocado", "Avocado", "fat", (2, 8.5, 14.7, 160, 6.7), 100, (_B, _L, _D, _S), ("heart-healthy", "high-fiber", "nutrient-dense")),
    _ingredient("almonds", "Almonds", "fat", (21, 22, 49, 579, 12.5), 30, (_B, _S), ("high-protein", "heart-healthy", "snack")),
    _ingredient("walnuts", "Walnuts", "fat", (15, 14, 65, 654, 6.7), 30, (_B, _S), ("omega-3", "heart-healthy", "brain-health")),
    _ingredient("peanut-butter", "Natural Peanut Butter", "fat", (25, 20, 50, 588, 6), 30, (_B, _S), ("high-protein", "convenient", "budget")),
    _ingredient("chia-seeds", "Chia Seeds", "fat", (17, 42, 31, 486, 34), 15, (_B, _S), ("omega-3", "high-fiber", "superfood")),
    _ingredient("flax-seeds", "Flax Seeds (ground)", "fat", (18, 29, 42, 534, 27), 15, (_B, _S), ("omega-3", "high-fiber", "plant-based")),
    _ingredient("coconut-oil", "Coconut Oil", "fat", (0, 0, 100, 862, 0), 15, (_B, _L, _D), ("saturated", "cooking", "energy")),
    # Fruits
    _ingredient("banana", "Banana", "fruit", (1.1, 23, 0.3, 89, 2.6), 120, (_B, _S), ("quick-energy", "budget", "convenient")),
    _ingredient("apple", "Apple", "fruit", (0.3, 14, 0.2, 52, 2.4), 180, (_B, _S), ("high-fiber", "budget", "snack")),
    _ingredient("berries-mixed", "Mixed Berries", "fruit", (0.7, 12, 0.3, 57, 3.6), 150, (_B, _S), ("antioxidant", "low-calorie", "nutrient-dense")),
    _ingredient("orange", "Orange", "fruit", (0.9, 12, 0.1, 47, 2.4), 150, (_B, _S), ("vitamin-c", "immune-support", "budget")),
    _ingredient("mango", "Mango", "fruit", (0.8, 15, 0.4, 60, 1.6), 150, (_B, _S), ("vitamin-a", "tropical", "sweet")),
    _ingredient("grapes", "Grapes", "fruit", (0.7, 17, 0.2, 69, 0.9), 150, (_S,), ("antioxidant", "convenient", "snack")),
    # Vegetables
    _ingredient("broccoli", "Broccoli", "vegetable", (2.8, 7, 0.4, 34, 2.6), 150, (_L, _D), ("nutrient-dense", "low-calorie", "cruciferous")),
    _ingredient("spinach", "Spinach", "vegetable", (2.9, 3.6, 0.4, 23, 2.2), 100, (_B, _L, _D), ("nutrient-dense", "low-calorie", "versatile")),
    _ingredient("tomato", "Tomato", "vegetable", (0.9, 3.9, 0.2, 18, 1.2), 150, (_B, _L, _D), ("antioxidant", "low-calorie", "versatile")),
    _ingredient("carrot", "Carrot", "vegetable", (0.9, 10, 0.2, 41, 2.8), 100, (_L, _D, _S), ("vitamin-a", "budget", "snack")),
    _ingredient("bell-pepper", "Bell Pepper", "vegetable", (1, 6, 0.3, 31, 2.1), 150, (_L, _D), ("vitamin-c", "low-calorie", "colorful")),
    _ingredient("cucumber", "Cucumber", "vegetable", (0.7, 3.6, 0.1, 16, 0.5), 100, (_L, _D, _S), ("hydrating", "low-calorie", "refreshing")),
    _ingredient("cauliflower", "Cauliflower", "vegetable", (1.9, 5, 0.3, 25, 2), 150, (_L, _D), ("low-carb", "versatile", "cruciferous")),
    _ingredient("zucchini", "Zucchini", "vegetable", (1.2, 3.1, 0.3, 17, 1), 150, (_L, _D), ("low-calorie", "versatile", "hydrating")),
    _ingredient("kale", "Kale", "vegetable", (4.3, 9, 0.9, 49, 3.6), 100, (_B, _L, _D), ("superfood", "nutrient-dense", "cruciferous")),
    _ingredient("asparagus", "Asparagus", "vegetable", (2.2, 3.9, 0.1, 20, 2.1), 150, (_L, _D), ("nutrient-dense", "low-calorie", "spring-vegetable")),
    # Misc
    _ingredient("garlic", "Garlic", "misc", (6.4, 33, 0.5, 149, 2.1), 5, (_L, _D), ("flavor", "immune-support", "antimicrobial")),
    _ingredient("ginger", "Fresh Ginger", "misc", (1.8, 18, 0.8, 80, 2), 5, (_B, _L, _D), ("anti-inflammatory", "digestive", "flavor")),
    _ingredient("lemon", "Lemon (juice)", "misc", (0.4, 9, 0.2, 22, 0.3), 30, (_B, _L, _D), ("vitamin-c", "flavor", "alkalizing")),
    _ingredient("herbs-mixed", "Mixed Fresh Herbs", "misc", (3.7, 8, 0.8, 50, 3.5), 10, (_L, _D), ("flavor", "antioxidant", "zero-calorie")),
    _ingredient("cinnamon", "Cinnamon", "misc", (4, 81, 1.2, 247, 53), 2, (_B, _S), ("blood-sugar", "antioxidant", "flavor")),
)  # fmt: skip


def build_ingredient_lookup(
    ingredients: Iterable[IngredientData] = CORE_INGREDIENTS,
) -> Mapping[str, IngredientData]:
    """Index ingredients by id."""
    return MappingProxyType({ingredient.id: ingredient for ingredient in ingredients})


def ingredients_for_meal(
    meal_type: str, ingredients: Iterable[IngredientData] = CORE_INGREDIENTS
) -> list[IngredientData]:
    """Return ingredients allowed in a meal slot."""
    return [ingredient for ingredient in ingredients if meal_type in ingredient.allowed_meals]
