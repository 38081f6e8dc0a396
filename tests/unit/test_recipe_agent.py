"""Unit tests for recipe scoring, diversity and fallback strategies."""

import random

import pytest

from recipe_matcher.agents.recipe_agent import (
    DiversityFilter,
    FallbackStrategy,
    RecipeScorer,
    cooking_time_bucket,
    estimate_cooking_time,
    estimate_difficulty,
)
from recipe_matcher.models.models import (
    CookingTime,
    Difficulty,
    MealType,
    RecipeMatch,
    RecipeRecord,
    RecommendationContext,
)


def make_recipe(recipe_id: str, ingredients: list[str], cuisine: str = "Italian", **kwargs) -> RecipeRecord:
    return RecipeRecord(
        id=recipe_id,
        title=kwargs.pop("title", f"Recipe {recipe_id}"),
        ingredients=ingredients,
        cuisine_type=cuisine,
        **kwargs,
    )


def make_match(recipe: RecipeRecord, score: float) -> RecipeMatch:
    return RecipeMatch(recipe=recipe, matched_ingredients=[recipe.ingredients[0]], match_score=score, freshness=1.0)


class TestCookingTime:
    """Test free-text cook time parsing and buckets."""

    @pytest.mark.parametrize(
        "text,minutes",
        [
            ("20 minutes", 20),
            ("1 minute", 1),
            ("45 mins", 45),
            ("1 hour", 60),
            ("2 hrs", 120),
            ("1 hour 15 minutes", 75),
        ],
    )
    def test_parses_minutes_and_hours(self, text, minutes):
        assert estimate_cooking_time(text) == minutes

    def test_unparseable_uses_default(self):
        """Unrecognized text falls back to the default duration."""
        assert estimate_cooking_time("overnight") == 30
        assert estimate_cooking_time("", default_minutes=10) == 10

    @pytest.mark.parametrize(
        "minutes,bucket",
        [
            (5, CookingTime.QUICK),
            (20, CookingTime.QUICK),
            (21, CookingTime.MEDIUM),
            (40, CookingTime.MEDIUM),
            (41, CookingTime.LONG),
        ],
    )
    def test_buckets(self, minutes, bucket):
        assert cooking_time_bucket(minutes) == bucket


class TestEstimateDifficulty:
    """Test difficulty derivation."""

    def test_keeps_explicit_difficulty(self):
        recipe = make_recipe("1", ["a"], difficulty="hard")
        assert estimate_difficulty(recipe) == Difficulty.HARD

    def test_simple_recipe_is_easy(self):
        recipe = make_recipe("1", ["a"] * 5, instructions=["s"] * 3, cooking_technique="baking")
        assert estimate_difficulty(recipe) == Difficulty.EASY

    def test_long_recipe_is_medium(self):
        recipe = make_recipe("1", [f"i{n}" for n in range(30)])
        assert estimate_difficulty(recipe) == Difficulty.MEDIUM

    def test_very_long_recipe_is_hard(self):
        recipe = make_recipe("1", [f"i{n}" for n in range(41)])
        assert estimate_difficulty(recipe) == Difficulty.HARD


class TestRecipeScorer:
    """Test RecipeScorer scoring and ranking."""

    @pytest.fixture
    def scorer(self):
        return RecipeScorer(max_results=5, seen_freshness=0.3)

    def test_ingredient_match_ratio(self, scorer):
        """Three of five recipe ingredients matched gives 0.6."""
        recipe = make_recipe("1", ["tomato", "garlic", "basil", "olive oil", "pasta"])
        match = scorer.score(recipe, ["tomato", "garlic", "basil"])
        assert match.matched_ingredients == ["tomato", "garlic", "basil"]
        assert match.match_score == pytest.approx(0.6 * 0.6)

    def test_substring_match_both_directions(self, scorer):
        """'tomato' matches 'cherry tomatoes' and 'parmesan cheese' matches 'parmesan'."""
        recipe = make_recipe("1", ["cherry tomatoes", "parmesan"])
        assert scorer.match_ingredients(recipe, ["Tomato", "Parmesan Cheese"]) == ["cherry tomatoes", "parmesan"]

    def test_no_match_excludes_recipe(self, scorer):
        """A recipe sharing nothing with the user is excluded."""
        assert scorer.score(make_recipe("1", ["beef"]), ["tofu"]) is None

    def test_empty_ingredients_pass_through(self, scorer):
        """With no user ingredients every recipe is kept."""
        catalog = [make_recipe("1", ["beef"]), make_recipe("2", ["tofu"])]
        ranked = scorer.rank(catalog, [])
        assert {m.recipe.id for m in ranked} == {"1", "2"}
        assert all(m.match_score == 0.0 for m in ranked)

    def test_context_score(self, scorer):
        """Meal type, cooking time and dietary overlap add up."""
        recipe = make_recipe("1", ["tofu"], cook_time="15 minutes", dietary_info=["Vegan"])
        context = RecommendationContext(
            meal_type=MealType.DINNER,
            cooking_time=CookingTime.QUICK,
            dietary_restrictions=["vegan", "Gluten-Free"],
        )
        assert scorer.context_score(recipe, context) == pytest.approx(0.1 + 0.15 + 0.1)

    def test_context_score_without_context(self, scorer):
        assert scorer.context_score(make_recipe("1", ["tofu"]), None) == 0.0

    def test_cooking_time_mismatch(self, scorer):
        """A long recipe earns nothing for a quick preference."""
        recipe = make_recipe("1", ["beef"], cook_time="2 hours")
        context = RecommendationContext(cooking_time=CookingTime.QUICK)
        assert scorer.context_score(recipe, context) == 0.0

    def test_preference_score_unclamped(self, scorer):
        """Cuisine preference adds 0.1 × preference."""
        recipe = make_recipe("1", ["beef"], cuisine="French")
        base = scorer.score(recipe, ["beef"]).match_score
        boosted = scorer.score(recipe, ["beef"], user_preferences={"French": 2.0}).match_score
        assert boosted - base == pytest.approx(0.2)

    def test_seen_recipe_freshness(self, scorer):
        """A seen recipe is multiplied by 0.3."""
        recipe = make_recipe("r1", ["beef"])
        fresh = scorer.score(recipe, ["beef"])
        seen = scorer.score(recipe, ["beef"], seen_ids={"r1"})
        assert fresh.freshness == 1.0
        assert seen.freshness == 0.3
        assert seen.match_score == pytest.approx(fresh.match_score * 0.3)

    def test_seen_recipe_ranks_below_fresh_alternative(self, scorer):
        """A seen top recipe drops below one scoring at least 0.3× its unpenalized score."""
        r1 = make_recipe("r1", ["beef", "onion", "garlic"], cuisine="American")
        r2 = make_recipe("r2", ["beef", "carrot", "celery"], cuisine="French")
        ingredients = ["beef", "onion", "garlic"]

        assert [m.recipe.id for m in scorer.rank([r1, r2], ingredients)] == ["r1", "r2"]
        assert [m.recipe.id for m in scorer.rank([r1, r2], ingredients, seen_ids={"r1"})] == ["r2", "r1"]

    def test_rank_sorts_and_limits(self):
        """Results are sorted by score and capped at max_results."""
        scorer = RecipeScorer(max_results=2)
        catalog = [
            make_recipe("1", ["beef", "x", "y"]),
            make_recipe("2", ["beef"]),
            make_recipe("3", ["beef", "x"]),
        ]
        assert [m.recipe.id for m in scorer.rank(catalog, ["beef"])] == ["2", "3"]

    def test_rank_skips_malformed_entries(self, scorer):
        """Malformed raw entries are skipped, valid dicts are scored."""
        catalog = [
            {"id": "bad", "title": "No ingredients", "cuisineType": "Italian"},
            {"id": "good", "title": "Beef", "ingredients": ["beef"], "cuisineType": "American"},
        ]
        assert [m.recipe.id for m in scorer.rank(catalog, ["beef"])] == ["good"]


class TestDiversityFilter:
    """Test the single-substitution diversity pass."""

    @pytest.fixture
    def italian_heavy(self):
        italian = [make_recipe(f"it{n}", ["pasta"]) for n in range(4)]
        mexican = make_recipe("mx", ["tortilla"], cuisine="Mexican")
        return [make_match(r, 0.9 - n * 0.1) for n, r in enumerate(italian + [mexican])]

    @pytest.fixture
    def catalog(self):
        return [
            make_recipe("fr", ["butter"], cuisine="French"),
            make_recipe("in", ["cumin"], cuisine="Indian"),
            make_recipe("it9", ["pasta"]),
            make_recipe("mx", ["tortilla"], cuisine="Mexican"),
        ]

    def test_cuisine_distribution(self, italian_heavy):
        distribution = DiversityFilter.cuisine_distribution(italian_heavy)
        assert distribution == {"Italian": 0.8, "Mexican": 0.2}

    def test_replaces_lowest_ranked_dominant(self, italian_heavy, catalog):
        """The last Italian match is swapped for an unseen other cuisine."""
        diversity = DiversityFilter(threshold=0.6, score_penalty=0.8, rng=random.Random(0))
        result = diversity.diversify(italian_heavy, catalog, seen_ids={"in"})

        assert len(result) == len(italian_heavy)
        changed = [i for i, (a, b) in enumerate(zip(italian_heavy, result)) if a.recipe.id != b.recipe.id]
        assert changed == [3]
        replacement = result[3]
        assert replacement.recipe.id == "fr"
        assert replacement.match_score == pytest.approx(italian_heavy[3].match_score * 0.8)
        assert replacement.matched_ingredients == []
        assert replacement.freshness == 1.0

    def test_never_grows_and_substitutes_once(self, italian_heavy, catalog):
        """At most one substitution, whatever the random source picks."""
        for seed in range(10):
            diversity = DiversityFilter(threshold=0.6, score_penalty=0.8, rng=random.Random(seed))
            result = diversity.diversify(italian_heavy, catalog)
            assert len(result) == len(italian_heavy)
            changed = sum(1 for a, b in zip(italian_heavy, result) if a.recipe.id != b.recipe.id)
            assert changed <= 1
            assert len({m.recipe.id for m in result}) == len(result)

    def test_threshold_is_strict(self, catalog):
        """Exactly 60% of one cuisine does not trigger a substitution."""
        matches = [make_match(make_recipe(f"it{n}", ["pasta"]), 0.5) for n in range(3)] + [
            make_match(make_recipe("mx", ["tortilla"], cuisine="Mexican"), 0.4),
            make_match(make_recipe("fr", ["butter"], cuisine="French"), 0.3),
        ]
        diversity = DiversityFilter(threshold=0.6, score_penalty=0.8, rng=random.Random(0))
        assert diversity.diversify(matches, catalog) == matches

    def test_single_representative_unchanged(self, catalog):
        """A one-recipe list is never rebalanced."""
        matches = [make_match(make_recipe("it0", ["pasta"]), 0.5)]
        diversity = DiversityFilter(threshold=0.6, score_penalty=0.8, rng=random.Random(0))
        assert diversity.diversify(matches, catalog) == matches

    def test_no_candidates_unchanged(self, italian_heavy, catalog):
        """When every alternative was seen the list is returned as-is."""
        diversity = DiversityFilter(threshold=0.6, score_penalty=0.8, rng=random.Random(0))
        assert diversity.diversify(italian_heavy, catalog, seen_ids={"fr", "in"}) == italian_heavy

    def test_empty_list(self, catalog):
        diversity = DiversityFilter(rng=random.Random(0))
        assert diversity.diversify([], catalog) == []


class TestFallbackStrategy:
    """Test unscored fallback picks."""

    @pytest.fixture
    def catalog(self):
        return [
            make_recipe("seen-quick", ["a"], cook_time="10 minutes"),
            make_recipe("long", ["b"], cook_time="2 hours"),
            make_recipe("quick", ["c"], cook_time="15 minutes"),
        ]

    def test_disabled_by_default_limit(self, catalog):
        """A zero limit disables the fallback."""
        fallback = FallbackStrategy(limit=0)
        assert not fallback.enabled
        assert fallback.select(catalog) == []

    def test_unseen_first_then_quickest(self, catalog):
        fallback = FallbackStrategy(limit=3)
        picks = fallback.select(catalog, seen_ids={"seen-quick"})
        assert [m.recipe.id for m in picks] == ["quick", "long", "seen-quick"]
        assert all(m.match_score == 0.0 and m.matched_ingredients == [] for m in picks)
        assert picks[0].freshness == 1.0
        assert picks[2].freshness == 0.3

    def test_respects_limit(self, catalog):
        assert len(FallbackStrategy(limit=1).select(catalog)) == 1
