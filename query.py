#!/usr/bin/env python3
"""Ad hoc recommendation runner for the recipe matcher.

Run the engine directly against the configured recipe catalog.

Usage:
    python query.py tomato garlic basil
    python query.py --diet Vegetarian --time quick "2 cups chopped tomatoes" basil
    python query.py --meal breakfast --refresh 2 eggs flour milk
    python query.py --suggest chicken rice
    python query.py --image images/pasta.png           # Gemini vision detection
    python query.py --query "quick vegan dinner with chickpeas"  # Gemini query parsing
    python query.py --catalog my_recipes.json --debug tomato

Features:
- Ingredient normalization and context inference shown before results
- Ranked recipes rendered as a rich table with the summary message
- Refresh rounds to show freshness penalties across repeated requests
- Debug mode to display the full JSON result
"""

import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from recipe_matcher.agents.intelligence import IntelligenceService
from recipe_matcher.agents.recipe_agent import estimate_difficulty
from recipe_matcher.mcp_tools.catalog import RecipeCatalog
from recipe_matcher.models.models import RecommendationResult
from recipe_matcher.storage.ingredient_storage import IngredientStorage
from recipe_matcher.utils.logger import logger

console = Console()

USAGE = """Usage: python query.py [options] <ingredient> [<ingredient> ...]

Options:
  --diet NAME       Dietary restriction (repeatable), e.g. Vegetarian
  --time BUCKET     Cooking time preference: quick, medium or long
  --meal TYPE       Meal type: breakfast, lunch, dinner or snack
  --refresh N       Run N refresh rounds after the first result
  --suggest         Show suggested missing ingredients
  --catalog PATH    Recipe catalog JSON file (default: bundled sample)
  --image PATH      Detect ingredients from a photo (requires GEMINI_API_KEY)
  --query TEXT      Extract ingredients from free text (requires GEMINI_API_KEY)
  --user KEY        Session key used for stored ingredients (default: cli)
  --debug           Print the full JSON result
"""


def render_result(result: RecommendationResult, title: str) -> None:
    console.print(f"\n[bold cyan]{title}[/bold cyan]")
    console.print(Markdown(result.message))
    if result.context_message:
        console.print(f"[green]{result.context_message}[/green]")
    if result.is_fallback:
        console.print("[yellow]No matches found; showing fallback picks from the catalog.[/yellow]")

    if not result.recipes:
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Recipe")
    table.add_column("Cuisine")
    table.add_column("Cook time")
    table.add_column("Difficulty")
    table.add_column("Score", justify="right")
    table.add_column("Fresh", justify="right")
    table.add_column("Matched")

    for idx, match in enumerate(result.recipes, 1):
        table.add_row(
            str(idx),
            match.recipe.title,
            match.recipe.cuisine_type,
            match.recipe.cook_time or "-",
            (match.recipe.difficulty or estimate_difficulty(match.recipe)).value,
            f"{match.match_score:.3f}",
            f"{match.freshness:.1f}",
            ", ".join(match.matched_ingredients) or "-",
        )
    console.print(table)


def run(ingredients: list[str], options: dict, flags: dict) -> None:
    """Execute one recommendation run and print the results.

    Args:
        ingredients: Manually entered ingredient strings.
        options: Recommendation options (meal_type, cooking_time, dietary_restrictions).
        flags: CLI flags (catalog, image, query, refresh, suggest, user, debug).
    """
    try:
        catalog = (
            RecipeCatalog.from_json_file(flags["catalog"]) if flags.get("catalog") else RecipeCatalog.load_default()
        )
        if not len(catalog):
            console.print("[red]✗ Error: recipe catalog is empty[/red]")
            sys.exit(1)

        service = IntelligenceService(flags["user"], catalog=catalog, storage=IngredientStorage())

        if flags.get("image"):
            image_file = Path(flags["image"])
            if not image_file.exists():
                console.print(f"[red]✗ Error: Image file not found: {image_file}[/red]")
                sys.exit(1)
            logger.info(f"Loading image: {image_file.name}...")
            asyncio.run(service.process_ingredients_from_image(image_file.read_bytes()))

        if flags.get("query"):
            _, query_context = asyncio.run(service.process_natural_language_query(flags["query"]))
            for key, value in query_context.model_dump(exclude_none=True).items():
                if value and key not in options:
                    options[key] = value

        if ingredients:
            service.add_manual_ingredients(ingredients)

        names = [item.name for item in service.get_ingredients()]
        context = service.get_context()
        console.print(f"[bold]Ingredients:[/bold] {', '.join(names) or '(none)'}")
        console.print(
            f"[dim]Cuisines: {', '.join(context.possible_cuisines) or '-'} | "
            f"Techniques: {', '.join(context.cooking_techniques) or '-'} | "
            f"Meal: {context.meal_type.value if context.meal_type else '-'} | "
            f"Time of day: {context.time_of_day.value}[/dim]"
        )

        if flags.get("suggest"):
            suggestions = service.get_suggested_ingredients()
            console.print(f"[bold]You might also have:[/bold] {', '.join(suggestions) or '-'}")

        result = service.get_recipe_recommendations(options)
        render_result(result, "Recommendations")
        if flags.get("debug"):
            console.print_json(data=result.model_dump(mode="json"))

        for round_no in range(1, flags.get("refresh", 0) + 1):
            result = service.refresh_recipe_recommendations()
            render_result(result, f"Refresh {round_no}")
            if flags.get("debug"):
                console.print_json(data=result.model_dump(mode="json"))

    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except ValueError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        sys.exit(1)


def parse_args(argv: list[str]) -> tuple[list[str], dict, dict]:
    ingredients: list[str] = []
    options: dict = {}
    flags: dict = {"user": "cli", "refresh": 0}
    value_flags = {"--diet", "--time", "--meal", "--refresh", "--catalog", "--image", "--query", "--user"}

    idx = 0
    while idx < len(argv):
        arg = argv[idx]
        if arg in value_flags:
            if idx + 1 >= len(argv):
                print(f"Error: {arg} flag requires a value")
                sys.exit(1)
            value = argv[idx + 1]
            idx += 2
            if arg == "--diet":
                options.setdefault("dietary_restrictions", []).append(value)
            elif arg == "--time":
                options["cooking_time"] = value.lower()
            elif arg == "--meal":
                options["meal_type"] = value.lower()
            elif arg == "--refresh":
                if not value.isdigit():
                    print("Error: --refresh expects a number")
                    sys.exit(1)
                flags["refresh"] = int(value)
            else:
                flags[arg[2:]] = value
        elif arg == "--suggest":
            flags["suggest"] = True
            idx += 1
        elif arg == "--debug":
            flags["debug"] = True
            idx += 1
        elif arg.startswith("--"):
            print(f"Unknown flag: {arg}")
            print(USAGE)
            sys.exit(1)
        else:
            ingredients.append(arg)
            idx += 1

    return ingredients, options, flags


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    ingredients, options, flags = parse_args(sys.argv[1:])
    if not (ingredients or flags.get("image") or flags.get("query")):
        print("Error: provide ingredients, --image or --query")
        sys.exit(1)

    run(ingredients, options, flags)
