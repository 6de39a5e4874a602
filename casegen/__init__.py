"""SURL case generator: core modules."""

from .engine import build, run_regeneration_loop
from .errors import GenerationExhausted, ValidationIssue
from .profiles import ADVANCED, INTERMEDIATE, RECIPES, RecipeProfile, get_profile
from .rng import SeededRandom, create_rng, hash_seed
from .verify import verify
from .export import draft_tables, export_draft
from .config import ConfigError, Settings, load_settings

__all__ = [
    # Generation
    "build",
    "run_regeneration_loop",
    # Errors
    "GenerationExhausted",
    "ValidationIssue",
    # Recipes
    "ADVANCED",
    "INTERMEDIATE",
    "RECIPES",
    "RecipeProfile",
    "get_profile",
    # Randomness
    "SeededRandom",
    "create_rng",
    "hash_seed",
    # Checks
    "verify",
    # Export
    "draft_tables",
    "export_draft",
    # Configuration
    "ConfigError",
    "Settings",
    "load_settings",
]
