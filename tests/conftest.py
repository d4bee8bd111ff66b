import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).parents[1] / "src"))

from rulegraph.cascade.rules import Rule, RuleOptions
from rulegraph.config import Settings, get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Environment changes in one test must not leak through the cached settings."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def food_and_iban_rules() -> list[Rule]:
    return [
        Rule("pizza", "FOOD", label="food"),
        Rule(r"iban\d+", "IBAN", label="iban"),
    ]


@pytest.fixture
def exit_rules() -> list[Rule]:
    """An exit rule followed by a rule that would otherwise rewrite again."""
    return [
        Rule(r"^paga\s+\d+$", "Stipendio", label="salary", category_tags=["Entrate"],
             options=RuleOptions.EXIT_ON_MATCH),
        Rule("stipendio", "SHOULD NOT RUN", label="after-exit"),
    ]


@pytest.fixture
def sequential_settings() -> Settings:
    return Settings(MAX_WORKERS=1, MATCH_TIMEOUT_SECONDS=1.0, AGGREGATION_MODE="value")


@pytest.fixture
def parallel_settings() -> Settings:
    return Settings(MAX_WORKERS=4, MATCH_TIMEOUT_SECONDS=1.0, AGGREGATION_MODE="value")
