import numpy as np
import polars as pl
import pytest

from funding_eval.domain.entities import ModelConfig, ModelFamily, ModelSpec, ProjectDataset


MAIN_CATEGORIES = ["Art", "Food", "Games", "Music", "Technology"]
CATEGORIES = ["Painting", "Drinks", "Tabletop Games", "Video Games", "Indie Rock", "Jazz", "Gadgets", "Apps"]
CURRENCIES = ["USD", "GBP", "EUR"]
COUNTRIES = ["US", "GB", "DE", "FR"]


def make_projects(n: int, seed: int = 0) -> ProjectDataset:
    """Synthetic cleaned projects where small goals and short campaigns succeed more often."""
    rng = np.random.default_rng(seed)
    goal = np.exp(rng.normal(8.5, 1.2, n))
    days = rng.integers(7, 60, n)
    main = rng.choice(MAIN_CATEGORIES, n)

    score = (
        -0.9 * (np.log(goal) - 8.5)
        - 0.03 * (days - 30)
        + 0.8 * (main == "Games")
        + rng.normal(0.0, 0.8, n)
    )
    label = (score > 0.4).astype(np.int8)
    pledged = np.where(
        label == 1,
        goal * rng.uniform(1.0, 3.0, n),
        goal * rng.uniform(0.0, 0.95, n),
    )

    frame = pl.DataFrame({
        "ID": np.arange(1000, 1000 + n, dtype=np.int64),
        "goal_usd": goal,
        "pledged_usd": pledged,
        "duration_seconds": days.astype(np.float64) * 86400.0,
        "main_category": main,
        "category": rng.choice(CATEGORIES, n),
        "currency": rng.choice(CURRENCIES, n),
        "country": rng.choice(COUNTRIES, n),
        "label": label,
    })
    return ProjectDataset(frame=frame)


@pytest.fixture
def projects() -> ProjectDataset:
    return make_projects(300, seed=7)


@pytest.fixture
def alternating_projects() -> ProjectDataset:
    """Ten records with labels 1, 0, 1, 0, ..."""
    n = 10
    frame = pl.DataFrame({
        "ID": np.arange(1, n + 1, dtype=np.int64),
        "goal_usd": np.linspace(1000.0, 10000.0, n),
        "pledged_usd": np.linspace(500.0, 20000.0, n),
        "duration_seconds": np.full(n, 30 * 86400.0),
        "main_category": ["Art", "Games"] * (n // 2),
        "category": ["Painting", "Video Games"] * (n // 2),
        "currency": ["USD"] * n,
        "country": ["US", "GB"] * (n // 2),
        "label": np.array([1, 0] * (n // 2), dtype=np.int8),
    })
    return ProjectDataset(frame=frame)


@pytest.fixture
def fast_specs() -> list[ModelSpec]:
    """Small, quick-to-fit versions of every model family."""
    return [
        ModelSpec(
            name="logistic",
            config=ModelConfig(family=ModelFamily.LOGISTIC, exclude_features=("category", "country")),
        ),
        ModelSpec(
            name="forest",
            config=ModelConfig(family=ModelFamily.RANDOM_FOREST, tree_count=15),
        ),
        ModelSpec(
            name="majority",
            config=ModelConfig(family=ModelFamily.MAJORITY),
        ),
    ]
