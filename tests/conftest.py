from pathlib import Path

import pytest

from oppboard.config import Config
from oppboard.db import Database
from oppboard.models import OpportunityDraft


@pytest.fixture()
def temp_config(tmp_path: Path) -> Config:
    data_dir = tmp_path / "data"
    config = Config(
        data_dir=data_dir,
        sqlite_path=data_dir / "sqlite" / "test.db",
        admin_username="admin",
        admin_password="hunter2",
        session_secret="test-secret",
    )
    config.ensure_directories()
    return config


@pytest.fixture()
def database(temp_config: Config) -> Database:
    db = Database(temp_config.sqlite_path)
    db.initialize_schema()
    yield db
    db.close()


def _make_draft(**overrides: object) -> OpportunityDraft:
    values: dict[str, object] = {
        "title": "YC Startup School",
        "description": "Free online program for founders",
        "description_full": "Weekly lectures and office hours for early-stage founders.",
        "provider": "Y Combinator",
        "apply_url": "https://www.startupschool.org/apply",
        "category_tags": ["Program", "Bootcamp"],
        "deadline": 1_767_225_600_000,
        "applicable_groups": ["Students", "Developers"],
        "regions": ["Global"],
        "funding_types": ["Equity-free"],
        "eligibility": "Anyone building a startup",
    }
    values.update(overrides)
    return OpportunityDraft(**values)


@pytest.fixture()
def draft_factory():
    return _make_draft
