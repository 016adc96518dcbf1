import dataclasses
import os
from typing import Dict, List
from unittest.mock import AsyncMock

import pytest

# app.py builds its Gemini client at import time.
os.environ.setdefault("GEMINI_API_KEY", "test-key")

from category_agent.models import WordPressCredentials
from category_agent.wordpress_client import Category, SeoMeta


class InMemoryDirectory:
    """Category directory double that applies patches to its own catalog."""

    def __init__(self, categories: List[Category]) -> None:
        self.categories = list(categories)
        self.list_calls = 0
        self.update_calls: List[Dict[str, str]] = []

    async def list_all(self, credentials):
        self.list_calls += 1
        return [dataclasses.replace(category) for category in self.categories]

    async def update(self, credentials, category_id, patch):
        self.update_calls.append(dict(patch))
        for index, category in enumerate(self.categories):
            if category.id != category_id:
                continue
            seo = dataclasses.replace(
                category.seo,
                title=patch.get("meta_title", category.seo.title),
                meta_description=patch.get("meta_description", category.seo.meta_description),
                focus_keyphrase=patch.get("focus_keyphrase", category.seo.focus_keyphrase),
            )
            updated = dataclasses.replace(
                category,
                name=patch.get("name", category.name),
                slug=patch.get("slug", category.slug),
                description=patch.get("description", category.description),
                seo=seo,
            )
            self.categories[index] = updated
            return updated
        raise AssertionError(f"unknown category {category_id}")


@pytest.fixture
def credentials():
    return WordPressCredentials(wp_url="https://shop.example", username="admin", app_password="abcd efgh ijkl")


@pytest.fixture
def catalog():
    return [
        Category(
            id=1,
            name="Shoes",
            slug="shoes",
            description="All our shoes",
            seo=SeoMeta(title="Shoes | Shop", meta_description="Buy shoes online", focus_keyphrase="shoes"),
        ),
        Category(id=2, name="Shirts", slug="shirts"),
        Category(id=3, name="Hats", slug="hats", description="Caps and hats"),
    ]


@pytest.fixture
def directory(catalog):
    fake = AsyncMock()
    fake.list_all = AsyncMock(return_value=catalog)
    fake.update = AsyncMock(return_value=None)
    return fake


@pytest.fixture
def memory_directory(catalog):
    return InMemoryDirectory(catalog)
