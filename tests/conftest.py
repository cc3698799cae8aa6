"""Shared fixtures: a temporary catalog and an assistant wired with fakes."""

from __future__ import annotations

import pytest

from product_assistant.assistant import ProductAssistant
from product_assistant.cache import CacheService, LocalCache
from product_assistant.catalog import CatalogLoader
from product_assistant.conversation import ConversationStore
from product_assistant.similarity import ProductResolver
from tests.fakes import BEARINGS, FakeLanguageService, FakeRedis, write_catalog


@pytest.fixture
def catalog_dir(tmp_path):
    write_catalog(tmp_path, BEARINGS)
    return tmp_path


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return CacheService(local=LocalCache(), shared=fake_redis)


@pytest.fixture
def language():
    return FakeLanguageService(product="6205", attribute="width")


@pytest.fixture
def make_assistant(catalog_dir, cache, language):
    """Factory so tests can swap the catalog directory or language double."""

    def _make(data_path=None, language_service=None):
        return ProductAssistant(
            catalog_loader=CatalogLoader(data_path or catalog_dir),
            resolver=ProductResolver(),
            conversations=ConversationStore(cache),
            cache=cache,
            language=language_service or language,
        )

    return _make


@pytest.fixture
def assistant(make_assistant):
    return make_assistant()
