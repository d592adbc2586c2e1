import json
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from faqbot.config import settings
from faqbot.knowledge.store import KnowledgeStore, StaticSource
from faqbot.knowledge.tokenizer import get_tokenizer
from faqbot.middleware.rate_limit import limiter
from tests.fixtures_data import EN_DATA, ZH_DATA


def make_store(data, locale="en", threshold=3):
    store = KnowledgeStore(StaticSource(data), get_tokenizer(locale), threshold=threshold, name=f"test-{locale}")
    store.reload()
    return store


@pytest.fixture
def en_store():
    return make_store(EN_DATA, "en", threshold=3)


@pytest.fixture
def zh_store():
    return make_store(ZH_DATA, "zh", threshold=8)


@pytest.fixture
def data_dir(tmp_path):
    with open(tmp_path / "faq.json", "w", encoding="utf-8") as f:
        json.dump(ZH_DATA, f, ensure_ascii=False)
    with open(tmp_path / "faq-en.json", "w", encoding="utf-8") as f:
        json.dump(EN_DATA, f)
    return tmp_path


@pytest.fixture
def app_settings(monkeypatch, data_dir):
    monkeypatch.setattr(settings, "DATA_DIR", str(data_dir))
    monkeypatch.setattr(settings, "LOG_TO_FILE", False)
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    monkeypatch.setattr(settings, "META_PAGE_ACCESS_TOKEN", "")
    monkeypatch.setattr(settings, "META_VERIFY_TOKEN", "verify-me")
    monkeypatch.setattr(settings, "META_APP_SECRET", "")
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "")
    limiter.reset()
    return settings


@pytest.fixture
def client(app_settings):
    from fastapi.testclient import TestClient

    from faqbot.main import app

    with TestClient(app) as test_client:
        yield test_client
