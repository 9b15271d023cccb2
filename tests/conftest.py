"""
Pytest configuration and shared fixtures.

Configures:
- pytest-asyncio for async test support (auto mode, see pyproject.toml)
- environment-driven HelperConfig pointing at a temp ROOT_DIR
- memory document store and vector store engines
- small fakes for the embedding model, the chat model and the identity provider
"""

import hashlib
import logging
import re

import pytest

from shared.clients.auth.models.AuthIdentity import AuthIdentity
from shared.clients.docstore.memory.DocStoreClientMemory import DocStoreClientMemory
from shared.clients.rag.memory.RAGClientMemory import RAGClientMemory
from shared.errors import AuthError, UpstreamError
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from services.answering.AnswerService import AnswerService
from services.ingestion.Embedder import Embedder
from services.ingestion.IngestionService import IngestionService
from services.ingestion.TextExtractor import TextExtractor
from services.projects.ProjectService import ProjectService
from services.quota.QuotaLedger import QuotaLedger
from services.users.UserService import UserService

FAKE_VECTOR_SIZE = 64
WEBHOOK_SECRET = "whsec_test_secret"

_WORD = re.compile(r"[a-z0-9]+")


def bag_of_words_vector(text: str, size: int = FAKE_VECTOR_SIZE) -> list[float]:
    """Deterministic embedding: hashed word counts. Texts sharing words score high."""
    vector = [0.0] * size
    for word in _WORD.findall(text.lower()):
        vector[int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % size] += 1.0
    return vector


class FakeEmbedClient:
    def __init__(self, size: int = FAKE_VECTOR_SIZE):
        self.embed_model = "fake-embed-1"
        self.size = size
        self.calls: list[list[str]] = []
        self.fail_after_calls: int | None = None

    def get_vector_params(self):
        return self.size, "Cosine"

    async def boot(self, transport=None):
        pass

    async def close(self):
        pass

    async def do_healthcheck(self) -> bool:
        return True

    async def do_embed(self, texts):
        texts = [texts] if isinstance(texts, str) else texts
        if self.fail_after_calls is not None and len(self.calls) >= self.fail_after_calls:
            raise UpstreamError("embedding backend down")
        self.calls.append(list(texts))
        return [bag_of_words_vector(t, self.size) for t in texts]


class FakeLLMClient:
    def __init__(self, reply: str = "This is the assistant's answer."):
        self.reply = reply
        self.calls: list[list[dict]] = []

    async def boot(self, transport=None):
        pass

    async def close(self):
        pass

    async def do_healthcheck(self) -> bool:
        return True

    async def do_chat(self, messages: list[dict]) -> str:
        self.calls.append(messages)
        return self.reply


class FakeAuthClient:
    """Accepts ``token-{uid}`` for every uid registered in ``identities``."""

    def __init__(self):
        self.identities: dict[str, AuthIdentity] = {}

    def add(self, uid: str, email: str = "", name: str = "") -> str:
        self.identities[f"token-{uid}"] = AuthIdentity(uid=uid, email=email or f"{uid}@example.com", name=name)
        return f"token-{uid}"

    async def boot(self, transport=None):
        pass

    async def close(self):
        pass

    async def do_healthcheck(self) -> bool:
        return True

    async def do_verify_token(self, token: str) -> AuthIdentity:
        if token not in self.identities:
            raise AuthError()
        return self.identities[token]


@pytest.fixture
def env(monkeypatch, tmp_path):
    """Minimal, deterministic environment for HelperConfig."""
    values = {
        "ROOT_DIR": str(tmp_path),
        "UPLOAD_DIR": str(tmp_path / "uploads"),
        "FRONTEND_URL": "https://app.example.com",
        "QUOTA_COMMIT_RETRIES": "2",
        "RETRIEVAL_TOP_K": "5",
        "PAYMENT_ENGINE": "stripe",
        "PAYMENT_STRIPE_SECRET_KEY": "sk_test_123",
        "PAYMENT_STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
    }
    for key, val in values.items():
        monkeypatch.setenv(key, val)
    for key in ("CHUNK_SIZE", "CHUNK_OVERLAP", "FREE_PROJECT_CHARACTER_LIMIT", "FREE_PROFILE_CHARACTER_LIMIT", "OAUTH_ALLOWED_REDIRECT_URIS"):
        monkeypatch.delenv(key, raising=False)
    return values


@pytest.fixture
def helper_config(env) -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("persona_ai_bridge.tests")))


@pytest.fixture
def docstore(helper_config) -> DocStoreClientMemory:
    return DocStoreClientMemory(helper_config=helper_config)


@pytest.fixture
async def rag_client(helper_config) -> RAGClientMemory:
    client = RAGClientMemory(helper_config=helper_config)
    await client.prepare(FAKE_VECTOR_SIZE)
    return client


@pytest.fixture
def embed_client() -> FakeEmbedClient:
    return FakeEmbedClient()


@pytest.fixture
def llm_client() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def auth_client() -> FakeAuthClient:
    return FakeAuthClient()


@pytest.fixture
def quota_ledger(helper_config, docstore) -> QuotaLedger:
    return QuotaLedger(helper_config=helper_config, docstore=docstore)


@pytest.fixture
def user_service(helper_config, docstore, quota_ledger) -> UserService:
    return UserService(helper_config=helper_config, docstore=docstore, quota_ledger=quota_ledger)


@pytest.fixture
def project_service(helper_config, docstore, rag_client, quota_ledger) -> ProjectService:
    return ProjectService(helper_config=helper_config, docstore=docstore, rag_client=rag_client, quota_ledger=quota_ledger)


@pytest.fixture
def embedder(helper_config, embed_client) -> Embedder:
    return Embedder(helper_config=helper_config, embed_client=embed_client)


@pytest.fixture
def ingestion_service(helper_config, docstore, rag_client, embedder, quota_ledger, project_service) -> IngestionService:
    return IngestionService(
        helper_config=helper_config,
        docstore=docstore,
        rag_client=rag_client,
        embedder=embedder,
        extractor=TextExtractor(helper_config=helper_config),
        quota_ledger=quota_ledger,
        project_service=project_service,
    )


@pytest.fixture
def answer_service(helper_config, docstore, rag_client, embedder, llm_client, project_service) -> AnswerService:
    return AnswerService(
        helper_config=helper_config,
        docstore=docstore,
        rag_client=rag_client,
        embedder=embedder,
        llm_client=llm_client,
        project_service=project_service,
    )


@pytest.fixture
async def alice(user_service):
    user, _ = await user_service.init_user("uid-alice", name="Alice", email="alice@example.com")
    return user


@pytest.fixture
async def bob(user_service):
    user, _ = await user_service.init_user("uid-bob", name="Bob", email="bob@example.com")
    return user
