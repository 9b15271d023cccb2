import json

import httpx
import pytest

from shared.clients.ClientManager import ClientManager
from shared.clients.auth.firebase.AuthClientFirebase import AuthClientFirebase
from shared.clients.docstore.memory.DocStoreClientMemory import DocStoreClientMemory
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.clients.rag.memory.RAGClientMemory import RAGClientMemory
from shared.errors import AuthError, UpstreamError


@pytest.fixture
def openai_env(env, monkeypatch):
    monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-embed")
    monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-llm")
    monkeypatch.setenv("EMBED_MODEL", "text-embedding-3-small")
    monkeypatch.setenv("LLM_CHAT_MODEL", "gpt-4o-mini")


@pytest.fixture
def firebase_env(env, monkeypatch):
    monkeypatch.setenv("AUTH_FIREBASE_API_KEY", "fb-key")


class TestClientManager:
    """Engine resolution from {TYPE}_ENGINE."""

    def test_memory_engines(self, helper_config, monkeypatch):
        """Memory engines resolve by name."""
        monkeypatch.setenv("DOCSTORE_ENGINE", "memory")
        monkeypatch.setenv("RAG_ENGINE", "Memory")
        assert isinstance(ClientManager(helper_config, "docstore").get_client(), DocStoreClientMemory)
        assert isinstance(ClientManager(helper_config, "rag").get_client(), RAGClientMemory)

    def test_openai_engine(self, openai_env, helper_config, monkeypatch):
        """Remote engines are instantiated with their config."""
        monkeypatch.setenv("EMBED_ENGINE", "openai")
        client = ClientManager(helper_config, "embed").get_client()
        assert isinstance(client, EmbedClientOpenai)
        assert client.get_config_val("API_KEY") == "sk-embed"

    def test_unknown_engine(self, helper_config, monkeypatch):
        """Engines without a module are rejected."""
        monkeypatch.setenv("RAG_ENGINE", "pinecone")
        with pytest.raises(ValueError):
            ClientManager(helper_config, "rag")

    def test_missing_engine(self, helper_config, monkeypatch):
        """{TYPE}_ENGINE must be set."""
        monkeypatch.delenv("LLM_ENGINE", raising=False)
        with pytest.raises(ValueError):
            ClientManager(helper_config, "llm")

    def test_unknown_type(self, helper_config):
        """Only known client types are managed."""
        with pytest.raises(ValueError):
            ClientManager(helper_config, "dms")

    def test_missing_api_key(self, helper_config, monkeypatch):
        """Required engine config is validated on construction."""
        monkeypatch.setenv("LLM_ENGINE", "openai")
        monkeypatch.delenv("LLM_OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            ClientManager(helper_config, "llm")


class TestOpenaiEmbed:
    """Embeddings endpoint."""

    async def test_vectors_in_input_order(self, openai_env, helper_config):
        """Out-of-order entries are sorted by index."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": [
                {"index": 1, "embedding": [0.0, 1.0]},
                {"index": 0, "embedding": [1.0, 0.0]},
            ]})

        client = EmbedClientOpenai(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        assert await client.do_embed(["first", "second"]) == [[1.0, 0.0], [0.0, 1.0]]
        assert seen[0].url == "https://api.openai.com/v1/embeddings"
        assert seen[0].headers["Authorization"] == "Bearer sk-embed"
        assert json.loads(seen[0].content) == {"model": "text-embedding-3-small", "input": ["first", "second"]}
        await client.close()

    async def test_count_mismatch(self, openai_env, helper_config):
        """Fewer vectors than texts is an upstream error."""
        client = EmbedClientOpenai(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0]}]})))
        with pytest.raises(UpstreamError):
            await client.do_embed(["a", "b"])
        await client.close()

    async def test_empty_input(self, openai_env, helper_config):
        """Nothing to embed sends nothing."""
        client = EmbedClientOpenai(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        assert await client.do_embed([]) == []
        await client.close()

    def test_vector_params(self, openai_env, helper_config, monkeypatch):
        """Vector size comes from EMBED_VECTOR_SIZE."""
        monkeypatch.setenv("EMBED_VECTOR_SIZE", "3072")
        assert EmbedClientOpenai(helper_config=helper_config).get_vector_params() == (3072, "Cosine")


class TestOpenaiChat:
    """Chat completions endpoint."""

    async def test_reply_extracted(self, openai_env, helper_config):
        """The first choice's content is the answer."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "Hi there"}}]})

        client = LLMClientOpenai(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        messages = [{"role": "system", "content": "s"}, {"role": "user", "content": "u"}]
        assert await client.do_chat(messages) == "Hi there"
        assert seen[0]["model"] == "gpt-4o-mini"
        assert seen[0]["messages"] == messages
        await client.close()

    async def test_malformed_reply(self, openai_env, helper_config):
        """A response without choices is an upstream error."""
        client = LLMClientOpenai(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"choices": []})))
        with pytest.raises(UpstreamError):
            await client.do_chat([{"role": "user", "content": "u"}])
        await client.close()


class TestFirebaseAuth:
    """ID token verification."""

    async def test_valid_token(self, firebase_env, helper_config):
        """A known token resolves to its account."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"users": [{"localId": "uid-1", "email": "a@b.c", "displayName": "A"}]})

        client = AuthClientFirebase(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(handler))
        identity = await client.do_verify_token("id-token")
        assert (identity.uid, identity.email, identity.name) == ("uid-1", "a@b.c", "A")
        assert seen[0].url.params["key"] == "fb-key"
        assert json.loads(seen[0].content) == {"idToken": "id-token"}
        await client.close()

    @pytest.mark.parametrize("response", [
        httpx.Response(400, json={"error": {"message": "INVALID_ID_TOKEN"}}),
        httpx.Response(200, json={"users": []}),
        httpx.Response(200, json={}),
    ])
    async def test_rejected_token(self, firebase_env, helper_config, response):
        """Rejections and empty lookups are auth errors."""
        client = AuthClientFirebase(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda r: response))
        with pytest.raises(AuthError):
            await client.do_verify_token("bad")
        await client.close()

    async def test_empty_token(self, firebase_env, helper_config):
        """An empty token never reaches the provider."""
        client = AuthClientFirebase(helper_config=helper_config)
        with pytest.raises(AuthError):
            await client.do_verify_token("")
