"""Answer service: retrieval-grounded chat on behalf of a user or a project.

Embed the question with the pinned model -> query the scope's namespace for the
top-k chunks -> join their texts in rank order -> build the system prompt ->
call the chat model with ``[system, *history, question]``.
"""

from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.errors import NotFoundError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.answer import AnswerResult, ChatTurn
from shared.models.scope import Scope
from shared.models.user import User
from services.answering import PromptBuilder
from services.answering.PromptBuilder import Persona
from services.ingestion.Embedder import Embedder
from services.projects.ProjectService import ProjectService
from services.quota.QuotaLedger import user_path

GUEST_AUDIENCE = "a guest"


class AnswerService:
    def __init__(
        self,
        helper_config: HelperConfig,
        docstore: DocStoreClientInterface,
        rag_client: RAGClientInterface,
        embedder: Embedder,
        llm_client: LLMClientInterface,
        project_service: ProjectService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._docstore = docstore
        self._rag = rag_client
        self._embedder = embedder
        self._llm = llm_client
        self._projects = project_service
        self._top_k = helper_config.get_int_val("RETRIEVAL_TOP_K", default=5)

    ##########################################
    ################ GETTER ##################
    ##########################################

    async def get_user(self, uid: str) -> User:
        doc = await self._docstore.do_get(user_path(uid))
        if doc is None:
            raise NotFoundError("User not found.")
        return User.model_validate(doc)

    async def get_user_by_username(self, username: str) -> User:
        snapshots = await self._docstore.do_query("users", filters=[("username", "==", username)], limit=1)
        if not snapshots:
            raise NotFoundError("User not found.")
        return User.model_validate(snapshots[0].data)

    ##########################################
    ################ CORE ####################
    ##########################################

    async def retrieve(self, scope: Scope, question: str) -> str:
        """Joined texts of the top-k chunks of the scope's namespace, in rank order."""
        vector = await self._embedder.embed_query(question)
        matches = await self._rag.do_query(scope.namespace, vector, self._top_k, include_metadata=True)
        return PromptBuilder.join_context([m.metadata.text for m in matches if m.metadata])

    async def ask_user(self, username: str, question: str, history: list[ChatTurn] | None = None, caller_uid: str | None = None) -> AnswerResult:
        """Answer as the representative of the user named ``username``.

        The prompt tells the model whether it talks to its owner (the caller's
        verified uid is the subject) or to a guest.
        """
        self._check_question(question)
        subject = await self.get_user_by_username(username)
        audience = subject.username if caller_uid and caller_uid == subject.uid else GUEST_AUDIENCE
        scope = Scope(uid=subject.uid)
        retrieved = await self.retrieve(scope, question)
        prompt = PromptBuilder.build_system_prompt(subject.profile, retrieved, Persona.REPRESENTATIVE, audience=audience)
        return await self._complete(scope, prompt, history, question, retrieved)

    async def converse(self, uid: str, question: str, history: list[ChatTurn] | None = None) -> AnswerResult:
        """Intake mode: same retrieval, but the model learns about the user."""
        self._check_question(question)
        user = await self.get_user(uid)
        scope = Scope(uid=uid)
        retrieved = await self.retrieve(scope, question)
        prompt = PromptBuilder.build_system_prompt(user.profile, retrieved, Persona.INTAKE)
        return await self._complete(scope, prompt, history, question, retrieved)

    async def ask_project(self, project_id: str, question: str, history: list[ChatTurn] | None = None) -> AnswerResult:
        """Answer within a project namespace. Public, like reading the project."""
        self._check_question(question)
        project = await self._projects.get(project_id)
        scope = Scope(uid=project.owner_id, project_id=project.id)
        retrieved = await self.retrieve(scope, question)
        prompt = PromptBuilder.build_project_prompt(project, retrieved)
        return await self._complete(scope, prompt, history, question, retrieved)

    async def export_profile(self, uid: str) -> dict:
        """Representative instruction plus the raw profile, for external assistants."""
        user = await self.get_user(uid)
        return {
            "message": PromptBuilder.build_profile_export(user.profile),
            "profile": user.profile.model_dump(by_alias=True),
        }

    ##########################################
    ############### HELPERS ##################
    ##########################################

    @staticmethod
    def _check_question(question: str) -> None:
        if not question or not question.strip():
            raise ValidationError("A question is required.")

    async def _complete(self, scope: Scope, prompt: str, history: list[ChatTurn] | None, question: str, retrieved: str) -> AnswerResult:
        turns = [turn.model_dump() for turn in (history or [])]
        messages = PromptBuilder.build_messages(prompt, turns, question)
        answer = await self._llm.do_chat(messages)
        self.logging.info(
            "Answered in %s namespace=%s: %d history turns, %d context characters",
            scope.label, scope.namespace, len(turns), len(retrieved),
        )
        return AnswerResult(answer=answer, retrieved_context=retrieved)
