"""Document search skill over the tenant's document index."""

import logging
from typing import ClassVar

from pydantic import BaseModel, Field

from erp_analyst.documents.client import DocumentSearchClientFactory, Passage
from erp_analyst.errors.formatter import AnalystError
from erp_analyst.errors.registry import ErrorKind
from erp_analyst.services.integration_types import DOCUMENTS
from erp_analyst.skills.base import Skill, SkillContext

logger = logging.getLogger(__name__)


class SearchDocumentsInput(BaseModel):
    query: str = Field(..., min_length=2, max_length=500, description="Question or keywords to search for")
    scope: str | None = Field(default=None, description="Collection to search; defaults to the tenant's")
    limit: int = Field(default=5, ge=1, le=20)


class SearchDocumentsOutput(BaseModel):
    query: str
    passages: list[Passage]
    count: int


class SearchDocuments(Skill):
    name: ClassVar[str] = "search_documents"
    description: ClassVar[str] = (
        "Search the company's uploaded documents (policies, price lists, manuals) and return the "
        "most relevant passages. Use for questions not answered by ERP figures."
    )
    integration: ClassVar[str] = DOCUMENTS
    input_model = SearchDocumentsInput
    tags = ("documents", "knowledge")
    priority = 3

    def __init__(self, client_factory: DocumentSearchClientFactory | None = None) -> None:
        self._client_factory = client_factory or DocumentSearchClientFactory()

    async def execute(self, params: SearchDocumentsInput, context: SkillContext) -> SearchDocumentsOutput:
        async with self._client_factory(context.credentials[DOCUMENTS]) as client:
            result = await client.search(params.query, scope=params.scope, limit=params.limit)
        if not result.success:
            if result.error_kind is ErrorKind.AUTH:
                raise AnalystError.from_code("E-2004", detail=result.error)
            raise AnalystError.from_code("E-3002", detail=result.error)
        logger.info("Document search returned %d passage(s)", len(result.data))
        return SearchDocumentsOutput(query=params.query, passages=result.data, count=len(result.data))
