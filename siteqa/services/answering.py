"""Question answering over indexed pages via the Anthropic Messages API."""

import logging
from typing import Optional, Sequence

import httpx

from siteqa.config import Settings
from siteqa.errors import AnswerModelNotConfigured, UpstreamModelFailure
from siteqa.models.document import Answer, Document
from siteqa.services.retrieval import (
    ScoringWeights,
    build_context,
    select_context,
    sources_for,
)

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are SiteQA, an assistant that helps users understand website content.

Based on the following context from indexed web pages, answer the user's question. Provide a clear, helpful answer and reference the sources when relevant.

Context:
{context}

User Question: {question}

Please provide a helpful, accurate answer based on the context above. If the answer isn't clearly in the context, say so and offer your best interpretation. Always be honest about the limitations of the available information."""


def build_prompt(question: str, context: str) -> str:
    return PROMPT_TEMPLATE.format(context=context, question=question)


class AnthropicClient:
    """Minimal async client for the Messages endpoint."""

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = "https://api.anthropic.com/v1/messages",
        model: str = "claude-sonnet-4-5-20250929",
        version: str = "2023-06-01",
        max_tokens: int = 2048,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.version = version
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnthropicClient":
        if not settings.anthropic_api_key:
            raise AnswerModelNotConfigured(
                "API key not configured. Set SITEQA_ANTHROPIC_API_KEY."
            )
        return cls(
            settings.anthropic_api_key,
            api_url=settings.anthropic_api_url,
            model=settings.anthropic_model,
            version=settings.anthropic_version,
            max_tokens=settings.anthropic_max_tokens,
            timeout=settings.anthropic_timeout_s,
        )

    async def complete(self, prompt: str) -> str:
        """Send *prompt* as a single user message and return the reply text.

        Raises:
            UpstreamModelFailure: on a non-success response.
            httpx.RequestError: on network errors.
        """
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "content-type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.version,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.api_url, json=payload, headers=headers)

        if not response.is_success:
            logger.error(
                "Answering model returned HTTP %s",
                response.status_code,
                extra={"model": self.model},
            )
            raise UpstreamModelFailure(response.status_code, response.text)

        data = response.json()
        return "".join(
            block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
        )


async def answer_question(
    client: AnthropicClient,
    question: str,
    documents: Sequence[Document],
    *,
    domain: Optional[str] = None,
    limit: int = 5,
    max_chars: int = 2000,
    weights: Optional[ScoringWeights] = None,
) -> Answer:
    """Retrieve context for *question* from *documents* and ask the model.

    Raises:
        EmptyCorpus, NoRelevantDocuments: when no context can be selected.
        UpstreamModelFailure: when the model call fails.
    """
    relevant = select_context(
        question,
        documents,
        limit=limit,
        domain_filter=domain,
        weights=weights or ScoringWeights(),
    )
    context = build_context(relevant, max_chars=max_chars)
    logger.info(
        "Asking model",
        extra={"domain": domain, "context_documents": len(relevant), "context_chars": len(context)},
    )
    answer = await client.complete(build_prompt(question, context))
    return Answer(answer=answer, sources=sources_for(relevant), context_used=len(relevant))
