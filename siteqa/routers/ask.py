import logging
from typing import List

import httpx
from fastapi import APIRouter, HTTPException, Request

from siteqa.config import get_settings
from siteqa.errors import AnswerModelNotConfigured, RetrievalError, UpstreamModelFailure
from siteqa.limits import limiter
from siteqa.models.ask_request import AskRequest, SearchRequest
from siteqa.models.ask_response import SearchResponse
from siteqa.models.document import Answer
from siteqa.models.records import ChatMessage
from siteqa.services.answering import AnthropicClient, answer_question
from siteqa.services.retrieval import ScoringWeights, extract_keywords, search
from siteqa.services.store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/ask", response_model=Answer, summary="Ask a question about indexed pages")
@limiter.limit("20/minute")
async def ask(request: Request, body: AskRequest) -> Answer:
    """Answer *question* from the most relevant indexed pages and record the exchange."""
    settings = get_settings()
    store: DocumentStore = request.app.state.store
    logger.info("Ask request received", extra={"domain": body.domain})

    try:
        client = AnthropicClient.from_settings(settings)
        answer = await answer_question(
            client,
            body.question,
            store.get_documents(),
            domain=body.domain,
            limit=settings.search_limit,
            max_chars=settings.context_chars_per_document,
            weights=ScoringWeights.from_settings(settings),
        )
    except AnswerModelNotConfigured as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except RetrievalError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except UpstreamModelFailure as exc:
        raise HTTPException(
            status_code=502, detail=f"Answering model returned HTTP {exc.status_code}."
        )
    except httpx.TimeoutException:
        logger.error("Timeout calling answering model")
        raise HTTPException(status_code=504, detail="The answering model timed out.")
    except httpx.RequestError as exc:
        logger.error("Error calling answering model: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc))

    store.add_chat_message(ChatMessage(role="user", content=body.question, domain=body.domain))
    store.add_chat_message(
        ChatMessage(
            role="assistant", content=answer.answer, sources=answer.sources, domain=body.domain
        )
    )
    return answer


@router.post("/search", response_model=SearchResponse, summary="Rank indexed pages for a query")
async def search_pages(request: Request, body: SearchRequest) -> SearchResponse:
    settings = get_settings()
    store: DocumentStore = request.app.state.store
    results = search(
        body.query,
        store.get_documents(),
        limit=body.limit,
        domain_filter=body.domain,
        weights=ScoringWeights.from_settings(settings),
    )
    return SearchResponse(query=body.query, keywords=extract_keywords(body.query), results=results)


@router.get("/chat", response_model=List[ChatMessage], summary="Chat history")
async def chat_history(request: Request) -> List[ChatMessage]:
    return request.app.state.store.get_chat_history()


@router.delete("/chat", summary="Clear chat history")
async def clear_chat_history(request: Request) -> dict:
    request.app.state.store.clear_chat_history()
    return {"success": True}
