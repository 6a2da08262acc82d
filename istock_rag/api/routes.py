"""API routes for RAG operations."""

from functools import lru_cache

from fastapi import Depends, FastAPI

from istock_rag.api.request import parse_query
from istock_rag.auth import GoogleTokenProvider
from istock_rag.config import get_rag_engine_config, get_settings
from istock_rag.exceptions import ErrorCode, RAGPlatformError
from istock_rag.llm.client import VertexGeminiClient
from istock_rag.logging_config import get_logger
from istock_rag.rag.models import Query, RagResponse
from istock_rag.rag.pipeline import RAGPipeline
from istock_rag.rag.synthesizer import AnswerSynthesizer
from istock_rag.retrieval.retriever import VertexRagRetriever

logger = get_logger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"

# Browser and tRPC clients post to different paths; all share one handler
QUERY_PATHS = ("/", "/ragQuery", "/trpc")


@lru_cache
def get_pipeline() -> RAGPipeline:
    """Build the pipeline once per process.

    Raises:
        ConfigurationError: If the RAG engine coordinates are missing.
    """
    config = get_rag_engine_config()
    settings = get_settings()
    token_provider = GoogleTokenProvider()

    retriever = VertexRagRetriever(config, token_provider, settings=settings.rag_engine)
    llm_client = VertexGeminiClient(config, token_provider, settings=settings.llm)

    logger.info(
        "RAG pipeline created",
        extra={"corpus": config.corpus_name, "model": llm_client.model_name},
    )
    return RAGPipeline(
        retriever=retriever,
        synthesizer=AnswerSynthesizer(llm_client),
        source_host=settings.source_placeholder_host,
    )


async def close_pipeline() -> None:
    """Close the cached pipeline's HTTP clients, if one was built."""
    if get_pipeline.cache_info().currsize:
        await get_pipeline().close()
        get_pipeline.cache_clear()


async def run_query(query: Query, pipeline: RAGPipeline) -> RagResponse:
    try:
        return await pipeline.query(query)
    except RAGPlatformError:
        raise
    except Exception as e:
        logger.exception("Unexpected error while answering query")
        raise RAGPlatformError(
            str(e) or UNKNOWN_ERROR_MESSAGE,
            code=ErrorCode.INTERNAL_ERROR,
            details={"error_type": type(e).__name__},
        ) from e


async def query_endpoint(
    query: Query = Depends(parse_query),
    pipeline: RAGPipeline = Depends(get_pipeline),
) -> RagResponse:
    """Answer a livestock question from the RAG corpus.

    The body is normalized before the pipeline is resolved, so malformed
    requests are rejected even when the service is not configured.
    """
    return await run_query(query, pipeline)


async def trpc_procedure_endpoint(
    procedure: str,
    query: Query = Depends(parse_query),
    pipeline: RAGPipeline = Depends(get_pipeline),
) -> RagResponse:
    """tRPC-style ``/trpc/<procedure>`` call; every procedure is a query."""
    logger.debug("tRPC procedure call", extra={"procedure": procedure})
    return await run_query(query, pipeline)


def add_query_routes(app: FastAPI) -> None:
    """Register the query endpoints directly on the application.

    Routes stay top level so a 405 can report the methods of each path.
    """
    for path in QUERY_PATHS:
        app.add_api_route(
            path,
            query_endpoint,
            methods=["POST"],
            response_model=RagResponse,
            tags=["RAG"],
        )
    app.add_api_route(
        "/trpc/{procedure:path}",
        trpc_procedure_endpoint,
        methods=["POST"],
        response_model=RagResponse,
        tags=["RAG"],
    )
