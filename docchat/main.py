"""Quart application for document chat."""
from typing import Optional

from pydantic import BaseModel, Field, ValidationError
from quart import Quart, jsonify, request
import structlog

from docchat import config
from docchat.errors import EmbeddingFailed, ExtractionFailed, GenerationFailed
from docchat.generation import OllamaGenerator
from docchat.llm_client import OllamaClient
from docchat.log_config import configure_logging
from docchat.memory import ConversationManager
from docchat.rag.pipeline import RAGPipeline, create_pipeline
from docchat.rag.retriever import build_messages

configure_logging()

logger = structlog.get_logger()


class SearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=config.MAX_MESSAGE_CHARS)
    top_k: int = Field(default=config.RETRIEVAL_TOP_K, ge=1, le=50)
    min_similarity: Optional[float] = Field(default=None, ge=-1.0, le=1.0)


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=config.MAX_MESSAGE_CHARS)
    session_id: Optional[str] = None
    use_rag: bool = True
    top_k: int = Field(default=config.RETRIEVAL_TOP_K, ge=1, le=50)


def _validation_error(e: ValidationError):
    first = e.errors()[0]
    field = ".".join(str(p) for p in first.get("loc", ())) or "body"
    return jsonify({"error": f"Invalid '{field}': {first.get('msg')}"}), 400


def create_app(
    pipeline: Optional[RAGPipeline] = None,
    generator=None,
    client: Optional[OllamaClient] = None,
) -> Quart:
    """Create the application.

    Args:
        pipeline: Retrieval pipeline (built from config if not provided)
        generator: Object with an async ``complete(messages, temperature, max_tokens)``
        client: Ollama client used for defaults and readiness checks
    """
    client = client or OllamaClient()
    pipeline = pipeline or create_pipeline(client)
    generator = generator or OllamaGenerator(client)
    conversation_manager = ConversationManager()

    app = Quart(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_MB * 1024 * 1024

    @app.route("/api/documents", methods=["POST"])
    async def upload_documents():
        """Ingest uploaded files sent as multipart field 'files'.

        Returns JSON with batch counts and one entry per file. Files whose
        text cannot be extracted are reported and skipped.
        """
        files = (await request.files).getlist("files")
        if not files:
            return jsonify({"error": "No files uploaded (use field 'files')"}), 400

        summary = {
            "documents_processed": 0,
            "documents_failed": 0,
            "chunks_created": 0,
            "vectors_stored": 0,
            "results": [],
        }

        for upload in files:
            filename = upload.filename or "upload"
            try:
                result = await pipeline.ingest_upload(filename, upload.read())
            except ExtractionFailed as e:
                logger.error("upload_extraction_failed", filename=filename, error=str(e))
                summary["documents_failed"] += 1
                summary["results"].append({"filename": filename, "error": str(e)})
                continue

            summary["documents_processed"] += 1
            summary["chunks_created"] += result.chunks_produced
            summary["vectors_stored"] += result.vectors_stored
            summary["results"].append({"filename": filename, **result.to_dict()})

        logger.info(
            "upload_processed",
            documents_processed=summary["documents_processed"],
            documents_failed=summary["documents_failed"],
        )

        status_code = 200 if summary["documents_processed"] else 422
        return jsonify(summary), status_code

    @app.route("/api/documents", methods=["GET"])
    async def list_documents():
        """List ingested documents with page and chunk counts."""
        return jsonify({"documents": pipeline.ingestor.list_documents()})

    @app.route("/api/chunks", methods=["GET"])
    async def list_chunks():
        """Preview stored chunks (?limit=10)."""
        limit = request.args.get("limit", default=10, type=int)
        return jsonify(pipeline.ingestor.list_chunks(limit=max(0, limit)))

    @app.route("/api/search", methods=["POST"])
    async def search():
        """Rank stored chunks against a query.

        Response 'status' distinguishes 'no_documents', 'no_results' and 'ok';
        an embedding failure returns 502 with status 'search_failed'.
        """
        try:
            body = SearchRequest.model_validate(await request.get_json(force=True, silent=True) or {})
        except ValidationError as e:
            return _validation_error(e)

        if len(pipeline.vector_store) == 0:
            return jsonify({"status": "no_documents", "results": []})

        try:
            results = await pipeline.retrieve(
                body.query, top_k=body.top_k, min_similarity=body.min_similarity
            )
        except EmbeddingFailed as e:
            logger.error("search_failed", error=str(e))
            return jsonify({"status": "search_failed", "error": str(e), "results": []}), 502

        return jsonify(
            {
                "status": "ok" if results else "no_results",
                "results": [r.to_dict() for r in results],
            }
        )

    @app.route("/api/chat", methods=["POST"])
    async def chat():
        """Answer a message grounded on retrieved excerpts.

        Expects JSON body:
        {
            "message": "user message text",
            "session_id": "optional-session-id",  // creates new if not provided
            "use_rag": true  // optional, defaults to true
        }
        """
        try:
            body = ChatRequest.model_validate(await request.get_json(force=True, silent=True) or {})
        except ValidationError as e:
            return _validation_error(e)

        user_message = body.message.strip()
        if not user_message:
            return jsonify({"error": "Message cannot be empty"}), 400

        session_id = body.session_id
        if not session_id or not conversation_manager.has_session(session_id):
            session_id = conversation_manager.create_session()

        history = conversation_manager.format_conversation_history(session_id)
        conversation_manager.add_message(session_id, "user", user_message)

        results = []
        rag_status = "disabled"
        if body.use_rag:
            if len(pipeline.vector_store) == 0:
                rag_status = "no_documents"
            else:
                try:
                    results = await pipeline.retrieve(user_message, top_k=body.top_k)
                    rag_status = "ok" if results else "no_results"
                except EmbeddingFailed as e:
                    # Answer without grounding rather than failing the chat
                    logger.error("rag_retrieval_failed", error=str(e))
                    rag_status = "search_failed"

        messages = build_messages(user_message, results, history=history)

        try:
            completion = await generator.complete(
                messages,
                temperature=config.CHAT_TEMPERATURE,
                max_tokens=config.CHAT_MAX_TOKENS,
            )
        except GenerationFailed as e:
            logger.error("generation_failed", session_id=session_id, error=str(e))
            return jsonify({"error": str(e), "session_id": session_id}), 502

        sources = [
            {
                "source": r.source,
                "content_preview": r.text[:200] + "..." if len(r.text) > 200 else r.text,
                "similarity": round(r.similarity, 3),
            }
            for r in results
        ]
        conversation_manager.add_message(
            session_id, "assistant", completion["content"], sources
        )

        logger.info(
            "chat_response_sent",
            session_id=session_id,
            response_length=len(completion["content"]),
            rag_status=rag_status,
        )

        return jsonify(
            {
                "response": completion["content"],
                "model": getattr(generator, "model", config.CHAT_MODEL),
                "session_id": session_id,
                "rag_status": rag_status,
                "sources": sources,
            }
        )

    @app.route("/api/sessions", methods=["GET"])
    async def list_sessions():
        """List all chat sessions, most recent first."""
        return jsonify({"sessions": conversation_manager.list_sessions()})

    @app.route("/api/sessions/<session_id>/messages", methods=["GET"])
    async def get_session_messages(session_id: str):
        """Get all messages for a session."""
        if not conversation_manager.get_session(session_id):
            return jsonify({"error": "Session not found"}), 404
        return jsonify({"messages": conversation_manager.get_all_messages(session_id)})

    @app.route("/api/sessions/<session_id>", methods=["DELETE"])
    async def delete_session(session_id: str):
        """Delete a session and all its messages."""
        if conversation_manager.delete_session(session_id):
            return "", 204
        return jsonify({"error": "Session not found"}), 404

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - Ollama reachable and required models installed."""
        checks = {
            "status": "healthy",
            "ollama": False,
            "models": False,
            "pipeline": pipeline.get_stats(),
        }

        try:
            models = await client.list_models()
        except Exception as e:
            logger.error("health_check_failed", error=str(e))
            checks["status"] = "unhealthy"
            checks["error"] = str(e)
            return jsonify(checks), 503

        checks["ollama"] = True
        missing = [m for m in (config.CHAT_MODEL, config.EMBEDDING_MODEL) if m not in models]
        if missing:
            checks["status"] = "unhealthy"
            checks["error"] = f"Missing models: {', '.join(missing)}"
        else:
            checks["models"] = True

        status_code = 200 if checks["status"] == "healthy" else 503
        return jsonify(checks), status_code

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(404)
    async def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(413)
    async def too_large(error):
        return jsonify({"error": f"Upload too large (max {config.MAX_UPLOAD_MB} MB)"}), 413

    @app.errorhandler(500)
    async def internal_error(error):
        logger.error("internal_server_error", error=str(error))
        return jsonify({"error": "Internal server error"}), 500

    return app


app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn in production
    app.run(host="0.0.0.0", port=5000, debug=True)
