from __future__ import annotations

from fastapi import FastAPI

from api.middleware.logging import RequestLoggingMiddleware
from api.routers import audit, webhooks
from pipeline.correlation import CorrelationIssuer
from pipeline.orchestrator import DispatchPipeline


def create_app(pipeline: DispatchPipeline | None = None, issuer: CorrelationIssuer | None = None) -> FastAPI:
    app = FastAPI(title="Auto-Reply Dispatch Engine", version="0.1.0")
    app.add_middleware(RequestLoggingMiddleware)
    app.state.pipeline = pipeline or DispatchPipeline()
    app.state.issuer = issuer or CorrelationIssuer()

    api_prefix = "/api/v1"
    app.include_router(webhooks.router, prefix=api_prefix)
    app.include_router(audit.router, prefix=api_prefix)

    @app.get("/health")
    async def health():
        pipe: DispatchPipeline = app.state.pipeline
        llm = pipe.selector.llm
        return {
            "ok": True,
            "service": "auto-reply-dispatch",
            "llm_provider": llm.provider,
            "llm_model": llm.model,
            "llm_runtime_available": llm.available(),
            "channels": [p.platform.value for p in pipe.registry.list_profiles()],
            "store": pipe.store.counts(),
        }

    return app


app = create_app()
