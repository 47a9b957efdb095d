"""
Test Assembly API — Main Application
FastAPI application that assembles exams from a Table of Specification (TOS)
using the question bank, with OpenAI fallback generation for missing items.
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os

from database.database import engine, Base
from embeddings import EmbeddingGenerator
from routers import assembly
from services import OpenAIQualityClassifier, OpenAIQuestionGenerator
from services.gpt_client import build_client

log = logging.getLogger("assembly.app")

EMBED_ON_SAVE = os.getenv("EMBED_ON_SAVE", "true").lower() in ("1", "true", "yes")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables + wire the OpenAI collaborators."""
    Base.metadata.create_all(bind=engine)

    app.state.classifier = None
    app.state.generator = None
    app.state.embedder = None
    if os.getenv("OPENAI_API_KEY"):
        client = build_client()
        app.state.classifier = OpenAIQualityClassifier(client)
        app.state.generator = OpenAIQuestionGenerator(client)
        if EMBED_ON_SAVE:
            app.state.embedder = EmbeddingGenerator()
    else:
        log.warning("OPENAI_API_KEY not set: assembly endpoints will answer 503 until it is configured")

    yield

    if app.state.generator is not None:
        await app.state.generator.client.close()


app = FastAPI(
    title="Test Assembly API",
    description="TOS-driven test assembly: bank sourcing, quality and redundancy filtering, AI fallback generation",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─── Routers ───────────────────────────────────────────────────────────────────

app.include_router(assembly.router)           # /assembly/*


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=True)
