"""
Assembly Router — /assembly

Runs the test assembly pipeline over the SQL question bank.
Endpoints:
  POST /assembly/requirements/preview     — resolve a TOS matrix without assembling
  POST /assembly/requirements/sufficiency — compare requirements with the approved bank
  POST /assembly/tests                    — assemble + persist a test
  GET  /assembly/tests                    — list stored tests
  GET  /assembly/tests/{id}               — full stored test
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from assembly.config import AssemblyConfig
from assembly.diversity_selector import render_selection_report
from assembly.errors import AssemblyError, ContractViolation, StoreUnavailable
from assembly.pipeline import TestAssemblyPipeline
from assembly.requirement_resolver import resolve_requirements
from assembly.schemas import AssembledTest, AssemblyResult, Requirement, SufficiencyReport, TestMetadata
from assembly.sufficiency import analyze_sufficiency
from database import crud
from database.database import get_db
from database.stores import SqlQuestionStore, SqlTestArtifactStore

router = APIRouter(prefix="/assembly", tags=["assembly"])

# Use Python's standard logger so output appears in the uvicorn console
log = logging.getLogger("assembly.pipeline")
logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)s  %(message)s")


# ─── Request / response models ─────────────────────────────────────────────────

class TOSPreviewRequest(BaseModel):
    tos_matrix: Dict[str, Any]


class TOSPreviewResponse(BaseModel):
    requirements: List[Requirement]
    total_items: int


class SufficiencyRequest(BaseModel):
    """Either explicit requirements or a TOS matrix to resolve."""
    requirements: Optional[List[Requirement]] = None
    tos_matrix: Optional[Dict[str, Any]] = None


class AssembleRequest(SufficiencyRequest):
    metadata: TestMetadata = Field(default_factory=TestMetadata)


class AssembleResponse(AssemblyResult):
    report: str = ""


class TestSummary(BaseModel):
    __test__ = False

    id: int
    title: str
    subject: Optional[str] = None
    tos_id: Optional[str] = None
    item_count: int
    total_points: int


# ─── Dependencies ──────────────────────────────────────────────────────────────

def get_config() -> AssemblyConfig:
    return AssemblyConfig.from_env()


def get_classifier(request: Request):
    classifier = getattr(request.app.state, "classifier", None)
    if classifier is None:
        raise HTTPException(status_code=503, detail="Question classifier not configured (OPENAI_API_KEY missing?)")
    return classifier


def get_generator(request: Request):
    generator = getattr(request.app.state, "generator", None)
    if generator is None:
        raise HTTPException(status_code=503, detail="Question generator not configured (OPENAI_API_KEY missing?)")
    return generator


def get_embedder(request: Request):
    return getattr(request.app.state, "embedder", None)


def get_pipeline(
    db: Session = Depends(get_db),
    classifier=Depends(get_classifier),
    generator=Depends(get_generator),
    embedder=Depends(get_embedder),
    config: AssemblyConfig = Depends(get_config),
) -> TestAssemblyPipeline:
    """One pipeline per request; nothing carries over between requests."""
    return TestAssemblyPipeline(
        question_store=SqlQuestionStore(db, embedder=embedder, model_name=getattr(generator, "model", None)),
        classifier=classifier,
        generator=generator,
        artifact_store=SqlTestArtifactStore(db),
        config=config,
        embedder=embedder,
    )


# ─── TOS preview ───────────────────────────────────────────────────────────────

@router.post("/requirements/preview", response_model=TOSPreviewResponse)
def preview_requirements(
    request: TOSPreviewRequest,
    config: AssemblyConfig = Depends(get_config),
):
    """
    **Dry-run: resolve a TOS matrix into requirements without touching the bank.**

    Shows exactly how each (topic, level) cell is split into easy / average /
    difficult buckets before a test is assembled.
    """
    requirements = resolve_requirements(request.tos_matrix, config.difficulty_split)
    return TOSPreviewResponse(
        requirements=requirements,
        total_items=sum(r.count for r in requirements),
    )


@router.post("/requirements/sufficiency", response_model=SufficiencyReport)
def check_sufficiency(
    request: SufficiencyRequest,
    db: Session = Depends(get_db),
    config: AssemblyConfig = Depends(get_config),
):
    """
    **Pre-flight: how much of the TOS can the approved bank cover?**

    Per (topic, level, difficulty) bucket: required, available, gap and
    pass / warning / fail. Nothing is generated or stored.
    """
    if (request.requirements is None) == (request.tos_matrix is None):
        raise HTTPException(status_code=422, detail="Provide exactly one of 'requirements' or 'tos_matrix'")

    if request.tos_matrix is not None:
        requirements = resolve_requirements(request.tos_matrix, config.difficulty_split)
    else:
        requirements = request.requirements

    try:
        return analyze_sufficiency(SqlQuestionStore(db), requirements)
    except StoreUnavailable as e:
        log.error(f"[SUFFICIENCY] Store unavailable: {e}")
        raise HTTPException(status_code=503, detail=f"Question bank unavailable: {e}")


# ─── Assemble ──────────────────────────────────────────────────────────────────

@router.post("/tests", response_model=AssembleResponse)
async def assemble_test(
    request: AssembleRequest,
    pipeline: TestAssemblyPipeline = Depends(get_pipeline),
):
    """
    **Assemble a complete test.**

    Returns the stored test id plus selection statistics. Responds 422 when the
    requested counts cannot be met (no partial test is stored) and 503 when the
    database is unavailable.
    """
    if (request.requirements is None) == (request.tos_matrix is None):
        raise HTTPException(status_code=422, detail="Provide exactly one of 'requirements' or 'tos_matrix'")

    log.info(f"[ASSEMBLE] Request '{request.metadata.title}'")
    try:
        if request.tos_matrix is not None:
            result = await pipeline.assemble_from_tos(request.tos_matrix, request.metadata)
        else:
            result = await pipeline.assemble(request.requirements, request.metadata)
    except ContractViolation as e:
        raise HTTPException(status_code=422, detail={
            "message": str(e),
            "required": e.required,
            "selected": e.selected,
            "shortfall": e.shortfall,
            "attempts": e.attempts,
        })
    except StoreUnavailable as e:
        log.error(f"[ASSEMBLE] Store unavailable: {e}")
        raise HTTPException(status_code=503, detail=f"Question bank unavailable: {e}")
    except AssemblyError as e:
        raise HTTPException(status_code=422, detail=str(e))

    report = render_selection_report(result.selection) if result.selection else ""
    return AssembleResponse(**result.model_dump(), report=report)


# ─── Stored tests ──────────────────────────────────────────────────────────────

@router.get("/tests", response_model=List[TestSummary])
def list_tests(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    rows = crud.get_generated_tests(db, skip=skip, limit=limit)
    return [
        TestSummary(
            id=r.id,
            title=r.title,
            subject=r.subject,
            tos_id=r.tos_id,
            item_count=r.item_count,
            total_points=r.total_points,
        )
        for r in rows
    ]


@router.get("/tests/{test_id}", response_model=AssembledTest)
def get_test(test_id: str, db: Session = Depends(get_db)):
    try:
        test = SqlTestArtifactStore(db).get(test_id)
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Question bank unavailable: {e}")
    if test is None:
        raise HTTPException(status_code=404, detail="Test not found")
    return test
