"""
Knowledge base endpoints: search, smart answer, browse, stats and reload.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger

from faqbot.dependencies import get_knowledge_store
from faqbot.knowledge.store import KnowledgeStore
from faqbot.models.schemas import AnswerRequest, KnowledgeStats, SearchRequest
from faqbot.services.auth_service import require_admin

router = APIRouter(prefix="/api/knowledge/{locale}", tags=["knowledge"])


@router.get("/stats")
def knowledge_stats(store: KnowledgeStore = Depends(get_knowledge_store)):
    return {"success": True, "data": KnowledgeStats(**store.stats())}


@router.get("/categories")
def list_categories(store: KnowledgeStore = Depends(get_knowledge_store)):
    return {"success": True, "data": store.categories()}


@router.get("/categories/{category}/faq")
def faq_by_category(category: str, store: KnowledgeStore = Depends(get_knowledge_store)):
    return {"success": True, "data": store.entries_by_category(category)}


@router.get("/quick-replies")
def list_quick_replies(category: Optional[str] = None, store: KnowledgeStore = Depends(get_knowledge_store)):
    return {"success": True, "data": store.quick_replies(category)}


@router.post("/search")
def search_faq(req: SearchRequest, store: KnowledgeStore = Depends(get_knowledge_store)):
    results = store.search(req.query, req.limit)
    return {
        "success": True,
        "data": [{**result.entry.model_dump(), "score": result.score} for result in results],
    }


@router.post("/answer")
def smart_answer(req: AnswerRequest, store: KnowledgeStore = Depends(get_knowledge_store)):
    return {"success": True, "data": store.get_smart_answer(req.query, req.threshold)}


@router.post("/reload", dependencies=[Depends(require_admin)])
def reload_knowledge(locale: str, store: KnowledgeStore = Depends(get_knowledge_store)):
    if not store.reload():
        logger.error(f"Knowledge base reload failed for '{locale}'")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to reload knowledge base"},
        )

    logger.info(f"Knowledge base '{locale}' reloaded via API")
    return {"success": True, "message": "Knowledge base reloaded successfully", "data": store.stats()}
