"""
FastAPI dependencies resolving the objects created in the app lifespan.
"""

from fastapi import Depends, HTTPException, Request

from faqbot.integrations.meta_messenger import MessageSender
from faqbot.knowledge.store import KnowledgeRegistry, KnowledgeStore, UnknownLocaleError
from faqbot.services.gpt_service import GPTService
from faqbot.services.session_service import SessionStore


def get_registry(request: Request) -> KnowledgeRegistry:
    return request.app.state.knowledge


def get_knowledge_store(locale: str, registry: KnowledgeRegistry = Depends(get_registry)) -> KnowledgeStore:
    try:
        return registry.get(locale)
    except UnknownLocaleError:
        raise HTTPException(status_code=404, detail=f"Unknown knowledge base locale '{locale}'")


def get_gpt(request: Request) -> GPTService:
    return request.app.state.gpt


def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_sender(request: Request) -> MessageSender:
    return request.app.state.sender
