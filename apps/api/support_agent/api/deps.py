from fastapi import Request

from support_agent.rag.documents import DocumentManager
from support_agent.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_document_manager(request: Request) -> DocumentManager:
    return get_services(request).document_manager


def get_llm(request: Request):
    return get_services(request).llm


def get_speech(request: Request):
    return get_services(request).speech
