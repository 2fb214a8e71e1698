"""
Unsent Pro API — Shared collaborators
Built once in the lifespan and kept on app.state. Tests swap them through
app.dependency_overrides.
"""
from fastapi import Request

from composer import MessageComposer
from database import SubscriptionStore
from purchase import PurchaseOrchestrator


def get_orchestrator(request: Request) -> PurchaseOrchestrator:
    return request.app.state.orchestrator


def get_store(request: Request) -> SubscriptionStore:
    return request.app.state.store


def get_composer(request: Request) -> MessageComposer:
    return request.app.state.composer
