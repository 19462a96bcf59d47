# app/api/deps.py
from fastapi import Request

from app.domain.services.upsell_svc import UpsellDeps


# Engine capabilities (catalog, history, llm, cache) wired by the lifespan
def upsell_deps(request: Request) -> UpsellDeps:
    return request.app.state.upsell_deps
