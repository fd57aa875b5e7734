"""
Marketplace ranking endpoints.

A thin HTTP skin over MarketplaceSession: the client reports catalog,
profile, dwell and exposure events, and reads back the ranking and
aggregate insights.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from api.schemas import (
    CatalogRequest,
    ClusterResponse,
    CombinationResponse,
    CreateSessionRequest,
    DwellRequest,
    DwellResponse,
    ExposureRequest,
    InsightsResponse,
    MetricsResponse,
    NeedRequest,
    RecommendationResponse,
    SearchRecordRequest,
)
from marketplace.models import UserProfile
from marketplace.session import MarketplaceSession
from services.session_manager import SessionManager


router = APIRouter(prefix="/api/marketplace", tags=["Marketplace"])

# How long a request waits for background aggregate metrics
METRICS_TIMEOUT_SECONDS = 2.0


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> MarketplaceSession:
    session = manager.get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )
    return session


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
def create_session(
    body: CreateSessionRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    session = manager.create_session(client_id=body.client_id)
    if body.profile is not None:
        session.set_profile(body.profile)
    if body.catalog:
        session.set_catalog(body.catalog)
    return session.snapshot()


@router.get("/sessions/{session_id}")
def get_ranking_snapshot(session: MarketplaceSession = Depends(get_session)) -> Dict[str, Any]:
    return session.snapshot()


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> None:
    if not manager.delete_session(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )


@router.put("/sessions/{session_id}/catalog")
def set_catalog(
    body: CatalogRequest,
    session: MarketplaceSession = Depends(get_session),
) -> Dict[str, Any]:
    session.set_catalog(body.items)
    return session.snapshot()


@router.put("/sessions/{session_id}/profile")
def set_profile(
    body: Optional[UserProfile] = None,
    session: MarketplaceSession = Depends(get_session),
) -> Dict[str, Any]:
    session.set_profile(body)
    return session.snapshot()


@router.post("/sessions/{session_id}/dwell")
def register_dwell(
    body: DwellRequest,
    session: MarketplaceSession = Depends(get_session),
) -> DwellResponse:
    return DwellResponse(accepted=session.register_dwell(body.item_id, body.delta_ms))


@router.post("/sessions/{session_id}/exposure")
def record_exposure(
    body: ExposureRequest,
    session: MarketplaceSession = Depends(get_session),
) -> Dict[str, Any]:
    if body.item_id:
        session.record_item_view(body.item_id)
    if body.descriptors:
        session.record_exposure(body.descriptors)
    return session.snapshot()


@router.post("/sessions/{session_id}/need")
def select_need(
    body: NeedRequest,
    session: MarketplaceSession = Depends(get_session),
) -> Dict[str, Any]:
    session.select_need(body.need)
    return session.snapshot()


@router.get("/sessions/{session_id}/ranking")
def get_ranking(
    q: Optional[str] = Query(default=None, description="Free-text filter"),
    session: MarketplaceSession = Depends(get_session),
) -> Dict[str, Any]:
    # Each HTTP query is already a settled value; the client owns debouncing.
    session.set_query(q)
    session.search.flush()
    session.refresh()
    return session.snapshot()


@router.post("/sessions/{session_id}/searches", status_code=status.HTTP_204_NO_CONTENT)
def record_search(
    body: SearchRecordRequest,
    session: MarketplaceSession = Depends(get_session),
) -> None:
    session.record_search(body.query)


@router.get("/sessions/{session_id}/insights")
def get_insights(session: MarketplaceSession = Depends(get_session)) -> InsightsResponse:
    metrics = session.wait_for_metrics(timeout=METRICS_TIMEOUT_SECONDS)
    combination = session.combination(metrics)
    return InsightsResponse(
        metrics=MetricsResponse.from_metrics(metrics),
        recommended=[
            RecommendationResponse(
                item_id=r.entry.item.id,
                name=r.entry.item.name,
                rank=r.rank,
                confidence=r.confidence,
            )
            for r in session.recommended()
        ],
        clusters=[
            ClusterResponse(
                id=c.id,
                label=c.label,
                description=c.description,
                item_ids=[e.item.id for e in c.entries],
            )
            for c in session.clusters()
        ],
        combination=(
            CombinationResponse(
                title=combination.title,
                description=combination.description,
                items=combination.items,
                roi=combination.roi,
            )
            if combination else None
        ),
        suggestions=session.suggestions(),
    )
