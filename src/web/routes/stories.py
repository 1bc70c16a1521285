"""Story-to-timeline assignment routes."""

import structlog
from fastapi import APIRouter, Depends

from cli.config_models import RealtyConfig
from knowledge.retrieval import KnowledgeRetrievalService
from offers.errors import PipelineError
from personalization.timeline import default_phases
from web.deps import get_config, get_retrieval_service, get_tenant_store
from web.models import AssignmentItem, AutoAssignRequest, AutoAssignResponse
from web.routes.offers import error_response
from web.tenant_store import TenantStore

logger = structlog.get_logger()

router = APIRouter(prefix="/api/stories", tags=["stories"])


@router.post("/auto-assign", response_model=AutoAssignResponse)
def auto_assign(
    body: AutoAssignRequest,
    config: RealtyConfig = Depends(get_config),
    tenants: TenantStore = Depends(get_tenant_store),
    retrieval: KnowledgeRetrievalService = Depends(get_retrieval_service),
):
    """Link the tenant's stories to open timeline steps, one story per phase."""
    try:
        tenant = tenants.resolve(body.client_identifier)
        collection = tenant.collection_name(config.vector_store.collection_prefix)
        response = AutoAssignResponse()
        for flow in body.flows:
            phases = tenant.phases.get(flow.value) or default_phases(flow.value)
            result = retrieval.assign_stories(flow.value, phases, collection)
            response.assignments.extend(
                AssignmentItem(
                    flow=a.flow,
                    phaseId=a.phase_id,
                    phaseName=a.phase_name,
                    stepId=a.step_id,
                    storyId=a.item_id,
                    storyTitle=a.item_title,
                    score=a.score,
                )
                for a in result.assignments
            )
            response.unassigned[flow.value] = result.unassigned
            if body.save:
                tenant = tenants.save_phases(tenant.id, flow.value, result.phases)
        response.saved = body.save
    except PipelineError as e:
        logger.warning("stories.auto_assign_failed", client=body.client_identifier, error=e.message)
        return error_response(e)

    logger.info(
        "stories.auto_assign_completed",
        tenant_id=tenant.id,
        assigned=len(response.assignments),
        saved=response.saved,
    )
    return response
