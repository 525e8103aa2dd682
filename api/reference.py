from fastapi import APIRouter, Depends

from api.deps import get_eligibility_gate
from services.eligibility import EligibilityGate
from services.needs_list import DEFAULT_CAPABILITIES
from services.status_machine import status_catalog

router = APIRouter(prefix="/api/reference", tags=["reference"])


@router.get("/statuses")
async def list_statuses():
    return [option.model_dump(mode="json", by_alias=True) for option in status_catalog()]


@router.get("/tables")
async def reference_tables_info(gate: EligibilityGate = Depends(get_eligibility_gate)):
    reference = gate.reference
    return {
        "version": reference.version,
        "eligibilityMode": gate.mode.value,
        "licensedStates": sorted(reference.licensed_states),
        "eligibleMetroCount": len(reference.eligible_metros),
        "ltvLimits": reference.ltv_limits,
        "creditMinimums": reference.credit_minimums,
        "needsListSchemaVersion": DEFAULT_CAPABILITIES.schema_version,
    }
