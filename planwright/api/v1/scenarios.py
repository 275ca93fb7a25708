"""
Scenario API Endpoints.

Implements:
- GET /api/v1/scenarios - List scenarios
- POST /api/v1/scenarios - Create a scenario
- GET /api/v1/scenarios/{id} - Get a scenario with its orders
- POST /api/v1/scenarios/{id}/derive - Derive a child scenario
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from planwright.models import get_db, Scenario
from planwright.infrastructure.repositories import ScenarioRepository
from planwright.domain.exceptions import DuplicateNameError, InstanceNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Pydantic Models
# =============================================================================

class ScenarioCreate(BaseModel):
    """Request model for creating a scenario."""
    name: str = Field(..., min_length=1, max_length=200, description="Unique scenario name")
    description: Optional[str] = Field(None, description="Free text description")
    predecessor_id: Optional[int] = Field(None, description="Scenario this one derives from")


class ScenarioDerive(BaseModel):
    """Request model for deriving a scenario."""
    name: Optional[str] = Field(None, min_length=1, max_length=200, description="Name of the child")


class ScenarioOrderResponse(BaseModel):
    order_id: int
    order_name: Optional[str]
    order_version_id: Optional[int]


class ScenarioResponse(BaseModel):
    """Response model for a scenario."""
    id: int
    name: str
    description: Optional[str]
    predecessor_id: Optional[int]
    predecessor_name: Optional[str]
    predefined: bool
    orders: List[ScenarioOrderResponse]


def _to_response(scenario: Scenario) -> dict:
    return {
        'id': scenario.id,
        'name': scenario.name,
        'description': scenario.description,
        'predecessor_id': scenario.predecessor_id,
        'predecessor_name': scenario.predecessor.name if scenario.predecessor else None,
        'predefined': scenario.is_predefined(),
        'orders': [
            {
                'order_id': order.id,
                'order_name': order.name,
                'order_version_id': version.id if version else None,
            }
            for order, version in sorted(scenario.orders.items(), key=lambda item: item[0].name or "")
        ],
    }


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=List[ScenarioResponse], summary="List scenarios")
def list_scenarios(db: Session = Depends(get_db)):
    return [_to_response(s) for s in ScenarioRepository(db).list()]


@router.post(
    "",
    response_model=ScenarioResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a scenario"
)
def create_scenario(data: ScenarioCreate, db: Session = Depends(get_db)):
    repo = ScenarioRepository(db)
    try:
        predecessor = repo.find(data.predecessor_id) if data.predecessor_id else None
        scenario = Scenario.create(data.name, predecessor=predecessor)
        scenario.description = data.description
        repo.save(scenario)
        db.commit()
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except DuplicateNameError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return _to_response(scenario)


@router.get("/{scenario_id}", response_model=ScenarioResponse, summary="Get a scenario")
def get_scenario(scenario_id: int, db: Session = Depends(get_db)):
    try:
        return _to_response(ScenarioRepository(db).find(scenario_id))
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.post(
    "/{scenario_id}/derive",
    response_model=ScenarioResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Derive a scenario",
    description="Create a child scenario sharing the parent's orders and order versions."
)
def derive_scenario(scenario_id: int, data: ScenarioDerive, db: Session = Depends(get_db)):
    repo = ScenarioRepository(db)
    try:
        parent = repo.find(scenario_id)
        child = parent.new_derived_scenario(data.name)
        repo.save(child)
        db.commit()
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except DuplicateNameError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    logger.info(f"Derived scenario {child.name} from {parent.name}")
    return _to_response(child)
