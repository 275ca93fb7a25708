"""
Advance Type API Endpoints.

Implements:
- GET /api/v1/advance-types - List advance types
- POST /api/v1/advance-types - Create an advance type
- GET /api/v1/advance-types/by-name/{name} - Find by unit name
- DELETE /api/v1/advance-types/{id} - Delete an advance type
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from planwright.models import get_db, AdvanceType
from planwright.infrastructure.repositories import AdvanceTypeRepository
from planwright.domain.exceptions import DuplicateNameError, InstanceNotFoundError

router = APIRouter()


class AdvanceTypeCreate(BaseModel):
    """Request model for creating an advance type."""
    unit_name: str = Field(..., min_length=1, max_length=100, description="Unique unit name")
    default_max_value: float = Field(..., gt=0, description="Maximum measurable value")
    unit_precision: float = Field(0.01, gt=0, description="Smallest measurable step")
    updatable: bool = True
    active: bool = True
    percentage: bool = False


class AdvanceTypeResponse(BaseModel):
    """Response model for an advance type."""
    id: int
    unit_name: str
    default_max_value: float
    unit_precision: float
    updatable: bool
    active: bool
    percentage: bool
    read_only: bool

    model_config = ConfigDict(from_attributes=True)


@router.get("", response_model=List[AdvanceTypeResponse], summary="List advance types")
def list_advance_types(active_only: bool = False, db: Session = Depends(get_db)):
    repo = AdvanceTypeRepository(db)
    return repo.find_active() if active_only else repo.list()


@router.post(
    "",
    response_model=AdvanceTypeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an advance type"
)
def create_advance_type(data: AdvanceTypeCreate, db: Session = Depends(get_db)):
    repo = AdvanceTypeRepository(db)
    advance_type = AdvanceType.create(
        unit_name=data.unit_name,
        default_max_value=data.default_max_value,
        updatable=data.updatable,
        unit_precision=data.unit_precision,
        active=data.active,
        percentage=data.percentage
    )
    try:
        repo.save(advance_type)
        db.commit()
    except DuplicateNameError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return advance_type


@router.get(
    "/by-name/{name}",
    response_model=AdvanceTypeResponse,
    summary="Find an advance type by unit name"
)
def get_advance_type_by_name(name: str, db: Session = Depends(get_db)):
    advance_type = AdvanceTypeRepository(db).find_by_name(name)
    if advance_type is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"AdvanceType with key '{name}' not found"
        )
    return advance_type


@router.delete(
    "/{advance_type_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an advance type",
    description="Predefined (read-only) advance types cannot be deleted."
)
def delete_advance_type(advance_type_id: int, db: Session = Depends(get_db)):
    repo = AdvanceTypeRepository(db)
    try:
        advance_type = repo.find(advance_type_id)
        if advance_type.read_only:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Advance type '{advance_type.unit_name}' is predefined"
            )
        repo.remove(advance_type_id)
        db.commit()
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
