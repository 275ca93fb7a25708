"""
Expense Sheet API Endpoints.

Every mutating endpoint drives an ExpenseSheetModel the way the edit
view does: prepare, change lines, generate codes, confirm.

Implements:
- GET /api/v1/expense-sheets - List expense sheets
- POST /api/v1/expense-sheets - Create a sheet with its lines
- GET /api/v1/expense-sheets/{id} - Get a sheet with ordered lines
- PATCH /api/v1/expense-sheets/{id} - Add, edit and remove lines
- DELETE /api/v1/expense-sheets/{id} - Delete a sheet
- GET /api/v1/expense-sheets/{id}/ownership - Personal ownership check
"""
import logging
import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from planwright.models import get_db, ExpenseSheet, ExpenseSheetLine, User
from planwright.infrastructure.repositories import (
    ExpenseSheetRepository,
    OrderRepository,
    ResourceRepository,
)
from planwright.web import ExpenseSheetModel
from planwright.domain.exceptions import (
    ConcurrencyError,
    InstanceNotFoundError,
    ValidationError,
)
from .deps import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Pydantic Models
# =============================================================================

class ExpenseSheetLineCreate(BaseModel):
    """Request model for a new line."""
    value_cents: int = Field(..., ge=0, description="Amount in cents")
    concept: str = Field("", max_length=500, description="What the expense was for")
    date: Optional[datetime.date] = Field(None, description="Expense date (default: today)")
    order_element_id: Optional[int] = Field(None, description="Task the expense is charged to")
    resource_id: Optional[int] = Field(None, description="Resource (ignored on personal sheets)")
    code: Optional[str] = Field(None, max_length=80, description="Line code when codes are manual")


class ExpenseSheetLineUpdate(BaseModel):
    """Request model for editing an existing line."""
    id: int
    value_cents: Optional[int] = Field(None, ge=0)
    concept: Optional[str] = Field(None, max_length=500)
    date: Optional[datetime.date] = None
    order_element_id: Optional[int] = None


class ExpenseSheetCreate(BaseModel):
    """Request model for creating a sheet."""
    personal: bool = False
    description: Optional[str] = Field(None, max_length=500)
    code: Optional[str] = Field(None, max_length=50, description="Sheet code when codes are manual")
    lines: List[ExpenseSheetLineCreate] = Field(default_factory=list)


class ExpenseSheetUpdate(BaseModel):
    """Request model for editing a sheet."""
    description: Optional[str] = Field(None, max_length=500)
    add_lines: List[ExpenseSheetLineCreate] = Field(default_factory=list)
    update_lines: List[ExpenseSheetLineUpdate] = Field(default_factory=list)
    remove_line_ids: List[int] = Field(default_factory=list)


class ExpenseSheetLineResponse(BaseModel):
    id: int
    code: Optional[str]
    value_cents: int
    concept: Optional[str]
    date: Optional[datetime.date]
    order_element_id: Optional[int]
    resource_id: Optional[int]


class ExpenseSheetResponse(BaseModel):
    """Response model for a sheet with its lines in display order."""
    id: int
    code: str
    code_autogenerated: bool
    personal: bool
    description: Optional[str]
    first_expense: Optional[datetime.date]
    last_expense: Optional[datetime.date]
    total_cents: int
    lines: List[ExpenseSheetLineResponse]


class OwnershipResponse(BaseModel):
    expense_sheet_id: int
    personal_and_belongs_to_current_user: bool


def _to_response(expense_sheet: ExpenseSheet) -> dict:
    return {
        'id': expense_sheet.id,
        'code': expense_sheet.code,
        'code_autogenerated': expense_sheet.code_autogenerated,
        'personal': expense_sheet.personal,
        'description': expense_sheet.description,
        'first_expense': expense_sheet.first_expense,
        'last_expense': expense_sheet.last_expense,
        'total_cents': expense_sheet.total_cents,
        'lines': [
            {
                'id': line.id,
                'code': line.code,
                'value_cents': line.value_cents,
                'concept': line.concept,
                'date': line.date,
                'order_element_id': line.order_element_id,
                'resource_id': line.resource_id,
            }
            for line in expense_sheet.get_expense_sheet_lines()
        ],
    }


def _fill_new_line(model: ExpenseSheetModel, data: ExpenseSheetLineCreate, db: Session) -> None:
    """Copy request data into the model's new-line buffer and add it."""
    line = model.get_new_expense_sheet_line()
    line.value_cents = data.value_cents
    line.concept = data.concept
    if data.date is not None:
        line.date = data.date
    if data.order_element_id is not None:
        line.order_element = OrderRepository(db).get_order_element(data.order_element_id)
    if data.resource_id is not None and not model.get_expense_sheet().is_personal():
        line.resource = ResourceRepository(db).find(data.resource_id)
    if data.code:
        line.code = data.code
    model.add_expense_sheet_line()


def _find_line(expense_sheet: ExpenseSheet, line_id: int) -> ExpenseSheetLine:
    for line in expense_sheet.expense_sheet_lines:
        if line.id == line_id:
            return line
    raise InstanceNotFoundError("ExpenseSheetLine", line_id)


def _confirm(model: ExpenseSheetModel) -> None:
    model.generate_expense_sheet_line_codes_if_is_necessary()
    model.confirm_save()


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=List[ExpenseSheetResponse], summary="List expense sheets")
def list_expense_sheets(db: Session = Depends(get_db)):
    model = ExpenseSheetModel(db)
    return [_to_response(s) for s in model.get_expense_sheets()]


@router.post(
    "",
    response_model=ExpenseSheetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an expense sheet"
)
def create_expense_sheet(
    data: ExpenseSheetCreate,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user)
):
    model = ExpenseSheetModel(db, current_user_provider=lambda: current_user)
    try:
        model.init_create(data.personal)
        expense_sheet = model.get_expense_sheet()
        if not expense_sheet.is_code_autogenerated():
            expense_sheet.code = data.code or ""
        expense_sheet.description = data.description
        for line_data in data.lines:
            _fill_new_line(model, line_data, db)
        _confirm(model)
    except InstanceNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return _to_response(expense_sheet)


@router.get("/{expense_sheet_id}", response_model=ExpenseSheetResponse, summary="Get an expense sheet")
def get_expense_sheet(expense_sheet_id: int, db: Session = Depends(get_db)):
    try:
        return _to_response(ExpenseSheetRepository(db).find(expense_sheet_id))
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.patch(
    "/{expense_sheet_id}",
    response_model=ExpenseSheetResponse,
    summary="Edit an expense sheet",
    description="Removes, edits and adds lines, then updates the expense aggregates."
)
def update_expense_sheet(
    expense_sheet_id: int,
    data: ExpenseSheetUpdate,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user)
):
    model = ExpenseSheetModel(db, current_user_provider=lambda: current_user)
    try:
        model.prepare_to_edit(ExpenseSheetRepository(db).find(expense_sheet_id))
        expense_sheet = model.get_expense_sheet()

        if data.description is not None:
            expense_sheet.description = data.description
        for line_id in data.remove_line_ids:
            model.remove_expense_sheet_line(_find_line(expense_sheet, line_id))
        for line_data in data.update_lines:
            line = _find_line(expense_sheet, line_data.id)
            if line_data.value_cents is not None:
                line.value_cents = line_data.value_cents
            if line_data.concept is not None:
                line.concept = line_data.concept
            if line_data.order_element_id is not None:
                line.order_element = OrderRepository(db).get_order_element(line_data.order_element_id)
            if line_data.date is not None:
                model.keep_sorted_expense_sheet_lines(line, line_data.date)
        for line_data in data.add_lines:
            _fill_new_line(model, line_data, db)
        _confirm(model)
    except InstanceNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except StaleDataError:
        error = ConcurrencyError("ExpenseSheet", str(expense_sheet_id))
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.message)
    return _to_response(expense_sheet)


@router.delete(
    "/{expense_sheet_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an expense sheet"
)
def delete_expense_sheet(expense_sheet_id: int, db: Session = Depends(get_db)):
    model = ExpenseSheetModel(db)
    try:
        model.remove_expense_sheet(ExpenseSheetRepository(db).find(expense_sheet_id))
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StaleDataError:
        error = ConcurrencyError("ExpenseSheet", str(expense_sheet_id))
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.message)


@router.get(
    "/{expense_sheet_id}/ownership",
    response_model=OwnershipResponse,
    summary="Check personal ownership",
    description="Whether the sheet is personal and charged to the acting user's worker."
)
def get_expense_sheet_ownership(
    expense_sheet_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user)
):
    model = ExpenseSheetModel(db, current_user_provider=lambda: current_user)
    try:
        expense_sheet = ExpenseSheetRepository(db).find(expense_sheet_id)
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return {
        'expense_sheet_id': expense_sheet.id,
        'personal_and_belongs_to_current_user': model.is_personal_and_belongs_to_current_user(expense_sheet),
    }
