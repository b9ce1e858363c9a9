import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Security
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from lending.catalog import Catalog
from lending.config import settings
from lending.database import Database
from lending.errors import BUSINESS_REJECTIONS, InvalidArgument, LendingError, NotFound, TransientStoreConflict
from lending.logging_setup import configure_logging
from lending.service import LendingService

configure_logging(rich=False)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.app_version)

# --- Store ---
_database: Optional[Database] = None


def get_database() -> Database:
    """Dependency returning the process-wide database; tests override it."""
    global _database
    if _database is None:
        _database = Database(os.getenv("LENDING_DB_FILE") or settings.db_file)
    return _database


def get_service(database: Database = Depends(get_database)) -> LendingService:
    return LendingService(database)


def get_catalog(database: Database = Depends(get_database)) -> Catalog:
    return Catalog(database)


# --- Security ---
api_key_header = APIKeyHeader(name="X-API-Key")


def get_api_key(api_key: str = Security(api_key_header)):
    """Dependency validating the API key on mutating routes."""
    if api_key == settings.api_key:
        return api_key
    raise HTTPException(status_code=403, detail="Could not validate credentials")


# --- Errors ---
def status_for(error: LendingError) -> int:
    if isinstance(error, InvalidArgument):
        return 422
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, BUSINESS_REJECTIONS):
        return 409
    if isinstance(error, TransientStoreConflict):
        return 503
    return 500


@app.exception_handler(LendingError)
async def lending_error_handler(request: Request, exc: LendingError):
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.reason}")
    headers = {"Retry-After": "1"} if isinstance(exc, TransientStoreConflict) else None
    return JSONResponse(status_code=status, content=exc.to_dict(), headers=headers)


# --- Models ---
class UserCreateModel(BaseModel):
    username: str
    email: str
    full_name: str = ""
    phone: Optional[str] = None
    role: str = "member"
    status: str = "active"


class UserModel(UserCreateModel):
    user_id: int
    created_at: Optional[str] = None


class StatusUpdateModel(BaseModel):
    status: str


class BookCreateModel(BaseModel):
    isbn: str
    title: str
    total_copies: int = Field(..., ge=0)
    author: str = ""
    language: Optional[str] = None
    publication_year: Optional[int] = None
    pages: Optional[int] = None
    price: Optional[float] = None
    location: Optional[str] = None


class BookModel(BookCreateModel):
    book_id: int
    available_copies: int
    created_at: Optional[str] = None


class BorrowRequestModel(BaseModel):
    user_id: Optional[int] = None
    book_id: Optional[int] = None
    loan_days: Optional[int] = None


class BorrowingModel(BaseModel):
    borrowing_id: int
    user_id: int
    book_id: int
    borrow_date: datetime
    due_date: datetime
    return_date: Optional[datetime] = None
    status: str
    fine_amount: Optional[float] = None


class FineModel(BaseModel):
    borrowing_id: int
    amount: float
    overdue_days: int
    per_day: float
    finalized: bool


# --- Health ---
@app.get("/health")
def health(database: Database = Depends(get_database)):
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "db": database.ping(),
        "version": settings.app_version,
    }


# --- Users ---
@app.post("/users", response_model=UserModel, status_code=201, dependencies=[Depends(get_api_key)])
def create_user(payload: UserCreateModel, catalog: Catalog = Depends(get_catalog)):
    user = catalog.add_user(**payload.model_dump())
    return user.to_dict()


@app.get("/users/{user_id}", response_model=UserModel)
def read_user(user_id: int, catalog: Catalog = Depends(get_catalog)):
    return catalog.get_user(user_id).to_dict()


@app.patch("/users/{user_id}/status", response_model=UserModel, dependencies=[Depends(get_api_key)])
def update_user_status(user_id: int, payload: StatusUpdateModel, catalog: Catalog = Depends(get_catalog)):
    return catalog.set_user_status(user_id, payload.status).to_dict()


@app.get("/users/{user_id}/borrowings", response_model=List[BorrowingModel])
def user_borrowings(user_id: int, service: LendingService = Depends(get_service)):
    return [b.to_dict() for b in service.borrowings_for_user(user_id)]


# --- Books ---
@app.post("/books", response_model=BookModel, status_code=201, dependencies=[Depends(get_api_key)])
def create_book(payload: BookCreateModel, catalog: Catalog = Depends(get_catalog)):
    data = payload.model_dump()
    book = catalog.add_book(data.pop("isbn"), data.pop("title"), data.pop("total_copies"), **data)
    return book.to_dict()


@app.get("/books/{book_id}", response_model=BookModel)
def read_book(book_id: int, catalog: Catalog = Depends(get_catalog)):
    return catalog.get_book(book_id).to_dict()


# --- Borrowings ---
@app.post("/borrowings", response_model=BorrowingModel, status_code=201, dependencies=[Depends(get_api_key)])
def borrow(payload: BorrowRequestModel, service: LendingService = Depends(get_service)):
    borrowing = service.borrow_book(payload.user_id, payload.book_id, payload.loan_days)
    return borrowing.to_dict()


@app.get("/borrowings/{borrowing_id}", response_model=BorrowingModel)
def read_borrowing(borrowing_id: int, service: LendingService = Depends(get_service)):
    return service.get_borrowing(borrowing_id).to_dict()


@app.post("/borrowings/{borrowing_id}/return", dependencies=[Depends(get_api_key)])
def return_borrowing(borrowing_id: int, service: LendingService = Depends(get_service)):
    return {"borrowing_id": borrowing_id, "returned": service.return_book(borrowing_id)}


@app.get("/borrowings/{borrowing_id}/fine", response_model=FineModel)
def preview_fine(borrowing_id: int, service: LendingService = Depends(get_service)):
    quote = service.fines.load_quote(borrowing_id)
    return {
        "borrowing_id": quote.borrowing_id,
        "amount": quote.amount,
        "overdue_days": quote.overdue_days,
        "per_day": quote.per_day,
        "finalized": quote.finalized,
    }


@app.post("/borrowings/{borrowing_id}/fine", response_model=FineModel, dependencies=[Depends(get_api_key)])
def settle_fine(borrowing_id: int, service: LendingService = Depends(get_service)):
    service.settle_fine(borrowing_id)
    return preview_fine(borrowing_id, service)
