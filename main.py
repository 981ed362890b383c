import logging

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models  # ensure models are imported so tables are registered
from admin import router as admin_router
from config import settings
from database import Base, engine, get_db
from exceptions import LedgerError
from portal import router as portal_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Library Circulation", debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600
)


# Log every request with its outcome
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.debug("Incoming request: %s %s", request.method, request.url)
    response = await call_next(request)
    logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    body = {"detail": exc.message}
    if exc.isbn is not None:
        body["isbn"] = exc.isbn
    if exc.index is not None:
        # batch stopped part way: earlier items stay committed
        body["index"] = exc.index
        body["committed"] = exc.committed
    return JSONResponse(status_code=exc.status_code, content=body)


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


app.include_router(portal_router)
app.include_router(admin_router)


@app.get("/health")
def health(db: Session = Depends(get_db)):
    """Basic health check endpoint. Returns DB connectivity and basic counts."""
    try:
        db.execute(text("SELECT 1"))
        total = db.query(models.Book).count()
        students = db.query(models.Student).count()
        return {"status": "ok", "database": "connected", "total_books": total, "total_students": students}
    except SQLAlchemyError as e:
        logger.exception("Health check failed")
        return {"status": "error", "database": "disconnected", "detail": str(e)}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
