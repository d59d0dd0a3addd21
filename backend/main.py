# main.py
import logging
import sys
from typing import Optional

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from db import Base, engine, get_session
import schemas
import content
import generator
import progress
from errors import StudyJoyError, AuthError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# App & CORS
# -----------------------------------------------------------------------------
app = FastAPI(title="StudyJoy – AI Study Quiz Generator")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create tables at startup
Base.metadata.create_all(bind=engine)

# -----------------------------------------------------------------------------
# Error envelope
# -----------------------------------------------------------------------------
@app.exception_handler(StudyJoyError)
async def studyjoy_error_handler(request: Request, exc: StudyJoyError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()) if p != 'body')}: {e.get('msg')}" for e in errors
    ) or "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "error": message})

def current_user(x_user_id: Optional[str]) -> str:
    if not x_user_id or not x_user_id.strip():
        raise AuthError("Sign in to save quiz results")
    return x_user_id.strip()

# -----------------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------------
@app.get("/api/health")
def health():
    return {"status": "ok"}

# --- LLM smoke test ---
@app.get("/api/llm-test")
def llm_test():
    from llm import ping_llm
    return ping_llm()

# -----------------------------------------------------------------------------
# Content
# -----------------------------------------------------------------------------
@app.get("/api/books/{book_id}/chapters")
def get_chapters(book_id: int):
    with get_session() as db:
        return {"success": True, "chapters": content.list_chapters(db, book_id)}

@app.get("/api/books/{book_id}/chapters/{chapter_id}/paragraphs")
def get_paragraphs(book_id: int, chapter_id: int):
    with get_session() as db:
        return {"success": True, "paragraphs": content.list_paragraphs(db, book_id, chapter_id)}

# -----------------------------------------------------------------------------
# Question generation
# -----------------------------------------------------------------------------
@app.post("/api/generate-term-quiz")
def generate_term_quiz(payload: schemas.BatchGenerateIn):
    with get_session() as db:
        return generator.generate_batch(db, payload, "term")

@app.post("/api/generate-objective-quiz")
def generate_objective_quiz(payload: schemas.BatchGenerateIn):
    with get_session() as db:
        return generator.generate_batch(db, payload, "objective")

@app.post("/api/generate-quiz")
def generate_quiz(payload: schemas.QuizGenerateIn):
    with get_session() as db:
        return generator.generate_quiz(db, payload)

@app.post("/api/enhance-readability")
def enhance_readability(payload: schemas.EnhanceReadabilityIn):
    with get_session() as db:
        return generator.enhance_readability(db, payload)

# -----------------------------------------------------------------------------
# Results & progress
# -----------------------------------------------------------------------------
@app.post("/api/quiz-results", response_model=schemas.RecordResultOut)
def record_quiz_result(payload: schemas.QuizResultIn, x_user_id: Optional[str] = Header(default=None)):
    user_id = current_user(x_user_id)
    with get_session() as db:
        result, row = progress.record_result(db, user_id, payload)
        return {
            "success": True,
            "result": progress.result_to_dict(result),
            "progress": progress.progress_to_dict(row) if row is not None else None,
        }

@app.get("/api/quiz-results", response_model=schemas.ResultsOut)
def list_quiz_results(x_user_id: Optional[str] = Header(default=None)):
    user_id = current_user(x_user_id)
    with get_session() as db:
        return progress.list_results(db, user_id)

@app.get("/api/users/me/stats", response_model=schemas.UserStatsOut)
def my_stats(x_user_id: Optional[str] = Header(default=None)):
    user_id = current_user(x_user_id)
    with get_session() as db:
        return progress.user_stats(db, user_id)

@app.get("/api/books/{book_id}/chapters/{chapter_id}/progress", response_model=schemas.ChapterProgressOut)
def get_chapter_progress(book_id: int, chapter_id: int, x_user_id: Optional[str] = Header(default=None)):
    user_id = current_user(x_user_id)
    with get_session() as db:
        return progress.chapter_progress(db, user_id, book_id, chapter_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
