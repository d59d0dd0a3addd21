# schemas.py
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

class ScopeIn(BaseModel):
    # book_id stays optional so a missing id is answered with a 400, not a 422
    book_id: Optional[int] = Field(default=None, alias="bookId")
    chapter_id: Optional[int] = Field(default=None, alias="chapterId")
    paragraph_id: Optional[int] = Field(default=None, alias="paragraphId")
    debug: bool = False
    class Config:
        populate_by_name = True

class BatchGenerateIn(ScopeIn):
    batch_index: int = Field(default=0, alias="batchIndex")
    batch_size: int = Field(default=10, alias="batchSize")
    questions_per_objective: int = Field(default=3, alias="questionsPerObjective")

class QuizGenerateIn(ScopeIn):
    number_of_questions: int = Field(default=5, alias="numberOfQuestions")

class QuizResultIn(BaseModel):
    book_id: int = Field(alias="bookId")
    chapter_id: Optional[int] = Field(default=None, alias="chapterId")
    paragraph_id: Optional[int] = Field(default=None, alias="paragraphId")
    score: int = Field(ge=0)
    total_questions: int = Field(alias="totalQuestions", gt=0)
    class Config:
        populate_by_name = True

class QuizResultOut(BaseModel):
    id: str
    book_id: int
    chapter_id: Optional[int]
    paragraph_id: Optional[int]
    score: int
    total_questions: int
    percentage: int
    completed: bool
    created_at: str

class ParagraphProgressOut(BaseModel):
    book_id: int
    chapter_id: Optional[int]
    paragraph_id: int
    completed: bool
    score: int
    total_questions: int
    percentage: int
    last_attempted: str
    completed_date: Optional[str]

class RecordResultOut(BaseModel):
    success: bool = True
    result: QuizResultOut
    progress: Optional[ParagraphProgressOut] = None

class UserStatsOut(BaseModel):
    user_id: str
    username: Optional[str]
    total_quizzes: int
    total_questions: int
    total_correct: int
    average_percentage: float
    paragraphs_completed: int

class ParagraphResults(BaseModel):
    paragraph_id: int
    results: List[QuizResultOut]
    latest_result: QuizResultOut

class ChapterResults(BaseModel):
    chapter_id: int
    paragraphs: Dict[str, ParagraphResults]

class ResultsOut(BaseModel):
    items: List[QuizResultOut]
    chapters: Dict[str, ChapterResults]

class ChapterProgressOut(BaseModel):
    book_id: int
    chapter_id: int
    total_paragraphs: int
    completed_paragraphs: int
    percentage: int

class EnhanceReadabilityIn(BaseModel):
    book_id: Optional[int] = Field(default=None, alias="bookId")
    chapter_id: Optional[int] = Field(default=None, alias="chapterId")
    paragraph_id: Optional[int] = Field(default=None, alias="paragraphId")
    class Config:
        populate_by_name = True
