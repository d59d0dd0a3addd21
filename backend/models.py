# models.py
from datetime import datetime
import uuid

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, UniqueConstraint
from db import Base

def _uuid() -> str:
    return str(uuid.uuid4())

class BookParagraph(Base):
    """One paragraph of a book. Rows are grouped by (book_title, chapter_number)."""
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, index=True)
    book_title = Column(String(512), index=True, nullable=False)
    chapter_number = Column(Integer, index=True, nullable=False)
    chapter_title = Column(String(512))
    paragraph_number = Column(Integer, nullable=False)
    content = Column(Text)
    objectives = Column(Text)          # newline / bullet separated learning objectives
    created_at = Column(DateTime, default=datetime.utcnow)

class QuizResult(Base):
    __tablename__ = "quiz_results"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), index=True, nullable=False)
    book_id = Column(Integer, index=True, nullable=False)
    chapter_id = Column(Integer)
    paragraph_id = Column(Integer)
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    percentage = Column(Integer, nullable=False)
    completed = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

class ParagraphProgress(Base):
    __tablename__ = "paragraph_progress"
    __table_args__ = (UniqueConstraint("user_id", "paragraph_id", name="uq_progress_user_paragraph"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    book_id = Column(Integer, nullable=False)
    chapter_id = Column(Integer)
    paragraph_id = Column(Integer, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    percentage = Column(Integer, nullable=False)
    last_attempted = Column(DateTime, default=datetime.utcnow)
    completed_date = Column(DateTime)

class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)
    username = Column(String(255))
    avatar_url = Column(String(1024))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
