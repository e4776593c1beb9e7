from datetime import datetime, timezone
from pathlib import PurePath
from uuid import uuid4

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from ....application.ports import IObjectStorage
from ....config import settings
from ....domain.entities import TEACHER
from ....domain.grading import letter_grade
from ....infrastructure.cache import get_cache, set_cache, delete_cache_pattern
from ....infrastructure.db import get_db
from ....infrastructure.metrics import cache_hits_total, cache_misses_total, db_queries_total
from ....infrastructure.models import Assignment, Submission
from ....infrastructure.storage import get_storage
from ..access import require_member, require_teacher
from ..authz import get_user_email
from ..schemas import AssignmentOut, EvaluationOut, ScoreReq, SubmissionOut

logger = structlog.get_logger()

router = APIRouter(prefix="/api/classrooms/{classroom_id}/assignments", tags=["assignments"])

PDF = "application/pdf"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def _read_pdf(upload: UploadFile) -> bytes:
    if upload.content_type != PDF:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Only PDF files are accepted")
    data = upload.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "File too large")
    if not data:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "File is empty")
    return data

def _object_path(folder: str, filename: str | None) -> str:
    name = PurePath(filename or "").name or "document.pdf"
    return f"{folder}/{uuid4().hex}_{name}"

def _get_assignment(db: Session, classroom_id: int, assignment_id: int) -> Assignment:
    row = db.query(Assignment).filter(Assignment.id == assignment_id, Assignment.classroom_id == classroom_id).first()
    if not row: raise HTTPException(404, "assignment not found")
    return row

def _get_submission(db: Session, assignment_id: int, submission_id: int) -> Submission:
    row = db.query(Submission).filter(Submission.id == submission_id, Submission.assignment_id == assignment_id).first()
    if not row: raise HTTPException(404, "submission not found")
    return row

def _discard(storage: IObjectStorage, path: str) -> None:
    # Best effort: the database change already happened or is being unwound.
    try:
        storage.delete(path)
    except Exception as e:
        logger.warning("object_cleanup_failed", path=path, error=str(e))

def _hide_solution(item: dict) -> dict:
    return {**item, "solution_url": None}

def _assignments_key(classroom_id: int) -> str:
    return f"classroom:{classroom_id}:assignments"

# --- Assignments:

@router.post("", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def create_assignment(classroom_id: int,
                      title: str = Form(..., min_length=1, max_length=255),
                      content: str | None = Form(None),
                      due_date: datetime = Form(...),
                      file: UploadFile = File(...),
                      solution_file: UploadFile = File(...),
                      email: str = Depends(get_user_email),
                      db: Session = Depends(get_db),
                      storage: IObjectStorage = Depends(get_storage)):
    user, _ = require_teacher(db, classroom_id, email)
    file_data = _read_pdf(file)
    solution_data = _read_pdf(solution_file)

    file_path = _object_path("assignments", file.filename)
    solution_path = _object_path("solutions", solution_file.filename)
    file_url = storage.upload(file_data, file_path, PDF)
    try:
        solution_url = storage.upload(solution_data, solution_path, PDF)
    except Exception:
        _discard(storage, file_path)
        raise

    row = Assignment(classroom_id=classroom_id, created_by_id=user.id, title=title, content=content,
                     due_date=_as_utc(due_date), file_path=file_path, file_url=file_url,
                     solution_path=solution_path, solution_url=solution_url)
    try:
        db.add(row); db.commit(); db.refresh(row)
    except Exception:
        db.rollback()
        _discard(storage, file_path)
        _discard(storage, solution_path)
        raise
    logger.info("assignment_created", classroom_id=classroom_id, assignment_id=row.id)
    delete_cache_pattern(_assignments_key(classroom_id))
    return row

@router.get("", response_model=list[AssignmentOut])
def list_assignments(classroom_id: int,
                     email: str = Depends(get_user_email),
                     db: Session = Depends(get_db)):
    _, membership = require_member(db, classroom_id, email)
    cache_key = _assignments_key(classroom_id)
    items = get_cache(cache_key)
    if items:
        cache_hits_total.inc()
    else:
        cache_misses_total.inc()
        db_queries_total.inc()
        rows = db.query(Assignment).filter(Assignment.classroom_id == classroom_id).order_by(Assignment.due_date, Assignment.id).all()
        items = [AssignmentOut.model_validate(r).model_dump(mode="json") for r in rows]
        set_cache(cache_key, items)
    if membership.role != TEACHER:
        items = [_hide_solution(i) for i in items]
    return items

@router.get("/{assignment_id}", response_model=AssignmentOut)
def get_assignment(classroom_id: int, assignment_id: int,
                   email: str = Depends(get_user_email),
                   db: Session = Depends(get_db)):
    _, membership = require_member(db, classroom_id, email)
    item = AssignmentOut.model_validate(_get_assignment(db, classroom_id, assignment_id)).model_dump(mode="json")
    return item if membership.role == TEACHER else _hide_solution(item)

@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(classroom_id: int, assignment_id: int,
                      email: str = Depends(get_user_email),
                      db: Session = Depends(get_db),
                      storage: IObjectStorage = Depends(get_storage)):
    require_teacher(db, classroom_id, email)
    row = _get_assignment(db, classroom_id, assignment_id)
    paths = [row.file_path, row.solution_path] + [s.file_path for s in row.submissions]
    db.delete(row); db.commit()
    for path in paths:
        _discard(storage, path)
    delete_cache_pattern(_assignments_key(classroom_id))
    return None

# --- Submissions:

@router.post("/{assignment_id}/submissions", response_model=SubmissionOut, status_code=status.HTTP_201_CREATED)
def submit(classroom_id: int, assignment_id: int,
           file: UploadFile = File(...),
           email: str = Depends(get_user_email),
           db: Session = Depends(get_db),
           storage: IObjectStorage = Depends(get_storage)):
    user, _ = require_member(db, classroom_id, email)
    assignment = _get_assignment(db, classroom_id, assignment_id)
    data = _read_pdf(file)

    path = _object_path(f"submissions/{assignment_id}", file.filename)
    url = storage.upload(data, path, PDF)
    submitted_at = datetime.now(timezone.utc)
    row = Submission(assignment_id=assignment_id, submitted_by_id=user.id, file_path=path, file_url=url,
                     submitted_at=submitted_at, is_late=submitted_at > _as_utc(assignment.due_date))
    try:
        db.add(row); db.commit(); db.refresh(row)
    except Exception:
        db.rollback()
        _discard(storage, path)
        raise
    logger.info("submission_received", assignment_id=assignment_id, submission_id=row.id, is_late=row.is_late)
    return row

@router.get("/{assignment_id}/submissions", response_model=list[SubmissionOut])
def list_submissions(classroom_id: int, assignment_id: int,
                     email: str = Depends(get_user_email),
                     db: Session = Depends(get_db)):
    user, membership = require_member(db, classroom_id, email)
    _get_assignment(db, classroom_id, assignment_id)
    q = db.query(Submission).filter(Submission.assignment_id == assignment_id)
    if membership.role != TEACHER:
        q = q.filter(Submission.submitted_by_id == user.id)
    return q.order_by(Submission.submitted_at.desc(), Submission.id.desc()).all()

@router.delete("/{assignment_id}/submissions/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_submission(classroom_id: int, assignment_id: int, submission_id: int,
                      email: str = Depends(get_user_email),
                      db: Session = Depends(get_db),
                      storage: IObjectStorage = Depends(get_storage)):
    user, _ = require_member(db, classroom_id, email)
    _get_assignment(db, classroom_id, assignment_id)
    row = _get_submission(db, assignment_id, submission_id)
    if row.submitted_by_id != user.id:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Only the submitter can delete a submission")
    if row.score is not None:
        raise HTTPException(status.HTTP_409_CONFLICT, "Evaluated submissions cannot be deleted")
    path = row.file_path
    db.delete(row); db.commit()
    _discard(storage, path)
    return None

@router.put("/{assignment_id}/submissions/{submission_id}/score", response_model=SubmissionOut)
def score_submission(classroom_id: int, assignment_id: int, submission_id: int, payload: ScoreReq,
                     email: str = Depends(get_user_email),
                     db: Session = Depends(get_db)):
    require_teacher(db, classroom_id, email)
    _get_assignment(db, classroom_id, assignment_id)
    row = _get_submission(db, assignment_id, submission_id)
    row.score = payload.score
    row.grade = letter_grade(payload.score)
    row.feedback = payload.feedback
    row.evaluated_at = datetime.now(timezone.utc)
    db.commit(); db.refresh(row)
    logger.info("submission_scored", submission_id=row.id, score=row.score, grade=row.grade)
    return row

@router.get("/{assignment_id}/submissions/{submission_id}/evaluate", response_model=EvaluationOut)
def evaluation(classroom_id: int, assignment_id: int, submission_id: int,
               email: str = Depends(get_user_email),
               db: Session = Depends(get_db)):
    user, membership = require_member(db, classroom_id, email)
    _get_assignment(db, classroom_id, assignment_id)
    row = _get_submission(db, assignment_id, submission_id)
    if membership.role != TEACHER and row.submitted_by_id != user.id:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not allowed to view this evaluation")
    if row.score is None:
        raise HTTPException(404, "submission not evaluated")
    return EvaluationOut(score=row.score, grade=row.grade, feedback=row.feedback)
