"""FastAPI application for the Daily Tracker backend."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, timedelta
from typing import Any, Dict, Generator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import ai, content, models, prompts
from .auth import AuthenticatedUser, get_current_user
from .badges import award_badges, owned_slugs, serialize_badge
from .config import (
    AUTH_SERVICE_KEY,
    AUTH_SERVICE_URL,
    GEMINI_API_KEY,
    MODEL_NAME,
    ConfigurationError,
)
from .database import SessionLocal, init_database
from .milestones import GOLD_MILESTONES, HABIT_MILESTONES, reached
from .points import (
    POINTS,
    already_awarded,
    award_points,
    completion_awards,
    points_summary,
)
from .profiles import get_or_create_profile, goal_titles, record_gold_streak
from .schemas import (
    CelebrationRequest,
    CelebrationResponse,
    ChatRequest,
    ChatResponse,
    GoalCreate,
    IntentionVote,
    LogUpdate,
    OnboardingRequest,
    PrecomputeRequest,
    ProfileUpdate,
    RoutineCreate,
    RoutineUpdate,
)
from .streaks import completed_days, gold_streak, lookup_from, routine_streak
from .time_utils import local_today, parse_date

logger = logging.getLogger(__name__)

REFLECTION_LIMIT = 50


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - startup/shutdown glue
    init_database()
    print("Daily Tracker is online - FastAPI backend ready")
    yield
    print("Daily Tracker backend shutting down...")


app = FastAPI(title="Daily Tracker", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(ai.GenerationError)
async def generation_error_handler(request: Request, exc: ai.GenerationError):
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"error": "; ".join(problems)})


# -- Serialisation helpers --------------------------------------------------


def _serialize_goal(goal: models.Goal) -> Dict[str, Any]:
    return {
        "id": goal.id,
        "title": goal.title,
        "horizon": goal.horizon,
        "created_at": goal.created_at.isoformat() if goal.created_at else None,
    }


def _serialize_routine(routine: models.Routine) -> Dict[str, Any]:
    return {
        "id": routine.id,
        "title": routine.title,
        "schedule_type": routine.schedule_type,
        "x_per_week": routine.x_per_week,
        "start_date": routine.start_date.isoformat(),
        "end_date": routine.end_date.isoformat() if routine.end_date else None,
        "order_index": routine.order_index,
    }


def _serialize_log(log: models.RoutineLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "routine_id": log.routine_id,
        "date": log.date.isoformat(),
        "completed": log.completed,
        "notes": log.notes,
    }


def _serialize_profile(profile: models.Profile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "email": profile.email,
        "key_truth": profile.key_truth,
        "ai_voice": profile.ai_voice,
        "current_gold_streak": profile.current_gold_streak,
        "best_gold_streak": profile.best_gold_streak,
        "points": profile.points,
    }


def _user_routines(db: Session, user_id: str) -> List[models.Routine]:
    return (
        db.query(models.Routine)
        .filter(models.Routine.user_id == user_id)
        .order_by(models.Routine.order_index.asc(), models.Routine.id.asc())
        .all()
    )


def _owned_routine(db: Session, user_id: str, routine_id: int) -> models.Routine:
    routine = db.get(models.Routine, routine_id)
    if routine is None or routine.user_id != user_id:
        raise HTTPException(status_code=404, detail="Routine not found")
    return routine


def _require_date(value: Optional[str], name: str = "date") -> date:
    parsed = parse_date(value)
    if parsed is None:
        raise HTTPException(
            status_code=400, detail=f"Missing or invalid {name} (expected YYYY-MM-DD)"
        )
    return parsed


def _recent_reflections(
    db: Session, user_id: str, since: Optional[date] = None
) -> List[str]:
    query = (
        db.query(models.RoutineLog, models.Routine.title)
        .join(models.Routine, models.Routine.id == models.RoutineLog.routine_id)
        .filter(
            models.Routine.user_id == user_id,
            models.RoutineLog.notes.isnot(None),
            models.RoutineLog.notes != "",
        )
    )
    if since is not None:
        query = query.filter(models.RoutineLog.date >= since)
    rows = query.order_by(models.RoutineLog.date.desc()).limit(REFLECTION_LIMIT).all()
    return [
        f"{log.date.isoformat()} {title} ({'done' if log.completed else 'missed'}): {log.notes}"
        for log, title in rows
    ]


# -- Status -----------------------------------------------------------------


@app.get("/")
async def root() -> Dict[str, Any]:
    return {
        "status": "active",
        "message": "Daily Tracker is ready",
        "version": app.version,
        "model": MODEL_NAME,
    }


@app.get("/health")
async def health(db: Session = Depends(get_db)) -> Dict[str, Any]:
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError as exc:
        logger.error("Health check database error: %s", exc)
        database_ok = False

    return {
        "status": "healthy" if database_ok else "degraded",
        "database": database_ok,
        "generation_configured": bool(GEMINI_API_KEY),
        "auth_configured": bool(AUTH_SERVICE_URL and AUTH_SERVICE_KEY),
    }


# -- Profile and goals ------------------------------------------------------


@app.get("/profile")
async def get_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    profile = get_or_create_profile(db, user.id, user.email)
    db.commit()
    return _serialize_profile(profile)


@app.put("/profile")
async def update_profile(
    update: ProfileUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    profile = get_or_create_profile(db, user.id, user.email)
    if update.key_truth is not None:
        profile.key_truth = update.key_truth.strip() or None
    if update.ai_voice is not None:
        profile.ai_voice = update.ai_voice.strip() or None
    db.commit()
    return _serialize_profile(profile)


@app.get("/goals")
async def list_goals(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    goals = (
        db.query(models.Goal)
        .filter(models.Goal.user_id == user.id)
        .order_by(models.Goal.id.asc())
        .all()
    )
    return {"goals": [_serialize_goal(goal) for goal in goals], "total": len(goals)}


@app.post("/goals", status_code=201)
async def create_goal(
    goal: GoalCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    row = models.Goal(
        user_id=user.id,
        title=goal.title,
        horizon=goal.horizon.value if goal.horizon else None,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return _serialize_goal(row)


@app.delete("/goals/{goal_id}")
async def delete_goal(
    goal_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    goal = db.get(models.Goal, goal_id)
    if goal is None or goal.user_id != user.id:
        raise HTTPException(status_code=404, detail="Goal not found")
    db.delete(goal)
    db.commit()
    return {"success": True}


# -- Routines and logs ------------------------------------------------------


@app.get("/routines")
async def list_routines(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    routines = _user_routines(db, user.id)
    return {"routines": [_serialize_routine(routine) for routine in routines]}


@app.post("/routines", status_code=201)
async def create_routine(
    routine: RoutineCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    next_index = len(_user_routines(db, user.id))
    row = models.Routine(
        user_id=user.id,
        title=routine.title,
        schedule_type=routine.schedule_type.value,
        x_per_week=routine.x_per_week,
        start_date=routine.start_date or local_today(),
        order_index=next_index,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return _serialize_routine(row)


@app.patch("/routines/{routine_id}")
async def update_routine(
    routine_id: int,
    update: RoutineUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    routine = _owned_routine(db, user.id, routine_id)
    if update.title is not None:
        routine.title = update.title
    if update.order_index is not None:
        routine.order_index = update.order_index
    if update.end_date is not None:
        if update.end_date < routine.start_date:
            raise HTTPException(
                status_code=400, detail="end_date cannot precede start_date"
            )
        routine.end_date = update.end_date
    db.commit()
    return _serialize_routine(routine)


def _find_log(db: Session, routine_id: int, day: date) -> Optional[models.RoutineLog]:
    return (
        db.query(models.RoutineLog)
        .filter(models.RoutineLog.routine_id == routine_id, models.RoutineLog.date == day)
        .one_or_none()
    )


def _save_log(
    db: Session, routine_id: int, day: date, update: LogUpdate
) -> models.RoutineLog:
    """Insert or update the (routine, day) log; last write wins.

    When a concurrent request inserts the same row first, the savepoint is
    rolled back and the update is applied to the stored row instead.
    """
    log = _find_log(db, routine_id, day)
    if log is None:
        try:
            with db.begin_nested():
                log = models.RoutineLog(
                    routine_id=routine_id,
                    date=day,
                    completed=update.completed,
                    notes=update.notes,
                )
                db.add(log)
            return log
        except IntegrityError:
            log = _find_log(db, routine_id, day)
            if log is None:
                raise

    log.completed = update.completed
    if update.notes is not None:
        log.notes = update.notes
    db.flush()
    return log


@app.put("/routines/{routine_id}/logs/{day}")
async def set_routine_log(
    routine_id: int,
    day: str,
    update: LogUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    log_date = _require_date(day)
    routine = _owned_routine(db, user.id, routine_id)
    profile = get_or_create_profile(db, user.id, user.email)

    log = _save_log(db, routine.id, log_date, update)

    routines = _user_routines(db, user.id)
    is_completed = lookup_from(
        completed_days(db, [r.id for r in routines], log_date)
    )
    streak = routine_streak(routine, is_completed, log_date)
    gold = gold_streak(routines, is_completed, log_date)

    if log_date == local_today():
        record_gold_streak(profile, gold.days)

    reference = f"log:{log.id}"
    reasons: List[str] = []
    milestones: Dict[str, List[int]] = {"gold": [], "habit": []}
    if log.completed:
        reasons.extend(completion_awards(streak.days))
        milestones["habit"] = reached(HABIT_MILESTONES, streak.days)
        milestones["gold"] = reached(GOLD_MILESTONES, gold.days)
    if log.notes and log.notes.strip():
        reasons.append("REFLECTION")

    points_awarded = 0
    for reason in reasons:
        if already_awarded(db, user.id, reason, reference):
            continue
        result = award_points(db, user.id, POINTS[reason], reason, reference)
        points_awarded += result["points"]

    db.commit()
    return {
        "log": _serialize_log(log),
        "streak": streak.days,
        "gold_streak": gold.days,
        "points_awarded": points_awarded,
        "milestones": milestones,
    }


@app.get("/logs")
async def list_logs(
    start: Optional[str] = None,
    end: Optional[str] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    end_date = _require_date(end, "end") if end else local_today()
    start_date = _require_date(start, "start") if start else end_date - timedelta(days=6)

    logs = (
        db.query(models.RoutineLog)
        .join(models.Routine, models.Routine.id == models.RoutineLog.routine_id)
        .filter(
            models.Routine.user_id == user.id,
            models.RoutineLog.date >= start_date,
            models.RoutineLog.date <= end_date,
        )
        .order_by(models.RoutineLog.date.asc(), models.RoutineLog.routine_id.asc())
        .all()
    )
    return {
        "start": start_date.isoformat(),
        "end": end_date.isoformat(),
        "logs": [_serialize_log(log) for log in logs],
    }


@app.get("/streaks")
async def get_streaks(
    date: Optional[str] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    today = local_today()
    on = _require_date(date) if date else today
    profile = get_or_create_profile(db, user.id, user.email)

    routines = _user_routines(db, user.id)
    is_completed = lookup_from(completed_days(db, [r.id for r in routines], on))
    gold = gold_streak(routines, is_completed, on)

    if on == today:
        record_gold_streak(profile, gold.days)
    db.commit()

    routine_streaks = []
    for routine in routines:
        result = routine_streak(routine, is_completed, on)
        routine_streaks.append(
            {
                "id": routine.id,
                "title": routine.title,
                "streak": result.days,
                "window_exhausted": result.window_exhausted,
            }
        )

    return {
        "date": on.isoformat(),
        "gold_streak": gold.days,
        "window_exhausted": gold.window_exhausted,
        "current_gold_streak": profile.current_gold_streak,
        "best_gold_streak": profile.best_gold_streak,
        "routines": routine_streaks,
    }


# -- Badges and points ------------------------------------------------------


@app.get("/badges")
async def list_badges(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    owned = owned_slugs(db, user.id)
    catalog = db.query(models.Badge).order_by(models.Badge.threshold.asc()).all()
    return {
        "badges": [
            {**serialize_badge(badge), "owned": badge.slug in owned}
            for badge in catalog
        ]
    }


@app.post("/badges/check")
async def check_badges(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    profile = get_or_create_profile(db, user.id, user.email)
    awarded = award_badges(db, profile)
    db.commit()
    return {"newBadges": [serialize_badge(badge) for badge in awarded]}


@app.get("/points")
async def get_points(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    get_or_create_profile(db, user.id, user.email)
    db.commit()
    return points_summary(db, user.id)


# -- AI content -------------------------------------------------------------


@app.post("/celebration", response_model=CelebrationResponse)
async def celebration(
    request: CelebrationRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CelebrationResponse:
    get_or_create_profile(db, user.id, user.email)
    message = await content.get_celebration(
        db,
        user.id,
        request.type.value,
        request.streak_days,
        habit_id=request.habit_id,
        habit_title=request.habit_title,
    )
    db.commit()
    return CelebrationResponse(message=message)


@app.get("/daily-question")
async def get_daily_question(
    user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, str]:
    return {"question": await content.daily_question()}


@app.get("/intention")
async def get_intention(
    date: Optional[str] = None,
    force: bool = False,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    day = _require_date(date)
    get_or_create_profile(db, user.id, user.email)
    try:
        intention = await content.get_or_create_intention(db, user.id, day, force=force)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to save intention for %s on %s", user.id, day)
        raise HTTPException(
            status_code=500, detail=f"Failed to save intention: {exc}"
        ) from exc
    return content.serialize_intention(intention)


@app.post("/intention")
async def vote_intention(
    vote: IntentionVote,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    intention = content.vote_intention(
        db, user.id, vote.day, vote.vote.value if vote.vote else None
    )
    if intention is None:
        raise HTTPException(status_code=404, detail="Intention not found")
    db.commit()
    return {"success": True}


@app.post("/precompute")
async def precompute(
    request: PrecomputeRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    # The client streak only picks the upcoming milestone; stored counters come
    # from completion logs.
    get_or_create_profile(db, user.id, user.email)
    db.commit()

    report = await content.precompute(
        db,
        user.id,
        request.gold_streak,
        [
            content.HabitStreak(id=habit.id, title=habit.title, streak=habit.streak)
            for habit in request.habit_streaks
        ],
        check_celebrations=request.check_celebrations,
    )
    if report.failures:
        logger.warning(
            "Precompute for %s skipped: %s", user.id, ", ".join(report.failures)
        )
    return {"success": True}


def _goal_titles_from_request(goals: Optional[List[Any]]) -> List[str]:
    titles: List[str] = []
    for goal in goals or []:
        if isinstance(goal, str):
            title = goal
        elif isinstance(goal, dict):
            title = goal.get("title") or ""
        else:
            continue
        if title.strip():
            titles.append(title.strip())
    return titles


@app.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ChatResponse:
    profile = get_or_create_profile(db, user.id, user.email)
    db.commit()

    client_profile = request.profile or {}
    titles = _goal_titles_from_request(request.goals) or goal_titles(db, user.id)

    reflections: Optional[List[str]] = None
    if request.context_mode == "last7days":
        reflections = _recent_reflections(
            db, user.id, since=local_today() - timedelta(days=6)
        )
    elif request.context_mode == "allReflections":
        reflections = _recent_reflections(db, user.id)

    prompt = prompts.chat_prompt(
        request.message,
        request.context_mode,
        goal_titles=titles,
        key_truth=client_profile.get("key_truth") or profile.key_truth,
        ai_voice=client_profile.get("ai_voice") or profile.ai_voice,
        reflections=reflections,
    )
    reply = await ai.generate_text(
        prompt, system=prompts.CHAT_SYSTEM_PROMPT, temperature=0.7, context="chat"
    )
    return ChatResponse(reply=reply)


@app.post("/onboarding")
async def onboarding(
    request: OnboardingRequest,
    user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
    return await ai.generate_json(
        prompts.onboarding_prompt(
            request.priorities, request.life_summary, request.ideology
        ),
        system=prompts.ONBOARDING_SYSTEM_PROMPT,
        context="onboarding",
    )
