from datetime import datetime
from functools import lru_cache
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel

from config.common_settings import CommonConfig, ContentLockSettings
from content_lock import ContentLock
from content_lock.conflict_guard import ConflictGuard
from content_lock.exceptions import WriteConflictError
from content_lock.expiry_sweeper import ExpirySweeper, SweepMode
from content_lock.lock_registry import LockRegistry
from content_lock.maintenance_job import ContentLockMaintenanceJob
from content_lock.messages import MessageRenderer
from content_lock.outcomes import LockOutcome, WriteAction
from content_lock.repositories import ContentLockRepository, UserRepository
from utils.logging_util import logger

router = APIRouter(tags=['content-lock'])


@lru_cache(maxsize=1)
def get_config() -> CommonConfig:
    return CommonConfig()


def get_settings(config: CommonConfig = Depends(get_config)) -> ContentLockSettings:
    return config.get_content_lock_settings()


def get_lock_repository(config: CommonConfig = Depends(get_config)) -> ContentLockRepository:
    return ContentLockRepository(config.get_db_manager())


def get_user_repository(config: CommonConfig = Depends(get_config)) -> UserRepository:
    return UserRepository(config.get_db_manager())


def get_registry(repository: ContentLockRepository = Depends(get_lock_repository)) -> LockRegistry:
    return LockRegistry(repository)


def get_guard(repository: ContentLockRepository = Depends(get_lock_repository)) -> ConflictGuard:
    return ConflictGuard(repository)


def get_maintenance_job(repository: ContentLockRepository = Depends(get_lock_repository)) -> ContentLockMaintenanceJob:
    return ContentLockMaintenanceJob(ExpirySweeper(repository))


class LockKeyRequest(BaseModel):
    entity_id: int
    entity_kind: str


class CheckWriteRequest(LockKeyRequest):
    action: WriteAction
    bypass: bool = False


class MaintenanceRequest(BaseModel):
    mode: SweepMode
    # Kept loose on purpose: a malformed age must match nothing rather than fail validation
    max_age_hours: Optional[Union[float, str]] = None
    owner_ids: Optional[List[int]] = None


class LockResponse(BaseModel):
    id: str
    entity_id: int
    entity_kind: str
    owner_id: int
    owner_name: str
    created_at: datetime


class LockOutcomeResponse(BaseModel):
    status: str
    lock: Optional[LockResponse]
    message: Optional[str]
    offer_bypass: bool


class WriteDecisionResponse(BaseModel):
    status: str
    action: str
    lock: Optional[LockResponse]
    lock_removed: bool
    message: Optional[str]


class MaintenanceResponse(BaseModel):
    mode: str
    count: int


def _to_response(lock: Optional[ContentLock], users: UserRepository) -> Optional[LockResponse]:
    if lock is None:
        return None
    return LockResponse(
        id=lock.id,
        entity_id=lock.entity_id,
        entity_kind=lock.entity_kind,
        owner_id=lock.owner_id,
        owner_name=users.get_name(lock.owner_id),
        created_at=lock.created_at
    )


def conflict_detail(error: WriteConflictError, renderer: MessageRenderer = None) -> dict:
    """Body shared by every 409, whether raised here or by the application handler."""
    renderer = renderer or MessageRenderer()
    detail = error.to_dict()
    detail["owner_name"] = renderer.user_names(error.owner_id)
    detail["message"] = renderer.for_conflict(error).text
    return detail


def _outcome_response(outcome: LockOutcome, users: UserRepository) -> LockOutcomeResponse:
    notice = MessageRenderer(users.get_name).for_edit_view(outcome)
    return LockOutcomeResponse(
        status=outcome.status.value,
        lock=_to_response(outcome.lock, users),
        message=notice.text if notice else None,
        offer_bypass=outcome.is_locked_by_other
    )


@router.get("/locks", response_model=Optional[LockResponse])
def get_lock(
        entity_kind: str = Query(...),
        entity_id: int = Query(...),
        registry: LockRegistry = Depends(get_registry),
        users: UserRepository = Depends(get_user_repository)
):
    return _to_response(registry.get_lock(entity_id, entity_kind), users)


@router.post("/locks/acquire", response_model=LockOutcomeResponse)
def acquire_lock(
        request: LockKeyRequest,
        x_user_id: int = Header(...),
        registry: LockRegistry = Depends(get_registry),
        users: UserRepository = Depends(get_user_repository),
        settings: ContentLockSettings = Depends(get_settings)
):
    outcome = registry.acquire(request.entity_id, request.entity_kind, x_user_id, settings)
    return _outcome_response(outcome, users)


@router.post("/locks/refresh", response_model=LockResponse)
def refresh_lock(
        request: LockKeyRequest,
        x_user_id: int = Header(...),
        registry: LockRegistry = Depends(get_registry),
        users: UserRepository = Depends(get_user_repository)
):
    lock = registry.refresh(request.entity_id, request.entity_kind, x_user_id)
    if lock is None:
        raise HTTPException(status_code=404, detail="No lock held by this user on the resource")
    return _to_response(lock, users)


@router.post("/locks/release")
def release_lock(
        request: LockKeyRequest,
        x_user_id: int = Header(...),
        registry: LockRegistry = Depends(get_registry)
):
    return {"released": registry.release(request.entity_id, request.entity_kind, x_user_id)}


@router.post("/locks/check-write", response_model=WriteDecisionResponse)
def check_write(
        request: CheckWriteRequest,
        x_user_id: int = Header(...),
        guard: ConflictGuard = Depends(get_guard),
        users: UserRepository = Depends(get_user_repository),
        settings: ContentLockSettings = Depends(get_settings)
):
    renderer = MessageRenderer(users.get_name)
    try:
        decision = guard.enforce(request.entity_id, request.entity_kind, x_user_id, request.action,
                                 request.bypass, settings)
    except WriteConflictError as e:
        raise HTTPException(status_code=409, detail=conflict_detail(e, renderer))
    notice = renderer.for_write(decision, x_user_id)
    return WriteDecisionResponse(
        status=decision.status.value,
        action=decision.action.value,
        lock=_to_response(decision.lock, users),
        lock_removed=decision.lock_removed,
        message=notice.text if notice else None
    )


@router.post("/maintenance", response_model=MaintenanceResponse)
def run_maintenance(
        request: MaintenanceRequest,
        job: ContentLockMaintenanceJob = Depends(get_maintenance_job)
):
    logger.info(f"Content lock maintenance requested: {request.model_dump()}")
    count = job.run(request.model_dump())
    return MaintenanceResponse(mode=request.mode.value, count=count)
