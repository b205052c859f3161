"""Inbound callbacks from remote executors."""

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from astrid_agent.api.dependencies import ConfigDep, OrchestratorDep, StateStoreDep
from astrid_agent.api.models import APIResponse, CallbackAck
from astrid_agent.state_store import StateStore, TaskNotFoundError
from astrid_agent.webhooks import (
    CallbackPayload,
    SignatureVerificationError,
    extract_headers,
    verify_with_fallback,
)

logger = logging.getLogger("astrid_agent.api.callbacks")

router = APIRouter(prefix="/remote-servers", tags=["callbacks"])


def _creator_secret(raw: bytes, store: StateStore, secrets: dict[str, str]) -> str | None:
    """Per-user secret of the task creator named in the (unverified) body."""
    if not secrets:
        return None
    try:
        task_id = json.loads(raw).get("taskId")
    except (ValueError, AttributeError):
        return None
    if not isinstance(task_id, str):
        return None
    try:
        creator_id = store.get_task(task_id).creator_id
    except TaskNotFoundError:
        return None
    return secrets.get(creator_id)


@router.post("/callback", response_model=APIResponse[CallbackAck])
async def receive_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    config: ConfigDep,
    store: StateStoreDep,
    orchestrator: OrchestratorDep,
) -> APIResponse[CallbackAck] | JSONResponse:
    """Verify a signed session event, then post it to the task in the background."""
    raw = await request.body()

    headers = extract_headers(request.headers)
    if headers is None:
        raise SignatureVerificationError("Missing signature headers")

    result, source = verify_with_fallback(
        raw,
        headers.signature,
        headers.timestamp,
        await run_in_threadpool(_creator_secret, raw, store, config.user_webhook_secrets),
        config.webhook_secret,
    )
    if not result.valid:
        raise SignatureVerificationError(result.error or "Invalid signature", source)

    try:
        payload = CallbackPayload.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("Rejected callback payload: %s", e.errors()[:3])
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=APIResponse[None](data=None, error="Invalid callback payload").model_dump(),
        )

    background_tasks.add_task(orchestrator.handle_remote_callback, payload)
    return APIResponse(data=CallbackAck(event=payload.event, task_id=payload.task_id))
