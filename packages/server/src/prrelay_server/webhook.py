"""GitHub webhook trigger.

Deliveries are filtered by event type and action before anything costly
happens. Eligible deliveries run fetch → analyze → post synchronously
inside the request; failures are reported, never retried or queued.

Response contract:
    202  {skipped: true, reason: unsupported_event | unsupported_action, eventKey[, action]}
    400  {error: invalid_payload, message}
    401  {error: invalid_signature, message}
    413  {error: payload_too_large, message}
    200  {ok: true, commentUrl}
    500  {error: processing_failed | internal_error, message}
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError, model_validator

from prrelay_core.errors import AdapterError
from prrelay_core.models import PRReference
from prrelay_core.pipeline import ReviewPipeline
from prrelay_server.health import add_health_route, cors_origins

logger = logging.getLogger(__name__)

EVENT_HEADER = "X-GitHub-Event"
SIGNATURE_HEADER = "X-Hub-Signature-256"


class SkipReason(str, Enum):
    UNSUPPORTED_EVENT = "unsupported_event"
    UNSUPPORTED_ACTION = "unsupported_action"


@dataclass(frozen=True)
class DeliveryPolicy:
    allowed_events: frozenset[str]
    allowed_actions: frozenset[str]

    @classmethod
    def from_config(cls, config: dict) -> DeliveryPolicy:
        return cls(
            allowed_events=frozenset(config["allowed_events"]),
            allowed_actions=frozenset(config["allowed_actions"]),
        )


@dataclass(frozen=True)
class Eligible:
    ref: PRReference
    event: str
    action: Optional[str]


@dataclass(frozen=True)
class Skipped:
    reason: SkipReason
    event: str
    action: Any = None

    def body(self) -> dict:
        body = {"skipped": True, "reason": self.reason.value, "eventKey": self.event}
        if self.reason is SkipReason.UNSUPPORTED_ACTION:
            body["action"] = self.action
        return body


@dataclass(frozen=True)
class Rejected:
    message: str


DeliveryOutcome = Union[Eligible, Skipped, Rejected]


class _Owner(BaseModel):
    login: Optional[StrictStr] = None
    name: Optional[StrictStr] = None


class _Repository(BaseModel):
    name: StrictStr = Field(min_length=1)
    owner: _Owner


class _PullRequest(BaseModel):
    number: StrictInt = Field(gt=0)


class PullRequestEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    repository: _Repository
    pull_request: _PullRequest

    @model_validator(mode="after")
    def _owner_present(self) -> PullRequestEvent:
        if not (self.repository.owner.login or self.repository.owner.name):
            raise ValueError("repository.owner must carry a login or a name")
        return self

    def reference(self) -> PRReference:
        owner = self.repository.owner.login or self.repository.owner.name
        return PRReference(owner=owner, repo=self.repository.name, pull_number=self.pull_request.number)


def evaluate_delivery(event: str, payload: Any, policy: DeliveryPolicy) -> DeliveryOutcome:
    """Decide what to do with one delivery; never touches any adapter."""
    if event not in policy.allowed_events:
        return Skipped(SkipReason.UNSUPPORTED_EVENT, event)

    action = payload.get("action") if isinstance(payload, dict) else None
    # Deliveries without an action are not filtered by the action list.
    if action and (not isinstance(action, str) or action not in policy.allowed_actions):
        return Skipped(SkipReason.UNSUPPORTED_ACTION, event, action)

    try:
        parsed = PullRequestEvent.model_validate(payload)
    except ValidationError:
        return Rejected("Missing owner, repo, or pull request number in webhook payload")
    return Eligible(parsed.reference(), event, action or None)


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    if not signature or not secret:
        return False
    expected = "sha256=" + hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse({"error": error, "message": message}, status_code=status_code)


def create_webhook_app(config: dict, pipeline: ReviewPipeline) -> FastAPI:
    policy = DeliveryPolicy.from_config(config)
    body_limit = config.get("webhook_body_limit")
    secret = config.get("webhook_secret")
    heading = config.get("comment_heading")
    footer = config.get("comment_footer")

    app = FastAPI(title="GitHub PR Reviewer Webhook")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(config.get("webhook_cors_origins")),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", EVENT_HEADER, SIGNATURE_HEADER],
    )
    add_health_route(app)

    if not secret:
        logger.warning("GITHUB_WEBHOOK_SECRET is not set; webhook signatures will not be verified")

    @app.post("/github/webhook")
    async def github_webhook(request: Request):
        declared = request.headers.get("content-length")
        if body_limit and declared and declared.isdigit() and int(declared) > body_limit:
            return _error(413, "payload_too_large", f"Request body exceeds {body_limit} bytes")
        body = await request.body()
        if body_limit and len(body) > body_limit:
            return _error(413, "payload_too_large", f"Request body exceeds {body_limit} bytes")

        if secret and not verify_signature(body, request.headers.get(SIGNATURE_HEADER, ""), secret):
            logger.warning("Rejected webhook delivery with an invalid signature")
            return _error(401, "invalid_signature", "Webhook signature verification failed")

        try:
            payload = json.loads(body)
        except ValueError:
            return _error(400, "invalid_payload", "Request body is not valid JSON")

        event = request.headers.get(EVENT_HEADER, "")
        outcome = evaluate_delivery(event, payload, policy)

        if isinstance(outcome, Skipped):
            logger.info("Skipping GitHub webhook %s (%s)", event or "<none>", outcome.reason.value)
            return JSONResponse(outcome.body(), status_code=202)
        if isinstance(outcome, Rejected):
            return _error(400, "invalid_payload", outcome.message)

        logger.info("Processing GitHub webhook %s:%s for %s", event, outcome.action, outcome.ref)
        try:
            comment_url = await pipeline.review_and_comment(outcome.ref, heading=heading, footer=footer)
        except AdapterError as e:
            logger.warning("Failed to handle GitHub webhook for %s: %s", outcome.ref, e.message)
            return _error(500, "processing_failed", e.message)
        except Exception:
            logger.exception("Unexpected error handling GitHub webhook for %s", outcome.ref)
            return _error(500, "internal_error", "Unexpected error while processing webhook")

        return {"ok": True, "commentUrl": comment_url}

    return app
