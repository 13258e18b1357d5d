"""Translation of inbound mesh signals into engine operations.

Peers report finished work as small coded events (a build finished, a claim
was verified, ...). The translator turns each decoded event into one public
operation on the service: most become a recorded episode, claim verdicts
become a lesson application. Decoding the wire format and owning a socket
are the transport's job; this module only sees ``Signal`` objects.

Every recorded episode carries the signal name in ``metadata.triggers``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from experience_layer.core.errors import NotFoundError
from experience_layer.core.logging import ExperienceLogger, get_logger
from experience_layer.learning.models import (
    ApplyLessonInput,
    ApplyLessonResult,
    RecordExperienceInput,
    RecordExperienceResult,
)
from experience_layer.store import Outcome
from experience_layer.utils.time import utc_now

if TYPE_CHECKING:
    from experience_layer.service import ExperienceService

_logger = get_logger("learning.signals")


class SignalType(IntEnum):
    """Signal codes understood by the translator."""

    HEARTBEAT = 0x00
    BUILD_COMPLETED = 0xB0
    VALIDATION_APPROVED = 0xC0
    VALIDATION_REJECTED = 0xC1
    VERIFICATION_RESULT = 0xD0
    CLAIM_VERIFIED = 0xD1
    CLAIM_REFUTED = 0xD2
    LESSON_LEARNED = 0xE5
    OPERATION_COMPLETE = 0xFF


@dataclass
class Signal:
    """One decoded inbound event."""

    code: int
    sender: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def name(self) -> str:
        try:
            return SignalType(self.code).name
        except ValueError:
            return f"0x{self.code:02X}"


def _compact(**fields: Any) -> dict[str, Any] | None:
    """Drop None-valued keys; None if nothing is left."""
    kept = {key: value for key, value in fields.items() if value is not None}
    return kept or None


SignalResult = RecordExperienceResult | ApplyLessonResult | None


class SignalTranslator:
    """Routes signals to ``ExperienceService`` operations.

    Example::

        translator = SignalTranslator(service)
        translator.dispatch(Signal(SignalType.BUILD_COMPLETED, "builder", {"success": True}))
    """

    def __init__(self, service: ExperienceService) -> None:
        self.service = service

    def dispatch(self, signal: Signal) -> SignalResult:
        """Translate and execute one signal.

        Returns:
            The operation result, or None for heartbeats, lesson-learned
            announcements, unknown codes, malformed payloads and claims about
            unknown lessons.

        Raises:
            StorageFailureError: If the store fails while handling the signal.
        """
        log = _logger.bind(signal=signal.name, sender=signal.sender)
        try:
            signal_type = SignalType(signal.code)
        except ValueError:
            log.warning("signal_unhandled", code=signal.code)
            return None

        if signal_type is SignalType.HEARTBEAT:
            log.debug("signal_heartbeat")
            return None

        # Lessons only form from recorded evidence through learn_from_pattern.
        if signal_type is SignalType.LESSON_LEARNED:
            log.info("signal_not_translated")
            return None

        try:
            if signal_type in (SignalType.CLAIM_VERIFIED, SignalType.CLAIM_REFUTED):
                return self._apply_claim(signal, signal_type, log)
            record = self._to_record(signal, signal_type)
        except ValidationError as e:
            log.warning("signal_payload_invalid", errors=e.error_count())
            return None

        log.info("signal_received", operation_type=record.operation_type)
        return self.service.record_experience(record, source=signal.sender)

    def _to_record(self, signal: Signal, signal_type: SignalType) -> RecordExperienceInput:
        data = signal.payload
        common: dict[str, Any] = {
            "server_name": signal.sender,
            "metadata": {"triggers": [signal_type.name]},
        }

        if signal_type is SignalType.BUILD_COMPLETED:
            return RecordExperienceInput(
                operation_type="build",
                problem=_compact(context=data.get("context")),
                solution=_compact(approach=data.get("approach")),
                outcome=Outcome.SUCCESS if data.get("success") else Outcome.FAILURE,
                quality_score=data.get("quality_score"),
                duration_ms=data.get("duration_ms"),
                notes=data.get("notes"),
                **common,
            )

        if signal_type is SignalType.VERIFICATION_RESULT:
            return RecordExperienceInput(
                operation_type="verification",
                problem=_compact(query=data.get("claim")),
                solution=_compact(tool="verifier", approach=data.get("method")),
                outcome=Outcome.SUCCESS if data.get("verified") else Outcome.FAILURE,
                quality_score=data.get("confidence"),
                notes=data.get("notes"),
                **common,
            )

        if signal_type in (SignalType.VALIDATION_APPROVED, SignalType.VALIDATION_REJECTED):
            approved = signal_type is SignalType.VALIDATION_APPROVED
            return RecordExperienceInput(
                operation_type="validation",
                problem=_compact(context=data.get("context")),
                solution={"approach": "context-validation"},
                outcome=Outcome.SUCCESS if approved else Outcome.FAILURE,
                notes=data.get("notes") if approved else data.get("reason"),
                **common,
            )

        # OPERATION_COMPLETE
        return RecordExperienceInput(
            operation_type=data.get("operation_type") or "unknown",
            problem=data.get("problem"),
            solution=data.get("solution"),
            outcome=data.get("outcome") or Outcome.PARTIAL,
            quality_score=data.get("quality_score"),
            duration_ms=data.get("duration_ms"),
            notes=data.get("notes"),
            **common,
        )

    def _apply_claim(
        self, signal: Signal, signal_type: SignalType, log: ExperienceLogger
    ) -> ApplyLessonResult | None:
        lesson_id = signal.payload.get("lesson_id")
        if not lesson_id:
            log.debug("signal_claim_without_lesson")
            return None
        outcome = (
            Outcome.SUCCESS if signal_type is SignalType.CLAIM_VERIFIED else Outcome.FAILURE
        )
        data = ApplyLessonInput(lesson_id=lesson_id, outcome=outcome)
        try:
            return self.service.apply_lesson(data, source=signal.sender)
        except NotFoundError:
            log.warning("signal_unknown_lesson", lesson_id=lesson_id)
            return None


__all__ = ["Signal", "SignalResult", "SignalTranslator", "SignalType"]
