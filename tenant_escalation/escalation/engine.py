"""Escalation engine for unresolved tenant work orders."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from tenant_escalation.config import settings
from tenant_escalation.connectors.email_smtp import SMTPEmailConnector
from tenant_escalation.escalation.messages import OutboundMessage, compose_messages
from tenant_escalation.escalation.policy import (
    ActionKind,
    EscalationAction,
    EscalationPolicy,
    as_utc,
    evaluate,
)
from tenant_escalation.escalation.report import (
    ActionRecord,
    ErrorRecord,
    RecipientResult,
    RunReport,
    SkipRecord,
)
from tenant_escalation.escalation.types import (
    IN_SCOPE_STATUS,
    DirectoryRecord,
    DirectoryResolver,
    ExpectedState,
    NotificationSender,
    RequestRepository,
    RequestUpdate,
    ServiceRequest,
)
from tenant_escalation.exceptions import ConcurrentUpdateError, RepositoryError
from tenant_escalation.utils.logging import get_logger, log_escalation_event

logger = get_logger(__name__)

SKIP_NOT_DUE = "not_due"
SKIP_NO_INTERMEDIARY = "no_intermediary_contact"
DEADLINE_EXCEEDED = "Escalation cycle deadline exceeded before this work order completed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def owner_escalation_note(now: datetime, reminders_sent: int) -> str:
    return (
        f"[{now.isoformat()}] Escalated to owner after {reminders_sent} "
        f"unanswered reminders to managing agent."
    )


def append_note(existing: Optional[str], line: str) -> str:
    if existing:
        return f"{existing}\n\n{line}"
    return line


@dataclass
class CandidateOutcome:
    """What happened to one work order during a cycle."""
    request_id: str
    action: Optional[ActionRecord] = None
    errors: List[ErrorRecord] = field(default_factory=list)
    skip_reason: Optional[str] = None


class EscalationEngine:
    """Engine that walks unresolved work orders up the reminder ladder.

    Each cycle loads every work order awaiting its managing agent, asks the
    policy which notice is due, sends it, and records the new escalation state.
    Work orders are independent: an error on one is reported and never stops
    the others. No locks are taken; a work order picked up by two overlapping
    cycles may receive the same notice twice.
    """

    def __init__(
        self,
        repository: Optional[RequestRepository] = None,
        directory: Optional[DirectoryResolver] = None,
        sender: Optional[NotificationSender] = None,
        policy: Optional[EscalationPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_concurrency: Optional[int] = None,
        cycle_timeout_seconds: Optional[float] = None,
        fetch_attempts: Optional[int] = None,
        fetch_wait: Optional[wait_base] = None,
        conditional_writes: Optional[bool] = None,
    ):
        if repository is None or directory is None:
            from tenant_escalation.storage import (
                SQLAlchemyDirectoryResolver,
                SQLAlchemyRequestRepository,
            )
            repository = repository or SQLAlchemyRequestRepository()
            directory = directory or SQLAlchemyDirectoryResolver()

        self.repository = repository
        self.directory = directory
        self.sender = sender or SMTPEmailConnector()
        self.policy = policy or EscalationPolicy.from_settings(settings)
        self.clock = clock or utcnow

        self.max_concurrency = max_concurrency or settings.ESCALATION_MAX_CONCURRENCY
        self.cycle_timeout_seconds = (
            cycle_timeout_seconds or settings.ESCALATION_CYCLE_TIMEOUT_SECONDS
        )
        self.fetch_attempts = fetch_attempts or settings.ESCALATION_FETCH_ATTEMPTS
        self.fetch_wait = fetch_wait or wait_exponential(multiplier=1, min=1, max=10)
        self.conditional_writes = (
            settings.ESCALATION_CONDITIONAL_WRITES
            if conditional_writes is None else conditional_writes
        )

    async def run_cycle(self, now: Optional[datetime] = None) -> RunReport:
        """Run one escalation pass over all candidate work orders.

        Never raises: a failure to load the candidate set yields a failure
        envelope, and every per-work-order problem is listed in ``errors``.
        """
        now = as_utc(now) if now else self.clock()
        started_at = utcnow()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.cycle_timeout_seconds

        try:
            candidates = await asyncio.wait_for(
                self._fetch_candidates(),
                timeout=self.cycle_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(
                "Escalation cycle deadline exceeded while loading candidates",
                timeout_seconds=self.cycle_timeout_seconds
            )
            return RunReport.failure(
                "Could not load work orders: escalation cycle deadline exceeded",
                started_at
            )
        except Exception as e:
            logger.error("Could not load escalation candidates", error=str(e), exc_info=True)
            return RunReport.failure(f"Could not load work orders: {e}", started_at)

        in_scope = [request for request in candidates if request.status == IN_SCOPE_STATUS]
        if len(in_scope) != len(candidates):
            logger.warning(
                "Ignoring work orders outside escalation scope",
                ignored=len(candidates) - len(in_scope)
            )

        outcomes, timed_out = await self._process_all(
            in_scope,
            now,
            max(deadline - loop.time(), 0)
        )

        report = RunReport(scanned=len(in_scope), timed_out=timed_out, started_at=started_at)
        for outcome in outcomes:
            if outcome.action:
                report.actions.append(outcome.action)
            report.errors.extend(outcome.errors)
            if outcome.skip_reason and outcome.skip_reason != SKIP_NOT_DUE:
                report.skipped.append(
                    SkipRecord(request_id=outcome.request_id, reason=outcome.skip_reason)
                )

        report.processed = len(report.actions)
        report.message = (
            f"Processed {report.processed} escalations"
            if in_scope else "No work orders to escalate"
        )
        report.finished_at = utcnow()

        logger.info(
            "Escalation cycle completed",
            evaluated_at=now.isoformat(),
            scanned=report.scanned,
            processed=report.processed,
            error_count=len(report.errors),
            skipped=len(report.skipped),
            timed_out=timed_out
        )
        return report

    async def _fetch_candidates(self) -> List[ServiceRequest]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.fetch_attempts),
            wait=self.fetch_wait,
            retry=retry_if_exception_type(RepositoryError),
            reraise=True,
        ):
            with attempt:
                return await self.repository.list_requests_by_status(IN_SCOPE_STATUS)

    async def _process_all(
        self,
        requests: List[ServiceRequest],
        now: datetime,
        timeout: float
    ) -> Tuple[List[CandidateOutcome], bool]:
        """Process candidates concurrently within ``timeout`` seconds."""
        if not requests:
            return [], False

        semaphore = asyncio.Semaphore(self.max_concurrency)
        outcomes = [CandidateOutcome(request_id=request.id) for request in requests]

        async def bounded(request: ServiceRequest, outcome: CandidateOutcome) -> None:
            async with semaphore:
                await self._process_candidate(request, now, outcome)

        tasks = [
            asyncio.create_task(bounded(request, outcome))
            for request, outcome in zip(requests, outcomes)
        ]
        _, pending = await asyncio.wait(tasks, timeout=timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.error(
                "Escalation cycle deadline exceeded",
                timeout_seconds=self.cycle_timeout_seconds,
                unfinished=len(pending)
            )

        for outcome, task in zip(outcomes, tasks):
            if task in pending:
                outcome.skip_reason = None
                outcome.errors.append(
                    ErrorRecord(request_id=outcome.request_id, error=DEADLINE_EXCEEDED)
                )

        return outcomes, bool(pending)

    async def _process_candidate(
        self,
        request: ServiceRequest,
        now: datetime,
        outcome: CandidateOutcome
    ) -> None:
        """Escalate one work order, recording any failure on its outcome."""
        try:
            await self._escalate(request, now, outcome)
        except Exception as e:
            logger.error(
                "Unexpected error escalating work order",
                request_id=request.id,
                error=str(e),
                exc_info=True
            )
            outcome.errors.append(
                ErrorRecord(request_id=request.id, error=f"Unexpected error: {e}")
            )

    async def _escalate(
        self,
        request: ServiceRequest,
        now: datetime,
        outcome: CandidateOutcome
    ) -> None:
        action = evaluate(now, request, self.policy)
        if action.is_none:
            outcome.skip_reason = SKIP_NOT_DUE
            return

        try:
            parties = await self.directory.resolve_parties(
                request.requester_ref,
                request.building_ref,
                request.unit_ref
            )
        except Exception as e:
            logger.warning("Directory resolution failed", request_id=request.id, error=str(e))
            outcome.errors.append(ErrorRecord(
                request_id=request.id,
                error=f"Directory resolution failed: {e}"
            ))
            return

        gap = self._missing_party(action, parties)
        if gap == SKIP_NO_INTERMEDIARY:
            logger.warning(
                "No managing agent contact, reminder skipped",
                request_id=request.id,
                tier=action.tier
            )
            outcome.skip_reason = gap
            return
        if gap:
            logger.warning("No owner contact, final escalation skipped", request_id=request.id)
            outcome.errors.append(ErrorRecord(request_id=request.id, error=gap))
            return

        messages = compose_messages(action, request, parties, self.policy.max_reminders)
        recipients, errors = await self._dispatch(request, action, messages)
        outcome.errors.extend(errors)

        if not any(recipient.delivered for recipient in recipients):
            logger.warning(
                "No escalation notice delivered, advancing ladder anyway",
                request_id=request.id,
                action=action.kind.value
            )

        # A started write-back runs to completion even past the cycle deadline
        write = asyncio.ensure_future(self._write_back(request, action, now))
        try:
            await asyncio.shield(write)
        except asyncio.CancelledError:
            await write
            raise
        finally:
            if write.done() and not write.cancelled() and write.exception() is None:
                outcome.action = ActionRecord(
                    request_id=request.id,
                    type=action.kind.value,
                    tier=action.tier,
                    recipients=recipients
                )
                if write.result():
                    outcome.errors.append(write.result())

    def _missing_party(self, action: EscalationAction, parties: DirectoryRecord) -> Optional[str]:
        if action.kind == ActionKind.REMINDER and parties.intermediary is None:
            return SKIP_NO_INTERMEDIARY
        if action.kind == ActionKind.FINAL_TO_ACCOUNTABLE and parties.accountable is None:
            return "No property owner contact available for final escalation"
        return None

    async def _dispatch(
        self,
        request: ServiceRequest,
        action: EscalationAction,
        messages: List[OutboundMessage]
    ) -> Tuple[List[RecipientResult], List[ErrorRecord]]:
        """Send each message independently, one at a time."""
        recipients: List[RecipientResult] = []
        errors: List[ErrorRecord] = []

        for message in messages:
            try:
                await self.sender.send(
                    message.from_label,
                    message.to_address,
                    message.subject,
                    message.body
                )
                delivered = True
                log_escalation_event(
                    logger,
                    request.id,
                    action.kind.value,
                    message.role.value,
                    "sent",
                    tier=action.tier,
                    recipient=message.to_address
                )
            except Exception as e:
                delivered = False
                errors.append(ErrorRecord(
                    request_id=request.id,
                    error=f"Delivery to {message.role.value} <{message.to_address}> failed: {e}"
                ))
                log_escalation_event(
                    logger,
                    request.id,
                    action.kind.value,
                    message.role.value,
                    "failed",
                    tier=action.tier,
                    recipient=message.to_address,
                    error=str(e)
                )

            recipients.append(RecipientResult(
                role=message.role,
                address=message.to_address,
                delivered=delivered
            ))

        return recipients, errors

    async def _write_back(
        self,
        request: ServiceRequest,
        action: EscalationAction,
        now: datetime
    ) -> Optional[ErrorRecord]:
        """Persist the new escalation state; return an error record on failure."""
        if action.kind == ActionKind.REMINDER:
            changes = RequestUpdate(
                escalation_count=request.escalation_count + 1,
                last_escalation_at=now
            )
        else:
            changes = RequestUpdate(
                escalation_count=request.escalation_count,
                last_escalation_at=now,
                notes=append_note(
                    request.notes,
                    owner_escalation_note(now, request.escalation_count)
                )
            )

        expected = None
        if self.conditional_writes:
            expected = ExpectedState(
                escalation_count=request.escalation_count,
                last_escalation_at=request.last_escalation_at
            )

        try:
            await self.repository.update_request(request.id, changes, expected)
        except ConcurrentUpdateError as e:
            logger.warning("Escalation state already advanced", request_id=request.id)
            return ErrorRecord(request_id=request.id, error=str(e))
        except Exception as e:
            logger.error("Escalation write-back failed", request_id=request.id, error=str(e))
            return ErrorRecord(request_id=request.id, error=f"Write-back failed: {e}")

        logger.info(
            "Escalation state recorded",
            request_id=request.id,
            escalation_count=changes.escalation_count,
            last_escalation_at=now.isoformat()
        )
        return None
