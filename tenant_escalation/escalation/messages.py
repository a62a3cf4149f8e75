"""Composition of escalation notices.

Three message shapes exist: a numbered reminder to the managing agent, a final
notice to the property owner, and a courtesy copy telling the agent that the
owner has been notified.
"""

from dataclasses import dataclass
from typing import List

from tenant_escalation.config import settings
from tenant_escalation.escalation.policy import ActionKind, EscalationAction
from tenant_escalation.escalation.report import RecipientRole
from tenant_escalation.escalation.types import DirectoryRecord, ServiceRequest
from tenant_escalation.utils.validation import sanitize_input


@dataclass(frozen=True)
class OutboundMessage:
    """A single-recipient notice ready to hand to the sender."""
    role: RecipientRole
    from_label: str
    to_address: str
    subject: str
    body: str


def _labels(parties: DirectoryRecord) -> dict:
    display = parties.display
    return {
        "building": display.building_name or "Property",
        "building_or_na": sanitize_input(display.building_name) or "N/A",
        "unit": display.unit_label or "N/A",
        "tenant": sanitize_input(display.requester_name) or "N/A",
        "agent_company": sanitize_input(display.intermediary_company) or "N/A",
    }


def _issue_details(request: ServiceRequest) -> str:
    category = (request.category or "general").replace("_", " ")
    return f"""
<h3>Issue Details:</h3>
<ul>
  <li><strong>Title:</strong> {sanitize_input(request.title, 200)}</li>
  <li><strong>Category:</strong> {sanitize_input(category)}</li>
  <li><strong>Priority:</strong> {sanitize_input(request.priority) or 'N/A'}</li>
  <li><strong>Reported:</strong> {request.created_at.strftime('%d %b %Y')}</li>
  <li><strong>Description:</strong> {sanitize_input(request.description) or 'N/A'}</li>
</ul>
""".strip()


def from_label_for(parties: DirectoryRecord) -> str:
    """Sender display name: the building, or the configured default."""
    return parties.display.building_name or settings.DEFAULT_FROM_LABEL


def compose_reminder(
    request: ServiceRequest,
    parties: DirectoryRecord,
    tier: int,
    max_reminders: int,
) -> OutboundMessage:
    """Reminder ``tier`` of ``max_reminders`` to the managing agent."""
    labels = _labels(parties)
    agent_name = sanitize_input(parties.intermediary.name) or "Managing Agent"
    final_warning = (
        "<p><strong>Final Reminder:</strong> If we do not receive a response, "
        "the property owner will be notified directly.</p>"
        if tier >= max_reminders else ""
    )

    body = f"""
<h2>Reminder {tier}/{max_reminders}: Tenant Maintenance Request Pending</h2>

<p>Dear {agent_name},</p>

<p>This is reminder <strong>{tier} of {max_reminders}</strong> regarding a pending maintenance request that requires your attention.</p>

<h3>Property Details:</h3>
<ul>
  <li><strong>Building:</strong> {labels['building_or_na']}</li>
  <li><strong>Unit:</strong> {sanitize_input(labels['unit'])}</li>
  <li><strong>Tenant:</strong> {labels['tenant']}</li>
</ul>

{_issue_details(request)}

<p><strong>Action Required:</strong> Please arrange for repairs as soon as possible. If you have already addressed this issue, please update the work order status in the system.</p>

{final_warning}

<p>Thank you for your prompt attention to this matter.</p>

<p>Best regards,<br/>Building Management</p>
    """.strip()

    return OutboundMessage(
        role=RecipientRole.INTERMEDIARY,
        from_label=from_label_for(parties),
        to_address=parties.intermediary.email,
        subject=(
            f"REMINDER {tier}/{max_reminders}: Tenant Maintenance Request - "
            f"{labels['building']} Unit {labels['unit']}"
        ),
        body=body,
    )


def compose_final_to_owner(
    request: ServiceRequest,
    parties: DirectoryRecord,
    reminders_sent: int,
) -> OutboundMessage:
    """Final notice to the accountable party."""
    labels = _labels(parties)
    agent_address = parties.intermediary.email if parties.intermediary else "your managing agent"

    body = f"""
<h2>Maintenance Issue Escalation - Owner Notification</h2>

<p>Dear Property Owner,</p>

<p>We are writing to inform you of a maintenance issue in your property that has not been addressed by your managing agent despite multiple reminders.</p>

<h3>Property Details:</h3>
<ul>
  <li><strong>Building:</strong> {labels['building_or_na']}</li>
  <li><strong>Unit:</strong> {sanitize_input(labels['unit'])}</li>
  <li><strong>Tenant:</strong> {labels['tenant']}</li>
  <li><strong>Managing Agent:</strong> {labels['agent_company']}</li>
</ul>

{_issue_details(request)}

<p><strong>Escalation History:</strong> {reminders_sent} reminder emails were sent to {sanitize_input(agent_address)} without response.</p>

<p><strong>Action Recommended:</strong> Please contact your managing agent to ensure this issue is addressed promptly. Delayed maintenance can lead to further damage and tenant dissatisfaction.</p>

<p>If you have any questions or concerns, please contact building management.</p>

<p>Best regards,<br/>Building Management</p>
    """.strip()

    return OutboundMessage(
        role=RecipientRole.ACCOUNTABLE,
        from_label=from_label_for(parties),
        to_address=parties.accountable.email,
        subject=(
            f"Escalation: Unresolved Tenant Maintenance Issue - "
            f"{labels['building']} Unit {labels['unit']}"
        ),
        body=body,
    )


def compose_owner_notified(
    parties: DirectoryRecord,
    reminders_sent: int,
) -> OutboundMessage:
    """Courtesy copy telling the managing agent the owner was notified."""
    labels = _labels(parties)
    agent_name = sanitize_input(parties.intermediary.name) or "Managing Agent"

    body = f"""
<h2>Final Notice: Owner Has Been Notified</h2>

<p>Dear {agent_name},</p>

<p>The property owner has been notified of the unresolved maintenance issue at {sanitize_input(labels['building'])}, Unit {sanitize_input(labels['unit'])}.</p>

<p>After {reminders_sent} unanswered reminder emails, we have escalated this matter to the owner's attention as per our protocol.</p>

<p>Please address this issue immediately to maintain good tenant relations and property condition.</p>

<p>Best regards,<br/>Building Management</p>
    """.strip()

    return OutboundMessage(
        role=RecipientRole.INTERMEDIARY_CC,
        from_label=from_label_for(parties),
        to_address=parties.intermediary.email,
        subject=(
            f"Owner Notified: Maintenance Issue - "
            f"{labels['building']} Unit {labels['unit']}"
        ),
        body=body,
    )


def compose_messages(
    action: EscalationAction,
    request: ServiceRequest,
    parties: DirectoryRecord,
    max_reminders: int,
) -> List[OutboundMessage]:
    """Messages to dispatch for ``action``; the caller checks required parties."""
    if action.kind == ActionKind.REMINDER:
        return [compose_reminder(request, parties, action.tier, max_reminders)]

    if action.kind == ActionKind.FINAL_TO_ACCOUNTABLE:
        messages = [compose_final_to_owner(request, parties, request.escalation_count)]
        if parties.intermediary:
            messages.append(compose_owner_notified(parties, request.escalation_count))
        return messages

    return []
