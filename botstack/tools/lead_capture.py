"""
botstack.tools.lead_capture - Lead Capture Tool

Collects contact details from end users: detects trigger keywords in a
message, tells the assistant which fields to ask for, and saves the lead.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from botstack.core.tools.base import (
    CamelModel,
    ExecutionResult,
    ToolContext,
    ToolDefinition,
    ToolFunction,
    ToolType,
    error_result,
)
from botstack.models.base import new_id
from botstack.models.lead import Lead

logger = logging.getLogger(__name__)

TOOL_ID = "lead-capture"

LeadField = Literal["name", "email", "phone", "company", "message", "website", "budget", "timeline"]

DEFAULT_TRIGGERS = ["pricing", "demo", "contact", "quote", "trial"]

FIELD_LABELS = {
    "name": "your full name",
    "email": "your email address",
    "phone": "your phone number",
    "company": "your company name",
    "message": "any additional information or questions",
    "website": "your website",
    "budget": "your budget",
    "timeline": "your timeline",
}

TRIGGER_MESSAGES = {
    "pricing": "To provide you with pricing information, I need to collect some details from you.",
    "demo": "To schedule a product demo for you, I need some information.",
    "trial": "To set up your free trial, I need to collect some details.",
}

DEFAULT_REQUEST_MESSAGE = "I need to collect some information from you."


class LeadCaptureConfig(CamelModel):
    required_fields: list[LeadField] = Field(
        default_factory=lambda: ["name", "phone"], description="Fields that must be collected"
    )
    lead_notifications: bool = Field(default=True, description="Send notifications when new leads are captured")
    notification_email: str | None = Field(
        default=None,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="Email address to send lead notifications to",
    )
    lead_capture_triggers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TRIGGERS), description="Keywords that trigger lead capture"
    )
    custom_trigger_phrases: list[str] = Field(
        default_factory=list, description="Additional custom phrases that trigger lead capture"
    )


class SaveLeadParams(CamelModel):
    name: str | None = Field(default=None, description="Full name of the lead")
    phone: str | None = Field(default=None, description="Phone number of the lead")
    email: str | None = Field(default=None, description="Email address of the lead (optional)")
    company: str | None = Field(default=None, description="Company name of the lead")
    notes: str | None = Field(default=None, description="Additional notes about the lead")
    website: str | None = Field(default=None, description="Website of the lead")
    budget: str | None = Field(default=None, description="Budget information")
    timeline: str | None = Field(default=None, description="Timeline information")
    source: str | None = Field(default=None, description="Source of the lead (e.g., 'chat', 'website')")
    trigger_keyword: str | None = Field(default=None, description="Keyword that triggered the lead capture")


class RequestLeadInfoParams(CamelModel):
    fields: list[LeadField] | None = Field(default=None, description="Fields to request from the lead")
    message: str | None = Field(
        default=None, description="Custom message to display when requesting information"
    )
    trigger_keyword: str | None = Field(default=None, description="Keyword that triggered the lead capture")


class DetectTriggerKeywordParams(CamelModel):
    message: str = Field(description="User message to check for trigger keywords")


class LeadCaptureCredentials(BaseModel):
    """Lead capture needs no third-party credentials."""


def _config(context: ToolContext) -> LeadCaptureConfig:
    return LeadCaptureConfig.model_validate(context.config or {})


# Only contact fields are enforced; the rest are requested but optional
_CONTACT_FIELDS = ("name", "email", "phone", "company")

# Extra fields kept on the lead's properties
_PROPERTY_FIELDS = ("notes", "website", "budget", "timeline")


async def save_lead(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = SaveLeadParams.model_validate(params)
        config = _config(context)

        missing = [f for f in config.required_fields if f in _CONTACT_FIELDS and not getattr(args, f)]
        if missing:
            return error_result("MISSING_REQUIRED_FIELDS", f"Missing required fields: {', '.join(missing)}")

        source = args.source or "chat"
        timestamp = datetime.now(UTC).isoformat()
        lead_id = new_id()

        if context.session is not None and context.bot_id:
            context.session.add(
                Lead(
                    id=lead_id,
                    bot_id=context.bot_id,
                    conversation_id=context.conversation_id,
                    name=args.name,
                    email=args.email,
                    phone=args.phone,
                    company=args.company,
                    source=source,
                    trigger_keyword=args.trigger_keyword,
                    properties={f: getattr(args, f) for f in _PROPERTY_FIELDS if getattr(args, f)} or None,
                    extra_metadata={
                        "userId": context.user_id,
                        "organizationId": context.organization_id,
                        "capturedAt": timestamp,
                    },
                )
            )
            await context.session.commit()
        else:
            logger.warning("Lead not persisted: call has no database session or bot", extra={"lead_id": lead_id})

        logger.info(f"Saved lead {lead_id}", extra={"bot_id": context.bot_id, "source": source})

        return {
            "success": True,
            "leadId": lead_id,
            "message": f"Successfully saved lead information for {args.name}.",
            "data": {
                "name": args.name,
                "phone": args.phone,
                "email": args.email,
                "company": args.company,
                "source": source,
                "triggerKeyword": args.trigger_keyword,
                "timestamp": timestamp,
                "notificationSent": config.lead_notifications,
            },
        }
    except Exception as e:
        logger.error(f"Error saving lead info: {e}", exc_info=True, extra={"bot_id": context.bot_id})
        return error_result("SAVE_LEAD_FAILED", "Failed to save lead information", details=str(e))


async def request_lead_info(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = RequestLeadInfoParams.model_validate(params)
        config = _config(context)

        fields = args.fields or list(config.required_fields)
        labels = ", ".join(FIELD_LABELS.get(f, f) for f in fields)

        message = args.message or DEFAULT_REQUEST_MESSAGE
        if args.trigger_keyword in TRIGGER_MESSAGES:
            message = TRIGGER_MESSAGES[args.trigger_keyword]

        return {
            "success": True,
            "formMessage": message,
            "fieldsToRequest": fields,
            "assistantInstructions": f"Please ask for {labels or 'required information'} from the user.",
            "triggerKeyword": args.trigger_keyword,
        }
    except Exception as e:
        logger.error(f"Error requesting lead info: {e}", exc_info=True, extra={"bot_id": context.bot_id})
        return error_result("REQUEST_INFO_FAILED", "Failed to process information request", details=str(e))


async def detect_trigger_keyword(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = DetectTriggerKeywordParams.model_validate(params)
        config = _config(context)

        keywords = [*config.lead_capture_triggers, *config.custom_trigger_phrases]
        text = args.message.lower()
        keyword = next((k for k in keywords if k and k.lower() in text), None)

        return {
            "success": True,
            "detected": keyword is not None,
            "triggerKeyword": keyword,
            "message": (
                f'Detected lead capture trigger keyword: "{keyword}"'
                if keyword
                else "No lead capture trigger keywords detected"
            ),
            "allTriggerKeywords": keywords,
        }
    except Exception as e:
        logger.error(f"Error detecting trigger keywords: {e}", exc_info=True, extra={"bot_id": context.bot_id})
        result = error_result("DETECT_TRIGGER_FAILED", "Failed to detect trigger keywords", details=str(e))
        result["detected"] = False
        return result


lead_capture_tool = ToolDefinition(
    id=TOOL_ID,
    name="Lead Info Collector",
    description="Collect and store lead information during conversations",
    type=ToolType.CONTACT_FORM,
    config_schema=LeadCaptureConfig,
    credential_schema=LeadCaptureCredentials,
    functions={
        "saveLead": ToolFunction(
            description="Save lead contact information.",
            parameters=SaveLeadParams,
            execute=save_lead,
        ),
        "requestLeadInfo": ToolFunction(
            description="Request specific information from the lead",
            parameters=RequestLeadInfoParams,
            execute=request_lead_info,
        ),
        "detectTriggerKeyword": ToolFunction(
            description="Detect if a user message contains lead capture trigger keywords.",
            parameters=DetectTriggerKeywordParams,
            execute=detect_trigger_keyword,
        ),
    },
    default_config={
        "requiredFields": ["name", "email"],
        "leadNotifications": True,
        "leadCaptureTriggers": list(DEFAULT_TRIGGERS),
    },
)
