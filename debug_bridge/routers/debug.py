"""
Debug Submission Router
=======================

POST /api/debug               — browser widget submits a debug report
POST /api/questions/answer    — browser widget answers a Q&A session

A stored report automatically opens a clarifying-question session (unless
auto_questions is off) and pushes it to every connected tab.
"""

import logging

from fastapi import APIRouter, Depends, Request

from debug_bridge.core.errors import DebugBridgeError, SessionNotFoundError
from debug_bridge.core.errors.middleware import error_response
from debug_bridge.core.structured_logging import report_id_var, session_id_var
from debug_bridge.core.utils import generate_id, now_ms
from debug_bridge.models.questions import DEFAULT_QUESTIONS, Answer, SubmitAnswersRequest
from debug_bridge.models.reports import DebugReport, SubmitDebugReportRequest
from debug_bridge.routers.deps import get_services
from debug_bridge.services.container import DebugServices

logger = logging.getLogger(__name__)

router = APIRouter()

REPORT_ID_LENGTH = 12


@router.post("/debug")
async def submit_debug_report(
    body: SubmitDebugReportRequest,
    request: Request,
    services: DebugServices = Depends(get_services),
):
    """Store a debug report (and its screenshot) sent by the browser widget."""
    if body.logs is None or not body.url or not body.timestamp:
        return error_response(400, "Missing required fields: logs, url, timestamp", "MISSING_FIELDS")

    report_id = generate_id(REPORT_ID_LENGTH)
    token = report_id_var.set(report_id)
    try:
        screenshot_filename = None
        if body.screenshot:
            try:
                screenshot_filename = await services.screenshots.save_screenshot(report_id, body.screenshot)
            except DebugBridgeError as e:
                # Keep the report; the screenshot is optional evidence
                logger.warning("Failed to save screenshot: %s", e)

        report = DebugReport(
            id=report_id,
            timestamp=body.timestamp,
            url=body.url,
            user_agent=body.user_agent or request.headers.get("user-agent") or "Unknown",
            logs=body.logs,
            error=body.error,
            screenshot=screenshot_filename,
            comment=body.comment or "",
            files=body.files,
        )
        await services.reports.save_report(report)

        data = {"reportId": report_id, "timestamp": report.timestamp}

        if services.settings.auto_questions:
            session_id = services.sessions.create_session(
                DEFAULT_QUESTIONS, services.settings.auto_question_timeout_ms,
            )
            logger.info("Auto-created question session %s for report %s", session_id, report_id)
            services.sessions.notify(session_id)
            data["sessionId"] = session_id

        return {"success": True, "data": data}
    finally:
        report_id_var.reset(token)


@router.post("/questions/answer")
async def submit_answers(
    body: SubmitAnswersRequest,
    services: DebugServices = Depends(get_services),
):
    """Resolve a pending Q&A session with the user's answers."""
    if not body.session_id or body.answers is None:
        return error_response(400, "Missing required fields: sessionId, answers", "MISSING_FIELDS")

    answered_at = now_ms()
    answers = [
        Answer(question_id=a.question_id, answer=a.answer, timestamp=answered_at)
        for a in body.answers
    ]

    token = session_id_var.set(body.session_id)
    try:
        accepted = services.sessions.submit_answers(body.session_id, answers)
    finally:
        session_id_var.reset(token)

    if not accepted:
        raise SessionNotFoundError(
            detail=f"Session not found or already answered: {body.session_id}",
            context={"session_id": body.session_id},
        )

    return {"success": True, "data": {"sessionId": body.session_id}}
