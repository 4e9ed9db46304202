"""
Advisor Routes

AI executive advisor: company profile, chat, boardroom, skills,
documents, file uploads and saved conversations.
"""
import json
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel
from starlette.datastructures import UploadFile as StarletteUploadFile

from ..agents.executor import LLMNotConfigured
from ..models.audit import AuditAction
from ..models.executive import EXECUTIVES, ExecutiveRole, get_executive
from ..security.files import UploadRejected
from ..security.sanitize import get_client_id
from ..services.advisor_service import validate_message
from ..services.engine_service import EngineService
from .auth import get_current_user, require_admin
from .deps import enforce_rate_limit, get_engine, http_error

logger = logging.getLogger("studio.routes.advisor")
router = APIRouter(prefix="/advisor", tags=["advisor"])


# ============================================
# Request Models
# ============================================

class CompanyRequest(BaseModel):
    name: str
    industry: Optional[str] = None
    size: Optional[str] = None
    annual_revenue: Optional[str] = None
    currency: Optional[str] = "USD"
    goals: List[str] = []
    challenges: List[str] = []


class ChatRequest(BaseModel):
    message: str
    executive: str
    history: List[dict] = []
    stream: bool = False
    conversation_id: Optional[UUID] = None


class GroupChatRequest(BaseModel):
    message: str
    conversation_id: Optional[UUID] = None


class CollaborateRequest(BaseModel):
    original_question: str
    responses: List[dict]
    collaboration_prompt: Optional[str] = None


class GenerateDocumentRequest(BaseModel):
    executive: str
    prompt: str
    file_type: str
    context: Optional[str] = None


class MinutesRequest(BaseModel):
    type: str
    messages: List[dict]
    executive: Optional[str] = None
    company_name: Optional[str] = None


class CreateConversationRequest(BaseModel):
    executive: str = "boardroom"
    title: Optional[str] = None


class AddMessageRequest(BaseModel):
    role: str
    content: str
    executive: Optional[str] = None


def _role(executive: str) -> ExecutiveRole:
    exec_info = get_executive(executive)
    if not exec_info:
        raise HTTPException(status_code=400, detail="Invalid executive role")
    return exec_info.role


def _require_llm(engine: EngineService):
    if not engine.agent_executor.is_configured:
        raise HTTPException(status_code=500, detail="ANTHROPIC_API_KEY is not configured")


# ============================================
# Executives and company
# ============================================

@router.get("/executives")
async def list_executives():
    return {"executives": [e.to_dict() for e in EXECUTIVES.values()]}


@router.get("/company")
async def get_company(
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    company = await engine.advisor_service.get_company(current_user["user_id"])
    return {"company": company.to_dict() if company else None}


@router.put("/company")
async def save_company(
    body: CompanyRequest,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        company = await engine.advisor_service.save_company(current_user["user_id"], body.model_dump())
    except ValueError as e:
        raise http_error(e)
    await engine.audit_log.log_data_access(
        current_user["user_id"], AuditAction.DATA_UPDATE, "company", str(company.id), data_category="business"
    )
    return {"company": company.to_dict()}


# ============================================
# Chat
# ============================================

@router.post("/chat")
async def chat(
    body: ChatRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    """One-on-one chat with an executive; SSE when stream is true"""
    user_id = current_user["user_id"]
    await enforce_rate_limit(request, engine, f"chat:{user_id}", "chat")
    role = _role(body.executive)
    _require_llm(engine)
    try:
        validate_message(body.message)
    except ValueError as e:
        raise http_error(e)

    await engine.audit_log.log_ai_interaction(
        user_id, AuditAction.AI_CHAT, role.value, {"stream": body.stream, "length": len(body.message or "")}
    )

    if body.stream:
        chunks = engine.advisor_service.stream_chat(
            user_id, role, body.message, body.history, body.conversation_id
        )
        # Pull the first chunk so validation errors become HTTP errors
        try:
            first = await chunks.__anext__()
        except StopAsyncIteration:
            first = ""
        except ValueError as e:
            raise http_error(e)
        except Exception as e:
            logger.error(f"Chat stream failed to start: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to get response: {e}")

        async def event_stream():
            if first:
                yield f"data: {json.dumps({'text': first})}\n\n"
            try:
                async for text in chunks:
                    yield f"data: {json.dumps({'text': text})}\n\n"
            except Exception as e:
                logger.error(f"Chat stream interrupted: {e}")
                yield f"data: {json.dumps({'error': 'Stream interrupted'})}\n\n"
            yield "data: [DONE]\n\n"

        return StreamingResponse(event_stream(), media_type="text/event-stream")

    try:
        result = await engine.advisor_service.chat(
            user_id, role, body.message, body.history, body.conversation_id
        )
    except ValueError as e:
        raise http_error(e)
    if result.error:
        raise HTTPException(status_code=500, detail=f"Failed to get response from {role.value}")

    return {"message": result.content, "executive": role.value, "usage": result.usage}


@router.post("/group")
async def group_chat(
    body: GroupChatRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    """Boardroom: every executive answers briefly"""
    user_id = current_user["user_id"]
    await enforce_rate_limit(request, engine, f"groupchat:{user_id}", "chat")
    _require_llm(engine)
    try:
        result = await engine.advisor_service.boardroom(user_id, body.message, body.conversation_id)
    except (ValueError, LLMNotConfigured) as e:
        raise http_error(e)

    await engine.audit_log.log_ai_interaction(
        user_id, AuditAction.AI_CHAT, "boardroom", {"total_tokens": result.total_tokens}
    )
    return result.to_dict()


@router.post("/collaborate")
async def collaborate(
    body: CollaborateRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    """Synthesize boardroom responses into one team recommendation"""
    user_id = current_user["user_id"]
    await enforce_rate_limit(request, engine, f"collaborate:{user_id}", "chat")
    _require_llm(engine)
    try:
        result = await engine.advisor_service.collaborate(
            user_id, body.original_question, body.responses, body.collaboration_prompt
        )
    except ValueError as e:
        raise http_error(e)
    if result.error:
        raise HTTPException(status_code=500, detail="Failed to generate collaborative response")

    await engine.audit_log.log_ai_interaction(user_id, AuditAction.AI_INSIGHT_GENERATED, "collaborate")
    return {"response": result.content, "usage": result.usage}


# ============================================
# Skills
# ============================================

@router.get("/skills")
async def list_skills(engine: EngineService = Depends(get_engine)):
    return {"skills": engine.skill_service.list_skills()}


@router.post("/skills/{executive}/{skill}")
async def run_skill(
    executive: str,
    skill: str,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    """
    Run a skill analysis.

    Multipart form: every uploaded part is a file, every other part a text field.
    """
    await enforce_rate_limit(request, engine, f"{skill}:{get_client_id(request)}", "chat")

    form = await request.form()
    files = []
    fields = {}
    for name, value in form.multi_items():
        if isinstance(value, StarletteUploadFile):
            files.append((value.filename or name, await value.read()))
        else:
            fields[name] = value

    try:
        result = await engine.skill_service.run(executive, skill, files, fields)
    except (ValueError, LLMNotConfigured) as e:
        raise http_error(e)
    except RuntimeError as e:
        logger.error(f"Skill {executive}/{skill} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    await engine.audit_log.log_ai_interaction(
        current_user["user_id"], AuditAction.AI_SKILL_RUN, executive.upper(),
        {"skill": skill, "files": len(files)},
    )
    return result


# ============================================
# Documents
# ============================================

@router.get("/documents/generate")
async def document_options(engine: EngineService = Depends(get_engine)):
    return engine.document_service.options()


@router.post("/documents/generate")
async def generate_document(
    body: GenerateDocumentRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    user_id = current_user["user_id"]
    await enforce_rate_limit(request, engine, f"document:{user_id}", "analysis")
    company = await engine.advisor_service.get_company(user_id)
    try:
        result = await engine.document_service.generate(
            body.executive, body.prompt, body.file_type, body.context, company.name if company else None
        )
    except (ValueError, LLMNotConfigured) as e:
        raise http_error(e)
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))

    await engine.audit_log.log_ai_interaction(
        user_id, AuditAction.AI_DOCUMENT_GENERATED, result["executive"],
        {"file_type": body.file_type, "filename": result["filename"]},
    )
    return result


@router.post("/documents/minutes")
async def generate_minutes(
    body: MinutesRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    user_id = current_user["user_id"]
    await enforce_rate_limit(request, engine, f"minutes:{user_id}", "default")
    try:
        result = await engine.document_service.minutes(body.type, body.messages, body.executive, body.company_name)
    except (ValueError, LLMNotConfigured) as e:
        raise http_error(e)
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))

    await engine.audit_log.log_ai_interaction(
        user_id, AuditAction.AI_DOCUMENT_GENERATED, body.executive or "boardroom", {"filename": result["filename"]}
    )
    return result


# ============================================
# Files
# ============================================

@router.get("/files/types")
async def file_types(engine: EngineService = Depends(get_engine)):
    return {"types": engine.file_service.supported_types()}


@router.post("/files/upload", status_code=201)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    user_id = current_user["user_id"]
    await enforce_rate_limit(request, engine, f"upload:{user_id}", "upload")

    data = await file.read()
    filename = file.filename or "upload"
    try:
        saved = await engine.file_service.save(user_id, filename, file.content_type or "", data)
    except UploadRejected as e:
        if e.suspicious:
            await engine.audit_log.log_security_incident(
                AuditAction.SECURITY_SUSPICIOUS,
                ip_address=get_client_id(request),
                details={"type": "suspicious", "filename": filename, "reason": str(e)},
                user_id=user_id,
                user_agent=request.headers.get("user-agent"),
            )
        raise HTTPException(status_code=400, detail=str(e))

    await engine.audit_log.log_data_access(
        user_id, AuditAction.FILE_UPLOAD, "file", saved["id"],
        details={"size": saved["size"], "mime_type": saved["mime_type"]},
    )
    return saved


@router.get("/files/{file_id}")
async def download_file(
    file_id: str,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    found = await engine.file_service.load(current_user["user_id"], file_id)
    if not found:
        raise HTTPException(status_code=404, detail="File not found")
    data, mime_type = found
    await engine.audit_log.log_data_access(current_user["user_id"], AuditAction.FILE_DOWNLOAD, "file", file_id)
    return Response(content=data, media_type=mime_type)


# ============================================
# Conversations
# ============================================

@router.get("/conversations")
async def list_conversations(
    limit: int = 50,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    conversations = await engine.advisor_service.list_conversations(current_user["user_id"], min(limit, 100))
    return {"conversations": [c.to_dict() for c in conversations]}


@router.post("/conversations", status_code=201)
async def create_conversation(
    body: CreateConversationRequest,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        conversation = await engine.advisor_service.create_conversation(
            current_user["user_id"], body.executive, body.title
        )
    except ValueError as e:
        raise http_error(e)
    return conversation.to_dict()


@router.get("/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: UUID,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        return await engine.advisor_service.get_conversation(conversation_id, current_user["user_id"])
    except ValueError as e:
        raise http_error(e)


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: UUID,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        await engine.advisor_service.delete_conversation(conversation_id, current_user["user_id"])
    except ValueError as e:
        raise http_error(e)
    return {"success": True}


@router.post("/conversations/{conversation_id}/messages", status_code=201)
async def add_conversation_message(
    conversation_id: UUID,
    body: AddMessageRequest,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    try:
        message = await engine.advisor_service.add_message(
            conversation_id, current_user["user_id"], body.role, body.content, body.executive
        )
    except ValueError as e:
        raise http_error(e)
    return message.to_dict()


# ============================================
# Audit (admin)
# ============================================

@router.get("/audit-logs")
async def audit_logs(
    user_id: Optional[UUID] = None,
    action: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    entries = await engine.audit_log.query(
        user_id=user_id, action=action, start=start, end=end, limit=min(max(limit, 1), 1000)
    )
    return {"logs": [e.to_dict() for e in entries], "pending": engine.audit_log.pending}
