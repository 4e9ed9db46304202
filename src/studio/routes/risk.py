"""
Risk Routes

Bitcoin risk register: threats, vulnerabilities, BIP evaluations, FUD
analyses, community votes, dashboard views, cron-triggered monitoring
jobs and moderation.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel

from ..config import Config
from ..models.audit import AuditAction
from ..models.fud import FUDStatus
from ..models.threat import VulnerabilityStatus
from ..models.vote import VoteTargetType
from ..security.sanitize import get_client_id
from ..services.bitcoin_metrics import MetricsUnavailable
from ..services.engine_service import EngineService
from .auth import get_current_user, get_optional_user, require_admin
from .deps import enforce_rate_limit, get_engine, http_error

logger = logging.getLogger("studio.routes.risk")
router = APIRouter(prefix="/risk", tags=["risk"])


# ============================================
# Request Models
# ============================================

class ThreatRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    stride_category: Optional[str] = None
    stride_rationale: Optional[str] = None
    threat_source: Optional[str] = None
    affected_components: Optional[List[str]] = None
    vulnerability: Optional[str] = None
    exploit_scenario: Optional[str] = None
    likelihood: Optional[int] = None
    likelihood_justification: Optional[str] = None
    impact: Optional[int] = None
    impact_justification: Optional[str] = None
    nist_stage: Optional[str] = None
    rmf_status: Optional[str] = None
    remediation_strategies: Optional[List[Dict[str, Any]]] = None
    related_bips: Optional[List[str]] = None
    evidence_sources: Optional[List[Dict[str, Any]]] = None
    vulnerability_ids: Optional[List[str]] = None
    fair_estimates: Optional[Dict[str, float]] = None


class ScoreUpdateRequest(BaseModel):
    field: str
    value: float
    reason: str = ""


class VulnerabilityRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    severity: Optional[int] = None
    exploitability: Optional[int] = None
    affected_components: Optional[List[str]] = None
    vuln_status: Optional[str] = None
    related_bips: Optional[List[str]] = None
    evidence_sources: Optional[List[Dict[str, Any]]] = None


class VulnerabilityStatusRequest(BaseModel):
    vuln_status: str


class BIPRequest(BaseModel):
    bip_number: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    recommendation: Optional[str] = None
    necessity_score: Optional[int] = None
    threats_addressed: Optional[List[str]] = None
    mitigation_effectiveness: Optional[int] = None
    community_consensus: Optional[int] = None
    implementation_readiness: Optional[int] = None
    economic_impact: Optional[str] = None
    adoption_percentage: Optional[int] = None
    bip_status: Optional[str] = None


class FUDRequest(BaseModel):
    narrative: Optional[str] = None
    category: Optional[str] = None
    evidence_for: Optional[List[str]] = None
    evidence_against: Optional[List[str]] = None
    debunk_summary: Optional[str] = None
    related_threats: Optional[List[str]] = None
    price_impact_estimate: Optional[str] = None


class FUDStatusRequest(BaseModel):
    status: str
    reason: str = ""


class VoteRequest(BaseModel):
    target_type: str
    target_id: str
    vote_value: int


class AnalyzeRequest(BaseModel):
    description: Optional[Any] = None


class FUDAnalyzeRequest(BaseModel):
    narrative: Optional[Any] = None


def _actor(user: dict):
    return str(user["user_id"]), user.get("name") or user.get("email") or ""


def _target_type(value: str) -> VoteTargetType:
    try:
        return VoteTargetType(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="target_type must be threat or fud")


async def _analyze(request: Request, engine: EngineService, kind: str, text) -> dict:
    await enforce_rate_limit(request, engine, f"analysis:{get_client_id(request)}", "analysis")
    try:
        return await engine.risk_analysis.analyze(kind, text)
    except (ValueError, RuntimeError) as e:
        raise http_error(e)


async def verify_cron_auth(authorization: str = Header(None)):
    """Cron endpoints are open when CRON_SECRET is unset, else need Bearer {CRON_SECRET}"""
    if not Config.CRON_SECRET:
        return
    if authorization != f"Bearer {Config.CRON_SECRET}":
        raise HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})


# ============================================
# Threats
# ============================================

@router.get("/threats")
async def list_threats(
    stride: Optional[str] = None,
    source: Optional[str] = None,
    rating: Optional[str] = None,
    status: Optional[str] = None,
    engine: EngineService = Depends(get_engine),
):
    threats = await engine.risk_service.list_threats(stride, source, rating, status)
    return [t.to_dict() for t in threats]


@router.post("/threats/analyze")
async def analyze_threat(
    body: AnalyzeRequest,
    request: Request,
    engine: EngineService = Depends(get_engine),
):
    """Draft a structured threat from a free-text description"""
    return await _analyze(request, engine, "threat", body.description)


@router.get("/threats/{threat_id}")
async def get_threat(threat_id: str, engine: EngineService = Depends(get_engine)):
    try:
        return (await engine.risk_service.get_threat(threat_id)).to_dict()
    except ValueError as e:
        raise http_error(e)


@router.post("/threats", status_code=201)
async def create_threat(
    body: ThreatRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    await enforce_rate_limit(request, engine, f"threat:{current_user['user_id']}", "api")
    user_id, user_name = _actor(current_user)
    try:
        threat = await engine.risk_service.create_threat(
            body.model_dump(exclude_unset=True), user_id, user_name, current_user["is_admin"]
        )
    except ValueError as e:
        raise http_error(e)
    return threat.to_dict()


@router.put("/threats/{threat_id}")
async def update_threat(
    threat_id: str,
    body: ThreatRequest,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        threat = await engine.risk_service.update_threat(
            threat_id, body.model_dump(exclude_unset=True), user_id, user_name
        )
    except ValueError as e:
        raise http_error(e)
    return threat.to_dict()


@router.patch("/threats/{threat_id}/score")
async def update_threat_score(
    threat_id: str,
    body: ScoreUpdateRequest,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        threat = await engine.risk_service.update_threat_score(
            threat_id, body.field, body.value, body.reason, user_id, user_name
        )
    except ValueError as e:
        raise http_error(e)
    return threat.to_dict()


@router.delete("/threats/{threat_id}")
async def delete_threat(
    threat_id: str,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        await engine.risk_service.delete_threat(threat_id, user_id, user_name)
    except ValueError as e:
        raise http_error(e)
    return {"success": True}


# ============================================
# Vulnerabilities
# ============================================

@router.get("/vulnerabilities")
async def list_vulnerabilities(
    vuln_status: Optional[str] = None,
    engine: EngineService = Depends(get_engine),
):
    vulns = await engine.risk_service.list_vulnerabilities(vuln_status)
    return [v.to_dict() for v in vulns]


@router.post("/vulnerabilities/analyze")
async def analyze_vulnerability(
    body: AnalyzeRequest,
    request: Request,
    engine: EngineService = Depends(get_engine),
):
    return await _analyze(request, engine, "vulnerability", body.description)


@router.get("/vulnerabilities/{vuln_id}")
async def get_vulnerability(vuln_id: str, engine: EngineService = Depends(get_engine)):
    try:
        return (await engine.risk_service.get_vulnerability(vuln_id)).to_dict()
    except ValueError as e:
        raise http_error(e)


@router.post("/vulnerabilities", status_code=201)
async def create_vulnerability(
    body: VulnerabilityRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    await enforce_rate_limit(request, engine, f"vulnerability:{current_user['user_id']}", "api")
    user_id, user_name = _actor(current_user)
    try:
        vuln = await engine.risk_service.create_vulnerability(
            body.model_dump(exclude_unset=True), user_id, user_name, current_user["is_admin"]
        )
    except ValueError as e:
        raise http_error(e)
    return vuln.to_dict()


@router.put("/vulnerabilities/{vuln_id}")
async def update_vulnerability(
    vuln_id: str,
    body: VulnerabilityRequest,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        vuln = await engine.risk_service.update_vulnerability(
            vuln_id, body.model_dump(exclude_unset=True), user_id, user_name
        )
    except ValueError as e:
        raise http_error(e)
    return vuln.to_dict()


@router.patch("/vulnerabilities/{vuln_id}/status")
async def set_vulnerability_status(
    vuln_id: str,
    body: VulnerabilityStatusRequest,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        status = VulnerabilityStatus(body.vuln_status)
        vuln = await engine.risk_service.set_vulnerability_status(vuln_id, status, user_id, user_name)
    except ValueError as e:
        raise http_error(e)
    return vuln.to_dict()


@router.delete("/vulnerabilities/{vuln_id}")
async def delete_vulnerability(
    vuln_id: str,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        await engine.risk_service.delete_vulnerability(vuln_id, user_id, user_name)
    except ValueError as e:
        raise http_error(e)
    return {"success": True}


# ============================================
# BIPs
# ============================================

@router.get("/bips")
async def list_bips(engine: EngineService = Depends(get_engine)):
    return [b.to_dict() for b in await engine.risk_service.list_bips()]


@router.get("/bips/{bip_id}")
async def get_bip(bip_id: str, engine: EngineService = Depends(get_engine)):
    try:
        return (await engine.risk_service.get_bip(bip_id)).to_dict()
    except ValueError as e:
        raise http_error(e)


@router.post("/bips", status_code=201)
async def create_bip(
    body: BIPRequest,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        bip = await engine.risk_service.create_bip(body.model_dump(exclude_unset=True), user_id, user_name)
    except ValueError as e:
        raise http_error(e)
    return bip.to_dict()


@router.put("/bips/{bip_id}")
async def update_bip(
    bip_id: str,
    body: BIPRequest,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        bip = await engine.risk_service.update_bip(bip_id, body.model_dump(exclude_unset=True), user_id, user_name)
    except ValueError as e:
        raise http_error(e)
    return bip.to_dict()


@router.patch("/bips/{bip_id}/score")
async def update_bip_score(
    bip_id: str,
    body: ScoreUpdateRequest,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        bip = await engine.risk_service.update_bip_score(
            bip_id, body.field, body.value, body.reason, user_id, user_name
        )
    except ValueError as e:
        raise http_error(e)
    return bip.to_dict()


@router.post("/bips/{bip_id}/evaluate")
async def evaluate_bip(
    bip_id: str,
    request: Request,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    """Run the AI evaluation for one BIP now"""
    await enforce_rate_limit(request, engine, f"evaluate:{admin['user_id']}", "analysis")
    result = await engine.reeval_service.evaluate_bip(bip_id, trigger="manual")
    if not result["success"]:
        error = result["error"]
        status_code = 404 if error.startswith("BIP not found") else 500
        raise HTTPException(status_code=status_code, detail=error)

    user_id, user_name = _actor(admin)
    await engine.risk_service.audit("bip", bip_id, "evaluate", user_id, user_name,
                                    diff={"trigger": "manual"})
    return result


# ============================================
# FUD
# ============================================

@router.get("/fud")
async def list_fud(category: Optional[str] = None, engine: EngineService = Depends(get_engine)):
    return [f.to_dict() for f in await engine.risk_service.list_fud(category)]


@router.post("/fud/analyze")
async def analyze_fud(
    body: FUDAnalyzeRequest,
    request: Request,
    engine: EngineService = Depends(get_engine),
):
    return await _analyze(request, engine, "fud", body.narrative)


@router.get("/fud/{fud_id}")
async def get_fud(fud_id: str, engine: EngineService = Depends(get_engine)):
    try:
        return (await engine.risk_service.get_fud(fud_id)).to_dict()
    except ValueError as e:
        raise http_error(e)


@router.post("/fud", status_code=201)
async def create_fud(
    body: FUDRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    await enforce_rate_limit(request, engine, f"fud:{current_user['user_id']}", "api")
    user_id, user_name = _actor(current_user)
    try:
        fud = await engine.risk_service.create_fud(
            body.model_dump(exclude_unset=True), user_id, user_name, current_user["is_admin"]
        )
    except ValueError as e:
        raise http_error(e)
    return fud.to_dict()


@router.put("/fud/{fud_id}")
async def update_fud(
    fud_id: str,
    body: FUDRequest,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        fud = await engine.risk_service.update_fud(fud_id, body.model_dump(exclude_unset=True), user_id, user_name)
    except ValueError as e:
        raise http_error(e)
    return fud.to_dict()


@router.patch("/fud/{fud_id}/score")
async def update_fud_score(
    fud_id: str,
    body: ScoreUpdateRequest,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        fud = await engine.risk_service.update_fud_score(
            fud_id, body.field, body.value, body.reason, user_id, user_name
        )
    except ValueError as e:
        raise http_error(e)
    return fud.to_dict()


@router.patch("/fud/{fud_id}/status")
async def set_fud_status(
    fud_id: str,
    body: FUDStatusRequest,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    user_id, user_name = _actor(admin)
    try:
        status = FUDStatus(body.status)
        fud = await engine.risk_service.set_fud_status(fud_id, status, body.reason, user_id, user_name)
    except ValueError as e:
        raise http_error(e)
    return fud.to_dict()


# ============================================
# Votes
# ============================================

@router.post("/votes")
async def cast_vote(
    body: VoteRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    await enforce_rate_limit(request, engine, f"vote:{current_user['user_id']}", "api")
    target_type = _target_type(body.target_type)
    try:
        return await engine.vote_service.cast(
            target_type, body.target_id, current_user["user_id"],
            current_user.get("name") or "", body.vote_value,
        )
    except ValueError as e:
        raise http_error(e)


@router.get("/votes/{target_type}/{target_id}")
async def vote_summary(
    target_type: str,
    target_id: str,
    current_user: Optional[dict] = Depends(get_optional_user),
    engine: EngineService = Depends(get_engine),
):
    user_id = current_user["user_id"] if current_user else None
    summary = await engine.vote_service.summary(_target_type(target_type), target_id, user_id)
    return summary.to_dict()


@router.delete("/votes/{target_type}/{target_id}")
async def retract_vote(
    target_type: str,
    target_id: str,
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    removed = await engine.vote_service.retract(_target_type(target_type), target_id, current_user["user_id"])
    if not removed:
        raise HTTPException(status_code=404, detail="Vote not found")
    return {"success": True}


@router.get("/submissions")
async def my_submissions(
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    """The caller's threats and FUD analyses with their workflow status"""
    return await engine.vote_service.submissions(current_user["user_id"])


@router.get("/review")
async def review_queue(
    current_user: dict = Depends(get_current_user),
    engine: EngineService = Depends(get_engine),
):
    """Drafts and under-review items open for community votes"""
    return await engine.vote_service.review_queue(current_user["user_id"])


# ============================================
# Derived views
# ============================================

@router.get("/risks")
async def list_risks(engine: EngineService = Depends(get_engine)):
    return [r.to_dict() for r in await engine.risk_service.derived_risks()]


@router.get("/matrix")
async def risk_matrix(engine: EngineService = Depends(get_engine)):
    grid = await engine.risk_service.matrix()
    return {"matrix": [[cell.to_dict() for cell in row] for row in grid]}


@router.get("/dashboard/stats")
async def dashboard_stats(engine: EngineService = Depends(get_engine)):
    return await engine.risk_service.dashboard_stats()


@router.get("/dashboard/trends")
async def dashboard_trends(days: int = 30, engine: EngineService = Depends(get_engine)):
    snapshots = await engine.risk_service.trends(days)
    return [s.to_dict() for s in snapshots]


@router.get("/metrics")
async def bitcoin_metrics(engine: EngineService = Depends(get_engine)):
    """Live network and price figures, cached for two minutes"""
    try:
        return await engine.bitcoin_metrics.get_metrics()
    except MetricsUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/dashboard/x-posts")
async def recent_x_posts(limit: int = 50, engine: EngineService = Depends(get_engine)):
    posts = await engine.x_posting.list_recent(min(max(limit, 1), 200))
    return [p.to_dict() for p in posts]


# ============================================
# Cron
# ============================================

@router.get("/cron/scan-threats", dependencies=[Depends(verify_cron_auth)])
async def cron_scan_threats(engine: EngineService = Depends(get_engine)):
    try:
        return await engine.pipeline_scheduler.run_threat_scan()
    except Exception as e:
        logger.error(f"Threat scan failed: {e}")
        raise HTTPException(status_code=500, detail=f"Threat scan failed: {e}")


@router.get("/cron/process-queue", dependencies=[Depends(verify_cron_auth)])
async def cron_process_queue(
    max_items: Optional[int] = None,
    engine: EngineService = Depends(get_engine),
):
    try:
        return await engine.pipeline_scheduler.run_process_queue(max_items)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Queue processing failed: {e}")


@router.get("/cron/snapshot-daily", dependencies=[Depends(verify_cron_auth)])
async def cron_snapshot_daily(engine: EngineService = Depends(get_engine)):
    try:
        return await engine.pipeline_scheduler.run_daily_snapshot()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Snapshot failed: {e}")


@router.get("/cron/weekly-summary", dependencies=[Depends(verify_cron_auth)])
async def cron_weekly_summary(engine: EngineService = Depends(get_engine)):
    return await engine.risk_service.post_weekly_summary()


# ============================================
# Admin
# ============================================

@router.get("/admin/audit-log")
async def entity_audit_log(
    request: Request,
    entity_type: Optional[str] = None,
    limit: int = 50,
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    entries = await engine.risk_service.audit_log(entity_type, min(max(limit, 1), 500))
    await engine.audit_log.log_data_access(
        admin["user_id"], AuditAction.DATA_VIEW, "audit_log", details={"ip": get_client_id(request)}
    )
    return [e.to_dict() for e in entries]


@router.get("/admin/pending")
async def pending_review(
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    return await engine.risk_service.pending_review()


@router.get("/admin/monitoring")
async def monitoring_status(
    admin: dict = Depends(require_admin),
    engine: EngineService = Depends(get_engine),
):
    """Recent pipeline runs, queue items and signals"""
    runs = await engine.monitoring_storage.list_recent()
    queue = await engine.reeval_storage.list_recent()
    signals = await engine.signal_storage.list_recent()
    return {
        "runs": [r.to_dict() for r in runs],
        "queue": [q.to_dict() for q in queue],
        "signals": [s.to_dict() for s in signals],
        "remaining_daily_budget": await engine.reeval_service.remaining_daily_budget(),
        "scheduler_running": engine.pipeline_scheduler.is_running,
    }
