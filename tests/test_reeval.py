import json
from datetime import datetime

import pytest_asyncio

from studio.models.bip import BIPEvaluation, BIPRecommendation
from studio.models.signal import QueueStatus, ReEvalTrigger
from studio.models.threat import Threat, Vulnerability, WorkflowStatus
from studio.services.reeval import BIP_RAW_URL, apply_evaluation, build_risk_context

EVALUATION = {
    "summary": "Fixes malleability",
    "recommendation": "ESSENTIAL",
    "necessityScore": 91.6,
    "threatsAddressed": ["threat-1"],
    "mitigationEffectiveness": 140,
    "communityConsensus": -5,
    "implementationReadiness": 80,
    "economicImpact": "Lower fees",
    "adoptionPercentage": 95,
}


@pytest_asyncio.fixture
async def segwit(engine):
    bip = await engine.bip_storage.create(BIPEvaluation(bip_number="BIP-0141", title="Segregated Witness"))
    engine.bip_documents[BIP_RAW_URL.format(number=141, ext="mediawiki")] = "<pre>BIP: 141</pre>"
    return bip


class TestApplyEvaluation:
    def test_copies_and_clamps(self):
        bip = BIPEvaluation(bip_number="BIP-0141")
        apply_evaluation(bip, EVALUATION, "manual")

        assert bip.summary == "Fixes malleability"
        assert bip.recommendation == BIPRecommendation.ESSENTIAL
        assert bip.necessity_score == 92
        assert bip.mitigation_effectiveness == 100
        assert bip.community_consensus == 0
        assert bip.threats_addressed == ["threat-1"]
        assert bip.evaluation_trigger == "manual"
        assert bip.last_evaluated_at is not None

    def test_unknown_recommendation_is_ignored(self):
        bip = BIPEvaluation(bip_number="BIP-0001", recommendation=BIPRecommendation.HARMFUL)
        apply_evaluation(bip, {"recommendation": "MAYBE", "necessityScore": "high"}, "new_threat")
        assert bip.recommendation == BIPRecommendation.HARMFUL
        assert bip.necessity_score == 0


class TestRiskContext:
    def test_empty(self):
        assert build_risk_context("BIP-141", [], []) == ""

    def test_lists_threats_vulns_and_pairings(self):
        threat = Threat(id="threat-a", name="Tx malleability", likelihood=4, impact=3)
        vuln = Vulnerability(id="vuln-b", name="Signature encoding", severity=5)
        context = build_risk_context("BIP-141", [threat], [vuln])

        assert "referenced by 1 threat(s) and 1 vulnerability(ies)" in context
        assert 'ID: "threat-a"' in context
        assert '"Tx malleability" x "Signature encoding": risk score 20/25' in context


class TestEvaluateBip:
    async def test_success_updates_bip_and_announces(self, engine, segwit):
        engine.agent_executor.content = json.dumps(EVALUATION)
        await engine.threat_storage.create(
            Threat(name="Malleability", related_bips=["BIP-141"], status=WorkflowStatus.PUBLISHED)
        )

        result = await engine.reeval_service.evaluate_bip(segwit.id, "manual")

        assert result["success"] is True
        assert segwit.recommendation == BIPRecommendation.ESSENTIAL
        prompt = engine.agent_executor.calls[0]["messages"][0]["content"]
        assert "Malleability" in prompt
        assert "<pre>BIP: 141</pre>" in prompt
        # recommendation changed from OPTIONAL
        assert "OPTIONAL" in engine.x_sender.sent[0]
        assert engine.x_post_storage.posts[0].trigger == "bip_recommendation_change"

    async def test_first_evaluation_without_change_posts_evaluated(self, engine, segwit):
        engine.agent_executor.content = json.dumps({"recommendation": "OPTIONAL", "summary": "ok"})
        await engine.reeval_service.evaluate_bip(segwit.id)
        assert engine.x_post_storage.posts[0].trigger == "bip_evaluated"

    async def test_repeat_evaluation_without_change_is_quiet(self, engine, segwit):
        segwit.last_evaluated_at = datetime(2024, 1, 1)
        engine.agent_executor.content = json.dumps({"recommendation": "OPTIONAL"})
        await engine.reeval_service.evaluate_bip(segwit.id)
        assert engine.x_post_storage.posts == []

    async def test_falls_back_to_markdown(self, engine):
        bip = await engine.bip_storage.create(BIPEvaluation(bip_number="BIP-0360"))
        engine.bip_documents[BIP_RAW_URL.format(number=360, ext="md")] = "# BIP 360"
        engine.agent_executor.content = json.dumps(EVALUATION)
        assert (await engine.reeval_service.evaluate_bip(bip.id))["success"] is True

    async def test_not_configured(self, engine, segwit):
        engine.agent_executor.configured = False
        result = await engine.reeval_service.evaluate_bip(segwit.id)
        assert result == {"success": False, "error": "ANTHROPIC_API_KEY not configured"}

    async def test_unknown_bip(self, engine):
        result = await engine.reeval_service.evaluate_bip("bip-missing")
        assert result == {"success": False, "error": "BIP not found: bip-missing"}

    async def test_content_unavailable(self, engine):
        bip = await engine.bip_storage.create(BIPEvaluation(bip_number="BIP-0999"))
        result = await engine.reeval_service.evaluate_bip(bip.id)
        assert result["success"] is False
        assert "bip-0999" in result["error"]

    async def test_unparseable_response(self, engine, segwit):
        engine.agent_executor.content = "I cannot answer that"
        result = await engine.reeval_service.evaluate_bip(segwit.id)
        assert result == {"success": False, "error": "Failed to parse AI response"}

    async def test_llm_error(self, engine, segwit):
        engine.agent_executor.error = "overloaded"
        result = await engine.reeval_service.evaluate_bip(segwit.id)
        assert result == {"success": False, "error": "overloaded"}

    async def test_storage_failure(self, engine, segwit):
        engine.agent_executor.content = json.dumps(EVALUATION)
        engine.bip_storage.fail_updates = True
        result = await engine.reeval_service.evaluate_bip(segwit.id)
        assert result["success"] is False
        assert result["error"].startswith("DB update failed")


class TestProcessQueue:
    async def test_success_completes_item_and_audits(self, engine, segwit):
        engine.agent_executor.content = json.dumps(EVALUATION)
        await engine.reeval_service.queue_reevaluations([ReEvalTrigger(bip_id=segwit.id, reason="new_threat")])

        result = await engine.reeval_service.process_queue()

        assert result["processed"] == 1
        assert result["succeeded"] == 1
        assert result["results"] == [
            {"bip_id": segwit.id, "success": True, "error": None, "trigger": "new_threat"}
        ]
        [item] = engine.reeval_storage.items
        assert item.status == QueueStatus.COMPLETED
        assert item.attempts == 1
        assert "auto_reeval" in engine.entity_audit_storage.actions("bip")

    async def test_failure_returns_item_to_pending(self, engine, segwit):
        engine.agent_executor.content = "not json"
        await engine.reeval_service.queue_reevaluations([ReEvalTrigger(bip_id=segwit.id, reason="manual")])

        result = await engine.reeval_service.process_queue()

        assert result["failed"] == 1
        [item] = engine.reeval_storage.items
        assert item.status == QueueStatus.PENDING
        assert item.last_error == "Failed to parse AI response"

    async def test_last_attempt_marks_failed(self, engine, segwit):
        engine.agent_executor.content = "not json"
        await engine.reeval_service.queue_reevaluations([ReEvalTrigger(bip_id=segwit.id, reason="manual")])
        engine.reeval_storage.items[0].attempts = 2

        await engine.reeval_service.process_queue()

        item = engine.reeval_storage.items[0]
        assert item.status == QueueStatus.FAILED
        assert item.attempts == 3

    async def test_exhausted_items_are_skipped(self, engine, segwit):
        await engine.reeval_service.queue_reevaluations([ReEvalTrigger(bip_id=segwit.id, reason="manual")])
        engine.reeval_storage.items[0].attempts = 3

        result = await engine.reeval_service.process_queue()

        assert result["skipped"] == 1
        assert result["processed"] == 0
        assert engine.reeval_storage.items[0].status == QueueStatus.FAILED
        assert engine.agent_executor.calls == []

    async def test_priority_order_and_batch_size(self, engine):
        low = await engine.bip_storage.create(BIPEvaluation(bip_number="BIP-0001"))
        high = await engine.bip_storage.create(BIPEvaluation(bip_number="BIP-0002"))
        await engine.reeval_service.queue_reevaluations([
            ReEvalTrigger(bip_id=low.id, reason="manual", priority=0),
            ReEvalTrigger(bip_id=high.id, reason="new_threat", priority=5),
        ])

        result = await engine.reeval_service.process_queue(max_items=1)

        assert [r["bip_id"] for r in result["results"]] == [high.id]

    async def test_daily_budget(self, engine, segwit):
        engine.reeval_service.max_daily = 1
        engine.agent_executor.content = json.dumps(EVALUATION)
        await engine.reeval_service.queue_reevaluations([ReEvalTrigger(bip_id=segwit.id, reason="manual")])
        await engine.reeval_service.process_queue()
        await engine.reeval_service.queue_reevaluations([ReEvalTrigger(bip_id=segwit.id, reason="manual")])

        assert await engine.reeval_service.remaining_daily_budget() == 0
        result = await engine.reeval_service.process_queue()
        assert result["processed"] == 0
