import json

from studio.models.audit import AuditAction
from tests.conftest import auth_headers

API = "/api/v1/advisor"


class TestExecutivesAndCompany:
    async def test_executives_are_public(self, client):
        executives = (await client.get(f"{API}/executives")).json()["executives"]
        assert len(executives) == 6

    async def test_company_roundtrip(self, client, headers):
        assert (await client.get(f"{API}/company", headers=headers)).json() == {"company": None}

        response = await client.put(
            f"{API}/company",
            json={"name": "Acme", "industry": "Retail", "goals": ["grow", ""]},
            headers=headers,
        )
        assert response.json()["company"]["name"] == "Acme"
        assert response.json()["company"]["goals"] == ["grow"]

        company = (await client.get(f"{API}/company", headers=headers)).json()["company"]
        assert company["industry"] == "Retail"

    async def test_company_name_required(self, client, headers):
        response = await client.put(f"{API}/company", json={"name": "  "}, headers=headers)
        assert response.status_code == 400


class TestChat:
    async def test_chat(self, client, engine, user, headers):
        await client.put(f"{API}/company", json={"name": "Acme"}, headers=headers)

        response = await client.post(
            f"{API}/chat",
            json={"message": "Should we raise prices?", "executive": "cfo",
                  "history": [{"role": "system", "content": "ignored"}]},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "Stub answer",
            "executive": "CFO",
            "usage": {"input_tokens": 10, "output_tokens": 20},
        }
        [call] = engine.agent_executor.calls
        assert "Acme" in call["system_prompt"]
        assert call["messages"] == [{"role": "user", "content": "Should we raise prices?"}]

        await engine.audit_log.flush()
        assert engine.audit_storage.entries[-1].action == AuditAction.AI_CHAT

    async def test_invalid_executive(self, client, headers):
        response = await client.post(f"{API}/chat", json={"message": "hi", "executive": "CEO"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid executive role"

    async def test_llm_not_configured(self, client, engine, headers):
        engine.agent_executor.configured = False
        response = await client.post(f"{API}/chat", json={"message": "hi", "executive": "cto"}, headers=headers)
        assert response.status_code == 500
        assert response.json()["detail"] == "ANTHROPIC_API_KEY is not configured"

    async def test_empty_message(self, client, engine, headers):
        response = await client.post(f"{API}/chat", json={"message": " ", "executive": "cto"}, headers=headers)
        assert response.status_code == 400

        await engine.audit_log.flush()
        assert AuditAction.AI_CHAT not in [e.action for e in engine.audit_storage.entries]

    async def test_executor_error(self, client, engine, headers):
        engine.agent_executor.error = "overloaded"
        response = await client.post(f"{API}/chat", json={"message": "hi", "executive": "coo"}, headers=headers)
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to get response from COO"

    async def test_stream(self, client, engine, headers):
        engine.agent_executor.content = "Cut costs"
        response = await client.post(
            f"{API}/chat", json={"message": "hi", "executive": "cfo", "stream": True}, headers=headers
        )

        assert response.headers["content-type"].startswith("text/event-stream")
        events = [line[len("data: "):] for line in response.text.split("\n\n") if line]
        assert events[-1] == "[DONE]"
        text = "".join(json.loads(e)["text"] for e in events[:-1])
        assert text == "Cut costs "

    async def test_chat_is_saved_to_conversation(self, client, engine, headers):
        created = (await client.post(f"{API}/conversations", json={"executive": "cmo"}, headers=headers)).json()

        await client.post(
            f"{API}/chat",
            json={"message": "Brand?", "executive": "cmo", "conversation_id": created["id"]},
            headers=headers,
        )

        conversation = (await client.get(f"{API}/conversations/{created['id']}", headers=headers)).json()
        assert [(m["role"], m["content"]) for m in conversation["messages"]] == [
            ("user", "Brand?"),
            ("assistant", "Stub answer"),
        ]


class TestBoardroom:
    async def test_group_chat(self, client, engine, headers):
        response = await client.post(f"{API}/group", json={"message": "Expand to Europe?"}, headers=headers)

        body = response.json()
        assert [r["executive"] for r in body["responses"]] == ["CFO", "CMO", "COO", "CHRO", "CTO", "CCO"]
        assert body["total_tokens"] == 30
        assert engine.agent_executor.calls[0]["max_tokens"] == 300

    async def test_collaborate(self, client, engine, headers):
        response = await client.post(
            f"{API}/collaborate",
            json={"original_question": "Expand?",
                  "responses": [{"executive": "CFO", "name": "Alex", "response": "Cash is tight"}]},
            headers=headers,
        )
        assert response.json()["response"] == "Stub answer"
        assert "Cash is tight" in engine.agent_executor.calls[0]["messages"][0]["content"]

    async def test_collaborate_needs_responses(self, client, headers):
        response = await client.post(
            f"{API}/collaborate", json={"original_question": "Expand?", "responses": []}, headers=headers
        )
        assert response.status_code == 400


class TestSkills:
    async def test_list(self, client):
        skills = (await client.get(f"{API}/skills")).json()["skills"]
        assert "cfo/budget-analysis" in [s["key"] for s in skills]

    async def test_run_with_fields_and_files(self, client, engine, headers):
        engine.agent_executor.content = '```json\n{"summary": {"status": "ok"}, "lineItems": []}\n```'

        response = await client.post(
            f"{API}/skills/cfo/budget-analysis",
            data={"budgetData": "Rent 1000"},
            files={"sheet": ("budget.csv", b"item,amount\nrent,1000\n", "text/csv")},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json() == {"analysis": {"summary": {"status": "ok"}, "lineItems": []}}
        prompt = engine.agent_executor.calls[0]["messages"][0]["content"]
        assert "--- budget.csv ---" in prompt
        assert "Rent 1000" in prompt

    async def test_unparseable_output_uses_fallback(self, client, engine, headers):
        engine.agent_executor.content = "Sorry, no JSON today"
        response = await client.post(
            f"{API}/skills/cto/architecture-review", data={"description": "Monolith on one VM"}, headers=headers
        )
        analysis = response.json()["analysis"]
        assert analysis["summary"]["status"] == "incomplete"
        assert analysis["patterns"] == []

    async def test_empty_input(self, client, headers):
        response = await client.post(f"{API}/skills/cco/contract-review", data={}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "No contract provided"

    async def test_unknown_skill(self, client, headers):
        response = await client.post(f"{API}/skills/cfo/astrology", data={"x": "y"}, headers=headers)
        assert response.status_code == 404

    async def test_not_configured(self, client, engine, headers):
        engine.agent_executor.configured = False
        response = await client.post(
            f"{API}/skills/cmo/content-review", data={"content": "Buy now"}, headers=headers
        )
        assert response.status_code == 500
        assert response.json()["detail"] == "ANTHROPIC_API_KEY is not configured"


class TestDocuments:
    async def test_options(self, client):
        options = (await client.get(f"{API}/documents/generate")).json()
        assert options["file_types"] == ["markdown", "csv", "json", "txt"]

    async def test_generate(self, client, engine, headers):
        engine.agent_executor.content = "```csv\nmonth,revenue\n```"
        response = await client.post(
            f"{API}/documents/generate",
            json={"executive": "cfo", "prompt": "Revenue forecast", "file_type": "csv"},
            headers=headers,
        )
        body = response.json()
        assert body["content"] == "month,revenue"
        assert body["filename"].startswith("cfo-revenue-forecast-")
        assert body["mime_type"] == "text/csv"

    async def test_generate_rejects_unknown_type(self, client, headers):
        response = await client.post(
            f"{API}/documents/generate",
            json={"executive": "cfo", "prompt": "x", "file_type": "exe"},
            headers=headers,
        )
        assert response.status_code == 400

    async def test_minutes(self, client, headers):
        response = await client.post(
            f"{API}/documents/minutes",
            json={"type": "individual", "executive": "CTO",
                  "messages": [{"type": "user", "content": "Cloud?"}]},
            headers=headers,
        )
        assert response.json()["filename"].startswith("cto-meeting-")

    async def test_minutes_type(self, client, headers):
        response = await client.post(
            f"{API}/documents/minutes", json={"type": "standup", "messages": [{"type": "user"}]}, headers=headers
        )
        assert response.status_code == 400


class TestFiles:
    async def test_upload_and_download(self, client, headers):
        response = await client.post(
            f"{API}/files/upload", files={"file": ("notes.txt", b"hello", "text/plain")}, headers=headers
        )
        assert response.status_code == 201
        saved = response.json()
        assert saved["size"] == 5
        assert saved["category"] == "document"

        download = await client.get(f"{API}/files/{saved['id']}", headers=headers)
        assert download.content == b"hello"

    async def test_files_are_per_user(self, client, engine, headers):
        saved = (await client.post(
            f"{API}/files/upload", files={"file": ("notes.txt", b"hello", "text/plain")}, headers=headers
        )).json()
        other = await engine.add_user("mallory")
        response = await client.get(f"{API}/files/{saved['id']}", headers=auth_headers(other))
        assert response.status_code == 404

    async def test_unsupported_type(self, client, headers):
        response = await client.post(
            f"{API}/files/upload", files={"file": ("a.zip", b"PK", "application/zip")}, headers=headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "File type not supported: application/zip"

    async def test_spoofed_content_is_flagged(self, client, engine, headers):
        response = await client.post(
            f"{API}/files/upload", files={"file": ("cat.png", b"MZ\x90\x00", "image/png")}, headers=headers
        )
        assert response.status_code == 400
        await engine.audit_log.flush()
        assert engine.audit_storage.entries[-1].action == AuditAction.SECURITY_SUSPICIOUS


class TestConversations:
    async def test_lifecycle(self, client, headers):
        created = await client.post(f"{API}/conversations", json={"title": "Q3 planning"}, headers=headers)
        assert created.status_code == 201
        conversation_id = created.json()["id"]
        assert created.json()["executive"] == "boardroom"

        message = await client.post(
            f"{API}/conversations/{conversation_id}/messages",
            json={"role": "executive", "content": "We agree", "executive": "CFO"},
            headers=headers,
        )
        assert message.status_code == 201

        listed = (await client.get(f"{API}/conversations", headers=headers)).json()["conversations"]
        assert [c["title"] for c in listed] == ["Q3 planning"]

        assert (await client.delete(f"{API}/conversations/{conversation_id}", headers=headers)).json() == {
            "success": True
        }
        assert (await client.get(f"{API}/conversations/{conversation_id}", headers=headers)).status_code == 404

    async def test_invalid_executive(self, client, headers):
        response = await client.post(f"{API}/conversations", json={"executive": "ceo"}, headers=headers)
        assert response.status_code == 400

    async def test_invalid_message_role(self, client, headers):
        conversation_id = (await client.post(f"{API}/conversations", json={}, headers=headers)).json()["id"]
        response = await client.post(
            f"{API}/conversations/{conversation_id}/messages", json={"role": "system", "content": "x"}, headers=headers
        )
        assert response.status_code == 400


class TestAuditLogs:
    async def test_admin_only(self, client, headers):
        assert (await client.get(f"{API}/audit-logs", headers=headers)).status_code == 403

    async def test_query(self, client, engine, admin, admin_headers):
        await engine.audit_log.log_ai_interaction(admin.id, AuditAction.AI_CHAT, "CFO")
        await engine.audit_log.log_ai_interaction(admin.id, AuditAction.AI_SKILL_RUN, "CTO")
        await engine.audit_log.flush()
        body = (await client.get(f"{API}/audit-logs", params={"action": "ai.chat"}, headers=admin_headers)).json()
        assert len(body["logs"]) == 1
        assert body["pending"] == 0
