"""The serverless entry: one lifespan per invocation, state kept across them."""

import asyncio
import importlib.util
import json
from pathlib import Path

import pytest
from starlette.datastructures import State

from supportdesk.config import settings
from supportdesk.main import app, shutdown

ENTRY_PATH = Path(__file__).resolve().parents[1] / "api" / "index.py"
SUPPORT = {"X-User-Id": "agent-1", "X-User-Role": "support"}


def gateway_event(method, path, body=None, query=None):
    headers = {**SUPPORT, "host": "desk.test", "content-type": "application/json"}
    return {
        "resource": "/{proxy+}",
        "path": path,
        "httpMethod": method,
        "headers": headers,
        "multiValueHeaders": {name: [value] for name, value in headers.items()},
        "queryStringParameters": query,
        "multiValueQueryStringParameters": (
            {name: [value] for name, value in query.items()} if query else None
        ),
        "pathParameters": {"proxy": path.lstrip("/")},
        "stageVariables": None,
        "requestContext": {
            "resourcePath": "/{proxy+}",
            "httpMethod": method,
            "path": path,
            "stage": "prod",
            "identity": {"sourceIp": "127.0.0.1"},
        },
        "body": json.dumps(body) if body is not None else "",
        "isBase64Encoded": False,
    }


@pytest.fixture
def handler(tmp_path, monkeypatch):
    for name, value in {
        "ENVIRONMENT": "production",
        "SERVERLESS": "true",
        "SLA_CONFIG_PATH": str(tmp_path / "sla_config.yaml"),
        "SLA_EVALUATION_INTERVAL": "0",
        "BADGE_POLL_INTERVAL": "0",
    }.items():
        monkeypatch.setenv(name, value)

    monkeypatch.setattr(settings, "serverless", True)
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{tmp_path / 'desk.db'}")
    monkeypatch.setattr(settings, "sla_config_path", tmp_path / "sla_config.yaml")
    monkeypatch.setattr(settings, "sla_evaluation_interval", 0)
    monkeypatch.setattr(settings, "badge_poll_interval", 0)
    monkeypatch.setattr(app, "state", State())

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    spec = importlib.util.spec_from_file_location("serverless_entry", ENTRY_PATH)
    entry = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(entry)

    def invoke(method, path, body=None, query=None):
        response = entry.handler(gateway_event(method, path, body, query), {})
        return response["statusCode"], json.loads(response["body"])

    yield invoke

    loop.run_until_complete(shutdown(app))
    asyncio.set_event_loop(None)
    loop.close()


class TestServerlessEntry:
    def test_badge_increase_alerts_across_invocations(self, handler):
        status, baseline = handler("GET", "/badges")
        assert status == 200
        assert baseline["unread_conversations"] == 0

        status, _ = handler("POST", "/inbox/conversations/c1/inbound", body={"customer_name": "Alice"})
        assert status == 200

        status, badges = handler("GET", "/badges")
        assert badges["unread_conversations"] == 1
        assert badges["last_alert_sequence"] == 1

        status, alerts = handler("GET", "/badges/alerts", query={"after": "0"})
        assert [a["badge"] for a in alerts["alerts"]] == ["unread_conversations"]
        assert alerts["last_sequence"] == 1

    def test_state_is_built_once(self, handler):
        handler("GET", "/badges")
        aggregator = app.state.badge_aggregator
        policy = app.state.sla_config

        handler("GET", "/badges")

        assert app.state.badge_aggregator is aggregator
        assert app.state.sla_config is policy
        assert app.state.started is True
