"""
Vercel entry point for the Support Desk API
"""
import os

# Set environment variables for serverless
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("SERVERLESS", "true")
os.environ.setdefault("SLA_CONFIG_PATH", "/tmp/sla_config.yaml")
os.environ.setdefault("SLA_EVALUATION_INTERVAL", "0")  # No background jobs in serverless
os.environ.setdefault("BADGE_POLL_INTERVAL", "0")

from mangum import Mangum
from supportdesk.main import app

# Lambda handler for ASGI app. The lifespan runs per invocation but only
# builds the SLA policy, badge aggregator and webhook client on the first one
handler = Mangum(app, lifespan="auto")
