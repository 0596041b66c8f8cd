"""Main entry point for the GitHub issue → pull request agent.

Loads environment variables, validates configuration and either serves the
webhook endpoint, runs the health checks, or processes one stored webhook
payload from disk.
"""
from dotenv import load_dotenv
import argparse
import json
import sys

# Load environment variables first, before any other imports
load_dotenv()

from issuefix.config import get_config
from issuefix.utils.logger import configure_logging, log_error, log_info

parser = argparse.ArgumentParser(description="Turn GitHub issues into pull requests.")
sub = parser.add_subparsers(dest="command")

serve_parser = sub.add_parser("serve", help="Run the webhook server (default).")
serve_parser.add_argument("--host", type=str, help="Bind address (overrides HOST).")
serve_parser.add_argument("--port", type=int, help="Port (overrides PORT).")

sub.add_parser("check", help="Check git, GitHub and LLM configuration.")

run_parser = sub.add_parser("run", help="Process one stored issue webhook payload.")
run_parser.add_argument("--payload", required=True, help="Path to a JSON webhook payload.")

args = parser.parse_args()

config = get_config()
configure_logging(config.log_level, config.log_format)
config.log_configuration()

if args.command == "check":
    from issuefix.healthcheck import run_health_checks

    all_healthy, _ = run_health_checks(config)
    sys.exit(0 if all_healthy else 1)

issues = config.validate_configuration()
if args.command == "run":
    # The webhook secret is not needed to replay a stored payload.
    issues = [i for i in issues if not i.startswith("GITHUB_WEBHOOK_SECRET")]
if issues:
    log_error("Configuration validation failed", issues=issues)
    print("Configuration issues found:")
    for issue in issues:
        print(f"  - {issue}")
    print("\nPlease fix these issues and try again.")
    sys.exit(1)

if args.command == "run":
    from issuefix.errors import InvalidPayloadError
    from issuefix.graph import run_pipeline
    from issuefix.models import IssueEvent

    with open(args.payload, "r", encoding="utf-8") as f:
        payload = json.load(f)
    try:
        event = IssueEvent.from_payload(payload)
    except InvalidPayloadError as e:
        log_error("Payload is not an issue event", error=str(e))
        sys.exit(1)

    result = run_pipeline(event, config)
    if result.succeeded:
        print(f"PR: #{result.pr_number}")
        sys.exit(0)
    print(f"Failed at stage '{result.failed_stage}': {result.error}")
    sys.exit(1)

import uvicorn
from issuefix.webhook.app import create_app

host = getattr(args, "host", None) or config.host
port = getattr(args, "port", None) or config.port
log_info("Starting webhook server", host=host, port=port)
log_info("Pipeline runs are synchronous; each webhook request is held open until its run completes.")
uvicorn.run(create_app(config), host=host, port=port)
