"""issuefix — turns GitHub issues into pull requests.

A verified issue webhook drives a LangGraph pipeline:
  clone → branch → context → model → patch → commit → push → pull_request → cleanup

The webhook server lives in `issuefix.webhook.app`; `main.py` is the CLI.
"""

__version__ = "0.1.0"
