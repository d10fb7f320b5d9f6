#!/usr/bin/env python3
"""Showcase of opik_tracing features.

Demonstrates:
  • Client construction from OPIK_* environment variables (or anonymous local mode)
  • Listing projects with a timeout
  • Traces with input, tags and metadata
  • LLM spans with model/provider/usage, nested tool spans
  • Feedback scores on spans
  • Flushing and closing the client

Prerequisites:
  - OPIK_API_KEY and OPIK_WORKSPACE set (can be in .env), or --local for a
    self-hosted backend without authentication

Usage:
  python examples/showcase.py
  python examples/showcase.py --local --url http://localhost:5173/api
"""

import argparse
import asyncio
import time

from opik_tracing import ClientConfig, OpikClient, OpikError, SpanType, get_tracing_logger, setup_logging

logger = get_tracing_logger("opik_tracing.showcase")


def build_client(args: argparse.Namespace) -> OpikClient:
    if args.local:
        return OpikClient(ClientConfig(url=args.url, anonymous=True, project_name=args.project))
    return OpikClient.from_env(project_name=args.project, url=args.url)


def run_agent(client: OpikClient, question: str) -> str:
    with client.trace("answer-question", input={"question": question}, tags=["showcase"]) as trace:
        with trace.span(
            "plan",
            type=SpanType.LLM,
            model="gpt-4o-mini",
            provider="openai",
            input={"messages": [{"role": "user", "content": question}]},
        ) as plan:
            with plan.span("calculator", type=SpanType.TOOL, input={"expression": "2+2"}) as tool:
                time.sleep(0.01)
                tool.end(output={"result": 4})
            plan.end(output={"answer": "4"}, usage={"prompt_tokens": 12, "completion_tokens": 3})
        plan.add_feedback_score("correctness", 1.0, "Matches calculator output")
        trace.end(output={"answer": "4"})
    return "4"


async def list_projects(client: OpikClient) -> None:
    try:
        projects = await client.list_projects(1, 5, timeout=10.0)
    except OpikError as e:
        logger.warning(f"Could not list projects: {e}")
        return
    for project in projects:
        logger.info(f"Project {project.name} ({project.id})")


def main() -> None:
    parser = argparse.ArgumentParser(description="opik_tracing showcase")
    parser.add_argument("--project", default="opik-tracing-showcase")
    parser.add_argument("--url", default=None, help="Backend URL (defaults to OPIK_URL_OVERRIDE)")
    parser.add_argument("--local", action="store_true", help="Anonymous mode for a local backend")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()
    if args.local and not args.url:
        args.url = "http://localhost:5173/api"

    setup_logging(level=args.log_level)
    with build_client(args) as client:
        asyncio.run(list_projects(client))
        answer = run_agent(client, "What is 2+2?")
        logger.info(f"Answer: {answer}")
        client.flush()
        logger.info(f"Delivered {client.writer.delivered_count} records, {client.writer.failed_count} failed")


if __name__ == "__main__":
    main()
