"""Manual smoke test: send one prompt through the gateway.

Usage:
    LLM_API_KEY=sk-... python -m llmgate.cli --provider openai \
        --api-url https://api.openai.com/v1 --model gpt-4o-mini --prompt "Say hi"

    # Try /responses after a retriable chat failure
    python -m llmgate.cli ... --fallback responses
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from llmgate.core.config import validate_settings_for_production
from llmgate.core.encryption import FernetCredentialStore
from llmgate.core.logging import setup_logging
from llmgate.core.sentry import init_sentry
from llmgate.gateway.errors import GatewayError
from llmgate.gateway.gateway import LlmGateway
from llmgate.gateway.types import (
    EndpointKind,
    FallbackStep,
    ProviderName,
    ProviderProfile,
    RequestEnvelope,
    default_endpoint_kind,
)

logger = logging.getLogger("llmgate.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="llmgate", description="Send one prompt through the LLM gateway")
    parser.add_argument("--provider", required=True, choices=[p.value for p in ProviderName])
    parser.add_argument("--api-url", required=True)
    parser.add_argument("--model", required=True)
    parser.add_argument("--prompt", required=True)
    parser.add_argument("--endpoint-kind", choices=[k.value for k in EndpointKind], default=None)
    parser.add_argument("--fallback", action="append", default=[], choices=[k.value for k in EndpointKind])
    parser.add_argument("--max-tokens", type=int, default=None)
    return parser


async def run(args: argparse.Namespace, environ=os.environ) -> int:
    profile = ProviderProfile(provider=args.provider, api_url=args.api_url, model=args.model)
    kind = args.endpoint_kind or default_endpoint_kind(profile.provider)

    store = FernetCredentialStore()
    api_key = environ.get("LLM_API_KEY", "")
    ciphertext = store.encrypt(api_key) if api_key else None

    payload = {"messages": [{"role": "user", "content": args.prompt}]}
    if args.max_tokens:
        payload["max_tokens"] = args.max_tokens

    gateway = LlmGateway(
        credential_store=store,
        fallback_steps=[FallbackStep(EndpointKind(k)) for k in args.fallback],
    )
    envelope = RequestEnvelope(endpoint_kind=EndpointKind(kind), payload=payload)
    try:
        response = await gateway.send(profile, ciphertext, envelope)
    except GatewayError as e:
        logger.error("%s: %s", type(e).__name__, e.message)
        return 1

    print(json.dumps(response.to_dict(), ensure_ascii=False, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    validate_settings_for_production()
    setup_logging()
    init_sentry()
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
