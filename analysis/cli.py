from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
import sys
from pathlib import Path

from analysis.orchestrator import analyze_content
from analysis.schemas import AnalysisRequest
from analysis.url_safety import validate_public_http_url
from framework.errors import AnalysisError


async def _run(args: argparse.Namespace) -> int:
    url = args.url
    if url:
        if "://" not in url:
            url = f"https://{url}"
        check = await validate_public_http_url(url)
        if not check.ok:
            print(json.dumps({"error": check.reason}), file=sys.stderr)
            return 2
        url = check.normalized_url

    images = [base64.b64encode(Path(p).read_bytes()).decode("ascii") for p in args.image]
    request = AnalysisRequest(
        url=url,
        text=args.text,
        images_base64=images,
        user_language=args.lang,
        user_country_code=args.country,
    )

    try:
        outcome = await analyze_content(request, agentic=args.agentic)
    except AnalysisError as e:
        payload = {"error": str(e), "kind": e.kind}
        if e.raw_response:
            payload["rawResponse"] = e.raw_response
        print(json.dumps(payload, ensure_ascii=False), file=sys.stderr)
        return 1

    print(json.dumps(
        {
            "result": outcome.result.model_dump(by_alias=True, exclude_none=True),
            "mode": outcome.mode,
            "responseTimeMs": outcome.response_time_ms,
        },
        indent=2,
        ensure_ascii=False,
    ))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Assess a URL, text, or screenshot for fraud.")
    parser.add_argument("--url", help="URL to analyze.")
    parser.add_argument("--text", help="Free text to analyze (SMS, email body, ...).")
    parser.add_argument("--image", action="append", default=[], help="Screenshot path; repeatable.")
    parser.add_argument("--lang", default="en", help="User device language (BCP 47).")
    parser.add_argument("--country", default=None, help="User country code (ISO 3166-1 alpha-2).")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--agentic", dest="agentic", action="store_true", default=None, help="Use the tool-calling agent.")
    mode.add_argument("--fallback", dest="agentic", action="store_false", help="Run lookups up-front, one LLM call.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args()

    if not (args.url or args.text or args.image):
        parser.error("provide --url, --text, or --image")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
