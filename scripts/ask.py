#!/usr/bin/env python
"""Ask the RAG corpus a single question from the command line.

Usage:
    python -m scripts.ask "How do I treat foot rot in sheep?" --context "Merino flock"

Uses the same configuration as the API (environment variables or the
legacy runtime config) and Application Default Credentials.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from istock_rag.api.request import validate_query
from istock_rag.api.routes import close_pipeline, get_pipeline
from istock_rag.exceptions import RAGPlatformError
from istock_rag.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


async def ask(
    prompt: str,
    context: str | None = None,
    output_path: Path | None = None,
) -> bool:
    """Run one query and print the response.

    Args:
        prompt: Question to ask.
        context: Optional extra details for the answer.
        output_path: Optional path to save the response JSON.

    Returns:
        True if a response was produced, False on a platform error.
    """
    setup_logging(level="INFO", json_output=False)

    try:
        query = validate_query(prompt, context)
        response = await get_pipeline().query(query)
    except RAGPlatformError as e:
        logger.error(f"Query failed: {e.message}", extra={"error_code": e.code.value})
        print(json.dumps(e.to_dict(), indent=2))
        return False
    finally:
        await close_pipeline()

    output = response.model_dump_json(indent=2)
    print(output)

    if output_path:
        output_path.write_text(output)
        logger.info(f"Response saved to {output_path}")

    return True


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Ask the iStock RAG corpus a question",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("prompt", help="Question to ask")
    parser.add_argument(
        "--context",
        default=None,
        help="Additional details about the animals or farm",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to save the response JSON",
    )

    args = parser.parse_args()

    ok = asyncio.run(
        ask(
            prompt=args.prompt,
            context=args.context,
            output_path=args.output,
        )
    )

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
