"""
Debug tools for the Dr. Rhesus backend
Checks the environment and runs a BLAST search from the command line
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from tabulate import tabulate

from blast_errors import BlastError
from controller import format_hits_markdown, run_blast_controller
from env_loader import ensure_api_keys, load_env_file, load_settings
from groq_compat import verify_groq_key

logger = logging.getLogger("debug_tools")


def check_dependency(module_name: str) -> str:
    """Check if a dependency is installed and return status"""
    try:
        __import__(module_name)
        return "✓ Available"
    except ImportError:
        return "❌ Missing"


def environment_report() -> List[List[str]]:
    rows = []
    api_key = os.environ.get("GROQ_API_KEY", "")
    rows.append(["GROQ_API_KEY", "✓ Present" if api_key else "❌ Missing"])
    if api_key:
        rows.append(["GROQ key format", "✓ Valid" if verify_groq_key(api_key) else "❌ Invalid"])
    settings = load_settings()
    rows.append(["EBI BLAST URL", settings.ebi_blast_url])
    rows.append(["BLAST database", settings.database])
    rows.append(["Poll interval / max polls", f"{settings.poll_interval}s / {settings.max_polls}"])
    rows.append(["Groq model", settings.groq_model])
    for name, module in (("biopython", "Bio"), ("openai", "openai"), ("fastapi", "fastapi"), ("streamlit", "streamlit")):
        rows.append([name, check_dependency(module)])
    return rows


def cmd_check_env(args) -> int:
    print(tabulate(environment_report(), headers=["Check", "Status"], tablefmt="simple"))
    return 0 if ensure_api_keys() else 1


def cmd_blast(args) -> int:
    sequence = args.sequence
    if os.path.isfile(sequence):
        with open(sequence, "r") as f:
            sequence = f.read()
    try:
        result = run_blast_controller(sequence, database=args.database, summarize=not args.no_summary)
    except BlastError as e:
        print(f"❌ {e}")
        return 1

    print(f"Job {result.job_id}: {result.status.value} in {result.elapsed:.1f}s")
    print(format_hits_markdown(result.hits))
    if result.summary:
        print()
        print(result.summary.prose)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dr. Rhesus debug tools")
    parser.add_argument("--env-file", default=".env.local", help="dotenv file to load")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check-env", help="Check API keys, settings and dependencies")
    check.set_defaults(func=cmd_check_env)

    blast = subparsers.add_parser("blast", help="Run a protein BLAST search against EBI")
    blast.add_argument("sequence", help="Protein sequence, FASTA text or path to a FASTA file")
    blast.add_argument("--database", default=None, help="EBI database (default: uniprotkb)")
    blast.add_argument("--no-summary", action="store_true", help="Skip the LLM summary")
    blast.set_defaults(func=cmd_blast)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    load_env_file(args.env_file)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
