"""
Run a full cascade exploration for a sample assertion and save the
`CascadeReport` to a JSON file.

This script calls the live agents (LLMs). If the environment is not
configured (ANTHROPIC_API_KEY missing), the run fails and the exception is
written to an error log in the output directory.

Usage:
    python scripts/run_cascade_example.py
    python scripts/run_cascade_example.py "Cities ban private cars downtown"
"""
import json
import logging
import sys
import traceback

from cascade.core.config import DEBUG, AppConfig
from cascade.orchestration.cascade_orchestrator import CascadeOrchestrator

ASSERTION = "Remote work becomes universal"
OUT_NAME = "remote_work_cascade_run.json"
ERR_NAME = "remote_work_cascade_run_error.log"


def main():
    logging.basicConfig(
        level=logging.DEBUG if DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    assertion = sys.argv[1] if len(sys.argv) > 1 else ASSERTION

    out_dir = AppConfig.cascade.output_dir
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / OUT_NAME
    err_path = out_dir / ERR_NAME

    print(f"Starting cascade run for '{assertion}' - this calls LLMs and may take a few minutes.")
    try:
        report = CascadeOrchestrator().run(assertion, use_tensions=True)
        with open(out_path, "w") as f:
            json.dump(report.to_dict(), f, indent=2)
        print(f"Saved run output to {out_path}")
    except Exception as e:
        print("Run failed:", e)
        with open(err_path, "w") as ef:
            ef.write(traceback.format_exc())
        print(f"Wrote error to {err_path}")
        sys.exit(1)


if __name__ == "__main__":
    main()
