"""
Command line entry point: run one pipeline from a definition file
Usage: python run.py <definition.yaml> <pipeline> [input]
"""
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from railway.pipeline.action import SUCCESS
from railway.pipeline.context import RunContext
from railway.pipeline.loader import load_pipelines
from railway.utils.config import build_tracer, load_config, setup_logging
from railway.utils.exceptions import PipelineConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.yaml"

USAGE = "Usage: python run.py <definition.yaml> <pipeline> [input]"


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main execution function

    Returns:
        Process exit code: 0 when the pipeline ends in SUCCESS, 1 otherwise
    """
    argv = sys.argv[1:] if argv is None else argv

    # Load environment variables from .env file
    load_dotenv()

    # Load configuration (optional file)
    try:
        config = load_config(DEFAULT_CONFIG_PATH, optional=True)
        setup_logging(config)
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}")
        return 1

    if len(argv) < 2:
        print(USAGE)
        print("Example: python run.py config/pipeline.yaml clean \"  hello world  \"")
        return 1

    definition_path, pipeline_name = argv[0], argv[1]
    value = argv[2] if len(argv) > 2 else None

    try:
        pipelines = load_pipelines(definition_path, tracer=build_tracer(config))
    except FileNotFoundError as e:
        logger.error(f"Definition file not found: {e}")
        print(f"\nERROR: {e}")
        return 1
    except PipelineConfigError as e:
        logger.error(f"Invalid pipeline definition: {e}")
        print(f"\nERROR: {e}")
        for error in getattr(e, 'errors', []):
            print(f"  - {error}")
        return 1
    except Exception as e:
        logger.error(f"Loading pipelines failed: {e}", exc_info=True)
        print(f"\nERROR: {e}")
        return 1

    pipeline = pipelines.get(pipeline_name)
    if pipeline is None:
        print(f"\nERROR: no pipeline named '{pipeline_name}' in {definition_path}")
        print(f"Available: {', '.join(pipelines)}")
        return 1

    output, direction, failure = pipeline.run(RunContext.background(), value)

    print(json.dumps({
        "pipeline": pipeline_name,
        "output": output,
        "direction": direction,
        "failure": str(failure) if failure is not None else None,
    }, default=str, indent=2))

    return 0 if direction == SUCCESS else 1
