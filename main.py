#!/usr/bin/env python3
"""
Face Liveness Registry API - Main Entry Point
"""

import os
import sys
import logging

# Add the package directory to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), 'infrastructure'))

from faceliveness import __version__
from faceliveness.config import LivenessConfig
from faceliveness.server import run_server


def print_banner(host: str, port: int, config: LivenessConfig) -> None:
    """Summarize the effective settings before the server starts."""
    enrollment = config.enrollment
    store = "redis" if os.getenv('REDIS_URL') else "memory (REDIS_URL not set)"

    print("=" * 50)
    print(f"Face Liveness Registry API v{__version__}")
    print("=" * 50)
    print(f"Listening on:       http://{host}:{port}")
    print(f"Face store:         {store}")
    print(f"Match threshold:    {enrollment.match_threshold}")
    print(f"Descriptor size:    {os.getenv('DESCRIPTOR_DIMENSION', '128')}")
    print(f"Detector:           {config.detector.variant} (min confidence {config.detector.min_confidence})")
    print(f"Enrollment samples: {enrollment.required_samples}, verification {enrollment.verification_mode}")
    print(f"API docs:           http://{host}:{port}/docs")
    print("=" * 50)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Face Liveness Registry API Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--debug", action="store_true", help="Enable auto-reload and debug logging")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Set log level")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = LivenessConfig.from_env()
    except ValueError as e:
        logging.error(f"Invalid configuration: {e}")
        sys.exit(2)

    print_banner(args.host, args.port, config)

    try:
        run_server(host=args.host, port=args.port, debug=args.debug)
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
    except Exception as e:
        logging.error(f"Failed to start server: {e}")
        sys.exit(1)
