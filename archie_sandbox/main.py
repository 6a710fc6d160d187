#!/usr/bin/env python3
"""
Archie Sandbox - Main Entry Point

Serves the container orchestration API.

Usage:
    archie-sandbox                       # Serve on 0.0.0.0:3939
    archie-sandbox --port 4000           # Override the port
    archie-sandbox --cleanup             # Remove leftover dev containers first
    python -m archie_sandbox.main --help # Show help
"""

import argparse
import logging
from pathlib import Path

import docker
import uvicorn
from dotenv import load_dotenv

from .api import create_app
from .config import Config
from .sandbox.container_utils import cleanup_dev_containers


def main():
    """Main entry point for the Archie Sandbox server."""
    parser = argparse.ArgumentParser(description="Archie Sandbox - dev container orchestration API")
    parser.add_argument("--env-file", default="sandbox.env", help="env file to load (default: sandbox.env)")
    parser.add_argument("--host", default=None, help="bind address (default: HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="port (default: PORT or 3939)")
    parser.add_argument("--cleanup", action="store_true", help="remove leftover dev containers before serving")
    args = parser.parse_args()

    print("🐳 Archie Sandbox - Dev Container Orchestrator")
    print("=" * 60)

    env_file = Path(args.env_file)
    if load_dotenv(env_file):
        print(f"✅ Loaded configuration from {env_file}")
    else:
        print("⚠️  No env file found, using environment and defaults")

    cfg = Config.from_env(env_file_path=env_file if env_file.exists() else None)
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    client = docker.from_env()
    print("✅ Connected to Docker")

    if args.cleanup:
        removed = cleanup_dev_containers(client, cfg.container_prefix)
        print(f"✅ Cleaned up {len(removed)} existing containers")

    app = create_app(cfg, client=client)

    host = args.host or cfg.host
    port = args.port or cfg.port
    print(f"🚀 File editing server running on http://{host}:{port}")
    print(f"""
Example usage:

    # Start container:
    curl -X POST http://localhost:{port}/api/container/start

    # Edit file in container:
    curl -X POST http://localhost:{port}/api/container/[containerId]/edit \\
         -H "Content-Type: application/json" \\
         -d '{{"filePath": "/app/src/pages/home.tsx", "content": "export function Home() {{ return null; }}"}}'

    # Finish container and create backup:
    curl -X POST http://localhost:{port}/api/container/finish \\
         -H "Content-Type: application/json" \\
         -d '{{"containerId": "[containerId]", "syncWorkspace": true}}'
""")

    uvicorn.run(app, host=host, port=port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
