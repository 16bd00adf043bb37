#!/usr/bin/env python3
"""Run the GeekChat proxy with uvicorn."""

import argparse

import uvicorn

from geekproxy import create_app, load_config, resolve_server_address


def main() -> None:
    parser = argparse.ArgumentParser(description="OpenAI-compatible proxy for GeekChat")
    parser.add_argument("--config", help="Path to the YAML config file")
    parser.add_argument("--env-file", help="Path to the .env file used for substitution")
    args = parser.parse_args()

    config = load_config(args.config, env_path=args.env_file)
    app = create_app(config)
    host, port = resolve_server_address(config)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
