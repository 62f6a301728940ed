#!/usr/bin/env python3
"""
Media Search Server - HTTP Mode

Runs the aggregated search API (batch, single-source and SSE streaming).

Usage:
    # Run with a catalog file
    python run_server.py --catalog catalog.example.yaml --port 8080

    # Tune upstream behaviour
    python run_server.py --timeout 5 --rate 2

Environment Variables:
    MEDIA_SEARCH_CATALOG: YAML catalog (sources, users, groups, policy)
    MEDIA_SEARCH_SOURCE_TIMEOUT: Per-source timeout in seconds (default: 8)
    MEDIA_SEARCH_SOURCE_RATE: Requests per second per source (default: 5)
    MEDIA_SEARCH_HOST: Server host (default: 127.0.0.1)
    MEDIA_SEARCH_PORT: Server port (default: 8080)
    MEDIA_SEARCH_LOG_LEVEL: Logging level (default: INFO)
"""

import os
import sys

# Add src to path for development
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "src"))

from media_search.presentation.api.server import main

if __name__ == "__main__":
    main()
