#!/usr/bin/env python3
"""
OpenBank Entry Point

Starts the FastAPI server with the OpenBank core.
"""

import sys

from openbank.api import run_server
from openbank.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("🏦 Starting OpenBank...")
    print("💰 Balances kept in whole cents across four sub-accounts")
    print(f"🗄️  Storage: {config.database_url}")
    print(f"🌐 API available at: http://localhost:{config.api_port}/api")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug="--reload" in sys.argv)
    except KeyboardInterrupt:
        print("\n👋 Shutting down OpenBank...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
