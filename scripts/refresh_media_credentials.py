#!/usr/bin/env python3
"""
Script to inspect or refresh the media library AWS credentials.
Usage: python3 scripts/refresh_media_credentials.py <status|refresh|check>

  status   print the current credential status
  refresh  extract and store a new credential set now
  check    refresh only if the stored set is close to expiry
"""
import asyncio
import json
import sys
import os

# Add server directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'server'))

from utils.aws.credential_refresh import build_refresh_service
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

COMMANDS = ("status", "refresh", "check")


def main():
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        print(f"Usage: python3 scripts/refresh_media_credentials.py <{'|'.join(COMMANDS)}>")
        sys.exit(1)

    command = sys.argv[1]
    try:
        service = build_refresh_service()
    except Exception as e:
        print(f"Error loading configuration: {e}")
        sys.exit(1)

    if command == "status":
        status = asyncio.run(service.get_status())
        print(json.dumps(status, indent=2))
        if status.get("status") == "error":
            sys.exit(1)
        return

    if command == "check":
        refreshed = asyncio.run(service.check_and_refresh("Manual"))
        print("✓ Credentials refreshed" if refreshed else "No refresh performed")
        return

    result = asyncio.run(service.refresh())
    if result["success"]:
        print(f"✓ {result['message']}")
        print(f"  Expires at: {result['expiresAt']}")
    else:
        print(f"Error refreshing credentials: {result['message']}")
        sys.exit(1)


if __name__ == "__main__":
    main()
