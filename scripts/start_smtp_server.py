#!/usr/bin/env python3
"""SMTP Server Startup Script for the Mailin gateway.

Starts the aiosmtpd listener, stages each received message, and forwards the
parsed message (DKIM/SPF verdicts, text and HTML bodies, language) to the
configured webhook.

Usage:
    python scripts/start_smtp_server.py [--port 2500] [--tmp .tmp] [--webhook URL]

Environment Variables:
    MAILIN_HOST: Bind address (default: 0.0.0.0)
    MAILIN_PORT: Listen port (default: 2500)
    MAILIN_TMP: Staging directory (default: .tmp)
    MAILIN_WEBHOOK: Webhook URL (default: http://localhost:3000/webhook)
    MAILIN_LOG_LEVEL: Logging level (default: INFO)
"""

import os
import sys

# Allow running from a source checkout without installing the package
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from mailin.main import main

if __name__ == '__main__':
    sys.exit(main())
