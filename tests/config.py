# ================================
# LIVE TEST CONFIGURATION (tests/config.py)
# ================================

import os
from typing import Dict
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Settings for the smoke tests against a running server
TEST_CONFIG = {
    "base_url": os.getenv("TEST_BASE_URL", "http://localhost:8000"),
    "admin_email": os.getenv("TEST_ADMIN_EMAIL", "admin@example.com"),
    "admin_password": os.getenv("TEST_ADMIN_PASSWORD", ""),  # Set in environment
    "timeout": int(os.getenv("TEST_TIMEOUT", "10")),
    "performance_thresholds": {
        "list_endpoint": float(os.getenv("TEST_PERF_LIST_ENDPOINT", "2.0")),  # seconds
        "report_endpoint": float(os.getenv("TEST_PERF_REPORT_ENDPOINT", "3.0")),  # seconds
    },
    "page_size": int(os.getenv("TEST_PAGE_SIZE", "5"))
}

def get_auth_headers() -> Dict[str, str]:
    """Log in as the configured admin and return bearer headers"""
    import requests

    if not TEST_CONFIG["admin_password"]:
        raise ValueError("Please set TEST_ADMIN_PASSWORD to run the live API tests")

    response = requests.post(
        f"{TEST_CONFIG['base_url']}/api/v1/auth/login",
        json={"email": TEST_CONFIG["admin_email"], "password": TEST_CONFIG["admin_password"]},
        timeout=TEST_CONFIG["timeout"]
    )

    if response.status_code != 200:
        raise ValueError(f"Login failed: {response.status_code} - {response.text}")

    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}
