from __future__ import annotations

import json
import logging
from typing import Any

from google.cloud import secretmanager

logger = logging.getLogger(__name__)


def get_secret(project_id: str, secret_id: str) -> str | None:
    """Fetch the latest version of a secret from Secret Manager.

    Args:
        project_id: GCP project ID
        secret_id: Secret ID

    Returns:
        Secret value or None if it could not be read
    """
    try:
        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project_id}/secrets/{secret_id}/versions/latest"
        response = client.access_secret_version(name=name)
        return response.payload.data.decode("UTF-8")
    except Exception as exc:
        logger.warning(
            f"Failed to fetch secret {secret_id}: {exc}",
            exc_info=True,
        )
        return None


def get_json_secret(project_id: str, secret_id: str) -> dict[str, Any] | None:
    value = get_secret(project_id, secret_id)
    return json.loads(value) if value else None


__all__ = ["get_secret", "get_json_secret"]
