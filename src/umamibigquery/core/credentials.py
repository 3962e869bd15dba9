"""Construction of the BigQuery client from the environment."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping

from google.cloud import bigquery
from google.oauth2 import service_account

from .config import WarehouseConfig

__all__ = ["create_bigquery_client"]

logger = logging.getLogger(__name__)


def _service_account_info(raw: str, source: str) -> dict | None:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse %s: %s", source, exc)
        return None


def create_bigquery_client(
    config: WarehouseConfig, environ: Mapping[str, str] | None = None
) -> bigquery.Client:
    """Return a client authenticated with the first credentials found.

    Lookup order: the ``bigquery-credentials`` secret, the key file named by
    ``GOOGLE_APPLICATION_CREDENTIALS``, the ``UMAMI_BIGQUERY`` secret, and
    finally application default credentials.
    """

    env = os.environ if environ is None else environ

    secret = env.get("bigquery-credentials")
    if secret:
        info = _service_account_info(secret, "bigquery-credentials")
        if info is not None:
            logger.info("Using credentials from bigquery-credentials secret")
            return _from_info(config, info)

    key_file = env.get("GOOGLE_APPLICATION_CREDENTIALS")
    if key_file:
        logger.info("Using service account from GOOGLE_APPLICATION_CREDENTIALS: %s", key_file)
        return bigquery.Client.from_service_account_json(key_file, project=config.project_id)

    secret = env.get("UMAMI_BIGQUERY")
    if secret:
        info = _service_account_info(secret, "UMAMI_BIGQUERY")
        if info is not None:
            logger.info("Using credentials from UMAMI_BIGQUERY")
            return _from_info(config, info)

    logger.info("Using application default credentials")
    return bigquery.Client(project=config.project_id, location=config.location)


def _from_info(config: WarehouseConfig, info: dict) -> bigquery.Client:
    credentials = service_account.Credentials.from_service_account_info(info)
    return bigquery.Client(project=config.project_id, credentials=credentials, location=config.location)
