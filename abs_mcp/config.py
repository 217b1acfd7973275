"""Configuration for the ABS MCP server.

Everything has a working default; the environment can override a few values
but nothing is required.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# ABS SDMX REST API. Metadata lives under /{structure-type}/{agency}/{id}/{version},
# data under /data/{dataflow-id}/{key}.
BASE_URL = "https://data.api.abs.gov.au/rest"
DEFAULT_AGENCY = "ABS"

# HTTP client timeout
TIMEOUT = 60.0

# How much of an unparsable body is kept for diagnosis
ERROR_EXCERPT_LENGTH = 500

# Body returned (with a 404) when a data query matches no observations
NO_DATA_SENTINEL = "NoRecordsFound"

# ABS data structure definitions share their dataflow's id. Other SDMX
# services prefix it (Eurostat Comext uses "DSD_").
DATASTRUCTURE_ID_PREFIX = ""


class Settings(BaseModel):
    """Runtime settings."""

    base_url: str = Field(default=BASE_URL, description="Root of the SDMX REST API")
    agency: str = Field(default=DEFAULT_AGENCY, description="Agency owning the dataflows")
    timeout: float = Field(default=TIMEOUT, description="Timeout for each outbound call, in seconds")
    datastructure_prefix: str = Field(
        default=DATASTRUCTURE_ID_PREFIX,
        description="Prefix turning a dataflow id into its data structure id",
    )
    audit_log_path: Optional[Path] = Field(
        default=None, description="Append-only request/response audit log"
    )
    log_level: str = Field(default="INFO", description="Logging level")

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "Settings":
        """Build settings from ``ABS_MCP_*`` environment variables."""
        env = os.environ if environ is None else environ
        values = {}

        if env.get("ABS_MCP_BASE_URL"):
            values["base_url"] = env["ABS_MCP_BASE_URL"].rstrip("/")

        if env.get("ABS_MCP_TIMEOUT"):
            try:
                values["timeout"] = float(env["ABS_MCP_TIMEOUT"])
            except ValueError:
                logger.warning(
                    f"Ignoring ABS_MCP_TIMEOUT={env['ABS_MCP_TIMEOUT']!r}, using {TIMEOUT}s"
                )

        if "ABS_MCP_DSD_PREFIX" in env:
            values["datastructure_prefix"] = env["ABS_MCP_DSD_PREFIX"]

        if env.get("ABS_MCP_AUDIT_LOG"):
            values["audit_log_path"] = Path(env["ABS_MCP_AUDIT_LOG"]).expanduser()

        if env.get("ABS_MCP_LOG_LEVEL"):
            values["log_level"] = env["ABS_MCP_LOG_LEVEL"].upper()

        return cls(**values)
