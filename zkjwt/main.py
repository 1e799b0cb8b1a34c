# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""zkjwt entry point: logging setup and the authenticate flow.

:func:`authenticate` runs the verification core and then, only if it
succeeded, the registry collaborator.  The two failure classes stay
distinct: a :class:`~zkjwt.circuit.exceptions.ConstraintError` means no
outputs exist, a :class:`~zkjwt.circuit.exceptions.RegistryRejection` means
the outputs are correct but policy refused them.

Logging is configured by :func:`configure_logging` from ``ZKJWT_LOG_LEVEL``
and ``ZKJWT_LOG_FORMAT`` (``json`` or ``text``).
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional

from zkjwt.circuit.models import JwtAuthInputs
from zkjwt.circuit.registry import InMemoryRegistry, check_registry
from zkjwt.circuit.verify import JwtPublicOutputs, verify_jwt
from zkjwt.config import DEFAULT_PARAMETERS, LOG_FORMAT, LOG_LEVEL, CircuitParameters, config_fingerprint

logger = logging.getLogger(__name__)

__all__ = ["configure_logging", "authenticate"]


# ======================================================================
# Structured JSON logging
# ======================================================================


class _JSONFormatter(logging.Formatter):
    """One JSON object per log line.

    Fields: ``timestamp``, ``level``, ``logger``, ``message``, ``module``,
    ``funcName`` and, when the record carries one, ``exception``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = LOG_LEVEL, fmt: str = LOG_FORMAT) -> None:
    """Install a single stdout handler on the root logger.

    Existing handlers are removed first so repeated calls do not duplicate
    output.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if fmt.lower() == "json":
        handler.setFormatter(_JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


# ======================================================================
# Authenticate
# ======================================================================


def authenticate(
    inputs: JwtAuthInputs,
    registry: InMemoryRegistry,
    params: CircuitParameters = DEFAULT_PARAMETERS,
    *,
    expected_azp: Optional[str] = None,
) -> JwtPublicOutputs:
    """Verify *inputs* and apply registry policy to the outputs.

    Raises:
        ConstraintError: the verification core rejected the inputs.
        RegistryRejection: the outputs are valid but the registry refused
            the public-key hash or the ``azp``.
    """
    logger.debug("Authenticating with parameters %s", config_fingerprint(params))
    outputs = verify_jwt(inputs, params, expected_azp=expected_azp)
    check_registry(outputs, registry)
    logger.info("Authenticated kid=%040x", outputs.kid)
    return outputs
