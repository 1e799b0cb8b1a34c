# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Command redaction.

Both matchers run unconditionally over the whole command buffer and each
zeroes every span it matches, so a second email address is hidden too:

    masked[i] = cmd[i] - email_reveal[i] * cmd[i] - code_reveal[i] * cmd[i]

Precondition: in a well-formed command the email match and the invitation
code match do not overlap.  Overlapping spans are not rejected; they leave a
negative residual at the shared positions, so callers must not rely on the
masked output for such commands.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from zkjwt.circuit.buffers import FixedBuffer, is_zero
from zkjwt.circuit.patterns import EMAIL_ADDRESS, INVITATION_CODE_WITH_PREFIX, MatchResult, scan

__all__ = ["MaskedCommand", "mask_command"]


@dataclass(frozen=True)
class MaskedCommand:
    """Redacted command plus the matcher results it was built from."""

    masked: Tuple[int, ...]
    email: MatchResult
    code: MatchResult
    is_code_exist: int


def mask_command(command: FixedBuffer) -> MaskedCommand:
    data = command.data
    email = scan(EMAIL_ADDRESS, data)
    code = scan(INVITATION_CODE_WITH_PREFIX, data)
    masked = tuple(
        c - e * c - k * c for c, e, k in zip(data, email.reveal, code.reveal)
    )
    return MaskedCommand(
        masked=masked,
        email=email,
        code=code,
        is_code_exist=is_zero(code.flag - 1),
    )
