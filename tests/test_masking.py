# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for the command pattern matchers and the masking rule.

References:
    - zkjwt.circuit.patterns
    - zkjwt.circuit.masking
"""

from __future__ import annotations

import pytest

from conftest import INVITATION_CODE, SHORT_INVITATION_CODE
from zkjwt.circuit.buffers import FixedBuffer
from zkjwt.circuit.masking import mask_command
from zkjwt.circuit.packing import lanes_to_string, pack_bytes, unpack_lanes
from zkjwt.circuit.patterns import (
    EMAIL_ADDRESS,
    INVITATION_CODE as INVITATION_CODE_DFA,
    INVITATION_CODE_WITH_PREFIX,
    scan,
)

GUARDIAN = "0x04884491560f38342C56E26BDD0fEAbb68E2d2FC"


def _span(automaton, text: str):
    result = scan(automaton, list(text.encode()))
    if not result.flag:
        return None
    return text[result.start:result.end]


def _revealed(automaton, text: str) -> str:
    result = scan(automaton, list(text.encode()))
    return "".join(c for c, r in zip(text, result.reveal) if r)


def _mask(text: str, capacity: int = 605):
    return mask_command(FixedBuffer.from_bytes(text.encode(), capacity))


def _masked_text(text: str, capacity: int = 605) -> str:
    result = _mask(text, capacity)
    return lanes_to_string(pack_bytes(result.masked, capacity), capacity)


class TestEmailMatcher:
    """Email address DFA."""

    @pytest.mark.parametrize("text,expected", [
        ("Send 0.1 ETH to alice@gmail.com", "alice@gmail.com"),
        ("to bob.smith+tag@mail.example.co.uk now", "bob.smith+tag@mail.example.co.uk"),
        ("mail bob@example.com.", "bob@example.com"),
        ("alice@gmail.com", "alice@gmail.com"),
    ])
    def test_match(self, text, expected):
        """The longest address is matched, without trailing punctuation."""
        assert _span(EMAIL_ADDRESS, text) == expected

    @pytest.mark.parametrize("text", ["Swap 1 ETH to DAI", "user@", "@example.com"])
    def test_no_match(self, text):
        """Text without a complete address has no match."""
        assert _span(EMAIL_ADDRESS, text) is None

    def test_leftmost_match_reported_first(self):
        """start/end describe the leftmost match."""
        assert _span(EMAIL_ADDRESS, "a@x.com and b@y.com") == "a@x.com"

    def test_reveal_covers_exact_span(self):
        """Reveal mask is 1 exactly over the matched bytes."""
        text = "hi alice@gmail.com!"
        result = scan(EMAIL_ADDRESS, list(text.encode()))
        assert result.reveal == tuple(int(3 <= i < 18) for i in range(len(text)))

    def test_every_address_revealed(self):
        """Reveal mask is the union of all non-overlapping matches."""
        text = "Send 1 ETH to alice@gmail.com and bob@proton.me"
        result = scan(EMAIL_ADDRESS, list(text.encode()))
        assert result.flag == 1
        assert result.count == 2
        assert _revealed(EMAIL_ADDRESS, text) == "alice@gmail.combob@proton.me"

    def test_adjacent_addresses(self):
        """Matches separated by a single comma are both revealed."""
        text = "a@x.io,b@y.io"
        result = scan(EMAIL_ADDRESS, list(text.encode()))
        assert result.count == 2
        assert result.reveal == tuple(int(i != 6) for i in range(len(text)))

    def test_no_match_reveals_nothing(self):
        """Without a match the mask is all zero and the count is zero."""
        result = scan(EMAIL_ADDRESS, list(b"Swap 1 ETH to DAI"))
        assert (result.flag, result.count, result.start, result.end) == (0, 0, 0, 0)
        assert not any(result.reveal)


class TestInvitationCodeMatcher:
    """Invitation code DFAs, with and without the 'code ' prefix."""

    def test_with_prefix(self):
        """The leading space and 'code ' are part of the match."""
        text = f"Accept code {INVITATION_CODE}"
        assert _span(INVITATION_CODE_WITH_PREFIX, text) == f" code {INVITATION_CODE}"

    def test_capital_prefix_and_0x(self):
        """'Code ' and a 0x prefix are accepted."""
        text = f"Code 0x{INVITATION_CODE}"
        assert _span(INVITATION_CODE_WITH_PREFIX, text) == text

    def test_without_prefix(self):
        """Prefix-less DFA matches a bare 0x-prefixed hex run."""
        text = f"invite 0x{INVITATION_CODE} ok"
        assert _span(INVITATION_CODE_DFA, text) == f"0x{INVITATION_CODE}"

    def test_62_digit_code(self):
        """A code with its leading zero byte dropped is still matched."""
        assert len(SHORT_INVITATION_CODE) == 62
        text = f"Accept code {SHORT_INVITATION_CODE}"
        assert _span(INVITATION_CODE_WITH_PREFIX, text) == f" code {SHORT_INVITATION_CODE}"

    @pytest.mark.parametrize("code", ["7", "0", "deadBEEF", "0x1"])
    def test_any_hex_length(self, code):
        """Any non-empty hex run is a code."""
        assert _span(INVITATION_CODE_WITH_PREFIX, f"code {code}") == f"code {code}"

    def test_hex_run_glued_to_letters_not_matched(self):
        """A run followed by a non-hex alphanumeric is not partially revealed."""
        assert _span(INVITATION_CODE_WITH_PREFIX, f"code {INVITATION_CODE}g") is None

    def test_bare_0x_not_matched(self):
        """'0x' with no digits after it is not a code."""
        assert _span(INVITATION_CODE_WITH_PREFIX, "code 0x") is None

    def test_prefix_required(self):
        """The prefixed DFA ignores a bare hex run."""
        assert _span(INVITATION_CODE_WITH_PREFIX, f"Send to {INVITATION_CODE}") is None

    def test_not_inside_word(self):
        """'code' inside a longer word does not start a match."""
        assert _span(INVITATION_CODE_WITH_PREFIX, f"barcode {INVITATION_CODE}") is None


class TestMasking:
    """Masked command scenarios."""

    def test_email_masked(self):
        """The email address is zeroed; no code is reported."""
        result = _mask("Send 0.1 ETH to alice@gmail.com")
        assert lanes_to_string(pack_bytes(result.masked, 605), 605) == "Send 0.1 ETH to "
        assert result.is_code_exist == 0

    def test_plain_command_unchanged(self):
        """A command with nothing to hide passes through."""
        result = _mask("Swap 1 ETH to DAI")
        assert lanes_to_string(pack_bytes(result.masked, 605), 605) == "Swap 1 ETH to DAI"
        assert result.is_code_exist == 0

    def test_email_and_code_masked(self):
        """Both the email and the ' code <hex>' span are zeroed."""
        result = _mask(f"Send 0.12 ETH to alice@gmail.com code {INVITATION_CODE}")
        assert lanes_to_string(pack_bytes(result.masked, 605), 605) == "Send 0.12 ETH to "
        assert result.is_code_exist == 1

    def test_email_and_62_digit_code_masked(self):
        """A 62-digit code is masked and reported like a 64-digit one."""
        result = _mask(f"Send 0.12 ETH to alice@gmail.com code {SHORT_INVITATION_CODE}")
        assert lanes_to_string(pack_bytes(result.masked, 605), 605) == "Send 0.12 ETH to "
        assert result.is_code_exist == 1

    def test_guardian_request_code_masked(self):
        """The guardian address stays; the trailing code is zeroed."""
        command = f"Re: Accept guardian request for {GUARDIAN} code {INVITATION_CODE}"
        result = _mask(command)
        expected = f"Re: Accept guardian request for {GUARDIAN}"
        assert lanes_to_string(pack_bytes(result.masked, 605), 605) == expected
        assert result.is_code_exist == 1

    def test_second_email_masked(self):
        """Every email address in the command is zeroed."""
        command = "Send 1 ETH to alice@gmail.com and bob@proton.me"
        result = _mask(command)
        unpacked = unpack_lanes(pack_bytes(result.masked, 605), 605)
        raw = command.encode()
        hidden = set(range(14, 29)) | set(range(34, len(raw)))
        for i, c in enumerate(raw):
            assert unpacked[i] == (0 if i in hidden else c)
        assert b"bob" not in bytes(unpacked)
        assert result.email.count == 2
        assert result.is_code_exist == 0

    def test_two_codes_flag_stays_binary(self):
        """Two codes are both zeroed while is_code_exist stays 1."""
        command = f"code {SHORT_INVITATION_CODE} and code {INVITATION_CODE}"
        result = _mask(command)
        assert result.code.count == 2
        assert result.code.flag == 1
        assert result.is_code_exist == 1
        assert _masked_text(command) == "\x00" * (5 + 62) + " and"

    def test_only_matched_spans_zeroed(self):
        """Bytes outside the matched spans and the padding are untouched."""
        command = f"Pay bob@x.io 5 USDC code {INVITATION_CODE} thanks"
        result = _mask(command, 128)
        unpacked = unpack_lanes(pack_bytes(result.masked, 128), 128)
        raw = command.encode()
        email_span = range(4, 12)
        code_start = raw.index(b" code ")
        code_span = range(code_start, code_start + 6 + len(INVITATION_CODE))
        for i, c in enumerate(raw):
            hidden = i in email_span or i in code_span
            assert unpacked[i] == (0 if hidden else c)
        assert unpacked[len(raw):] == [0] * (128 - len(raw))
