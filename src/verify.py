"""Provisioner summary-line verification.

The provisioner ends a successful run with a one-line summary, e.g.

    Apply complete! Resources: 2 added, 0 changed, 0 destroyed.
    Destroy complete! Resources: 2 destroyed.

Only the first matching line is inspected. A missing summary line almost
always means the tool ran under a non-English locale: real failures are
already caught by the driver's exit status.
"""

import re
from dataclasses import dataclass
from enum import Enum

APPLY_PATTERN = re.compile(r'^Apply complete! Resources: (\d+) added, (\d+) changed, (\d+) destroyed\.$')
DESTROY_PATTERN = re.compile(r'^Destroy complete! Resources: (\d+) destroyed\.$')

_ANSI_ESCAPE = re.compile(r'\x1b\[[0-9;]*m')


class SummaryKind(Enum):
    """Phase whose summary is being verified."""
    APPLY = 'apply'
    REAPPLY = 're-apply'
    DESTROY = 'destroy'


class VerificationReason(Enum):
    SUMMARY_NOT_RECOGNIZED = 'summary not recognized'
    ZERO_ADDED = 'zero "added" count'
    ZERO_DESTROYED = 'zero "destroyed" count'
    UNEXPECTED_ADDITION = 'non-zero "added" count'
    UNEXPECTED_CHANGE = 'non-zero "changed" count'
    UNEXPECTED_DESTRUCTION = 'non-zero "destroyed" count'


@dataclass(frozen=True)
class ApplySummary:
    """Resource counts parsed from a summary line."""
    added: int = 0
    changed: int = 0
    destroyed: int = 0
    recognized: bool = False

    def describe(self) -> str:
        return f"{self.added} added, {self.changed} changed, {self.destroyed} destroyed"


class VerificationError(Exception):
    """Summary output did not meet the expectations of its phase."""

    def __init__(self, reason: VerificationReason, kind: SummaryKind, summary: ApplySummary):
        self.reason = reason
        self.kind = kind
        self.summary = summary
        if reason is VerificationReason.SUMMARY_NOT_RECOGNIZED:
            message = (f'Did not find expected "{kind.value}" summary line; '
                       f'please run the provisioner under the "C" locale')
        else:
            message = f"{reason.value.capitalize()} on {kind.value} (observed: {summary.describe()})"
        super().__init__(message)


def parse_summary(kind: SummaryKind, text: str) -> ApplySummary:
    """Parse the first summary line for kind out of text."""
    pattern = DESTROY_PATTERN if kind is SummaryKind.DESTROY else APPLY_PATTERN
    for line in text.splitlines():
        match = pattern.match(_ANSI_ESCAPE.sub('', line))
        if not match:
            continue
        if kind is SummaryKind.DESTROY:
            return ApplySummary(destroyed=int(match.group(1)), recognized=True)
        added, changed, destroyed = (int(g) for g in match.groups())
        return ApplySummary(added=added, changed=changed, destroyed=destroyed, recognized=True)
    return ApplySummary()


def check_summary(kind: SummaryKind, summary: ApplySummary) -> None:
    """Raise VerificationError if summary violates the rules for kind."""
    reason = None
    if not summary.recognized:
        reason = VerificationReason.SUMMARY_NOT_RECOGNIZED
    elif kind is SummaryKind.APPLY:
        if summary.added == 0:
            reason = VerificationReason.ZERO_ADDED
        elif summary.changed > 0:
            reason = VerificationReason.UNEXPECTED_CHANGE
        elif summary.destroyed > 0:
            reason = VerificationReason.UNEXPECTED_DESTRUCTION
    elif kind is SummaryKind.REAPPLY:
        # Swapping the provider binary without touching config must be a no-op
        if summary.added > 0:
            reason = VerificationReason.UNEXPECTED_ADDITION
        elif summary.changed > 0:
            reason = VerificationReason.UNEXPECTED_CHANGE
        elif summary.destroyed > 0:
            reason = VerificationReason.UNEXPECTED_DESTRUCTION
    elif summary.destroyed == 0:
        reason = VerificationReason.ZERO_DESTROYED

    if reason is not None:
        raise VerificationError(reason, kind, summary)


def verify(kind: SummaryKind, text: str) -> ApplySummary:
    """Parse and check provisioner output. Returns the parsed summary."""
    summary = parse_summary(kind, text)
    check_summary(kind, summary)
    return summary
