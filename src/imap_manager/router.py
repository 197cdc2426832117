"""
Output routing for one run.

Result records always go to the main output. Guard failures go to the error
output when it is enabled; without it they are re-raised and end the run.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from imap_manager.errors import GuardError

Record = Dict[str, Any]


@dataclass
class RunResult:
    """
    Collected output of one run.

    Attributes:
        main: Result records, in input order
        error: Error records from the account guard (only when the error output is enabled)
        has_error_output: Whether the run exposes a second output
    """
    main: List[Record] = field(default_factory=list)
    error: List[Record] = field(default_factory=list)
    has_error_output: bool = False

    def outputs(self) -> List[List[Record]]:
        if self.has_error_output:
            return [self.main, self.error]
        return [self.main]

    def __str__(self) -> str:
        return f"Run complete: {len(self.main)} result records, {len(self.error)} error records"


class OutputRouter:
    def __init__(self, has_error_output: bool):
        self.result = RunResult(has_error_output=has_error_output)

    def emit(self, records: List[Record]) -> None:
        self.result.main.extend(records)

    def route_guard_failure(self, error: GuardError) -> None:
        """Append the Error Record, or raise ``error`` when there is no error output."""
        if not self.result.has_error_output:
            raise error
        self.result.error.append(error.to_record())
