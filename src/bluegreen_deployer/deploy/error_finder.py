"""Explains failed deployments by matching known errors in the CLI output."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List

from bluegreen_deployer.core.exceptions import ConfigurationError
from bluegreen_deployer.core.models import ErrorMatcherDescriptor

TRUST_STORE_MATCHER = ErrorMatcherDescriptor(
    pattern=r"Creating TrustStore with container certificates\s+FAILED",
    description="The buildpack could not create a trust store with the container certificates",
    solution="Check the certificates bundled with the application and retry the deployment.",
)


@dataclass
class MatchedError:
    description: str
    solution: str
    details: List[str]


class ErrorMatcher:
    def __init__(self, descriptor: ErrorMatcherDescriptor):
        if not descriptor.pattern:
            raise ConfigurationError("error matcher requires a pattern", code="error_matcher")
        try:
            self.regex = re.compile(descriptor.pattern)
        except re.error as exc:
            raise ConfigurationError(f"invalid error matcher pattern {descriptor.pattern!r}: {exc}", code="error_matcher") from exc
        self.descriptor = descriptor

    def match(self, text: str) -> MatchedError | None:
        details = [m.group(0) for m in self.regex.finditer(text)]
        if not details:
            return None
        return MatchedError(self.descriptor.description, self.descriptor.solution, details)


class ErrorFinder:
    def __init__(self, descriptors: Iterable[ErrorMatcherDescriptor] = (), include_defaults: bool = True):
        all_descriptors = list(descriptors)
        if include_defaults:
            all_descriptors.append(TRUST_STORE_MATCHER)
        self.matchers = [ErrorMatcher(d) for d in all_descriptors]

    def find_errors(self, text: str) -> List[MatchedError]:
        return [m for m in (matcher.match(text) for matcher in self.matchers) if m is not None]

    def solutions(self, text: str) -> str:
        """Render a "potential solution" block for every known error in ``text``."""
        blocks = []
        for found in self.find_errors(text):
            blocks.append(
                "\n".join([
                    "The following error was found in the above logs: " + found.description,
                    "",
                    "Error: " + "; ".join(found.details),
                    "",
                    "Potential solution: " + found.solution,
                ])
            )
        return "\n\n".join(blocks)
