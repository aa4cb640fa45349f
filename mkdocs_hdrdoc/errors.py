from __future__ import annotations

from dataclasses import dataclass

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_BROKEN_LINKS = 3
EXIT_WARNINGS = 4


class HdrdocError(Exception):
    exit_code = 1

    def details(self):
        return [str(self)]


class ConfigurationError(HdrdocError):
    exit_code = EXIT_CONFIG


@dataclass
class BrokenLink:
    page: str
    target: str
    reason: str

    def __str__(self):
        return f"[{self.page}] -> ({self.target}): {self.reason}"


class BrokenLinksError(HdrdocError):
    exit_code = EXIT_BROKEN_LINKS

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__(f"{len(self.problems)} broken link(s) in generated pages")

    def details(self):
        return [str(self)] + [f" - {p}" for p in self.problems]


class WarningsAsErrors(HdrdocError):
    exit_code = EXIT_WARNINGS

    def __init__(self, warnings):
        self.warnings = list(warnings)
        super().__init__(f"{len(self.warnings)} warning(s) with fail_on_warn enabled")

    def details(self):
        return [str(self)] + [f" - {w}" for w in self.warnings]
