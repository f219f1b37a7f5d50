"""Process-wide options, built once by the CLI and passed explicitly."""

from dataclasses import dataclass


@dataclass(frozen=True)
class GlobalOptions:
    """
    Flags that influence every orchestration step.

    Attributes:
        verbose: Pass verbose flags to external tools
        quiet: Pass quiet flags to external tools
        yes_to_all: Never fall back to interactive confirmation
        no_modify_path: Do not persist PATH changes
        no_modify_env: Do not persist any environment change (implies no_modify_path)
        insecure: Skip TLS verification and use plain http for the dist server
    """

    verbose: bool = False
    quiet: bool = False
    yes_to_all: bool = False
    no_modify_path: bool = False
    no_modify_env: bool = False
    insecure: bool = False

    def should_modify_path(self) -> bool:
        return not (self.no_modify_path or self.no_modify_env)

    def should_modify_env(self) -> bool:
        return not self.no_modify_env
