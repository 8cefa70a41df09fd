# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.oracle",
#   "purpose": "Link-validation oracle interface and the LinkChecker subprocess adapter",
#   "sections": [
#     {"id": "linkvalidationoracle", "name": "LinkValidationOracle", "anchor": "class-linkvalidationoracle", "kind": "class"},
#     {"id": "linkcheckeroracle", "name": "LinkCheckerOracle", "anchor": "class-linkcheckeroracle", "kind": "class"},
#     {"id": "input-artifact-urls", "name": "input_artifact_urls", "anchor": "function-input-artifact-urls", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Link-validation oracle interface and the LinkChecker subprocess adapter.

The oracle is external: it is given a seed (a URL or a local HTML file of
anchors), crawls it, and returns a raw delimited report. The engine only
depends on :class:`LinkValidationOracle`; :class:`LinkCheckerOracle` runs the
``linkchecker`` command line tool with CSV output.

LinkChecker exits with status 1 when it found broken links, which is the
expected outcome of an audit; only other non-zero statuses are failures.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

from .errors import RemoteCallError

if TYPE_CHECKING:
    from .settings import HttpSettings, OracleSettings

__all__ = [
    "LINKCHECKER_SUCCESS_CODES",
    "LinkValidationOracle",
    "LinkCheckerOracle",
    "input_artifact_urls",
]

logger = logging.getLogger(__name__)

#: 0: no broken links, 1: broken links found
LINKCHECKER_SUCCESS_CODES = frozenset({0, 1})


@runtime_checkable
class LinkValidationOracle(Protocol):
    """Anything that can validate the links reachable from ``target``."""

    def check(self, target: str) -> str:
        """Return the raw delimited report for ``target``."""
        ...


class LinkCheckerOracle:
    """Run the LinkChecker CLI and return its CSV report."""

    def __init__(
        self,
        *,
        command: Sequence[str] = ("linkchecker",),
        extra_args: Sequence[str] = (),
        user_agent: Optional[str] = None,
        ignore_urls: Sequence[str] = (),
        timeout_sec: Optional[float] = None,
    ) -> None:
        if not command:
            raise ValueError("command must name the link checker executable")
        self.command = list(command)
        self.extra_args = list(extra_args)
        self.user_agent = user_agent
        self.ignore_urls = list(ignore_urls)
        self.timeout_sec = timeout_sec

    @classmethod
    def from_settings(
        cls, oracle_settings: OracleSettings, http_settings: HttpSettings
    ) -> "LinkCheckerOracle":
        """Build an oracle from the oracle and HTTP settings sections."""
        return cls(
            command=oracle_settings.command,
            extra_args=oracle_settings.extra_args,
            user_agent=http_settings.user_agent,
            ignore_urls=oracle_settings.ignore_urls,
            timeout_sec=oracle_settings.timeout_sec,
        )

    def build_command(self, target: str) -> List[str]:
        """Return the argument vector used to check ``target``."""
        argv = [*self.command, *self.extra_args, "-o", "csv"]
        if self.user_agent:
            argv.extend(["--user-agent", self.user_agent])
        for pattern in self.ignore_urls:
            argv.extend(["--ignore-url", pattern])
        argv.append(target)
        return argv

    def check(self, target: str) -> str:
        """Run LinkChecker against ``target``.

        Raises:
            RemoteCallError: If the tool cannot be launched, times out, or exits
                with a status other than 0 or 1.
        """
        argv = self.build_command(target)
        logger.info("Running link checker", extra={"target": target, "argv": argv})
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                timeout=self.timeout_sec,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise RemoteCallError(
                f"Link checker exceeded {self.timeout_sec}s on {target}", target=target
            ) from exc
        except OSError as exc:
            raise RemoteCallError(f"Failed to launch link checker: {exc}", target=target) from exc

        stdout = completed.stdout.decode("utf-8", errors="replace")
        if completed.returncode not in LINKCHECKER_SUCCESS_CODES:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            message = stderr.splitlines()[-1] if stderr else "no diagnostic output"
            raise RemoteCallError(
                f"Link checker failed with exit status {completed.returncode}: {message}",
                target=target,
                status_code=completed.returncode,
            )
        logger.debug(
            "Link checker finished",
            extra={"target": target, "exit_status": completed.returncode, "bytes": len(stdout)},
        )
        return stdout


def input_artifact_urls(path: Union[str, Path]) -> Tuple[str, ...]:
    """Return the spellings under which the oracle reports a local input file.

    The checker emits one row for the seed document itself; these values are
    excluded during normalization.
    """
    source = Path(path)
    spellings = {str(path), str(source)}
    if source.is_absolute():
        spellings.add(source.as_uri())
    else:
        spellings.add(source.resolve().as_uri())
    return tuple(sorted(spellings))
