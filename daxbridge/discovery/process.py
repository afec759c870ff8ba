"""Process lookup for the engine launched by Power BI Desktop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

import psutil
from loguru import logger

from daxbridge.errors import ProcessNotFound

# Image name of the Analysis Services instance hosted by Power BI Desktop.
DEFAULT_ENGINE_PROCESS = "msmdsrv.exe"


@dataclass(frozen=True)
class ProcessHandle:
    """A running OS process, as seen at lookup time."""

    pid: int
    name: str


def find_process(name: str = DEFAULT_ENGINE_PROCESS, processes: Iterable[Any] | None = None) -> ProcessHandle:
    """Return the first running process whose name matches *name*.

    Matching ignores case, since Windows image names are case-insensitive.
    When several processes match, the first one enumerated wins; psutil
    does not guarantee a stable order.

    Raises ``ProcessNotFound`` when nothing matches.
    """
    if processes is None:
        processes = psutil.process_iter(["pid", "name"])

    wanted = name.lower()
    for proc in processes:
        try:
            info = proc.info
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        proc_name = info.get("name") or ""
        if proc_name.lower() == wanted:
            logger.debug(f"Found process '{proc_name}' with pid {info['pid']}")
            return ProcessHandle(pid=int(info["pid"]), name=proc_name)

    raise ProcessNotFound(name)
