"""Local printing through the CUPS ``lp`` command."""

import asyncio
import logging
from pathlib import Path

from rollcall.delivery.base import DeliveryError

logger = logging.getLogger(__name__)


class LocalPrinter:
    breaker = "printer"

    def __init__(self, printer_name: str | None = None, command: str = "lp"):
        self.printer_name = printer_name
        self.command = command

    def _args(self, path: Path) -> list[str]:
        args = [self.command]
        if self.printer_name:
            args += ["-d", self.printer_name]
        args.append(str(path))
        return args

    async def deliver(self, path: Path, subject: str) -> None:  # noqa: ARG002
        """Submit a print job.

        Raises:
            DeliveryError: If the command is missing or exits non-zero.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._args(path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise DeliveryError(f"Print command not found: {self.command}") from e

        stdout, stderr = await proc.communicate()
        output = stdout.decode().strip() or stderr.decode().strip()
        if proc.returncode != 0:
            raise DeliveryError(
                f"Print failed for {path} (exit {proc.returncode}): {output}"
            )

        logger.info(
            "print_job_submitted",
            extra={"path": str(path), "printer": self.printer_name, "output": output},
        )
