"""
Runtime version probe.

Reads the MicroPython release running on a board through its raw REPL.
"""
import time
from typing import Callable, Optional

import serial

from upy_package.config.settings import CONFIG
from upy_package.core.errors import RuntimeProbeError
from upy_package.utils.logger import get_logger

CTRL_A = b"\x01"  # enter raw REPL
CTRL_B = b"\x02"  # leave raw REPL
CTRL_C = b"\x03"  # interrupt running program
CTRL_D = b"\x04"  # execute / end of output

RAW_REPL_BANNER = b"raw REPL; CTRL-B to exit\r\n>"
VERSION_COMMAND = "import os; print(os.uname().release)"


class RuntimeProbe:
    """Reads the runtime version string from a board."""

    def probe_runtime_version(self, device) -> str:
        raise NotImplementedError


class SerialRuntimeProbe(RuntimeProbe):
    """
    Queries ``os.uname().release`` over the board's serial connection.

    No retries: any transport failure surfaces as RuntimeProbeError.
    """

    def __init__(
        self,
        serial_factory: Optional[Callable[..., serial.Serial]] = None,
        timeout: Optional[float] = None
    ):
        self._logger = get_logger()
        self._serial_factory = serial_factory or serial.Serial
        self._timeout = timeout if timeout is not None else CONFIG.PROBE_TIMEOUT

    def probe_runtime_version(self, device) -> str:
        """
        Args:
            device: SerialDevice whose ``serial_port`` is opened

        Returns:
            The release string as printed by the board, stripped

        Raises:
            RuntimeProbeError: On connection errors, timeouts or a board-side exception
        """
        port = device.serial_port
        self._logger.debug("RuntimeProbe", f"Reading runtime version from {port}")
        try:
            connection = self._serial_factory(
                port=port,
                baudrate=CONFIG.SERIAL_BAUDRATE,
                timeout=self._timeout,
                write_timeout=CONFIG.SERIAL_WRITE_TIMEOUT
            )
        except serial.SerialException as e:
            raise RuntimeProbeError(f"Could not open {port}: {e}") from e

        try:
            output = self._exec_raw(connection, VERSION_COMMAND)
        except serial.SerialException as e:
            raise RuntimeProbeError(f"Serial error on {port}: {e}") from e
        finally:
            connection.close()

        version = output.strip()
        self._logger.info("RuntimeProbe", f"Board at {port} runs MicroPython {version}")
        return version

    def _write(self, connection, data: bytes) -> None:
        self._logger.log_serial_tx(data.decode("utf-8", errors="replace"))
        connection.write(data)
        connection.flush()

    def _read_until(self, connection, marker: bytes, what: str) -> bytes:
        data = connection.read_until(marker)
        self._logger.log_serial_rx(data.decode("utf-8", errors="replace"))
        if not data.endswith(marker):
            raise RuntimeProbeError(f"Timeout waiting for {what} on {connection.port}")
        return data[:-len(marker)]

    def _exec_raw(self, connection, command: str) -> str:
        # Stop whatever is running, then switch to raw mode
        self._write(connection, b"\r" + CTRL_C + CTRL_C)
        time.sleep(0.1)
        connection.reset_input_buffer()
        self._write(connection, b"\r" + CTRL_A)
        self._read_until(connection, RAW_REPL_BANNER, "raw REPL")

        try:
            self._write(connection, command.encode("utf-8") + CTRL_D)
            self._read_until(connection, b"OK", "command acknowledgement")
            output = self._read_until(connection, CTRL_D, "command output")
            error = self._read_until(connection, CTRL_D, "command error output")
        finally:
            self._write(connection, CTRL_B)

        if error.strip():
            raise RuntimeProbeError(
                f"Board raised an error while reading its version: "
                f"{error.decode('utf-8', errors='replace').strip()}"
            )
        return output.decode("utf-8", errors="replace")
