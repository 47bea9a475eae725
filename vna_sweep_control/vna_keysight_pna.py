import logging
import time
from typing import List, Optional, Tuple

import pyvisa
from pyvisa import VisaIOError
from pyvisa.constants import BufferOperation, StatusCode

logger = logging.getLogger(__name__)

DEFAULT_RESOURCE = "TCPIP0::172.141.11.202::5025::SOCKET"
TIMEOUT_MS = 50000
BUFFER_SIZE = 2048

SETTLE_S = 0.5
POLL_INTERVAL_S = 1.0
OPC_SUCCESS_TOKEN = "+1"


class OperationTimeoutError(RuntimeError):
    """El instrumento no confirmó *OPC? dentro del número de intentos."""


def _succeeded(status) -> bool:
    return status >= StatusCode.success


class VNA:
    """
    Control de un VNA Keysight (PNA/ENA) vía socket SCPI (TCPIP0::<ip>::5025::SOCKET).

    Los errores de E/S en write/read se registran y se ignoran: cada llamada
    devuelve el código de estado VISA y la secuencia sigue adelante.
    """
    def __init__(self, resource: str = DEFAULT_RESOURCE, backend: Optional[str] = None,
                 timeout_ms: int = TIMEOUT_MS, read_size: int = BUFFER_SIZE,
                 settle_s: float = SETTLE_S):
        """
        resource: cadena VISA completa (p.ej. 'TCPIP0::172.141.11.202::5025::SOCKET')
        backend: p.ej. '@py' para pyvisa-py; None usa el backend por defecto del sistema
        read_size: bytes máximos por lectura
        settle_s: pausa tras cada comando
        """
        self.resource_name = resource
        self.read_size = read_size
        self.settle_s = settle_s

        try:
            self.rm = pyvisa.ResourceManager(backend) if backend else pyvisa.ResourceManager()
        except (OSError, ValueError) as e:
            raise RuntimeError(f"Failed to open VISA resource manager: {e}") from e

        try:
            self.vna = self.rm.open_resource(resource)
        except (VisaIOError, ValueError) as e:
            self.rm.close()
            raise RuntimeError(f"Failed to open connection to {resource}: {e}") from e

        # Configuración de sesión
        self.vna.timeout = timeout_ms
        self.vna.read_termination = '\n'
        self.vna.write_termination = '\n'
        logger.debug("Session open on %s (timeout %d ms)", resource, timeout_ms)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # --- utilidades básicas ---
    def send_command(self, cmd: str):
        """Envía un comando; devuelve el estado VISA (negativo si falla)."""
        logger.info("Sending command: %s", cmd)
        try:
            self.vna.write(cmd)
        except VisaIOError as e:
            logger.error("Error writing command: %s", cmd)
            logger.error("Error description: %s", e.description)
            return e.error_code
        return self.vna.last_status

    def read_response(self) -> Tuple[int, str]:
        """
        Descarta el buffer de lectura y lee hasta read_size bytes, parando en '\\n'.

        Returns:
            (estado VISA, texto recibido); el texto queda vacío si la lectura falla.
        """
        logger.info("Reading response...")
        try:
            self.vna.flush(BufferOperation.discard_read_buffer)
        except VisaIOError as e:
            logger.error("Error flushing read buffer: %s", e.description)

        try:
            raw = self.vna.read_bytes(self.read_size, break_on_termchar=True)
        except VisaIOError as e:
            logger.error("Error reading response.")
            logger.error("Error description: %s", e.description)
            return e.error_code, ""

        text = raw.decode("ascii", errors="replace")
        logger.info("Bytes Read: %d", len(raw))
        logger.info("Response: %s", text.rstrip("\n"))
        return self.vna.last_status, text

    def settle(self):
        time.sleep(self.settle_s)

    def write(self, cmd: str):
        status = self.send_command(cmd)
        self.settle()
        return status

    def query(self, cmd: str) -> Tuple[int, str]:
        """Envía la consulta, espera settle_s y lee la respuesta."""
        self.send_command(cmd)
        self.settle()
        return self.read_response()

    def wait_for_operation_complete(self, poll_interval_s: float = POLL_INTERVAL_S,
                                    max_attempts: Optional[int] = None,
                                    success_token: str = OPC_SUCCESS_TOKEN):
        """
        Consulta *OPC? hasta que la respuesta contenga success_token.

        Los fallos de E/S no interrumpen el bucle. Con max_attempts=None
        reintenta indefinidamente; si no, lanza OperationTimeoutError.
        """
        attempts = 0
        while True:
            self.send_command("*OPC?")
            status, response = self.read_response()
            attempts += 1

            if _succeeded(status) and success_token in response:
                logger.info("Operation complete confirmed.")
                return status

            if max_attempts is not None and attempts >= max_attempts:
                raise OperationTimeoutError(
                    f"*OPC? not confirmed after {attempts} attempts")

            logger.info("Waiting for operation completion...")
            time.sleep(poll_interval_s)

    def check_errors(self) -> List[str]:
        """Drena la cola de errores SCPI."""
        errors = []
        for _ in range(20):  # evita bucles infinitos
            status, err = self.query("SYST:ERR?")
            if not _succeeded(status):
                break
            err = err.strip()
            errors.append(err)
            if err.startswith(("0", "+0")):
                break
        return errors

    def identify(self) -> str:
        _, idn = self.query("*IDN?")
        return idn.strip()

    def close(self):
        try:
            if self.vna:
                self.vna.close()
        finally:
            self.rm.close()
            logger.debug("Session on %s closed", self.resource_name)

    # --- flujo típico de inicialización ---
    def reset(self):
        self.write("*RST")

    def set_span(self, start_ghz: float, stop_ghz: float):
        """
        Configure the frequency span of the sweep.

        Parameters:
            start_ghz (float): Start frequency in GHz.
            stop_ghz (float): Stop frequency in GHz.
        """
        if stop_ghz <= start_ghz:
            raise ValueError("Stop frequency must be greater than start frequency")

        self.write(f"SENSe1:FREQuency:STARt {start_ghz:f}e+9")
        self.write(f"SENSe1:FREQuency:STOP {stop_ghz:f}e+9")

    def set_sweep_points(self, points: int):
        self.write(f"SENSe1:SWEep:POINts {int(points)}")

    def set_if_bandwidth(self, bandwidth_hz: float):
        self.write(f"SENSe1:BANDwidth:RESolution {bandwidth_hz:f}")

    # --- archivo de estado + calibración (.csa) ---
    def load_calibration_archive(self, name: str):
        """name: archivo sin extensión (p.ej. 'cal_1_4')."""
        self.write(f':MMEMory:LOAD:CSARchive "{name}"')

    def store_calibration_archive(self, name: str):
        self.write(f':MMEMory:STORe:CSARchive "{name}"')

    # --- barrido ---
    def continuous(self, on: bool = True):
        self.write(f":INITiate:CONTinuous {'ON' if on else 'OFF'}")

    def trigger_single(self):
        self.write(":INITiate1:IMMediate")

    def abort(self):
        self.write(":ABORt")

    def fetch_formatted_data(self) -> Tuple[int, str]:
        return self.query("CALCulate1:MEASure1:DATA? FDATA")

    def read_settings(self) -> dict:
        """
        Lee de vuelta la configuración del canal 1.

        Returns:
            dict con las respuestas crudas: start, stop, points, bandwidth.
        """
        queries = (
            ("start", "SENSe1:FREQuency:STARt?"),
            ("stop", "SENSe1:FREQuency:STOP?"),
            ("points", "SENSe1:SWEep:POINts?"),
            ("bandwidth", "SENSe1:BANDwidth:RESolution?"),
        )
        settings = {}
        for key, cmd in queries:
            _, response = self.query(cmd)
            settings[key] = response.strip()
        return settings
