import abc
import sys
import time
import traceback
from typing import Any

from base_connector.config import BaseConnectorSettings
from base_connector.errors import ConnectorError, ConnectorWarning
from base_connector.logger import ConnectorLogger


class BaseConnector(abc.ABC):
    """
    Specifications of a scheduled connector

    This class encapsulates the main actions, expected to be run by any scheduled connector:
    run one pass of `process_data`, report errors in a uniform way and repeat the pass
    every `duration_period` unless the connector is configured to run once.

    ---

    Attributes
        - `config (BaseConnectorSettings)`:
            This is the connector configuration.
        - `logger (ConnectorLogger)`:
            Used when logging a message, `self.logger.[info/debug/warning/error](message, meta)`.

    ---

    Error handling
        - `ConnectorWarning` is logged as a warning, the pass is considered failed
        - `ConnectorError` is logged as an error, the pass is considered failed
        - any other exception is logged with its traceback

    """

    def __init__(self, config: BaseConnectorSettings, logger: ConnectorLogger) -> None:
        self.config = config
        self.logger = logger

    def process(self, **kwargs: Any) -> str | None:
        meta = {"connector_name": self.config.connector.name}
        try:
            self.logger.info("Running connector...", meta)
            self.process_data(**kwargs)
        except (KeyboardInterrupt, SystemExit):
            self.logger.info("Connector stopped by user.", meta)
            sys.exit(0)
        except ConnectorWarning as e:
            meta.update(e.metadata, error=str(e))
            self.logger.warning(str(e), meta)
            return str(e)
        except ConnectorError as e:
            meta.update(e.metadata, error=str(e))
            self.logger.error(str(e), meta)
            return str(e)
        except Exception as e:
            traceback.print_exc()
            meta["error"] = str(e)
            self.logger.error(f"Unexpected error: {e}", meta)
            return "Unexpected error. See connector logs for details."
        return None

    def get_duration_period(self) -> float:
        return self.config.connector.duration_period.total_seconds()

    def run(self, run_and_terminate: bool | None = None, **kwargs: Any) -> int:
        """
        Run the connector and return an exit status.

        When running once, the status is 1 if the pass failed, 0 otherwise.
        When scheduled, passes are repeated until the process is stopped.
        """
        if run_and_terminate is None:
            run_and_terminate = self.config.connector.run_and_terminate

        self.logger.info("Starting connector...")
        while True:
            error = self.process(**kwargs)
            if run_and_terminate:
                self.logger.info("Connector ended.")
                return 1 if error else 0

            duration_period = self.get_duration_period()
            self.logger.info(
                f"Next run in: {round(duration_period / 60 / 60, 2)} hours"
            )
            try:
                time.sleep(duration_period)
            except KeyboardInterrupt:
                self.logger.info("Connector stopped by user.")
                return 0

    @abc.abstractmethod
    def process_data(self, **kwargs: Any) -> Any:
        """
        Run one pass of the connector.

        This method must be implemented by each connector. Any `ConnectorError` raised
        is reported by `process`.
        """
