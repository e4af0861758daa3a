"""
Application Initialization
==========================
This module wires the session state, the controllers and the main window
together and starts the Qt Event Loop.

Why is this file needed?
------------------------
It acts as the "Dependency Injection" root. It:
1. Reads the configuration (backend to load, validation policy, logging).
2. Instantiates the shared SessionState.
3. Instantiates the controllers that own each part of that state.
4. Passes everything into the Main Window and kicks off backend loading.
"""
import logging
import sys

from csv2graph.app.application import create_app
from csv2graph.config import load_config
from csv2graph.controller.backend import BackendManager, create_loader
from csv2graph.controller.input import InputAcquisition
from csv2graph.logging_config import setup_logging
from csv2graph.model.state import SessionState
from csv2graph.view.main_window import MainWindow

logger = logging.getLogger(__name__)


def main() -> int:
    # 1. Create the Qt Application (sets up QSettings)
    app = create_app()

    # 2. Configuration + Logging
    config = load_config()
    setup_logging(level=config.log_level, log_file=config.log_file)
    logger.info(f"Backend: {config.backend_protocol} -> {config.backend_target}")

    # 3. Shared state and its owners
    session = SessionState()
    try:
        loader = create_loader(config.backend_protocol, config.backend_target)
    except KeyError as e:
        logger.error(f"{e}, falling back to the default module loader.")
        loader = create_loader("module", config.backend_target)
    backend_manager = BackendManager(session, loader)
    input_acquisition = InputAcquisition(session)

    # 4. Main Window
    window = MainWindow(session, backend_manager, input_acquisition, policy=config.policy)
    window.show()

    # 5. Load the backend in the background, then start the Event Loop
    backend_manager.initialize()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
