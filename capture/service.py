"""
FILE DESCRIPTION: Wires configuration into concrete components.
KEY FUNCTIONS/CLASSES: build_ledger, build_app
"""

from functools import partial

from capture.app import create_app
from capture.config import CaptureConfig
from capture.governor import ConcurrencyGovernor
from capture.identity import IdentityVerifier, TokenTableVerifier
from capture.ledger import CaptureLedger, InMemoryLedgerStore, MySQLLedgerStore
from capture.ledger.mysql_storage import connect
from capture.logger import get_logger
from capture.pipeline import CapturePipeline
from capture.rendering import PlaywrightEngineAdapter

logger = get_logger("service")


def build_ledger(config: CaptureConfig) -> CaptureLedger:
    if config.ledger_backend == "memory":
        logger.info("[SYSTEM] Using in-memory capture ledger (records are lost on restart).")
        return CaptureLedger(InMemoryLedgerStore())
    if config.ledger_backend == "mysql":
        store = MySQLLedgerStore(connect(config))
        store.ensure_schema()
        logger.info(f"[SYSTEM] Using MySQL capture ledger at {config.mysql_host}:{config.mysql_port}.")
        return CaptureLedger(store)
    raise ValueError(f"Unknown ledger backend: {config.ledger_backend!r}")


def build_app(config: CaptureConfig, verifier: IdentityVerifier = None,
              ledger: CaptureLedger = None, engine_factory=None):
    """
    FLOW: Builds governor, ledger and engine factory from config -> Assembles the pipeline ->
    Returns the Flask app. Any component can be injected instead (tests, alternate backends).
    """
    governor = ConcurrencyGovernor.from_config(config)
    ledger = ledger or build_ledger(config)
    if engine_factory is None:
        engine_factory = partial(
            PlaywrightEngineAdapter,
            user_agent=config.user_agent,
            headless=config.headless,
            launch_args=config.launch_args,
        )
    if verifier is None:
        if not config.api_tokens:
            logger.warning("[SYSTEM] CAPTURE_API_TOKENS is empty; every request will be rejected.")
        verifier = TokenTableVerifier(config.api_tokens)

    pipeline = CapturePipeline(engine_factory, governor, ledger, config)
    return create_app(config, pipeline, ledger, governor, verifier)
