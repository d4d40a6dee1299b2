"""ASGI entrypoint for the macro ledger API."""

from macro_ledger.api.app import create_app
from macro_ledger.containers import build_container

app = create_app(build_container())
