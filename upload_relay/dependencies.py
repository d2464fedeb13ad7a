from fastapi import Depends
from fastapi import Request

from upload_relay.config import Config
from upload_relay.services.assembler import Assembler
from upload_relay.services.dispatcher import BackendTarget
from upload_relay.services.dispatcher import ProcessingDispatcher
from upload_relay.services.object_store import ObjectStore


def get_config(request: Request) -> Config:
    """Extract the application Config from the request."""
    config: Config = request.app.state.config
    return config


def get_object_store(request: Request) -> ObjectStore:
    store: ObjectStore = request.app.state.object_store
    return store


def get_assembler(request: Request) -> Assembler:
    assembler: Assembler = request.app.state.assembler
    return assembler


def get_dispatcher(request: Request) -> ProcessingDispatcher:
    dispatcher: ProcessingDispatcher = request.app.state.dispatcher
    return dispatcher


def resolve_backend_base(request: Request, config: Config) -> str:
    """Pick the backend origin: configured URL, then the request's own host, then the default."""
    if config.backend_url:
        origin = config.backend_url
    else:
        host = request.headers.get("host")
        protocol = request.headers.get("x-forwarded-proto") or "https"
        origin = f"{protocol}://{host}" if host else config.backend_default_url
    return f"{origin}{config.backend_path_prefix}"


def get_backend_target(request: Request, config: Config = Depends(get_config)) -> BackendTarget:
    headers: dict[str, str] = {}
    if config.backend_bypass_secret:
        headers[config.backend_bypass_header] = config.backend_bypass_secret
    return BackendTarget(base_url=resolve_backend_base(request, config), headers=headers)
