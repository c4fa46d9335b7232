from typing import Optional

from discocache.data.config import load_client_config
from discocache.data.models import ClientConfig
from discocache.services.disco_client import DiscoClient

_client_config: Optional[ClientConfig] = None
_disco_client: Optional[DiscoClient] = None

def get_client_config() -> ClientConfig:
    global _client_config
    if _client_config is None:
        _client_config = load_client_config()
    return _client_config

def get_disco_client() -> DiscoClient:
    global _disco_client
    if _disco_client is None:
        _disco_client = DiscoClient(get_client_config())
    return _disco_client
