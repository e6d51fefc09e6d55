from chat_session_store.stores.device_storage import DeviceStorage
from chat_session_store.stores.local_store import LOCAL_SESSIONS_KEY, LocalStore
from chat_session_store.stores.memory_remote import InMemoryRemoteStore
from chat_session_store.stores.remote_store import RemoteStore, RestRemoteStore
from chat_session_store.stores.rest_client import PostgrestClient, create_http_client

__all__ = [
    "LOCAL_SESSIONS_KEY",
    "DeviceStorage",
    "InMemoryRemoteStore",
    "LocalStore",
    "PostgrestClient",
    "RemoteStore",
    "RestRemoteStore",
    "create_http_client",
]
