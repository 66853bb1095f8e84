"""Collaborator contracts consumed by the engine, plus in-process implementations.

The engine never talks to a device, a push service or an identity backend
directly; it only sees these protocols. ``InMemoryKeyValueStore`` and the
``Snapshot*`` classes back the evaluation service and the tests.
"""

import locale
import re
from datetime import datetime
from typing import Callable, Dict, Optional, Protocol, Union

from flaggate.schemas import CurrentUser, DeviceSnapshot

LocaleSource = Callable[[], Optional[str]]

# "en", "pt_BR", "zh-Hans-CN"; rejects POSIX names such as "C"
_LOCALE_TAG = re.compile(r"^[A-Za-z]{2,3}(?:[-_][A-Za-z0-9]+)*$")


class DeviceInfoProvider(Protocol):
    def get_build_number(self) -> str: ...

    def get_version(self) -> str: ...

    def get_brand(self) -> str: ...

    def get_model(self) -> str: ...

    async def get_first_install_time(self) -> Optional[datetime]: ...


class KeyValueStore(Protocol):
    def get_string(self, key: str) -> Optional[str]: ...

    def set_string(self, key: str, value: str) -> None: ...

    def get_bool(self, key: str) -> Optional[bool]: ...


class PushProvider(Protocol):
    async def get_token(self) -> Optional[str]: ...

    async def check_permission(self) -> bool: ...


class IdentityProvider(Protocol):
    async def get_current_user(self) -> Optional[CurrentUser]: ...


class InMemoryKeyValueStore:
    def __init__(self, values: Optional[Dict[str, Union[str, bool]]] = None):
        self._values: Dict[str, Union[str, bool]] = dict(values or {})

    def get_string(self, key: str) -> Optional[str]:
        value = self._values.get(key)
        if value is None or isinstance(value, bool):
            return None
        return value

    def set_string(self, key: str, value: str) -> None:
        self._values[key] = value

    def set_string_if_absent(self, key: str, value: str) -> bool:
        if key in self._values:
            return False
        self._values[key] = value
        return True

    def get_bool(self, key: str) -> Optional[bool]:
        value = self._values.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        return None


class OverlayKeyValueStore:
    """Reads ``overlay`` first and falls back to ``backing``; writes go to ``backing``."""

    def __init__(self, overlay: KeyValueStore, backing: KeyValueStore):
        self.overlay = overlay
        self.backing = backing

    def get_string(self, key: str) -> Optional[str]:
        value = self.overlay.get_string(key)
        return value if value is not None else self.backing.get_string(key)

    def set_string(self, key: str, value: str) -> None:
        self.backing.set_string(key, value)

    def set_string_if_absent(self, key: str, value: str) -> bool:
        set_if_absent = getattr(self.backing, "set_string_if_absent", None)
        if set_if_absent is None:
            self.backing.set_string(key, value)
            return True
        return set_if_absent(key, value)

    def get_bool(self, key: str) -> Optional[bool]:
        value = self.overlay.get_bool(key)
        return value if value is not None else self.backing.get_bool(key)


class SnapshotDevice:
    def __init__(self, snapshot: DeviceSnapshot):
        self.snapshot = snapshot

    def get_build_number(self) -> str:
        return self.snapshot.build_number

    def get_version(self) -> str:
        return self.snapshot.version

    def get_brand(self) -> str:
        return self.snapshot.brand

    def get_model(self) -> str:
        return self.snapshot.model

    async def get_first_install_time(self) -> Optional[datetime]:
        return self.snapshot.first_install_time


class SnapshotPush:
    def __init__(self, token: Optional[str], permission: bool):
        self.token = token
        self.permission = permission

    async def get_token(self) -> Optional[str]:
        return self.token

    async def check_permission(self) -> bool:
        return self.permission


class SnapshotIdentity:
    def __init__(self, user: Optional[CurrentUser]):
        self.user = user

    async def get_current_user(self) -> Optional[CurrentUser]:
        return self.user


def system_locale_tag() -> Optional[str]:
    tag, _ = locale.getlocale()
    if tag and _LOCALE_TAG.match(tag):
        return tag
    return None
