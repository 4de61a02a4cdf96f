# pyright: reportUnusedImport=false
# flake8: noqa

from .config import (
    Settings,
    DEFAULT_CONFIG_FILE,
    serialize_settings,
    export_settings,
    load_settings,
)
