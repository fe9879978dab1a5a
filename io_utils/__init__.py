from .read import (
    IMAGE_EXTENSIONS,
    discover_asset_folders,
    iter_images,
    iter_record_files,
    normalize_folder_name,
    read_json,
)
from .write import dump_json, write_index, write_json_atomic, write_report
from .store import CatalogStore

__all__ = [
    "IMAGE_EXTENSIONS",
    "discover_asset_folders",
    "iter_images",
    "iter_record_files",
    "normalize_folder_name",
    "read_json",
    "dump_json",
    "write_index",
    "write_json_atomic",
    "write_report",
    "CatalogStore",
]
