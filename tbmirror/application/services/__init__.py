from .reference_resolver import ReferenceResolver
from .exporter import Exporter
from .importer import Importer
from .clone_service import CloneService
from .label_service import LabelService
from .converter import Converter
from .fan_out import fan_out
from .tree_paths import Category, RESTORE_CATEGORIES

__all__ = [
    "ReferenceResolver",
    "Exporter",
    "Importer",
    "CloneService",
    "LabelService",
    "Converter",
    "fan_out",
    "Category",
    "RESTORE_CATEGORIES",
]
