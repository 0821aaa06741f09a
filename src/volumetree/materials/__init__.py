"""Material table referenced by volume records."""

from .material import DEFAULT_MATERIALS, Material, MaterialTable
from .loader import MaterialLoader

__all__ = ["DEFAULT_MATERIALS", "Material", "MaterialTable", "MaterialLoader"]
