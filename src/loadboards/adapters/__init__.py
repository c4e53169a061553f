from src.loadboards.adapters.dat import DatAdapter
from src.loadboards.adapters.sylectus import SylectusAdapter

__all__ = ["DatAdapter", "SylectusAdapter"]
