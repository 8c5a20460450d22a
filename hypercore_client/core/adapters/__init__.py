from .BaseAdapter import BaseAdapter
from .decorators import status_tuple

__all__ = ["BaseAdapter", "status_tuple"]
