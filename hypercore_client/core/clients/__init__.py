from .HypercoreHttpClient import HypercoreHttpClient

__all__ = ["HypercoreHttpClient"]
