from uniswap_tx.core.adapters.BaseAdapter import BaseAdapter

__all__ = ["BaseAdapter"]
