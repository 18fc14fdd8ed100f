"""Shopify metaobject export/import between stores."""

__version__ = "0.1.0"
