"""Cloudflare API handle for updating DNS records and WAF IP lists, with caching."""

__version__ = "0.1.0"
__all__ = ["base", "cache", "client", "cloudflare", "records", "ttl", "waf"]