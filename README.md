# cfddns

`cfddns` is a small library for dynamic DNS on Cloudflare. It reads and changes
`A`/`AAAA` records and WAF IP lists through the Cloudflare v4 API, and it caches
API answers for a configurable time so that the API is not queried again on
every round.

## Installation

```
pip install cfddns
```

The only runtime dependency is `requests`.

## Usage

Create a handle from an API token. `cache_expiration` is how long cached API
answers stay valid, in seconds or as a `datetime.timedelta`; zero or less keeps
them until `flush_cache()` is called.

```python
from ipaddress import ip_address

from cfddns.base import FQDN, IPNet, RecordParams
from cfddns.cloudflare import CloudflareAuth
from cfddns.ttl import TTL_AUTO

handle = CloudflareAuth(token="token").new(cache_expiration=6 * 3600)

domain = FQDN("home.example.com")
params = RecordParams(ttl=TTL_AUTO, proxied=False, comment="")

records, cached = handle.list_records(IPNet.IP4, domain, params)
if records:
    handle.update_record(
        IPNet.IP4, domain, records[0].id, ip_address("203.0.113.7"),
        records[0].params, params,
    )
else:
    record_id = handle.create_record(IPNet.IP4, domain, ip_address("203.0.113.7"), params)
```

`CloudflareAuth` also takes a `base_url`, for talking to a different API
endpoint. A `CloudflareHandle` can be used as a context manager; leaving the
block closes its HTTP session.

The operations on DNS records are:

- `list_zones(name)` – IDs of the usable zones with that name.
- `zone_id_of_domain(domain)` – the one zone governing a domain, searching its
  parent names from the most specific upwards.
- `list_records(ip_net, domain, expected_params)` – the records and whether
  they came from the cache.
- `update_record(...)`, `create_record(...)` (returns the new record's ID) and
  `delete_record(ip_net, domain, record_id, mode)`. With
  `DeletionMode.REGULAR` a failed deletion drops the cached records of that
  domain; with `DeletionMode.FINAL` it keeps them.

Domains are `FQDN("name")` or `Wildcard("name")` (for `*.name`) from
`cfddns.base`. Zones in a `pending`, `initializing`, `moved` or `deactivated`
state are used with a warning; `deleted` zones are skipped.

When the TTL, proxy status or comment of a record differs from what was asked
for, the handle logs a hint about it. It does not change those settings itself.

### WAF lists

```python
from ipaddress import ip_network

from cfddns.base import WAFList

waf_list = WAFList(account_id="account-id", name="home")
items, already_existed, cached = handle.list_waf_list_items(waf_list, "Home addresses")
handle.create_waf_list_items(
    waf_list, "Home addresses", [ip_network("203.0.113.0/24")], "managed"
)
handle.delete_waf_list_items(waf_list, "Home addresses", [item.id for item in items])
```

`list_waf_list_items` creates the list, empty, if it does not exist yet.
Adding and deleting items waits for Cloudflare's bulk operation to finish, then
reads the list again. `final_clear_waf_list_async` deletes the list and returns
`True`; if the deletion fails, it starts an asynchronous clearing of the list
instead and returns `False`. `list_waf_lists`, `waf_list_id` and
`find_waf_list` look lists up by account and name; a description different from
the expected one is reported in the log.

`WAF_LIST_MAX_BIT_LEN` in `cfddns.waf` holds the longest prefix Cloudflare
accepts per IP family (32 for IPv4, 64 for IPv6).

### Errors, logging and caching

An API call that fails raises `cfddns.client.CloudflareError`.
`AuthenticationError` (HTTP 401) and `AuthorizationError` (HTTP 403) are
subclasses of it. The handle logs what went wrong through the standard
`logging` module (loggers under `cfddns`), including a one-time hint about
token permissions. Call `handle.flush_cache()` to drop every cached answer.

`CloudflareClient` in `cfddns.client` can also be used on its own:
`request(method, path, params, body)` returns the `result` of one call, and
`get_all(path, params, per_page)` collects every page of a listing.

### Helpers

- `TTL(1)` is Cloudflare's "auto" TTL (`TTL_AUTO`); `TTL(1).describe()`
  returns `"1 (auto)"`, other values describe as their number.
- `parse_prefix_or_ip` and `describe_prefix_or_ip` in `cfddns.base` turn text
  into an IP network and back, writing a single-address range as a bare
  address.
- `TTLCache` and `describe_free_form_string` in `cfddns.cache` are the
  expiring cache and the string quoting used in log messages.

## What it does not do

`cfddns` is a library only. It has no command, does not find out the host's
current IP addresses, reads no configuration or environment variables, runs no
schedule and sends no notifications. Deciding which records and list items to
create, update or delete is left to the caller.