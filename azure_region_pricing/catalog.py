import itertools
import logging
import random
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, TYPE_CHECKING

import requests

from .config import (
    RETAIL_PRICES_API_ENDPOINT,
    RETAIL_PRICES_API_VERSION,
    CURRENCY_CODE,
    PRICE_TYPE,
    FILTER_BATCH_SIZE,
    MAX_FILTER_LENGTH,
    MAX_RETRY_ATTEMPTS,
    RETRY_BASE_DELAY_SECONDS,
    RETRY_MAX_DELAY_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    RETRYABLE_STATUS_CODES,
)
from .errors import CatalogQueryError
from .utils import chunked

if TYPE_CHECKING:
    from logging import Logger


def _odata_literal(value: Any) -> str:
    """Renders a Python value as an OData literal."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return repr(value)
    # Single quotes inside string literals are escaped by doubling them
    return "'" + str(value).replace("'", "''") + "'"


@dataclass(frozen=True)
class CatalogFilter:
    """A conjunction of equality and membership constraints on catalog fields.

    The currency, price type and primary-region clauses are always part of the
    rendered filter. Membership constraints are what the client batches.
    """

    equals: Tuple[Tuple[str, Any], ...] = ()
    any_of: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()

    @classmethod
    def build(cls, equals: Optional[Mapping[str, Any]] = None,
              any_of: Optional[Mapping[str, Iterable[str]]] = None) -> 'CatalogFilter':
        membership = []
        for field_name, values in (any_of or {}).items():
            # Keep first-seen order, drop repeats
            unique = tuple(dict.fromkeys(values))
            membership.append((field_name, unique))
        return cls(equals=tuple((equals or {}).items()), any_of=tuple(membership))

    def is_empty_membership(self) -> bool:
        return any(not values for _, values in self.any_of)

    def render(self, currency: str = CURRENCY_CODE, price_type: str = PRICE_TYPE) -> str:
        clauses = [
            f"currencyCode eq {_odata_literal(currency)}",
            f"type eq {_odata_literal(price_type)}",
            "isPrimaryMeterRegion eq true",
        ]
        for field_name, value in self.equals:
            clauses.append(f"{field_name} eq {_odata_literal(value)}")
        for field_name, values in self.any_of:
            terms = [f"{field_name} eq {_odata_literal(v)}" for v in values]
            clauses.append(terms[0] if len(terms) == 1 else "(" + " or ".join(terms) + ")")
        return " and ".join(clauses)


class RetryPolicy:
    """Exponential backoff with jitter, honouring Retry-After when the API sends one."""

    def __init__(self, max_attempts=MAX_RETRY_ATTEMPTS, base_delay=RETRY_BASE_DELAY_SECONDS,
                 max_delay=RETRY_MAX_DELAY_SECONDS):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def delay(self, attempt: int, retry_after: Optional[str] = None) -> float:
        if retry_after:
            try:
                return max(0.0, min(self.max_delay, float(retry_after)))
            except ValueError:
                pass # HTTP-date form; fall back to backoff
        delay = min(self.max_delay, self.base_delay * (2 ** attempt))
        return delay + random.uniform(0, delay * 0.2)

    def wait(self, attempt: int, retry_after: Optional[str] = None):
        time.sleep(self.delay(attempt, retry_after))


class CatalogClient:
    """Filtered, batched and retried queries against the Azure Retail Prices API."""

    def __init__(self, endpoint: str = RETAIL_PRICES_API_ENDPOINT, api_version: str = RETAIL_PRICES_API_VERSION,
                 batch_size: int = FILTER_BATCH_SIZE, max_filter_length: int = MAX_FILTER_LENGTH,
                 retry_policy: Optional[RetryPolicy] = None, timeout: float = REQUEST_TIMEOUT_SECONDS,
                 currency: str = CURRENCY_CODE, logger: Optional['Logger'] = None):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.endpoint = endpoint
        self.api_version = api_version
        self.batch_size = batch_size
        self.max_filter_length = max_filter_length
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.currency = currency
        self.logger = logger or logging.getLogger()

    # --- Batching ---

    def split(self, catalog_filter: CatalogFilter) -> List[CatalogFilter]:
        """Splits every membership constraint into batches and returns their cross product."""
        if not catalog_filter.any_of:
            return [catalog_filter]

        per_field = [
            [(field_name, tuple(batch)) for batch in chunked(values, self.batch_size)]
            for field_name, values in catalog_filter.any_of
        ]
        batches = []
        for combination in itertools.product(*per_field):
            batches.extend(self._fit_length(replace(catalog_filter, any_of=tuple(combination))))
        return batches

    def _fit_length(self, catalog_filter: CatalogFilter) -> List[CatalogFilter]:
        """Halves the largest membership set until the rendered filter is short enough."""
        if len(catalog_filter.render(self.currency)) <= self.max_filter_length:
            return [catalog_filter]
        index, (field_name, values) = max(enumerate(catalog_filter.any_of), key=lambda pair: len(pair[1][1]))
        if len(values) < 2:
            # Nothing left to split; send it as is and let the API decide
            self.logger.warning(f"Filter exceeds {self.max_filter_length} characters and cannot be split further")
            return [catalog_filter]
        middle = len(values) // 2
        halves = []
        for part in (values[:middle], values[middle:]):
            any_of = list(catalog_filter.any_of)
            any_of[index] = (field_name, part)
            halves.extend(self._fit_length(replace(catalog_filter, any_of=tuple(any_of))))
        return halves

    # --- Requests ---

    def query(self, catalog_filter: CatalogFilter) -> List[Dict[str, Any]]:
        """Returns all catalog items matching the filter, merged across batches and pages."""
        if catalog_filter.is_empty_membership():
            return []
        batches = self.split(catalog_filter)
        if len(batches) > 1:
            self.logger.debug(f"Split catalog query into {len(batches)} batches")
        items: List[Dict[str, Any]] = []
        for batch in batches:
            items.extend(self._query_batch(batch.render(self.currency)))
        return items

    def _query_batch(self, filter_string: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        url = self.endpoint
        params: Optional[Dict[str, str]] = {'api-version': self.api_version, '$filter': filter_string}
        page = 0
        while url:
            page += 1
            data = self._get_json(url, params, filter_string)
            page_items = data.get('Items')
            if not isinstance(page_items, list):
                raise CatalogQueryError(
                    f"Catalog response has no Items array (page {page}) for filter: {filter_string}",
                    filter_string=filter_string,
                )
            items.extend(page_items)
            url = data.get('NextPageLink')
            params = None # NextPageLink already carries the query string
        self.logger.debug(f"Fetched {len(items)} item(s) over {page} page(s) for filter: {filter_string}")
        return items

    def _get_json(self, url: str, params: Optional[Dict[str, str]], filter_string: str) -> Dict[str, Any]:
        attempts = self.retry_policy.max_attempts
        for attempt in range(attempts):
            retry_after = None
            try:
                response = requests.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as e:
                reason = f"network error: {e}"
            else:
                if response.status_code == 200:
                    try:
                        data = response.json()
                    except ValueError as e:
                        raise CatalogQueryError(
                            f"Catalog returned malformed JSON for filter: {filter_string}",
                            filter_string=filter_string,
                        ) from e
                    if not isinstance(data, dict):
                        raise CatalogQueryError(
                            f"Catalog returned an unexpected payload for filter: {filter_string}",
                            filter_string=filter_string,
                        )
                    return data
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    raise CatalogQueryError(
                        f"Catalog request failed with status {response.status_code} for filter: "
                        f"{filter_string}: {response.text}",
                        filter_string=filter_string,
                        status_code=response.status_code,
                    )
                reason = f"status {response.status_code}"
                retry_after = response.headers.get('Retry-After')

            self.logger.warning(f"Catalog request attempt {attempt + 1}/{attempts} failed ({reason})")
            if attempt + 1 < attempts:
                self.retry_policy.wait(attempt, retry_after)

        raise CatalogQueryError(
            f"Catalog request failed after {attempts} attempt(s) ({reason}) for filter: {filter_string}",
            filter_string=filter_string,
        )
