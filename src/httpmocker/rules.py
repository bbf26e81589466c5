"""
httpmocker Rules

Response rules and the store that resolves incoming requests to them.

Rules are indexed by method, then path. Within a (method, path) bucket the
insertion order is kept and matters for matching:
- A rule with an empty query is the bucket's default (the last one added wins)
- A rule with a query is an override, returned only when the raw query string
  of the request is exactly equal to it (the first one added wins)

Query strings are compared as raw strings, not parsed parameters, so
``a=1&b=2`` and ``b=2&a=1`` are different queries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

Handler = Callable[[Any], Union[None, Awaitable[None]]]
HeaderValues = Union[str, Sequence[str]]


@dataclass
class Rule:
    """
    One configured mock response.

    A rule either carries a static response (status code, content type,
    headers and body) or delegates the whole reply to ``handler``. The
    handler wins when both are set.

    Example:
        Rule('GET', '/users', status_code=200, content_type='application/json',
             body='[]', headers={'X-Total-Count': ['0']})
        Rule('GET', '/users', query='page=2', status_code=200, body='[]')
        Rule('POST', '/users', handler=create_user)
    """

    method: str
    path: str
    query: str = ""
    status_code: int = 0  # 0 = server default (200)
    content_type: str = ""
    body: Union[str, bytes] = ""
    headers: Mapping[str, HeaderValues] = field(default_factory=dict)
    handler: Optional[Handler] = None

    @property
    def is_delegated(self) -> bool:
        """True when the reply is produced by ``handler``."""
        return self.handler is not None

    def header_items(self) -> Iterator[Tuple[str, str]]:
        """Yield (name, value) using the first value of each header."""
        for name, values in self.headers.items():
            if isinstance(values, str):
                yield name, values
            elif values:
                yield name, values[0]
            else:
                yield name, ""


class RuleStore:
    """
    Rules indexed by method, then path, in insertion order.

    The store only grows. Register rules before the server starts serving;
    lookups are not synchronized with concurrent additions.

    Example:
        store = RuleStore().add_rules(
            Rule('GET', '/hello', status_code=200, body='hello'),
            Rule('GET', '/hello', query='lang=fr', status_code=200, body='bonjour'),
        )
        store.find_rule('GET', '/hello', 'lang=fr').body  # 'bonjour'
    """

    def __init__(self):
        self._index: Dict[str, Dict[str, List[Rule]]] = {}

    def add_rule(self, rule: Rule) -> RuleStore:
        """Append a rule to its (method, path) bucket."""
        paths = self._index.setdefault(rule.method, {})
        paths.setdefault(rule.path, []).append(rule)
        return self

    def add_rules(self, *rules: Rule) -> RuleStore:
        """Append rules in the given order."""
        for rule in rules:
            self.add_rule(rule)
        return self

    def find_rule(self, method: str, path: str, raw_query: str = "") -> Optional[Rule]:
        """
        Resolve a request to a rule.

        Args:
            method: Request method
            path: Request path, without the query string
            raw_query: Raw query string, without the leading '?'

        Returns:
            The first rule whose query equals ``raw_query``, else the last
            rule with an empty query, else None
        """
        bucket = self._index.get(method, {}).get(path)
        if not bucket:
            return None

        candidate = None
        for rule in bucket:
            if rule.path != path:
                continue
            if not rule.query:
                candidate = rule
            elif rule.query == raw_query:
                return rule

        return candidate

    def __iter__(self) -> Iterator[Rule]:
        for paths in self._index.values():
            for bucket in paths.values():
                yield from bucket

    def __len__(self) -> int:
        return sum(len(bucket) for paths in self._index.values() for bucket in paths.values())

    def __repr__(self) -> str:
        return f"RuleStore({len(self)} rules)"
